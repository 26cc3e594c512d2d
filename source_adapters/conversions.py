"""
Provider scale conversions.

Air-quality providers do not measure dissolved metals, so their scales are
mapped onto HMPI and metal estimates with fixed, documented approximations.
Every function here is pure and deterministic.
"""
import math
from typing import Iterable, List, Mapping, Optional

from common.data_templates import METAL_LIMITS
from common.models import MetalReading
from index_calculator.hmpi import build_metal_readings

# AQI range -> HMPI range, linear inside each band
AQI_HMPI_BANDS = [
    (0.0, 50.0, 20.0, 40.0),
    (50.0, 100.0, 40.0, 80.0),
    (100.0, 150.0, 80.0, 120.0),
    (150.0, 300.0, 120.0, 200.0),
]

HMPI_ESTIMATE_FLOOR = 20.0
HMPI_ESTIMATE_CEILING = 300.0

# metal: (concentration per unit of pollution factor, floor) in μg/L
POLLUTANT_METAL_FACTORS = {
    "Lead": (0.1, 1.0),
    "Cadmium": (0.03, 0.5),
    "Mercury": (0.05, 0.5),
    "Arsenic": (0.08, 1.0),
    "Chromium": (0.4, 2.0),
    "Nickel": (0.5, 2.0),
    "Zinc": (30.0, 50.0),
    "Copper": (15.0, 20.0),
}


def to_number(value) -> Optional[float]:
    """float(value), or None for missing, non-numeric ('-') and NaN values"""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def aqi_to_hmpi(aqi) -> Optional[float]:
    """Piecewise-linear AQI -> HMPI banding (WAQI and SAFAR)"""
    value = to_number(aqi)
    if value is None:
        return None
    value = clamp(value, AQI_HMPI_BANDS[0][0], AQI_HMPI_BANDS[-1][1])
    for aqi_low, aqi_high, hmpi_low, hmpi_high in AQI_HMPI_BANDS:
        if value <= aqi_high:
            fraction = (value - aqi_low) / (aqi_high - aqi_low)
            return round(hmpi_low + fraction * (hmpi_high - hmpi_low), 1)
    return AQI_HMPI_BANDS[-1][3]


def particulate_to_hmpi(values: Iterable) -> Optional[float]:
    """Mean particulate measurement x2, clamped to [20, 300] (OpenAQ)"""
    numbers = [n for n in (to_number(v) for v in values) if n is not None]
    if not numbers:
        return None
    mean = sum(numbers) / len(numbers)
    return round(clamp(mean * 2, HMPI_ESTIMATE_FLOOR, HMPI_ESTIMATE_CEILING), 1)


def epa_to_hmpi(sample) -> Optional[float]:
    """EPA sample measurement x3, clamped to [20, 300]"""
    value = to_number(sample)
    if value is None:
        return None
    return round(clamp(value * 3, HMPI_ESTIMATE_FLOOR, HMPI_ESTIMATE_CEILING), 1)


def pollution_factor(pm25=None, pm10=None, so2=None) -> float:
    return sum(to_number(v) or 0.0 for v in (pm25, pm10, so2)) / 3


def estimate_metals_from_pollutants(
    pm25=None,
    pm10=None,
    so2=None,
    limits: Mapping[str, float] = METAL_LIMITS,
) -> List[MetalReading]:
    """
    Estimate dissolved metal concentrations from particulate and SO2 levels.

    Industrial particulate emissions carry heavy metals, so the pollution
    factor (pm25 + pm10 + so2) / 3 is scaled per metal, with a floor.
    """
    factor = pollution_factor(pm25, pm10, so2)
    concentrations = {
        metal: max(floor, factor * scale)
        for metal, (scale, floor) in POLLUTANT_METAL_FACTORS.items()
    }
    return build_metal_readings(concentrations, limits)
