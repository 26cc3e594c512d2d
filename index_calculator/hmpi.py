"""
Heavy Metal Pollution Index (HMPI) computation and status classification.

HMPI = mean over metals of (Ci / Si * 100), where Ci is the measured
concentration and Si the metal's permissible limit. Metals without a limit are
left out of the average. Everything here is pure: no I/O, no randomness.
"""
import math
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from common.data_templates import METAL_KEYS, METAL_LIMITS, METAL_UNIT
from common.models import MetalReading

# Ratio value/limit above which a metal is flagged
WARNING_RATIO = 1.0
CRITICAL_RATIO = 1.5

# Canonical HMPI bands: (exclusive upper bound, band)
HMPI_BANDS = [
    (30.0, "safe"),
    (50.0, "moderate"),
    (75.0, "high"),
    (math.inf, "critical"),
]

BAND_STATUS = {
    "safe": "normal",
    "moderate": "normal",
    "high": "warning",
    "critical": "critical",
}

EMPTY_HMPI = 0.0


def canonical_metal_name(name: str) -> Optional[str]:
    """Map a provider key ('pb', 'lead', 'Lead') to the canonical metal name"""
    if name in METAL_LIMITS:
        return name
    return METAL_KEYS.get(str(name).strip().lower())


def metal_limit(name: str, limits: Mapping[str, float] = METAL_LIMITS) -> Optional[float]:
    canonical = canonical_metal_name(name) or name
    limit = limits.get(canonical)
    if limit is None or limit <= 0:
        return None
    return float(limit)


def compute_hmpi(metals: Iterable[MetalReading], limits: Mapping[str, float] = METAL_LIMITS) -> float:
    """
    Compute the HMPI of a set of metal readings.

    Returns EMPTY_HMPI (0.0) when no metal has a known limit.
    """
    scores = []
    for reading in metals:
        limit = metal_limit(reading.metal, limits)
        if limit is None:
            continue
        scores.append(reading.value / limit * 100.0)

    if not scores:
        return EMPTY_HMPI
    return sum(scores) / len(scores)


def classify_metal(value: float, limit: float) -> str:
    """normal / warning / critical from the concentration-to-limit ratio"""
    ratio = value / limit
    if ratio > CRITICAL_RATIO:
        return "critical"
    if ratio > WARNING_RATIO:
        return "warning"
    return "normal"


def classify_hmpi(value: float) -> str:
    """safe / moderate / high / critical band of an HMPI value"""
    for upper, band in HMPI_BANDS:
        if value < upper:
            return band
    return HMPI_BANDS[-1][1]


def hmpi_status(value: float) -> str:
    """Per-location status (normal / warning / critical) of an HMPI value"""
    return BAND_STATUS[classify_hmpi(value)]


def build_metal_reading(
    metal: str,
    value: float,
    limits: Mapping[str, float] = METAL_LIMITS,
    unit: str = METAL_UNIT,
    timestamp: Optional[datetime] = None,
    location: Optional[str] = None,
) -> MetalReading:
    name = canonical_metal_name(metal) or metal
    limit = metal_limit(name, limits)
    status = classify_metal(value, limit) if limit is not None else "normal"
    return MetalReading(
        metal=name,
        value=round(float(value), 4),
        unit=unit,
        status=status,
        timestamp=timestamp,
        location=location,
    )


def build_metal_readings(
    concentrations: Mapping[str, float],
    limits: Mapping[str, float] = METAL_LIMITS,
    unit: str = METAL_UNIT,
    timestamp: Optional[datetime] = None,
    location: Optional[str] = None,
) -> List[MetalReading]:
    """Classify a {metal: concentration} mapping, skipping non-numeric values"""
    readings = []
    for metal, raw in concentrations.items():
        try:
            value = float(raw)
        except (TypeError, ValueError):
            continue
        if math.isnan(value) or value < 0:
            continue
        readings.append(build_metal_reading(metal, value, limits, unit, timestamp, location))
    return readings


def hmpi_breakdown(metals: Iterable[MetalReading], limits: Mapping[str, float] = METAL_LIMITS) -> Dict[str, float]:
    """Per-metal sub-index (Ci / Si * 100) for metals with a known limit"""
    breakdown = {}
    for reading in metals:
        limit = metal_limit(reading.metal, limits)
        if limit is not None:
            breakdown[reading.metal] = round(reading.value / limit * 100.0, 2)
    return breakdown
