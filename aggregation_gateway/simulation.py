"""
Simulated fallback readings served when every live source has failed.

Values start from a deterministic baseline per location and metal, follow a
time-of-day sinusoid and carry bounded noise from the caller's RNG. Every
reading is marked synthetic.
"""
import logging
import math
import os
import random
from datetime import datetime
from typing import Dict, List, Optional

import yaml

from common.data_templates import (
    FALLBACK_LOCATIONS,
    FALLBACK_METAL_BASELINES,
    METAL_LIMITS,
)
from common.models import EnvironmentalParameters, WaterQualityReading, utcnow
from index_calculator.hmpi import build_metal_readings, compute_hmpi

logger = logging.getLogger(__name__)

MAX_FALLBACK_HMPI = 500.0
DIURNAL_FREQUENCY = 0.26
DIURNAL_AMPLITUDE = 0.1
NOISE_AMPLITUDE = 0.1


def load_locations(path: Optional[str]) -> List[Dict]:
    """
    Load fallback locations from a YAML file.

    The file holds a list of {name, lat, lon, base_factor?} mappings, either at
    the top level or under a 'locations' key. Without a path the built-in
    locations are returned.
    """
    if not path:
        return [dict(loc) for loc in FALLBACK_LOCATIONS]
    if not os.path.exists(path):
        raise ValueError(f"Locations file not found: {path}")

    with open(path, "r") as f:
        content = yaml.safe_load(f)

    if isinstance(content, dict):
        content = content.get("locations")
    if not isinstance(content, list) or not content:
        raise ValueError(f"Locations file {path} must contain a non-empty list of locations")

    locations = []
    for entry in content:
        try:
            locations.append({
                "name": str(entry["name"]),
                "lat": float(entry["lat"]),
                "lon": float(entry["lon"]),
                "base_factor": float(entry.get("base_factor", 1.0)),
            })
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid location entry in {path}: {entry!r} ({e})")

    logger.info(f"Loaded {len(locations)} fallback locations from {path}")
    return locations


def simulate_metal_concentrations(rng: random.Random, base_factor: float, now: datetime) -> Dict[str, float]:
    hour = now.hour + now.minute / 60.0
    diurnal = math.sin(hour * DIURNAL_FREQUENCY) * DIURNAL_AMPLITUDE

    concentrations = {}
    for metal, baseline in FALLBACK_METAL_BASELINES.items():
        limit = METAL_LIMITS[metal]
        value = limit * baseline * base_factor + diurnal * limit
        value += rng.uniform(-NOISE_AMPLITUDE, NOISE_AMPLITUDE) * limit
        concentrations[metal] = max(0.0, value)
    return concentrations


def simulate_parameters(rng: random.Random) -> EnvironmentalParameters:
    return EnvironmentalParameters(
        temperature=round(18 + rng.random() * 15, 1),
        ph=round(6.5 + rng.random() * 2, 2),
        turbidity=round(rng.random() * 50, 1),
        dissolved_oxygen=round(4 + rng.random() * 6, 1),
    )


def generate_fallback_data(
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
    locations: Optional[List[Dict]] = None,
) -> List[WaterQualityReading]:
    """One synthetic reading per fallback location"""
    rng = rng or random.Random()
    now = now or utcnow()
    locations = locations if locations is not None else FALLBACK_LOCATIONS

    readings = []
    for location in locations:
        concentrations = simulate_metal_concentrations(rng, location.get("base_factor", 1.0), now)
        metals = build_metal_readings(concentrations, timestamp=now, location=location["name"])
        hmpi = min(compute_hmpi(metals), MAX_FALLBACK_HMPI)
        readings.append(WaterQualityReading(
            location=location["name"],
            latitude=location["lat"],
            longitude=location["lon"],
            timestamp=now,
            hmpi=round(hmpi, 2),
            metals=tuple(metals),
            parameters=simulate_parameters(rng),
            synthetic=True,
        ))
    return readings
