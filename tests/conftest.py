"""
Shared fixtures for the HMPI Monitor test suite
"""

import random
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
import requests

from common.config import Settings
from common.models import EnvironmentalParameters, WaterQualityReading
from index_calculator.hmpi import build_metal_readings

# Monday
FIXED_NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

# Monthly HMPI values rising from 45 to 108
RISING_HMPI = [45, 52, 48, 67, 72, 79, 85, 92, 88, 95, 102, 108]


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def settings():
    return Settings(waqi_api_key="test-key", request_timeout=2.0)


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def mock_response():
    """Factory for fake requests.Response objects"""

    def make(status_code=200, payload=None, json_error=None):
        response = MagicMock()
        response.status_code = status_code
        if json_error is not None:
            response.json.side_effect = json_error
        else:
            response.json.return_value = payload
        return response

    return make


@pytest.fixture
def make_reading():
    """Factory for WaterQualityReading objects with classified metals"""

    def make(location="Delhi Yamuna", hmpi=50.0, metals=None, timestamp=None, synthetic=False):
        concentrations = metals if metals is not None else {"Lead": 5.0, "Cadmium": 1.0}
        return WaterQualityReading(
            location=location,
            timestamp=timestamp or FIXED_NOW,
            hmpi=hmpi,
            metals=tuple(build_metal_readings(concentrations)),
            parameters=EnvironmentalParameters(),
            synthetic=synthetic,
        )

    return make


@pytest.fixture
def rising_history(make_reading):
    """Twelve monthly readings rising from 45 to 108"""
    start = FIXED_NOW - timedelta(days=30 * (len(RISING_HMPI) - 1))
    return [
        make_reading(hmpi=float(value), timestamp=start + timedelta(days=30 * i))
        for i, value in enumerate(RISING_HMPI)
    ]
