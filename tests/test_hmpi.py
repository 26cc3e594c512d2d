"""
Tests for HMPI computation and status classification
"""

import math

import pytest

from common.data_templates import METAL_LIMITS
from common.models import MetalReading
from index_calculator.hmpi import (
    EMPTY_HMPI,
    build_metal_readings,
    canonical_metal_name,
    classify_hmpi,
    classify_metal,
    compute_hmpi,
    hmpi_breakdown,
    hmpi_status,
)


def metal(name, value):
    return MetalReading(metal=name, value=value, unit="μg/L", status="normal")


class TestComputeHmpi:

    def test_empty_list_returns_documented_constant(self):
        assert compute_hmpi([]) == EMPTY_HMPI == 0.0

    def test_mean_of_sub_indices(self):
        # Lead 5/10 -> 50, Cadmium 6/3 -> 200
        assert compute_hmpi([metal("Lead", 5.0), metal("Cadmium", 6.0)]) == pytest.approx(125.0)

    def test_metal_without_limit_is_excluded(self):
        result = compute_hmpi([metal("Lead", 5.0), metal("Uranium", 900.0)])
        assert result == pytest.approx(50.0)

    def test_only_unknown_metals_gives_empty_value(self):
        assert compute_hmpi([metal("Uranium", 12.0)]) == EMPTY_HMPI

    def test_non_positive_limit_is_excluded(self):
        limits = {"Lead": 0.0, "Cadmium": 3.0}
        assert compute_hmpi([metal("Lead", 5.0), metal("Cadmium", 3.0)], limits) == pytest.approx(100.0)

    def test_result_is_never_nan(self):
        assert not math.isnan(compute_hmpi([]))


class TestClassification:

    @pytest.mark.parametrize("metal_name", sorted(METAL_LIMITS))
    def test_value_equal_to_limit_is_normal(self, metal_name):
        limit = METAL_LIMITS[metal_name]
        assert classify_metal(limit, limit) == "normal"

    def test_metal_status_boundaries(self):
        assert classify_metal(10.01, 10.0) == "warning"
        assert classify_metal(15.0, 10.0) == "warning"
        assert classify_metal(15.01, 10.0) == "critical"

    @pytest.mark.parametrize("value,band", [
        (0.0, "safe"),
        (29.99, "safe"),
        (30.0, "moderate"),
        (49.99, "moderate"),
        (50.0, "high"),
        (74.99, "high"),
        (75.0, "critical"),
        (480.0, "critical"),
    ])
    def test_hmpi_bands(self, value, band):
        assert classify_hmpi(value) == band

    def test_hmpi_status_maps_bands(self):
        assert hmpi_status(10) == "normal"
        assert hmpi_status(40) == "normal"
        assert hmpi_status(60) == "warning"
        assert hmpi_status(90) == "critical"


class TestBuildMetalReadings:

    def test_provider_keys_are_canonicalized(self):
        readings = build_metal_readings({"pb": 12.0, "cadmium": 1.0})
        assert [r.metal for r in readings] == ["Lead", "Cadmium"]
        assert readings[0].status == "warning"
        assert readings[1].status == "normal"

    def test_invalid_values_are_skipped(self):
        readings = build_metal_readings({"Lead": "n/a", "Mercury": float("nan"), "Zinc": -1, "Copper": "100"})
        assert [r.metal for r in readings] == ["Copper"]
        assert readings[0].value == 100.0

    def test_unknown_metal_is_kept_as_normal(self):
        readings = build_metal_readings({"Uranium": 40.0})
        assert readings[0].metal == "Uranium"
        assert readings[0].status == "normal"

    def test_canonical_metal_name(self):
        assert canonical_metal_name("HG") == "Mercury"
        assert canonical_metal_name("Arsenic") == "Arsenic"
        assert canonical_metal_name("pm25") is None

    def test_breakdown(self):
        breakdown = hmpi_breakdown(build_metal_readings({"Lead": 5.0, "Uranium": 1.0}))
        assert breakdown == {"Lead": 50.0}
