"""
Tests for the projection functions and the accuracy-weighted ensemble
"""

import math
import random
from datetime import timedelta

import pytest

from statistical_analyzer.forecasting import (
    LAGGED_FEATURE,
    PROFILES,
    SEASONAL_DECOMPOSITION,
    ForecastMetrics,
    ForecastPoint,
    ForecastResult,
    Projector,
    ProjectorInfo,
    create_ensemble_forecast,
    get_all_forecasts,
    get_best_model,
    weekday_index,
)


def result(name, accuracy, values, now, r2=0.5, confidence=0.8, mae=3.0):
    points = [
        ForecastPoint(timestamp=now + timedelta(days=i + 1), value=v,
                      confidence_lower=v - 1, confidence_upper=v + 1)
        for i, v in enumerate(values)
    ]
    return ForecastResult(
        model=ProjectorInfo(name, "test", accuracy, confidence, now),
        predictions=points,
        metrics=ForecastMetrics(mae=mae, rmse=mae * 1.5, mape=mae * 2, r2=r2),
        insights=[],
    )


class TestProjector:

    def test_seasonal_projection_is_exact_without_noise(self, now):
        forecast = Projector(SEASONAL_DECOMPOSITION).predict([50.0] * 10, horizon_days=1, now=now)

        # 2026-03-03 is a Tuesday, day 62 of the year
        expected = 50.0 + 3.0 + 8.0 * math.sin(2 * math.pi * 62 / 365.25)
        point = forecast.predictions[0]
        assert point.timestamp == now + timedelta(days=1)
        assert point.value == round(expected, 1)
        assert point.confidence_lower == round(expected * 0.88, 1)
        assert point.confidence_upper == round(expected * 1.12, 1)

    def test_horizon_and_feature_importance(self, rng, now, rising_history):
        forecast = Projector(LAGGED_FEATURE, rng).predict(rising_history, horizon_days=14, now=now)

        assert len(forecast.predictions) == 14
        assert forecast.model.kind == "lagged-feature"
        assert forecast.metrics.r2 == 0.94
        assert sum(forecast.predictions[0].feature_importance.values()) == pytest.approx(1.0)
        assert forecast.insights[0].startswith("🔺")

    def test_values_and_lower_bound_never_negative(self, rng, now):
        forecast = Projector(LAGGED_FEATURE, rng).predict([0.0] * 10, horizon_days=30, now=now)
        assert all(p.value >= 0 for p in forecast.predictions)
        assert all(p.confidence_lower >= 0 for p in forecast.predictions)

    def test_empty_series(self, now):
        forecast = Projector(SEASONAL_DECOMPOSITION).predict([], now=now)
        assert forecast.predictions == []
        assert forecast.insights == ["⚠️ Insufficient data for Seasonal Decomposition Projector"]

    def test_seeded_runs_are_identical(self, now, rising_history):
        first = get_all_forecasts(rising_history, rng=random.Random(3), now=now)
        second = get_all_forecasts(rising_history, rng=random.Random(3), now=now)
        assert [r.to_dict() for r in first] == [r.to_dict() for r in second]

    def test_weekday_index_starts_on_sunday(self, now):
        assert weekday_index(now) == 1
        assert weekday_index(now - timedelta(days=1)) == 0


class TestModelSelection:

    def test_all_profiles_run(self, rng, now, rising_history):
        results = get_all_forecasts(rising_history, rng=rng, now=now)
        assert [r.model.kind for r in results] == [p.kind for p in PROFILES]
        assert all(len(r.predictions) == 7 for r in results)

    def test_best_model_has_highest_r2(self, rng, now, rising_history):
        best = get_best_model(get_all_forecasts(rising_history, rng=rng, now=now))
        assert best.model.kind == "lagged-feature"

    def test_best_model_of_nothing(self):
        assert get_best_model([]) is None


class TestEnsemble:

    def test_accuracy_weighted_average(self, now):
        ensemble = create_ensemble_forecast([
            result("A", 0.25, [10.0], now),
            result("B", 0.75, [20.0], now),
        ], now=now)

        point = ensemble.predictions[0]
        assert point.value == pytest.approx(17.5)
        assert point.confidence_lower == pytest.approx(16.5)
        assert point.confidence_upper == pytest.approx(18.5)
        assert point.feature_importance == {"A": 0.25, "B": 0.75}

    def test_metrics_and_info(self, now):
        ensemble = create_ensemble_forecast([
            result("A", 0.9, [10.0], now, r2=0.99, confidence=0.8, mae=3.0),
            result("B", 0.5, [20.0], now, r2=0.6, confidence=0.6, mae=2.0),
        ], now=now)

        assert ensemble.model.name == "Ensemble Projector"
        assert ensemble.model.kind == "ensemble"
        assert ensemble.model.accuracy == pytest.approx(0.918)
        assert ensemble.model.confidence == pytest.approx(0.7)
        assert ensemble.metrics.mae == pytest.approx(1.8)
        assert ensemble.metrics.r2 == 1.0

    def test_mismatched_lengths_renormalize(self, now):
        ensemble = create_ensemble_forecast([
            result("A", 0.5, [10.0, 30.0], now),
            result("B", 0.5, [20.0], now),
        ], now=now)

        assert [p.value for p in ensemble.predictions] == [15.0, 30.0]

    def test_empty_input(self, now):
        ensemble = create_ensemble_forecast([], now=now)
        assert ensemble.predictions == []
        assert ensemble.model.kind == "ensemble"

    def test_over_real_projectors(self, rng, now, rising_history):
        results = get_all_forecasts(rising_history, rng=rng, now=now)
        ensemble = create_ensemble_forecast(results, now=now)

        assert len(ensemble.predictions) == 7
        for step, point in enumerate(ensemble.predictions):
            values = [r.predictions[step].value for r in results]
            assert min(values) - 0.1 <= point.value <= max(values) + 0.1
