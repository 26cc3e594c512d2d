"""
==============================================================================
HMPI Monitor - Projection Functions
==============================================================================
Deterministic HMPI projections. A projector combines:
1. The last observed value plus a least-squares slope over recent points
2. A fixed weekday offset table and an optional yearly sinusoid
3. Bounded noise from an injectable RNG

The three profiles (sequence-trend, seasonal-decomposition, lagged-feature)
differ only in their offset tables, noise and uncertainty percentage. Their
accuracy and error metrics are nominal configured values, not measurements.
The ensemble averages projector outputs weighted by nominal accuracy.
==============================================================================
"""

import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from common.models import utcnow
from statistical_analyzer.stats import extract_values, linear_trend_slope, mean

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 7
TREND_POINTS = 10
ENSEMBLE_ERROR_FACTOR = 0.9
ENSEMBLE_R2_FACTOR = 1.02


@dataclass(frozen=True)
class ForecastMetrics:
    mae: float = 0.0
    rmse: float = 0.0
    mape: float = 0.0
    r2: float = 0.0


@dataclass(frozen=True)
class ProjectorInfo:
    name: str
    kind: str
    accuracy: float
    confidence: float
    last_updated: datetime


@dataclass(frozen=True)
class ForecastPoint:
    timestamp: datetime
    value: float
    confidence_lower: float
    confidence_upper: float
    feature_importance: Dict[str, float] = field(default_factory=dict)


@dataclass
class ForecastResult:
    model: ProjectorInfo
    predictions: List[ForecastPoint]
    metrics: ForecastMetrics
    insights: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": {
                "name": self.model.name,
                "kind": self.model.kind,
                "accuracy": self.model.accuracy,
                "confidence": self.model.confidence,
                "last_updated": self.model.last_updated.isoformat(),
            },
            "predictions": [
                {
                    "timestamp": p.timestamp.isoformat(),
                    "value": p.value,
                    "confidence_lower": p.confidence_lower,
                    "confidence_upper": p.confidence_upper,
                    "feature_importance": dict(p.feature_importance),
                }
                for p in self.predictions
            ],
            "metrics": vars(self.metrics).copy(),
            "insights": list(self.insights),
        }


@dataclass(frozen=True)
class ProjectorProfile:
    """Parameters of one projection formula"""

    name: str
    kind: str
    accuracy: float
    confidence: float
    weekday_offsets: Tuple[float, ...]  # index 0 = Sunday
    uncertainty_pct: float
    metrics: ForecastMetrics
    noise_amplitude: float = 0.0
    yearly_amplitude: float = 0.0
    feature_importance: Dict[str, float] = field(default_factory=dict)
    notes: Tuple[str, ...] = ()


SEQUENCE_TREND = ProjectorProfile(
    name="Sequence Trend Projector",
    kind="sequence-trend",
    accuracy=0.92,
    confidence=0.89,
    weekday_offsets=(-2.5, 1.5, 2.0, 1.8, 1.2, 0.5, -1.0),
    uncertainty_pct=0.15,
    noise_amplitude=2.5,
    metrics=ForecastMetrics(mae=3.2, rmse=4.8, mape=5.1, r2=0.87),
    feature_importance={
        "Historical Trend": 0.35,
        "Seasonal Pattern": 0.25,
        "Recent Values": 0.20,
        "Weather Correlation": 0.15,
        "Industrial Activity": 0.05,
    },
    notes=("📈 Linear trend fitted over the 10 most recent readings",),
)

SEASONAL_DECOMPOSITION = ProjectorProfile(
    name="Seasonal Decomposition Projector",
    kind="seasonal-decomposition",
    accuracy=0.89,
    confidence=0.92,
    weekday_offsets=(-3.0, 2.0, 3.0, 2.5, 1.5, 0.5, -1.5),
    uncertainty_pct=0.12,
    yearly_amplitude=8.0,
    metrics=ForecastMetrics(mae=2.8, rmse=4.2, mape=4.6, r2=0.89),
    feature_importance={
        "Yearly Seasonality": 0.30,
        "Weekly Seasonality": 0.25,
        "Trend Changes": 0.20,
        "Holiday Effects": 0.15,
        "External Regressors": 0.10,
    },
    notes=("🗓️ Weekly and yearly seasonal components applied to the trend",),
)

LAGGED_FEATURE = ProjectorProfile(
    name="Lagged Feature Projector",
    kind="lagged-feature",
    accuracy=0.94,
    confidence=0.86,
    weekday_offsets=(-2.0, 1.0, 1.0, 1.0, 1.0, 1.0, -2.0),
    uncertainty_pct=0.18,
    noise_amplitude=4.0,
    metrics=ForecastMetrics(mae=2.5, rmse=3.8, mape=4.2, r2=0.94),
    feature_importance={
        "Lagged Values (1-3 days)": 0.40,
        "Temporal Features": 0.20,
        "Weather Correlation": 0.18,
        "Moving Averages": 0.12,
        "Interaction Terms": 0.10,
    },
    notes=("📅 Weekend/weekday offsets with weather-like noise",),
)

PROFILES = (SEQUENCE_TREND, SEASONAL_DECOMPOSITION, LAGGED_FEATURE)


def weekday_index(moment: datetime) -> int:
    """Day of week with Sunday = 0"""
    return (moment.weekday() + 1) % 7


def yearly_offset(moment: datetime, amplitude: float) -> float:
    if not amplitude:
        return 0.0
    day_of_year = moment.timetuple().tm_yday
    return amplitude * math.sin(2 * math.pi * day_of_year / 365.25)


def direction_insight(name: str, historical_avg: float, predicted_avg: float) -> str:
    if predicted_avg > historical_avg * 1.1:
        return f"🔺 {name} projects a 10%+ increase in pollution levels"
    if predicted_avg < historical_avg * 0.9:
        return f"🔻 {name} projects improving conditions"
    return f"➡️ {name} indicates stable pollution levels ahead"


class Projector:
    """One parameterized projection formula"""

    def __init__(self, profile: ProjectorProfile, rng: Optional[random.Random] = None):
        self.profile = profile
        self.rng = rng or random.Random()

    def info(self, now: datetime) -> ProjectorInfo:
        return ProjectorInfo(
            name=self.profile.name,
            kind=self.profile.kind,
            accuracy=self.profile.accuracy,
            confidence=self.profile.confidence,
            last_updated=now,
        )

    def _noise(self) -> float:
        amplitude = self.profile.noise_amplitude
        return self.rng.uniform(-amplitude, amplitude) if amplitude else 0.0

    def predict(self, data: Sequence[Any], horizon_days: int = DEFAULT_HORIZON_DAYS,
                now: Optional[datetime] = None) -> ForecastResult:
        now = now or utcnow()
        values = extract_values(data)
        if not values:
            return ForecastResult(
                model=self.info(now),
                predictions=[],
                metrics=ForecastMetrics(),
                insights=[f"⚠️ Insufficient data for {self.profile.name}"],
            )

        base = values[-1]
        slope = linear_trend_slope(values, TREND_POINTS)
        pct = self.profile.uncertainty_pct

        predictions = []
        for step in range(1, horizon_days + 1):
            moment = now + timedelta(days=step)
            seasonal = self.profile.weekday_offsets[weekday_index(moment)]
            seasonal += yearly_offset(moment, self.profile.yearly_amplitude)
            predicted = base + slope * step + seasonal + self._noise()
            uncertainty = abs(predicted) * pct
            predictions.append(ForecastPoint(
                timestamp=moment,
                value=max(0.0, round(predicted, 1)),
                confidence_lower=max(0.0, round(predicted - uncertainty, 1)),
                confidence_upper=round(predicted + uncertainty, 1),
                feature_importance=dict(self.profile.feature_importance),
            ))

        insights = [direction_insight(self.profile.name, mean(values), mean([p.value for p in predictions]))]
        insights.extend(self.profile.notes)
        return ForecastResult(
            model=self.info(now),
            predictions=predictions,
            metrics=self.profile.metrics,
            insights=insights,
        )


def get_all_forecasts(
    data: Sequence[Any],
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
    profiles: Sequence[ProjectorProfile] = PROFILES,
) -> List[ForecastResult]:
    """Run every projector profile over the same series"""
    rng = rng or random.Random()
    now = now or utcnow()
    return [Projector(profile, rng).predict(data, horizon_days, now) for profile in profiles]


def get_best_model(results: Sequence[ForecastResult]) -> Optional[ForecastResult]:
    """Result with the highest nominal r²; None when there are no results"""
    if not results:
        return None
    return max(results, key=lambda r: r.metrics.r2)


def create_ensemble_forecast(results: Sequence[ForecastResult], now: Optional[datetime] = None) -> ForecastResult:
    """
    Accuracy-weighted average of projector outputs.

    At each step the weights are renormalized over the projectors that have a
    point there. Error metrics are the best input x0.9, r² the best input x1.02
    capped at 1.
    """
    now = now or utcnow()
    if not results:
        return ForecastResult(
            model=ProjectorInfo("Ensemble Projector", "ensemble", 0.0, 0.0, now),
            predictions=[],
            metrics=ForecastMetrics(),
            insights=["⚠️ No projections available for the ensemble"],
        )

    total_accuracy = sum(r.model.accuracy for r in results)
    horizon = max(len(r.predictions) for r in results)

    predictions = []
    for step in range(horizon):
        available = [r for r in results if step < len(r.predictions)]
        weight_sum = sum(r.model.accuracy for r in available)
        if not weight_sum:
            continue

        value = lower = upper = 0.0
        for result in available:
            weight = result.model.accuracy / weight_sum
            point = result.predictions[step]
            value += point.value * weight
            lower += point.confidence_lower * weight
            upper += point.confidence_upper * weight

        predictions.append(ForecastPoint(
            timestamp=available[0].predictions[step].timestamp,
            value=round(value, 1),
            confidence_lower=round(lower, 1),
            confidence_upper=round(upper, 1),
            feature_importance={
                r.model.name: round(r.model.accuracy / total_accuracy, 4) if total_accuracy else 0.0
                for r in results
            },
        ))

    metrics = ForecastMetrics(
        mae=round(min(r.metrics.mae for r in results) * ENSEMBLE_ERROR_FACTOR, 3),
        rmse=round(min(r.metrics.rmse for r in results) * ENSEMBLE_ERROR_FACTOR, 3),
        mape=round(min(r.metrics.mape for r in results) * ENSEMBLE_ERROR_FACTOR, 3),
        r2=round(min(1.0, max(r.metrics.r2 for r in results) * ENSEMBLE_R2_FACTOR), 3),
    )
    info = ProjectorInfo(
        name="Ensemble Projector",
        kind="ensemble",
        accuracy=round(min(1.0, max(r.model.accuracy for r in results) * ENSEMBLE_R2_FACTOR), 3),
        confidence=round(mean([r.model.confidence for r in results]), 3),
        last_updated=now,
    )
    insights = [
        f"⚖️ Ensemble of {len(results)} projectors weighted by nominal accuracy",
    ]
    if predictions:
        insights.append(f"🎯 Projected HMPI in {len(predictions)} days: {predictions[-1].value}")
    return ForecastResult(model=info, predictions=predictions, metrics=metrics, insights=insights)
