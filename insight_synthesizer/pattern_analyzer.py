"""
==============================================================================
HMPI Monitor - Pattern Analyzer
==============================================================================
Runs the statistical analyzer over the reading history and emits one
DataInsight for every result above its materiality threshold:
- trend delta between recent and preceding windows
- volatility of the recent window
- weekly (day-of-week) pattern
- pairwise metal correlations
- health risk from current metal statuses
- z-score anomalies and the ensemble projection
"""

import logging
import random
import uuid
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence

from common.data_templates import (
    CITY_POPULATIONS,
    DEFAULT_LOCATION_POPULATION,
    DEFAULT_REGION_POPULATION,
)
from common.models import DataInsight, WaterQualityReading, utcnow
from insight_synthesizer import templates as t
from statistical_analyzer.anomalies import detect_anomalies
from statistical_analyzer.forecasting import create_ensemble_forecast, get_all_forecasts
from statistical_analyzer.stats import (
    DAY_NAMES,
    DEFAULT_TREND_WINDOW,
    extract_values,
    mean,
    metal_correlations,
    trend_delta,
    volatility,
    weekly_pattern,
)

logger = logging.getLogger(__name__)


def insight_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def location_population(location: Optional[str]) -> int:
    if not location:
        return DEFAULT_REGION_POPULATION
    lowered = location.lower()
    for city, population in CITY_POPULATIONS.items():
        if city.lower() in lowered:
            return population
    return DEFAULT_LOCATION_POPULATION


def estimate_affected_population(hmpi: float, location: Optional[str] = None) -> int:
    share = t.BASELINE_EXPOSURE
    for lower_bound, multiplier in t.EXPOSURE_MULTIPLIERS:
        if hmpi > lower_bound:
            share = multiplier
            break
    return round(location_population(location) * share)


class PatternAnalyzer:
    def __init__(self, rng: Optional[random.Random] = None, clock: Callable[[], datetime] = utcnow):
        self.rng = rng or random.Random()
        self.clock = clock

    def analyze_trends(self, historical: Sequence[Any]) -> List[DataInsight]:
        insights = []
        values = extract_values(historical)
        if not values:
            return insights

        delta = trend_delta(values, DEFAULT_TREND_WINDOW)
        if delta is not None and abs(delta.change) > t.TREND_THRESHOLD_PCT:
            magnitude = abs(delta.change)
            improving = delta.improving
            if magnitude > t.TREND_CRITICAL_PCT:
                severity, impact = "critical", "critical"
            elif magnitude > t.TREND_WARNING_PCT:
                severity, impact = "warning", "high"
            else:
                severity, impact = "info", "medium"

            affected = estimate_affected_population(delta.recent_avg)
            insights.append(DataInsight(
                id=insight_id("trend"),
                type="trend",
                severity=severity,
                title=("📈 Significant Pollution Improvement Detected" if improving
                       else "📉 Concerning Pollution Increase Observed"),
                description=(
                    f"Heavy metal pollution levels have {'decreased' if improving else 'increased'} "
                    f"by {magnitude:.1f}% against the preceding period. This "
                    f"{'positive' if improving else 'negative'} trend affects an estimated "
                    f"{affected:,} people in the monitored areas."
                ),
                confidence=min(95.0, 60.0 + magnitude),
                timestamp=self.clock(),
                impact=impact,
                actionable=not improving,
                recommendations=list(t.IMPROVING_TREND_RECOMMENDATIONS if improving
                                     else t.DETERIORATING_TREND_RECOMMENDATIONS),
                data_points={
                    "recent_avg": round(delta.recent_avg, 2),
                    "older_avg": round(delta.older_avg, 2),
                    "trend_change": round(delta.change, 2),
                    "direction": "improving" if improving else "deteriorating",
                },
            ))

        sigma = volatility(values[-DEFAULT_TREND_WINDOW:])
        if sigma > t.VOLATILITY_THRESHOLD:
            critical = sigma > t.VOLATILITY_CRITICAL
            insights.append(DataInsight(
                id=insight_id("volatility"),
                type="risk",
                severity="critical" if critical else "warning",
                title="⚡ High Pollution Volatility Alert",
                description=(
                    f"Pollution levels are showing high variability (σ={sigma:.1f}), indicating "
                    "unstable environmental conditions and multiple dynamic pollution sources."
                ),
                confidence=88.0,
                timestamp=self.clock(),
                impact="high" if critical else "medium",
                actionable=True,
                recommendations=list(t.VOLATILITY_RECOMMENDATIONS),
                data_points={"volatility": round(sigma, 2)},
            ))
        return insights

    def analyze_seasonal_patterns(self, historical: Sequence[Any]) -> List[DataInsight]:
        pattern = weekly_pattern(historical)
        observed = [day for day in range(len(pattern)) if pattern[day] > 0]
        if len(observed) < 2:
            return []

        peak_day = max(observed, key=lambda d: pattern[d])
        low_day = min(observed, key=lambda d: pattern[d])
        spread = (pattern[peak_day] - pattern[low_day]) / pattern[low_day] * 100.0
        if spread <= t.WEEKLY_SPREAD_THRESHOLD_PCT:
            return []

        peak_name, low_name = DAY_NAMES[peak_day], DAY_NAMES[low_day]
        return [DataInsight(
            id=insight_id("weekly_pattern"),
            type="correlation",
            severity="info",
            title="📅 Weekly Pollution Pattern Identified",
            description=(
                f"{peak_name} shows the highest pollution levels, averaging {spread:.1f}% higher "
                f"than {low_name}. This pattern follows human activity and industrial cycles."
            ),
            confidence=82.0,
            timestamp=self.clock(),
            impact="medium",
            actionable=True,
            recommendations=t.fill(t.WEEKLY_PATTERN_RECOMMENDATIONS, peak_day=peak_name),
            data_points={
                "weekly_pattern": [round(v, 2) for v in pattern],
                "peak_day": peak_day,
                "low_day": low_day,
                "peak_day_increase": round(spread, 2),
            },
        )]

    def analyze_metal_correlations(self, historical: Sequence[Any]) -> List[DataInsight]:
        if len(historical) < t.MIN_CORRELATION_POINTS:
            return []

        insights = []
        for corr in metal_correlations(historical):
            r = corr.coefficient
            if abs(r) <= t.CORRELATION_THRESHOLD:
                continue
            positive = r > 0
            insights.append(DataInsight(
                id=insight_id(f"correlation_{corr.metal1}_{corr.metal2}".lower()),
                type="correlation",
                severity="warning" if abs(r) > t.CORRELATION_WARNING else "info",
                title=f"🔗 Strong {'Positive' if positive else 'Negative'} Correlation Detected",
                description=(
                    f"{corr.metal1} and {corr.metal2} show a strong "
                    f"{'positive' if positive else 'negative'} correlation (r={r:.2f}), suggesting "
                    f"{'common pollution sources' if positive else 'competing environmental processes'}."
                ),
                confidence=round(abs(r) * 100.0, 1),
                timestamp=self.clock(),
                impact="medium",
                actionable=positive,
                recommendations=(t.fill(t.POSITIVE_CORRELATION_RECOMMENDATIONS,
                                        metal1=corr.metal1, metal2=corr.metal2)
                                 if positive else list(t.NEGATIVE_CORRELATION_RECOMMENDATIONS)),
                data_points=corr.to_dict(),
            ))
        return insights

    def analyze_health_risks(self, current: Sequence[WaterQualityReading]) -> List[DataInsight]:
        insights = []
        for reading in current:
            critical = [m for m in reading.metals if m.status == "critical"]
            warning = [m for m in reading.metals if m.status == "warning"]

            if critical:
                names = ", ".join(m.metal for m in critical)
                affected = estimate_affected_population(reading.hmpi, reading.location)
                insights.append(DataInsight(
                    id=insight_id("health_risk"),
                    type="risk",
                    severity="urgent" if len(critical) > 2 else "critical",
                    title=f"🚨 Critical Health Risk Alert - {reading.location}",
                    description=(
                        f"{len(critical)} heavy metal{'s' if len(critical) > 1 else ''} ({names}) "
                        f"exceeded critical safety thresholds. Neurological, cardiovascular and "
                        f"developmental risks affect an estimated {affected:,} residents."
                    ),
                    confidence=95.0,
                    timestamp=self.clock(),
                    location=reading.location,
                    impact="critical",
                    actionable=True,
                    recommendations=list(t.CRITICAL_HEALTH_RECOMMENDATIONS),
                    data_points={
                        "critical_metals": [m.to_dict() for m in critical],
                        "warning_metals": [m.to_dict() for m in warning],
                        "hmpi": reading.hmpi,
                        "affected_population": affected,
                    },
                ))
            elif len(warning) >= 2:
                names = ", ".join(m.metal for m in warning)
                insights.append(DataInsight(
                    id=insight_id("health_warning"),
                    type="risk",
                    severity="warning",
                    title=f"⚠️ Elevated Health Risk - {reading.location}",
                    description=(
                        f"Multiple heavy metals ({names}) are above their limits. Prolonged exposure "
                        "may cause health complications, particularly for children and the elderly."
                    ),
                    confidence=85.0,
                    timestamp=self.clock(),
                    location=reading.location,
                    impact="medium",
                    actionable=True,
                    recommendations=list(t.ELEVATED_HEALTH_RECOMMENDATIONS),
                    data_points={
                        "warning_metals": [m.to_dict() for m in warning],
                        "hmpi": reading.hmpi,
                    },
                ))
        return insights

    def analyze_anomalies(self, historical: Sequence[Any]) -> List[DataInsight]:
        significant = [a for a in detect_anomalies(historical) if a.severity in ("critical", "high")]
        insights = []
        for anomaly in significant[:t.MAX_ANOMALY_INSIGHTS]:
            extreme = anomaly.severity == "critical"
            where = f" - {anomaly.location}" if anomaly.location else ""
            insights.append(DataInsight(
                id=insight_id("anomaly"),
                type="anomaly",
                severity="critical" if extreme else "warning",
                title=f"🔍 {'Extreme' if extreme else 'Significant'} HMPI Anomaly{where}",
                description=(
                    f"{anomaly.explanation}. HMPI reached {anomaly.actual_value:.1f} against an "
                    f"expected {anomaly.expected_value:.1f}."
                ),
                confidence=min(99.0, round(70.0 + anomaly.anomaly_score * 5, 1)),
                timestamp=self.clock(),
                location=anomaly.location,
                impact="critical" if extreme else "high",
                actionable=True,
                recommendations=list(t.ANOMALY_RECOMMENDATIONS),
                data_points={
                    "z_score": round(anomaly.z_score, 2),
                    "actual_value": anomaly.actual_value,
                    "expected_value": round(anomaly.expected_value, 2),
                    "observed_at": anomaly.timestamp.isoformat(),
                },
            ))
        return insights

    def analyze_forecast(self, historical: Sequence[Any]) -> List[DataInsight]:
        values = extract_values(historical)
        if len(values) < t.MIN_FORECAST_POINTS:
            return []

        now = self.clock()
        ensemble = create_ensemble_forecast(get_all_forecasts(values, rng=self.rng, now=now), now=now)
        if not ensemble.predictions:
            return []

        historical_avg = mean(values)
        projected_avg = mean([p.value for p in ensemble.predictions])
        if projected_avg <= historical_avg * t.FORECAST_RISE_FACTOR:
            return []

        rise = (projected_avg - historical_avg) / historical_avg * 100.0 if historical_avg else 0.0
        return [DataInsight(
            id=insight_id("forecast"),
            type="forecast",
            severity="warning",
            title="🔮 Projected HMPI Increase",
            description=(
                f"The ensemble projection averages {projected_avg:.1f} over the next "
                f"{len(ensemble.predictions)} days, {rise:.1f}% above the historical mean."
            ),
            confidence=round(ensemble.model.confidence * 100.0, 1),
            timestamp=now,
            impact="high",
            actionable=True,
            recommendations=list(t.FORECAST_RECOMMENDATIONS),
            data_points={
                "projected_avg": round(projected_avg, 2),
                "historical_avg": round(historical_avg, 2),
                "horizon_days": len(ensemble.predictions),
            },
        )]
