"""
==============================================================================
HMPI Monitor - Smart Insights Engine
==============================================================================
Entry point used by the monitor and the UI collaborators:
- generate_insights(current, historical): ranked DataInsight list
- generate_summary(insights): InsightsSummary

Insights are regenerated wholesale on every call. When the readings are
simulated fallback data, every insight and the summary are flagged synthetic.
"""

import logging
import random
import re
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional, Sequence

from common.models import DataInsight, InsightsSummary, WaterQualityReading, utcnow
from common.observability import log_event
from insight_synthesizer.pattern_analyzer import PatternAnalyzer
from insight_synthesizer.recommendations import RecommendationEngine
from insight_synthesizer.templates import SEVERITY_RANK

logger = logging.getLogger(__name__)

REVIEW_INTERVAL = timedelta(hours=24)
MAX_KEY_FACTORS = 5
TREND_DIRECTION_PCT = 5.0


def _is_synthetic(readings: Sequence[Any]) -> bool:
    for reading in readings:
        if isinstance(reading, WaterQualityReading) and reading.synthetic:
            return True
        if isinstance(reading, dict) and reading.get("synthetic"):
            return True
    return False


def _plain_title(title: str) -> str:
    """Title without its leading emoji"""
    return re.sub(r"^[^\w]+", "", title).strip()


def sort_insights(insights: List[DataInsight]) -> List[DataInsight]:
    """Severity (urgent first), then confidence, both descending"""
    return sorted(insights, key=lambda i: (-SEVERITY_RANK.get(i.severity, 0), -i.confidence))


class SmartInsightsEngine:
    def __init__(self, rng: Optional[random.Random] = None, clock: Callable[[], datetime] = utcnow):
        self.clock = clock
        self.pattern_analyzer = PatternAnalyzer(rng=rng, clock=clock)
        self.recommendation_engine = RecommendationEngine(clock=clock)

    def generate_insights(
        self,
        current: Sequence[WaterQualityReading],
        historical: Sequence[Any],
        synthetic: Optional[bool] = None,
    ) -> List[DataInsight]:
        if synthetic is None:
            synthetic = _is_synthetic(current) or _is_synthetic(historical)

        analyzer = self.pattern_analyzer
        insights = []
        insights.extend(analyzer.analyze_trends(historical))
        insights.extend(analyzer.analyze_seasonal_patterns(historical))
        insights.extend(analyzer.analyze_metal_correlations(historical))
        insights.extend(analyzer.analyze_health_risks(current))
        insights.extend(analyzer.analyze_anomalies(historical))
        insights.extend(analyzer.analyze_forecast(historical))

        insights.extend(self.recommendation_engine.generate_actionable_recommendations(insights))

        if synthetic:
            for insight in insights:
                insight.data_points["synthetic"] = True

        log_event(logger, "insights_generated", f"💡 Generated {len(insights)} insights",
                  {"count": len(insights), "synthetic": synthetic}, severity="debug")
        return sort_insights(insights)

    def generate_summary(self, insights: Sequence[DataInsight], synthetic: Optional[bool] = None) -> InsightsSummary:
        if synthetic is None:
            synthetic = any(i.data_points.get("synthetic") for i in insights)

        critical_alerts = sum(1 for i in insights if i.severity in ("critical", "urgent"))
        improvement_opportunities = sum(1 for i in insights if i.actionable and i.type == "recommendation")

        if critical_alerts > 2:
            risk_level = "critical"
        elif critical_alerts > 0:
            risk_level = "high"
        elif any(i.severity == "warning" for i in insights):
            risk_level = "medium"
        else:
            risk_level = "low"

        trending_direction = "stable"
        trends = [i for i in insights if i.type == "trend"]
        if trends:
            avg_change = sum(i.data_points.get("trend_change", 0.0) for i in trends) / len(trends)
            if avg_change < -TREND_DIRECTION_PCT:
                trending_direction = "improving"
            elif avg_change > TREND_DIRECTION_PCT:
                trending_direction = "deteriorating"

        key_factors = []
        for insight in insights:
            if insight.impact not in ("high", "critical"):
                continue
            title = _plain_title(insight.title)
            if title not in key_factors:
                key_factors.append(title)
            if len(key_factors) == MAX_KEY_FACTORS:
                break

        return InsightsSummary(
            total_insights=len(insights),
            critical_alerts=critical_alerts,
            improvement_opportunities=improvement_opportunities,
            risk_level=risk_level,
            trending_direction=trending_direction,
            key_factors=key_factors,
            next_review=self.clock() + REVIEW_INTERVAL,
            synthetic=synthetic,
        )
