"""
Meta-recommendations derived from the insights themselves
"""
import logging
from datetime import datetime
from typing import Callable, List, Sequence

from common.models import DataInsight, utcnow
from insight_synthesizer import templates as t
from insight_synthesizer.pattern_analyzer import insight_id

logger = logging.getLogger(__name__)


class RecommendationEngine:
    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    def generate_actionable_recommendations(self, insights: Sequence[DataInsight]) -> List[DataInsight]:
        recommendations = []
        critical = [i for i in insights if i.severity in ("critical", "urgent")]
        risks = [i for i in insights if i.type == "risk"]
        trends = [i for i in insights if i.type == "trend"]

        if len(critical) >= 2:
            recommendations.append(DataInsight(
                id=insight_id("emergency_response"),
                type="recommendation",
                severity="urgent",
                title="🚨 Emergency Response Protocol Activation",
                description=(
                    f"Multiple critical alerts detected ({len(critical)} active). A coordinated "
                    "response across environmental, health and public safety departments is required."
                ),
                confidence=98.0,
                timestamp=self.clock(),
                impact="critical",
                actionable=True,
                recommendations=list(t.EMERGENCY_RECOMMENDATIONS),
                data_points={"critical_insights": len(critical)},
            ))

        if risks:
            locations = sorted({i.location for i in risks if i.location})
            count = len(locations) or 1
            recommendations.append(DataInsight(
                id=insight_id("health_prevention"),
                type="recommendation",
                severity="warning",
                title="🏥 Preventive Health Measures Required",
                description=(
                    f"Health risks identified in {count} location{'s' if count > 1 else ''}. "
                    "Protective measures should start now for vulnerable populations."
                ),
                confidence=92.0,
                timestamp=self.clock(),
                impact="high",
                actionable=True,
                recommendations=list(t.PREVENTIVE_HEALTH_RECOMMENDATIONS),
                data_points={"locations": locations},
            ))

        if any(i.data_points.get("trend_change", 0) > t.LONG_TERM_TREND_PCT for i in trends):
            recommendations.append(DataInsight(
                id=insight_id("long_term_strategy"),
                type="recommendation",
                severity="info",
                title="📊 Long-term Environmental Strategy Review",
                description=(
                    "Significant pollution trends call for a policy review. Current management "
                    "strategies may need adjusting to the emerging pattern."
                ),
                confidence=85.0,
                timestamp=self.clock(),
                impact="medium",
                actionable=True,
                recommendations=list(t.LONG_TERM_RECOMMENDATIONS),
            ))

        return recommendations
