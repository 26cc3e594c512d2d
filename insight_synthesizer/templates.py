"""
Recommendation lists and thresholds used when turning statistics into insights
"""

SEVERITY_RANK = {"urgent": 4, "critical": 3, "warning": 2, "info": 1}

# Materiality thresholds
TREND_THRESHOLD_PCT = 5.0
TREND_WARNING_PCT = 10.0
TREND_CRITICAL_PCT = 20.0
VOLATILITY_THRESHOLD = 15.0
VOLATILITY_CRITICAL = 25.0
WEEKLY_SPREAD_THRESHOLD_PCT = 20.0
MIN_CORRELATION_POINTS = 20
CORRELATION_THRESHOLD = 0.7
CORRELATION_WARNING = 0.85
FORECAST_RISE_FACTOR = 1.1
MIN_FORECAST_POINTS = 10
MAX_ANOMALY_INSIGHTS = 3
LONG_TERM_TREND_PCT = 10.0

# Share of a population exposed at a given HMPI: (exclusive lower bound, share)
EXPOSURE_MULTIPLIERS = [
    (100.0, 0.8),
    (80.0, 0.6),
    (60.0, 0.4),
    (40.0, 0.2),
]
BASELINE_EXPOSURE = 0.1

IMPROVING_TREND_RECOMMENDATIONS = [
    "Continue current environmental policies",
    "Document successful pollution control measures",
    "Monitor for sustained improvement",
]

DETERIORATING_TREND_RECOMMENDATIONS = [
    "Investigate sources of increased pollution",
    "Implement immediate mitigation measures",
    "Increase monitoring frequency",
    "Alert relevant environmental authorities",
]

VOLATILITY_RECOMMENDATIONS = [
    "Identify and control variable pollution sources",
    "Implement real-time monitoring systems",
    "Develop adaptive response protocols",
    "Issue public health advisories for vulnerable groups",
]

WEEKLY_PATTERN_RECOMMENDATIONS = [
    "Implement stricter controls on {peak_day}s",
    "Adjust industrial operation schedules",
    "Plan public activities during lower pollution periods",
    "Issue targeted health advisories for peak days",
]

POSITIVE_CORRELATION_RECOMMENDATIONS = [
    "Investigate common sources of {metal1} and {metal2}",
    "Implement combined monitoring strategies",
    "Develop joint remediation approaches",
    "Focus control efforts on shared pollution sources",
]

NEGATIVE_CORRELATION_RECOMMENDATIONS = [
    "Study the competing processes affecting these metals",
    "Monitor for balance shifts in environmental conditions",
    "Consider separate control strategies for each metal",
]

CRITICAL_HEALTH_RECOMMENDATIONS = [
    "Issue immediate public health advisory",
    "Activate emergency response protocols",
    "Provide health screening for vulnerable populations",
    "Implement source control measures immediately",
    "Coordinate with healthcare facilities",
    "Consider temporary evacuation of high-risk areas",
]

ELEVATED_HEALTH_RECOMMENDATIONS = [
    "Issue health advisory for sensitive groups",
    "Increase monitoring frequency",
    "Implement precautionary measures",
    "Educate public on exposure reduction",
]

ANOMALY_RECOMMENDATIONS = [
    "Verify the reading with a confirmatory sample",
    "Inspect nearby discharge points for unreported releases",
    "Check sensor calibration at the reporting station",
]

FORECAST_RECOMMENDATIONS = [
    "Schedule additional sampling ahead of the projected rise",
    "Pre-position mitigation resources in affected areas",
    "Notify water utilities of the expected increase",
]

EMERGENCY_RECOMMENDATIONS = [
    "Activate Emergency Operations Center",
    "Deploy rapid response environmental teams",
    "Coordinate with public health authorities",
    "Issue emergency public notifications",
    "Implement emergency pollution control measures",
    "Prepare contingency evacuation plans",
]

PREVENTIVE_HEALTH_RECOMMENDATIONS = [
    "Establish mobile health screening units",
    "Distribute protective equipment to vulnerable groups",
    "Launch public health education campaigns",
    "Coordinate with local healthcare providers",
    "Set up pollution exposure hotlines",
    "Monitor hospital admissions for pollution-related symptoms",
]

LONG_TERM_RECOMMENDATIONS = [
    "Conduct comprehensive environmental impact assessment",
    "Review and update pollution control regulations",
    "Invest in advanced monitoring infrastructure",
    "Develop predictive pollution management systems",
    "Establish regional environmental cooperation frameworks",
    "Create incentive programs for pollution reduction",
]


def fill(recommendations, **values):
    return [text.format(**values) for text in recommendations]
