"""
Z-score anomaly detection against the full-series mean and standard deviation
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from common.models import WaterQualityReading, utcnow
from statistical_analyzer.stats import timestamp_of, value_of

MIN_ANOMALY_POINTS = 10
DEFAULT_THRESHOLD = 2.5


@dataclass(frozen=True)
class AnomalyResult:
    timestamp: datetime
    actual_value: float
    expected_value: float
    z_score: float
    anomaly_score: float
    severity: str
    explanation: str
    location: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "actual_value": self.actual_value,
            "expected_value": self.expected_value,
            "z_score": self.z_score,
            "anomaly_score": self.anomaly_score,
            "severity": self.severity,
            "explanation": self.explanation,
            "location": self.location,
        }


def classify_anomaly(score: float):
    """(severity, explanation) for an absolute z-score"""
    if score > 4:
        return "critical", f"Extreme outlier: {score:.1f}σ from normal range"
    if score > 3:
        return "high", f"High anomaly: {score:.1f}σ deviation detected"
    if score > 2.5:
        return "medium", f"Moderate anomaly: {score:.1f}σ from expected"
    return "low", f"Minor anomaly: {score:.1f}σ deviation"


def _location_of(item) -> Optional[str]:
    if isinstance(item, WaterQualityReading):
        return item.location
    if isinstance(item, dict):
        return item.get("location")
    return None


def detect_anomalies(data: Sequence[Any], threshold: float = DEFAULT_THRESHOLD) -> List[AnomalyResult]:
    """
    Points whose |z| exceeds threshold, sorted by descending |z|.

    Fewer than 10 usable points or a constant series yields [].
    """
    items = [item for item in data if value_of(item) is not None]
    if len(items) < MIN_ANOMALY_POINTS:
        return []

    values = np.array([value_of(item) for item in items], dtype=float)
    expected = float(values.mean())
    std = float(values.std())
    if std == 0:
        return []

    anomalies = []
    now = utcnow()
    for item, value in zip(items, values):
        z = (float(value) - expected) / std
        score = abs(z)
        if score <= threshold:
            continue
        severity, explanation = classify_anomaly(score)
        anomalies.append(AnomalyResult(
            timestamp=timestamp_of(item) or now,
            actual_value=float(value),
            expected_value=expected,
            z_score=z,
            anomaly_score=score,
            severity=severity,
            explanation=explanation,
            location=_location_of(item),
        ))

    return sorted(anomalies, key=lambda a: a.anomaly_score, reverse=True)
