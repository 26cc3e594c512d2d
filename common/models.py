"""
Shared data structures for the HMPI Monitor pipeline.

Readings, metal readings and alerts are immutable: new observations are
appended, and an acknowledged alert is a replaced copy.
"""
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

METAL_STATUSES = ("normal", "warning", "critical")
ALERT_TYPES = ("pollution_spike", "system_failure", "threshold_exceeded")
ALERT_SEVERITIES = ("low", "medium", "high", "critical")
INSIGHT_TYPES = ("trend", "anomaly", "risk", "recommendation", "correlation", "forecast")
INSIGHT_SEVERITIES = ("info", "warning", "critical", "urgent")
IMPACT_LEVELS = ("low", "medium", "high", "critical")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class MetalReading:
    metal: str
    value: float
    unit: str
    status: str
    timestamp: Optional[datetime] = None
    location: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = _iso(self.timestamp)
        return data


@dataclass(frozen=True)
class EnvironmentalParameters:
    temperature: Optional[float] = None
    ph: Optional[float] = None
    turbidity: Optional[float] = None
    dissolved_oxygen: Optional[float] = None


@dataclass(frozen=True)
class WaterQualityReading:
    """One normalized observation for a location at a point in time"""

    location: str
    timestamp: datetime
    hmpi: float
    metals: Tuple[MetalReading, ...] = ()
    parameters: EnvironmentalParameters = field(default_factory=EnvironmentalParameters)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    synthetic: bool = False

    def metal(self, name: str) -> Optional[MetalReading]:
        for reading in self.metals:
            if reading.metal == name:
                return reading
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location": self.location,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": _iso(self.timestamp),
            "hmpi": self.hmpi,
            "metals": [m.to_dict() for m in self.metals],
            "parameters": asdict(self.parameters),
            "synthetic": self.synthetic,
        }


@dataclass(frozen=True)
class Alert:
    id: str
    type: str
    severity: str
    message: str
    location: str
    timestamp: datetime
    acknowledged: bool = False

    def acknowledge(self) -> "Alert":
        return replace(self, acknowledged=True)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = _iso(self.timestamp)
        return data


@dataclass
class ApiResponse:
    """Result envelope shared by upstream requests, adapters and the gateway"""

    success: bool
    source: str
    data: Any = None
    error: Optional[str] = None
    synthetic: bool = False

    @classmethod
    def failure(cls, source: str, error: str) -> "ApiResponse":
        return cls(success=False, source=source, data=None, error=error)

    def to_dict(self) -> Dict[str, Any]:
        data = self.data
        if isinstance(data, list):
            data = [item.to_dict() if hasattr(item, "to_dict") else item for item in data]
        payload = {"success": self.success, "data": data, "source": self.source}
        if self.error is not None:
            payload["error"] = self.error
        if self.synthetic:
            payload["synthetic"] = True
        return payload


@dataclass
class DataInsight:
    id: str
    type: str
    severity: str
    title: str
    description: str
    confidence: float
    timestamp: datetime
    impact: str
    actionable: bool
    location: Optional[str] = None
    recommendations: List[str] = field(default_factory=list)
    data_points: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = _iso(self.timestamp)
        return data


@dataclass
class InsightsSummary:
    total_insights: int
    critical_alerts: int
    improvement_opportunities: int
    risk_level: str
    trending_direction: str
    key_factors: List[str]
    next_review: datetime
    synthetic: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["next_review"] = _iso(self.next_review)
        return data
