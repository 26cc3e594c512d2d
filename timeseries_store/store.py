"""
==============================================================================
HMPI Monitor - Time-Series Store
==============================================================================
In-memory rolling buffer of normalized readings with alert side effects.

- History is capped (oldest readings evicted first)
- Alerts are kept newest first and capped
- Alerts are raised only from the batch being appended, never from history
- Subscribers are notified after every append and every recorded alert
"""

import logging
import random
import threading
import uuid
from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, Union

from common.models import Alert, MetalReading, WaterQualityReading, utcnow
from common.observability import ALERTS_RAISED, READINGS_INGESTED, log_event
from index_calculator.hmpi import canonical_metal_name

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 1000
DEFAULT_MAX_ALERTS = 50
WARNING_ALERT_PROBABILITY = 0.3

Subscriber = Callable[[List[WaterQualityReading], List[Alert]], None]


def make_alert(alert_type: str, severity: str, message: str, location: str,
               timestamp: Optional[datetime] = None) -> Alert:
    return Alert(
        id=f"alert_{uuid.uuid4().hex}",
        type=alert_type,
        severity=severity,
        message=message,
        location=location,
        timestamp=timestamp or utcnow(),
    )


class TimeSeriesStore:
    """Rolling reading history, latest batch and alert list"""

    def __init__(
        self,
        max_history: int = DEFAULT_MAX_HISTORY,
        max_alerts: int = DEFAULT_MAX_ALERTS,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.max_history = max_history
        self.max_alerts = max_alerts
        self.rng = rng or random.Random()
        self.clock = clock

        self._history = deque(maxlen=max_history)
        self._current: List[WaterQualityReading] = []
        self._alerts: List[Alert] = []
        self._subscribers: List[Subscriber] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def _alert_for(self, reading: WaterQualityReading) -> Optional[Alert]:
        """At most one alert per reading: first critical metal, else maybe first warning metal"""
        for metal in reading.metals:
            if metal.status == "critical":
                return make_alert(
                    "threshold_exceeded", "critical",
                    f"Critical {metal.metal} level detected: {metal.value} {metal.unit} at {reading.location}",
                    reading.location, reading.timestamp,
                )

        for metal in reading.metals:
            if metal.status == "warning":
                if self.rng.random() < WARNING_ALERT_PROBABILITY:
                    return make_alert(
                        "pollution_spike", "medium",
                        f"Elevated {metal.metal} level detected: {metal.value} {metal.unit} at {reading.location}",
                        reading.location, reading.timestamp,
                    )
                return None
        return None

    def append(self, readings: Sequence[WaterQualityReading]) -> List[Alert]:
        """Append a batch and return the alerts it raised"""
        batch = sorted(readings, key=lambda r: r.timestamp)
        with self._lock:
            self._history.extend(batch)
            self._current = list(batch)
            new_alerts = [alert for alert in (self._alert_for(r) for r in batch) if alert is not None]
            for alert in new_alerts:
                self._push_alert(alert)

        READINGS_INGESTED.inc(len(batch))
        for alert in new_alerts:
            log_event(logger, "alert_raised", f"🚨 {alert.message}",
                      {"alert_id": alert.id, "type": alert.type, "severity": alert.severity},
                      severity="warning")

        self._notify(list(batch), new_alerts)
        return new_alerts

    def _push_alert(self, alert: Alert):
        self._alerts.insert(0, alert)
        del self._alerts[self.max_alerts:]
        ALERTS_RAISED.labels(severity=alert.severity).inc()

    def record_alert(self, alert: Alert) -> Alert:
        """Record an alert raised outside ingestion (e.g. a source failure)"""
        with self._lock:
            self._push_alert(alert)
        self._notify([], [alert])
        return alert

    def acknowledge_alert(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            for index, alert in enumerate(self._alerts):
                if alert.id == alert_id:
                    self._alerts[index] = alert.acknowledge()
                    return self._alerts[index]
        return None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(self, location: Optional[str] = None) -> Union[Optional[WaterQualityReading], List[WaterQualityReading]]:
        """Whole history, or the latest reading for a location"""
        with self._lock:
            if location is None:
                return list(self._history)
            for reading in reversed(self._history):
                if reading.location == location:
                    return reading
        return None

    def trend(self, metal: str, window_hours: float) -> List[MetalReading]:
        """Readings of one metal over the last window_hours, oldest first"""
        name = canonical_metal_name(metal) or metal
        cutoff = self.clock() - timedelta(hours=window_hours)
        with self._lock:
            history = list(self._history)

        points = []
        for reading in history:
            if reading.timestamp < cutoff:
                continue
            found = reading.metal(name)
            if found is not None:
                points.append(replace(
                    found,
                    timestamp=found.timestamp or reading.timestamp,
                    location=found.location or reading.location,
                ))
        return sorted(points, key=lambda m: m.timestamp)

    @property
    def history(self) -> List[WaterQualityReading]:
        with self._lock:
            return list(self._history)

    @property
    def current(self) -> List[WaterQualityReading]:
        with self._lock:
            return list(self._current)

    @property
    def alerts(self) -> List[Alert]:
        with self._lock:
            return list(self._alerts)

    def __len__(self):
        return len(self._history)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback(readings, alerts); returns an unsubscribe function"""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, readings: List[WaterQualityReading], alerts: List[Alert]):
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(readings, alerts)
            except Exception:
                logger.exception(f"Store subscriber {callback!r} failed")
