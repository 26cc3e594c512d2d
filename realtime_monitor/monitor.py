"""
==============================================================================
HMPI Monitor - Real-time Monitor
==============================================================================
Injectable service that polls the aggregation gateway on an interval, feeds
the time-series store and exposes analysis to its consumers.

- A poll that starts while another is running is skipped, not queued
- Status is connected, disconnected or reconnecting
- Switching from live to simulated data records one system_failure alert
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from aggregation_gateway.gateway import AggregationGateway
from common.config import Settings
from common.models import Alert, ApiResponse, DataInsight, InsightsSummary, MetalReading, WaterQualityReading, utcnow
from common.observability import log_event
from insight_synthesizer.engine import SmartInsightsEngine
from timeseries_store.store import TimeSeriesStore, make_alert

logger = logging.getLogger(__name__)

CONNECTED = "connected"
DISCONNECTED = "disconnected"
RECONNECTING = "reconnecting"

FALLBACK_ALERT_LOCATION = "All monitored sites"


class RealTimeMonitor:
    def __init__(
        self,
        gateway: AggregationGateway,
        store: TimeSeriesStore,
        settings: Optional[Settings] = None,
        engine: Optional[SmartInsightsEngine] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.gateway = gateway
        self.store = store
        self.settings = settings or Settings()
        self.engine = engine or SmartInsightsEngine(clock=clock)
        self.clock = clock

        self.status = DISCONNECTED
        self.data_source: Optional[str] = None
        self.synthetic = False
        self.last_updated: Optional[datetime] = None
        self.last_error: Optional[str] = None

        self._in_flight = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def poll_once(self) -> Optional[ApiResponse]:
        """Fetch and ingest one batch; None when a poll is already running"""
        if not self._in_flight.acquire(blocking=False):
            log_event(logger, "poll_skipped", "⏳ Previous poll still running, skipping tick", severity="debug")
            return None

        try:
            if self.status == DISCONNECTED and self.last_updated is not None:
                self.status = RECONNECTING

            was_synthetic = self.synthetic
            response = self.gateway.fetch_real_time_data()

            if not response.success:
                self.status = DISCONNECTED
                self.last_error = response.error
                self.data_source = response.source
                log_event(logger, "poll_failed", "🔌 No data available from any source",
                          {"source": response.source, "error": response.error}, severity="error")
                return response

            self.status = CONNECTED
            self.data_source = response.source
            self.synthetic = response.synthetic
            self.last_updated = self.clock()
            self.last_error = None
            alerts = self.store.append(response.data)

            if response.synthetic and not was_synthetic:
                self.store.record_alert(make_alert(
                    "system_failure", "high",
                    "All live data sources are unavailable; serving simulated data",
                    FALLBACK_ALERT_LOCATION, self.last_updated,
                ))

            log_event(logger, "poll_completed", f"✅ Ingested {len(response.data)} readings from {response.source}",
                      {"source": response.source, "readings": len(response.data),
                       "alerts": len(alerts), "synthetic": response.synthetic})
            return response
        finally:
            self._in_flight.release()

    def _run(self):
        interval = self.settings.refresh_interval_seconds
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception as e:
                self.status = DISCONNECTED
                self.last_error = str(e)
                logger.exception(f"Poll failed unexpectedly: {e}")
            self._stop_event.wait(interval)

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="hmpi-monitor-poll", daemon=True)
        self._thread.start()
        logger.info(f"🔄 Polling every {self.settings.refresh_interval_seconds:.0f}s")

    def stop(self, timeout: Optional[float] = None):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("🛑 Monitor stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[List[WaterQualityReading], List[Alert]], None]) -> Callable[[], None]:
        return self.store.subscribe(callback)

    def acknowledge_alert(self, alert_id: str) -> Optional[Alert]:
        return self.store.acknowledge_alert(alert_id)

    def latest_reading(self, location: str) -> Optional[WaterQualityReading]:
        return self.store.query(location)

    def metal_trend(self, metal: str, hours: float = 24) -> List[MetalReading]:
        return self.store.trend(metal, hours)

    def analyze(self) -> Tuple[List[DataInsight], InsightsSummary]:
        """Insights over the current batch and history, with their summary"""
        current, history = self.store.current, self.store.history
        # simulated readings stay in the history after the feed recovers
        synthetic = self.synthetic or any(r.synthetic for r in current) or any(r.synthetic for r in history)
        insights = self.engine.generate_insights(current, history, synthetic=synthetic)
        return insights, self.engine.generate_summary(insights, synthetic=synthetic)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "source": self.data_source,
            "synthetic": self.synthetic,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "last_error": self.last_error,
            "readings": len(self.store),
            "alerts": len(self.store.alerts),
            "unacknowledged_alerts": sum(1 for a in self.store.alerts if not a.acknowledged),
        }
