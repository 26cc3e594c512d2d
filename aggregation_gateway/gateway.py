"""
==============================================================================
HMPI Monitor - Aggregation Gateway
==============================================================================
Tries the source adapters in priority order and returns the first one that
succeeds with data. When every source fails the gateway serves simulated
readings (or a Disconnected failure when simulation is disabled).

Sources that keep failing are skipped by a per-source circuit breaker. There
are no retries inside one call; the caller polls again on its interval.
"""

import logging
import random
from datetime import datetime
from typing import Callable, Dict, List, Optional

from aggregation_gateway.simulation import generate_fallback_data, load_locations
from common.config import DISCONNECTED_SOURCE_LABEL, FALLBACK_SOURCE_LABEL, Settings
from common.models import ApiResponse, utcnow
from common.observability import FALLBACK_ACTIVATIONS, SOURCE_REQUESTS, log_event
from common.resilience import CircuitBreaker
from source_adapters.adapters import SourceAdapter, default_adapters

logger = logging.getLogger(__name__)

BREAKER_FAILURE_THRESHOLD = 5
BREAKER_RECOVERY_SECONDS = 60.0


class AggregationGateway:
    """Ordered fallback chain over the source adapters"""

    def __init__(
        self,
        adapters: Optional[List[SourceAdapter]] = None,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
        breakers: Optional[Dict[str, CircuitBreaker]] = None,
        locations: Optional[List[Dict]] = None,
    ):
        self.settings = settings or Settings()
        self.adapters = adapters if adapters is not None else default_adapters(self.settings)
        self.rng = rng or random.Random()
        self.clock = clock
        self.breakers = breakers if breakers is not None else {}
        self.locations = locations if locations is not None else load_locations(self.settings.locations_file)

        # Last error per source, for status reporting
        self.source_errors: Dict[str, str] = {}

    def breaker_for(self, adapter: SourceAdapter) -> CircuitBreaker:
        if adapter.name not in self.breakers:
            self.breakers[adapter.name] = CircuitBreaker(
                failure_threshold=BREAKER_FAILURE_THRESHOLD,
                recovery_timeout=BREAKER_RECOVERY_SECONDS,
                name=adapter.name,
            )
        return self.breakers[adapter.name]

    def _try_adapter(self, adapter: SourceAdapter) -> Optional[ApiResponse]:
        breaker = self.breaker_for(adapter)
        if not breaker.allow_request():
            SOURCE_REQUESTS.labels(source=adapter.name, outcome="skipped").inc()
            log_event(logger, "source_skipped", f"⏭️ {adapter.name} circuit open, skipping",
                      {"source": adapter.name}, severity="debug")
            return None

        logger.debug(f"🔄 Attempting to fetch from {adapter.name}")
        try:
            result = adapter.collect()
        except Exception as e:
            # collect() should never raise; a broken adapter must not stop the chain
            result = ApiResponse.failure(adapter.name, f"{adapter.name} crashed: {e!r}")

        if not result.success:
            breaker.record_failure()
            self.source_errors[adapter.name] = result.error or "unknown error"
            SOURCE_REQUESTS.labels(source=adapter.name, outcome="failure").inc()
            log_event(logger, "source_failed", f"❌ {adapter.name} failed",
                      {"source": adapter.name, "error": result.error}, severity="warning")
            return None

        breaker.record_success()
        self.source_errors.pop(adapter.name, None)
        if not result.data:
            SOURCE_REQUESTS.labels(source=adapter.name, outcome="empty").inc()
            log_event(logger, "source_empty", f"⚠️ {adapter.name} returned no readings",
                      {"source": adapter.name}, severity="warning")
            return None

        SOURCE_REQUESTS.labels(source=adapter.name, outcome="success").inc()
        log_event(logger, "source_succeeded", f"✅ Fetched {len(result.data)} readings from {result.source}",
                  {"source": adapter.name, "readings": len(result.data)})
        return result

    def fetch_real_time_data(self) -> ApiResponse:
        """First successful adapter result, else simulated or Disconnected data"""
        for adapter in self.adapters:
            result = self._try_adapter(adapter)
            if result is not None:
                return result

        FALLBACK_ACTIVATIONS.inc()
        errors = "; ".join(f"{name}: {error}" for name, error in self.source_errors.items())

        if not self.settings.enable_simulation_fallback:
            log_event(logger, "sources_exhausted", "🔌 All data sources failed and simulation is disabled",
                      {"errors": self.source_errors}, severity="error")
            return ApiResponse(
                success=False,
                source=DISCONNECTED_SOURCE_LABEL,
                data=[],
                error=f"All data sources failed ({errors})" if errors else "All data sources failed",
            )

        readings = generate_fallback_data(self.rng, self.clock(), self.locations)
        log_event(logger, "fallback_activated", "🎲 All data sources failed, serving simulated data",
                  {"errors": self.source_errors, "readings": len(readings)}, severity="warning")
        return ApiResponse(success=True, source=FALLBACK_SOURCE_LABEL, data=readings, synthetic=True)
