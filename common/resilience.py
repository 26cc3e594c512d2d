"""
==============================================================================
HMPI Monitor - Resilience Utilities
==============================================================================
Circuit breaker used by the aggregation gateway to skip data sources that keep
failing, without retrying within a single aggregation call
"""

import time
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """
    Circuit Breaker pattern to stop calling sources that are unavailable

    States:
    - CLOSED: normal operation
    - OPEN: calls blocked after too many consecutive failures
    - HALF_OPEN: one trial call allowed after the recovery timeout
    """

    CLOSED = 'closed'
    OPEN = 'open'
    HALF_OPEN = 'half_open'

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        name: str = 'default',
        clock: Callable[[], float] = time.time
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name
        self._clock = clock

        self.state = self.CLOSED
        self.failure_count = 0
        self.last_failure_time = 0.0

        logger.debug(f"CircuitBreaker '{name}' initialized with threshold={failure_threshold}, timeout={recovery_timeout}s")

    def allow_request(self) -> bool:
        """True if a call may go through, moving OPEN to HALF_OPEN once the timeout elapsed"""
        if self.state == self.OPEN:
            if self._clock() - self.last_failure_time >= self.recovery_timeout:
                logger.info(f"CircuitBreaker '{self.name}' transitioning from OPEN to HALF_OPEN")
                self.state = self.HALF_OPEN
                return True
            return False
        return True

    def record_success(self):
        if self.state == self.HALF_OPEN:
            logger.info(f"CircuitBreaker '{self.name}' transitioning from HALF_OPEN to CLOSED")
        self.state = self.CLOSED
        self.failure_count = 0

    def record_failure(self):
        self.last_failure_time = self._clock()

        if self.state == self.HALF_OPEN:
            logger.warning(f"CircuitBreaker '{self.name}' failed in HALF_OPEN state, transitioning back to OPEN")
            self.state = self.OPEN
        elif self.state == self.CLOSED:
            self.failure_count += 1
            if self.failure_count >= self.failure_threshold:
                logger.warning(f"CircuitBreaker '{self.name}' failure threshold reached, transitioning to OPEN")
                self.state = self.OPEN

    @property
    def is_closed(self) -> bool:
        return self.state == self.CLOSED

    @property
    def is_open(self) -> bool:
        return self.state == self.OPEN
