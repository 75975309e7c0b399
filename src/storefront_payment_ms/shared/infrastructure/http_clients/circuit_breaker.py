"""
Circuit Breaker for outbound gateway calls.

Circuit Breaker Pattern:
- CLOSED: Normal operation, requests pass through
- OPEN: Too many consecutive failures, requests fail immediately
- HALF_OPEN: Reset window elapsed, exactly one trial request allowed

Configuration:
- failure_threshold: Consecutive failures before opening the circuit
- reset_window: Seconds the circuit stays open before admitting a trial request

State, failure counter and listeners live in a pybreaker.CircuitBreaker.
pybreaker only drives synchronous callables, so the async clients report
outcomes through before_request/record_success/record_failure, and the
open window is measured on an injectable monotonic clock.
"""

import logging
import threading
import time
from collections.abc import Callable
from enum import Enum

import pybreaker

from storefront_payment_ms.shared.domain.exceptions import CircuitOpenError

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = pybreaker.STATE_CLOSED
    OPEN = pybreaker.STATE_OPEN
    HALF_OPEN = pybreaker.STATE_HALF_OPEN


class StateChangeLogger(pybreaker.CircuitBreakerListener):
    """Log circuit breaker state changes for monitoring and alerting."""

    def state_change(self, cb, old_state, new_state) -> None:
        logger.warning(
            "Circuit breaker state changed",
            extra={
                "breaker_name": cb.name,
                "old_state": old_state.name if old_state is not None else None,
                "new_state": new_state.name,
            },
        )


class CircuitBreaker:
    """Consecutive-failure circuit breaker with a single half-open trial request."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_window = reset_window
        self._clock = clock
        self._lock = threading.Lock()
        self._storage = pybreaker.CircuitMemoryStorage(pybreaker.STATE_CLOSED)
        self._breaker = pybreaker.CircuitBreaker(
            fail_max=failure_threshold,
            reset_timeout=reset_window,
            state_storage=self._storage,
            listeners=[StateChangeLogger()],
            name=name,
        )
        self._tripped_until = 0.0
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        return CircuitState(self._breaker.current_state)

    @property
    def failure_count(self) -> int:
        return self._breaker.fail_counter

    @property
    def tripped_until(self) -> float:
        return self._tripped_until

    def before_request(self) -> bool:
        """
        Admit or reject a request.

        Returns True when the caller holds the half-open trial slot and must
        either report an outcome or call release_trial(). Raises
        CircuitOpenError while the circuit is open, and for every request
        other than the single trial request once the window has elapsed.
        """
        with self._lock:
            state = self.state
            if state is CircuitState.CLOSED:
                return False

            now = self._clock()
            if state is CircuitState.OPEN and now >= self._tripped_until:
                self._trial_in_flight = True
                self._breaker.half_open()
                return True

            raise CircuitOpenError(self.name, retry_after=max(self._tripped_until - now, 0.0))

    def reject_if_open(self) -> None:
        """Raise CircuitOpenError while the open window runs, without claiming the trial slot."""
        with self._lock:
            if self.state is not CircuitState.OPEN:
                return
            now = self._clock()
            if now < self._tripped_until:
                raise CircuitOpenError(self.name, retry_after=self._tripped_until - now)

    def record_success(self) -> None:
        with self._lock:
            self._trial_in_flight = False
            self._storage.reset_counter()
            if self.state is not CircuitState.CLOSED:
                self._tripped_until = 0.0
                self._breaker.close()

    def record_failure(self) -> None:
        with self._lock:
            state = self.state
            if state is CircuitState.HALF_OPEN:
                self._trip()
                return
            if state is CircuitState.OPEN:
                # Late result of a request admitted before the trip.
                return
            self._storage.increment_counter()
            if self._breaker.fail_counter >= self.failure_threshold:
                self._trip()

    def release_trial(self) -> None:
        """Give the trial slot back when the trial request ended without an outcome."""
        with self._lock:
            if self.state is CircuitState.HALF_OPEN and self._trial_in_flight:
                self._trial_in_flight = False
                # tripped_until is already in the past, so the next request gets the slot.
                self._breaker.open()

    def reset(self) -> None:
        with self._lock:
            self._tripped_until = 0.0
            self._trial_in_flight = False
            self._storage.reset_counter()
            if self.state is not CircuitState.CLOSED:
                self._breaker.close()

    def _trip(self) -> None:
        self._trial_in_flight = False
        self._tripped_until = self._clock() + self.reset_window
        self._breaker.open()
        logger.warning(
            "Circuit breaker tripped, blocking requests",
            extra={
                "breaker_name": self.name,
                "reset_window_seconds": self.reset_window,
            },
        )
