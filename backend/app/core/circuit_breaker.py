"""
Per-provider circuit breakers for upstream market data APIs.

Every third-party provider (Simplize, VietCap, 24hmoney, CafeF, Google
Sheets, ...) gets its own breaker so that one throttled provider does not
block requests to the others.

States:
- CLOSED: Normal operation, calls proceed
- OPEN: Provider is failing or throttling, calls are rejected immediately
- HALF_OPEN: Probing whether the provider recovered (limited calls)
"""
import threading
import time
from enum import Enum
from dataclasses import dataclass
from typing import Dict, Optional

from app.core.config import settings
from app.core.logging_config import get_main_logger

logger = get_main_logger()


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior."""
    failure_threshold: int = 5      # Consecutive failures before opening
    recovery_timeout: float = 30.0  # Seconds before transitioning to half-open
    half_open_max_calls: int = 1    # Probe calls allowed in half-open state


class CircuitOpenError(Exception):
    """
    Raised when a provider's circuit breaker is open.

    Route handlers turn this into a 503 with a ``retry_after`` hint.
    """
    def __init__(self, provider: str = "upstream", retry_after: Optional[float] = None):
        self.provider = provider
        self.retry_after = retry_after
        self.message = f"Circuit breaker is open for provider '{provider}'"
        super().__init__(self.message)


class CircuitBreaker:
    """
    Thread-safe circuit breaker guarding one upstream provider.

    Usage:
        cb = get_circuit_breaker("simplize")
        cb.ensure_can_proceed()
        try:
            response = await client.get(url)
        except httpx.TransportError:
            cb.record_failure()
            raise
        if response.status_code == 429:
            cb.force_open()
        else:
            cb.record_success()

    Transitions:
    - CLOSED -> OPEN: When failure_threshold consecutive failures are reached
    - OPEN -> HALF_OPEN: After recovery_timeout seconds
    - HALF_OPEN -> CLOSED: On successful call
    - HALF_OPEN -> OPEN: On failed call
    """

    def __init__(self, config: CircuitBreakerConfig = None, name: str = "default"):
        self.config = config or CircuitBreakerConfig()
        self.name = name
        self._lock = threading.RLock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None
        self._open_duration = self.config.recovery_timeout
        self._half_open_calls = 0
        self._success_count = 0

    @property
    def state(self) -> CircuitState:
        """Get current state, potentially transitioning to HALF_OPEN."""
        with self._lock:
            self._maybe_transition_to_half_open()
            return self._state

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def time_until_half_open(self) -> Optional[float]:
        """Seconds remaining until half-open, None when not OPEN."""
        with self._lock:
            if self._state != CircuitState.OPEN or not self._last_failure_time:
                return None
            elapsed = time.time() - self._last_failure_time
            return max(0.0, self._open_duration - elapsed)

    def can_proceed(self) -> bool:
        """Check if a call can proceed. Thread-safe."""
        with self._lock:
            self._maybe_transition_to_half_open()

            if self._state == CircuitState.CLOSED:
                return True
            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_calls < self.config.half_open_max_calls:
                    self._half_open_calls += 1
                    return True
                return False
            return False

    def ensure_can_proceed(self) -> None:
        """Raise CircuitOpenError when the provider must not be called."""
        if not self.can_proceed():
            raise CircuitOpenError(self.name, retry_after=self.time_until_half_open)

    def record_success(self) -> None:
        """Record a successful provider call. Closes a half-open circuit."""
        with self._lock:
            self._success_count += 1

            if self._state == CircuitState.HALF_OPEN:
                logger.info(f"Circuit breaker [{self.name}]: HALF_OPEN -> CLOSED (success)")
                self._state = CircuitState.CLOSED
                self._failure_count = 0
                self._half_open_calls = 0
                self._open_duration = self.config.recovery_timeout
            elif self._state == CircuitState.CLOSED:
                self._failure_count = 0

    def record_failure(self) -> None:
        """Record a failed provider call (network error or 5xx). Thread-safe."""
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = time.time()

            if self._state == CircuitState.HALF_OPEN:
                logger.warning(f"Circuit breaker [{self.name}]: HALF_OPEN -> OPEN (failure in half-open)")
                self._state = CircuitState.OPEN
                self._half_open_calls = 0
            elif self._failure_count >= self.config.failure_threshold:
                if self._state != CircuitState.OPEN:
                    logger.warning(
                        f"Circuit breaker [{self.name}]: {self._state.value} -> OPEN "
                        f"(failures={self._failure_count}, threshold={self.config.failure_threshold})"
                    )
                    self._state = CircuitState.OPEN

    def force_open(self, duration: float = None) -> None:
        """
        Open the circuit immediately, e.g. on HTTP 429.

        Args:
            duration: How long to keep the circuit open, taken from a
                      Retry-After header when the provider sends one.
        """
        with self._lock:
            self._open_duration = duration or self.config.recovery_timeout
            if self._state != CircuitState.OPEN:
                logger.warning(f"Circuit breaker [{self.name}]: Forced OPEN for {self._open_duration}s")
            self._state = CircuitState.OPEN
            self._last_failure_time = time.time()

    def reset(self) -> None:
        """Reset circuit breaker to initial closed state."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._last_failure_time = None
            self._half_open_calls = 0
            self._open_duration = self.config.recovery_timeout

    def _maybe_transition_to_half_open(self) -> None:
        if self._state == CircuitState.OPEN and self._last_failure_time:
            elapsed = time.time() - self._last_failure_time
            if elapsed >= self._open_duration:
                logger.info(
                    f"Circuit breaker [{self.name}]: OPEN -> HALF_OPEN "
                    f"(elapsed={elapsed:.1f}s >= timeout={self._open_duration}s)"
                )
                self._state = CircuitState.HALF_OPEN
                self._half_open_calls = 0

    def get_stats(self) -> dict:
        """Get circuit breaker statistics for monitoring."""
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "success_count": self._success_count,
                "failure_threshold": self.config.failure_threshold,
                "recovery_timeout": self._open_duration,
                "time_until_half_open": self.time_until_half_open
            }


_registry: Dict[str, CircuitBreaker] = {}
_registry_lock = threading.Lock()


def get_circuit_breaker(provider: str) -> CircuitBreaker:
    """Return the breaker for a provider, creating it on first use."""
    with _registry_lock:
        breaker = _registry.get(provider)
        if breaker is None:
            config = CircuitBreakerConfig(
                failure_threshold=settings.circuit_failure_threshold,
                recovery_timeout=settings.circuit_recovery_timeout,
            )
            breaker = CircuitBreaker(config, name=provider)
            _registry[provider] = breaker
        return breaker


def get_all_stats() -> list:
    """Stats of every provider breaker created so far (served by /health)."""
    with _registry_lock:
        breakers = list(_registry.values())
    return [breaker.get_stats() for breaker in breakers]


def reset_all() -> None:
    with _registry_lock:
        breakers = list(_registry.values())
    for breaker in breakers:
        breaker.reset()
