from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable


@dataclass
class BackoffDecision:
    delay_seconds: float
    consecutive_failures: int


@dataclass
class _FailureState:
    count: int = 0
    last_failure_at: float | None = None


class InMemoryTenantBackoffService:
    """Per-(tenant, integration) exponential backoff.

    Below ``threshold`` consecutive failures no delay applies; past it the delay
    doubles per failure up to ``max_backoff_seconds``. One tenant's failing
    receipt endpoint never slows down another tenant.
    """

    def __init__(
        self,
        *,
        threshold: int = 3,
        max_backoff_seconds: float = 8.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.threshold = threshold
        self.max_backoff_seconds = max_backoff_seconds
        self._clock = clock
        self._states: dict[tuple[int, str], _FailureState] = {}
        self._lock = Lock()

    def before_request(self, *, tenant_id: int, integration: str) -> BackoffDecision:
        with self._lock:
            state = self._states.get((tenant_id, integration))
            failures = state.count if state else 0
        if failures < self.threshold:
            return BackoffDecision(delay_seconds=0.0, consecutive_failures=failures)
        delay = min(2 ** (failures - self.threshold), self.max_backoff_seconds)
        return BackoffDecision(delay_seconds=float(delay), consecutive_failures=failures)

    def register_success(self, *, tenant_id: int, integration: str) -> None:
        with self._lock:
            self._states.pop((tenant_id, integration), None)

    def register_failure(self, *, tenant_id: int, integration: str) -> int:
        with self._lock:
            state = self._states.setdefault((tenant_id, integration), _FailureState())
            state.count += 1
            state.last_failure_at = self._clock()
            return state.count

    def failures_for(self, *, tenant_id: int, integration: str) -> int:
        with self._lock:
            state = self._states.get((tenant_id, integration))
            return state.count if state else 0
