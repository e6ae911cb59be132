from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_S = 5.0


@dataclass(slots=True)
class DispatchState:
    is_translating: bool = False
    last_request_at: float | None = None


@dataclass(slots=True)
class RateLimiter:
    """Single-flight guard plus a minimum spacing between outbound requests.

    A grant must always be paired with `release()`, on success and on failure alike.
    """

    cooldown_s: float = DEFAULT_COOLDOWN_S
    _state: DispatchState = field(default_factory=DispatchState, init=False)

    def __post_init__(self) -> None:
        if self.cooldown_s < 0:
            raise ValueError("cooldown_s must be >= 0")

    @property
    def is_translating(self) -> bool:
        return self._state.is_translating

    @property
    def last_request_at(self) -> float | None:
        return self._state.last_request_at

    def cooldown_remaining(self, now: float) -> float:
        last = self._state.last_request_at
        if last is None:
            return 0.0
        return max(0.0, self.cooldown_s - (now - last))

    def try_acquire(self, now: float) -> bool:
        if self._state.is_translating:
            logger.debug("[RateLimit] Denied: request in flight")
            return False
        if self.cooldown_remaining(now) > 0:
            logger.debug(f"[RateLimit] Denied: cooling down ({self.cooldown_remaining(now):.2f}s)")
            return False
        self._state.is_translating = True
        self._state.last_request_at = now
        return True

    def release(self) -> None:
        self._state.is_translating = False
