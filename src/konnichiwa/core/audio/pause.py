from __future__ import annotations

import logging
from dataclasses import dataclass

from konnichiwa.core.clock import Clock

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PauseDetector:
    """Signals end of an utterance once the input level stays below a threshold.

    Fed one meter reading (dBFS) at a time; returns True exactly once per pause.
    """

    clock: Clock
    threshold_db: float = -30.0
    pause_duration_s: float = 1.5
    _pause_started_at: float | None = None

    def __post_init__(self) -> None:
        if self.pause_duration_s <= 0:
            raise ValueError("pause_duration_s must be > 0")
        if self.threshold_db > 0:
            raise ValueError("threshold_db must be <= 0")

    def reset(self) -> None:
        self._pause_started_at = None

    def process_level(self, level_db: float) -> bool:
        now = self.clock.now()
        if level_db >= self.threshold_db:
            self._pause_started_at = None
            return False

        if self._pause_started_at is None:
            self._pause_started_at = now

        if now - self._pause_started_at >= self.pause_duration_s:
            logger.info(f"[Pause] Silence for {now - self._pause_started_at:.2f}s")
            self._pause_started_at = None
            return True
        return False
