from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import TextIO
from uuid import UUID

from konnichiwa.domain.events import UtteranceStage

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ConsoleListener:
    """Terminal stand-in for the translation overlay and status line."""

    out: TextIO = field(default_factory=lambda: sys.stdout)
    show_stages: bool = False
    _displayed: str = ""

    @property
    def displayed(self) -> str:
        return self._displayed

    def on_translation_updated(self, source_text: str, translated_text: str) -> None:
        if translated_text == self._displayed:
            return
        self._displayed = translated_text
        if translated_text:
            print(f"{source_text} -> {translated_text}", file=self.out, flush=True)

    def on_status_changed(self, message: str) -> None:
        logger.info(f"[Status] {message}")

    def on_utterance_stage_changed(
        self, stage: UtteranceStage, utterance_id: UUID | None = None
    ) -> None:
        if self.show_stages:
            print(f"[{stage.value}]", file=self.out, flush=True)
