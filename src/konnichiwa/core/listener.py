"""Callback surface from the pipeline towards whatever renders it."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from konnichiwa.domain.events import UIEvent, UIEventType, UtteranceStage

logger = logging.getLogger(__name__)


class PipelineListener(Protocol):
    def on_translation_updated(self, source_text: str, translated_text: str) -> None: ...
    def on_status_changed(self, message: str) -> None: ...
    def on_utterance_stage_changed(
        self, stage: UtteranceStage, utterance_id: UUID | None = None
    ) -> None: ...


class NullListener:
    def on_translation_updated(self, source_text: str, translated_text: str) -> None:
        pass

    def on_status_changed(self, message: str) -> None:
        pass

    def on_utterance_stage_changed(
        self, stage: UtteranceStage, utterance_id: UUID | None = None
    ) -> None:
        pass


@dataclass(slots=True)
class QueueListener:
    """Posts every callback onto an asyncio queue for a UI bridge to consume."""

    events: asyncio.Queue[UIEvent] = field(default_factory=asyncio.Queue)
    source: str | None = None

    def on_translation_updated(self, source_text: str, translated_text: str) -> None:
        self.events.put_nowait(
            UIEvent(
                type=UIEventType.TRANSLATION_UPDATED,
                payload=(source_text, translated_text),
                source=self.source,
            )
        )

    def on_status_changed(self, message: str) -> None:
        self.events.put_nowait(
            UIEvent(type=UIEventType.STATUS_CHANGED, payload=message, source=self.source)
        )

    def on_utterance_stage_changed(
        self, stage: UtteranceStage, utterance_id: UUID | None = None
    ) -> None:
        self.events.put_nowait(
            UIEvent(
                type=UIEventType.STAGE_CHANGED,
                payload=stage,
                utterance_id=utterance_id,
                source=self.source,
            )
        )


@dataclass(slots=True)
class SafeListener:
    """Shields the pipeline from a display target that has gone away."""

    inner: PipelineListener

    def on_translation_updated(self, source_text: str, translated_text: str) -> None:
        try:
            self.inner.on_translation_updated(source_text, translated_text)
        except Exception:
            logger.exception("[Listener] on_translation_updated failed")

    def on_status_changed(self, message: str) -> None:
        try:
            self.inner.on_status_changed(message)
        except Exception:
            logger.exception("[Listener] on_status_changed failed")

    def on_utterance_stage_changed(
        self, stage: UtteranceStage, utterance_id: UUID | None = None
    ) -> None:
        try:
            self.inner.on_utterance_stage_changed(stage, utterance_id)
        except Exception:
            logger.exception("[Listener] on_utterance_stage_changed failed")
