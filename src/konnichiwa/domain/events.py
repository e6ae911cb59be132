from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class UtteranceStage(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    TRANSCRIBING = "TRANSCRIBING"
    TRANSLATING = "TRANSLATING"
    SYNTHESIZING = "SYNTHESIZING"
    PLAYING = "PLAYING"
    FAILED = "FAILED"


# Allowed stage transitions of one utterance. Anything else is a programming error.
STAGE_TRANSITIONS: dict[UtteranceStage, frozenset[UtteranceStage]] = {
    UtteranceStage.IDLE: frozenset({UtteranceStage.RECORDING}),
    UtteranceStage.RECORDING: frozenset({UtteranceStage.TRANSCRIBING, UtteranceStage.IDLE}),
    UtteranceStage.TRANSCRIBING: frozenset({UtteranceStage.TRANSLATING, UtteranceStage.FAILED}),
    UtteranceStage.TRANSLATING: frozenset(
        {UtteranceStage.SYNTHESIZING, UtteranceStage.IDLE, UtteranceStage.FAILED}
    ),
    UtteranceStage.SYNTHESIZING: frozenset({UtteranceStage.PLAYING, UtteranceStage.FAILED}),
    UtteranceStage.PLAYING: frozenset({UtteranceStage.IDLE, UtteranceStage.FAILED}),
    UtteranceStage.FAILED: frozenset({UtteranceStage.IDLE}),
}


def can_transition(current: UtteranceStage, target: UtteranceStage) -> bool:
    return target in STAGE_TRANSITIONS[current]


class UIEventType(str, Enum):
    TRANSLATION_UPDATED = "TRANSLATION_UPDATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    STAGE_CHANGED = "STAGE_CHANGED"


@dataclass(frozen=True, slots=True)
class UIEvent:
    type: UIEventType
    payload: object | None = None
    utterance_id: UUID | None = None
    source: str | None = None
