from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID, uuid4


class TextSource(str, Enum):
    OCR = "ocr"
    VOICE = "voice"


@dataclass(frozen=True, slots=True)
class TextEvent:
    text: str
    source: TextSource
    observed_at: float  # monotonic seconds (Clock)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    source_text: str
    translated_text: str
    created_at: float  # monotonic seconds (Clock)

    def age(self, now: float) -> float:
        return now - self.created_at


@dataclass(frozen=True, slots=True)
class Translation:
    source_text: str
    text: str
    created_at: float | None = None


@dataclass(frozen=True, slots=True)
class RecordedAudio:
    data: bytes
    mime_type: str = "audio/wav"
    filename: str = "recording.wav"


@dataclass(frozen=True, slots=True)
class SpeechAudio:
    data: bytes
    format: str = "pcm"
    sample_rate_hz: int = 24000


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    text: str
    translation: str = ""


@dataclass(slots=True)
class Utterance:
    utterance_id: UUID = field(default_factory=uuid4)
    audio: RecordedAudio | None = None
    transcript: str | None = None
    translation: str | None = None
    speech: SpeechAudio | None = None
