from __future__ import annotations

from typing import Protocol

from konnichiwa.domain.models import RecordedAudio


class TranscriptionProvider(Protocol):
    async def transcribe(self, *, audio: RecordedAudio) -> str: ...

    async def close(self) -> None: ...
