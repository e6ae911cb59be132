from __future__ import annotations

from typing import Protocol

from konnichiwa.domain.models import SpeechAudio


class SpeechProvider(Protocol):
    async def synthesize(self, *, text: str, voice: str) -> SpeechAudio: ...

    async def close(self) -> None: ...
