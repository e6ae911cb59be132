from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from konnichiwa.domain.models import SpeechAudio

logger = logging.getLogger(__name__)

# OpenAI "pcm" output: raw 24 kHz, 16-bit signed little-endian, mono.
OPENAI_PCM_SAMPLE_RATE_HZ = 24000


class SpeechClient(Protocol):
    async def synthesize(self, *, text: str, voice: str) -> bytes: ...

    async def close(self) -> None: ...


@dataclass(slots=True)
class OpenAISpeechProvider:
    api_key: str
    model: str = "tts-1"
    client: SpeechClient | None = None
    _internal_client: SpeechClient | None = field(init=False, default=None, repr=False)

    def _get_client(self) -> SpeechClient:
        if self.client is not None:
            return self.client
        if self._internal_client is None:
            self._internal_client = AsyncOpenAISpeechClient(api_key=self.api_key, model=self.model)
        return self._internal_client

    async def synthesize(self, *, text: str, voice: str) -> SpeechAudio:
        logger.info(f"[TTS] Synthesizing '{text[:50]}' (voice={voice})")
        data = await self._get_client().synthesize(text=text, voice=voice)
        if not data:
            raise RuntimeError("speech synthesis returned no audio")
        return SpeechAudio(data=data, format="pcm", sample_rate_hz=OPENAI_PCM_SAMPLE_RATE_HZ)

    async def close(self) -> None:
        if self._internal_client is not None:
            await self._internal_client.close()
            self._internal_client = None


@dataclass(slots=True)
class AsyncOpenAISpeechClient:
    api_key: str
    model: str
    _client: Any = field(init=False, default=None, repr=False)

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import AsyncOpenAI  # type: ignore

            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def synthesize(self, *, text: str, voice: str) -> bytes:
        response = await self._get_client().audio.speech.create(
            model=self.model,
            voice=voice,
            input=text,
            response_format="pcm",
        )
        return response.content

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
