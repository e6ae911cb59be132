from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from konnichiwa.domain.models import RecordedAudio

logger = logging.getLogger(__name__)


class WhisperClient(Protocol):
    async def transcribe(self, *, audio: RecordedAudio, language: str | None) -> str: ...

    async def close(self) -> None: ...


@dataclass(slots=True)
class OpenAIWhisperTranscriptionProvider:
    api_key: str
    model: str = "whisper-1"
    # None lets Whisper detect the language; the voice flow is bidirectional.
    language: str | None = None
    client: WhisperClient | None = None
    _internal_client: WhisperClient | None = field(init=False, default=None, repr=False)

    def _get_client(self) -> WhisperClient:
        if self.client is not None:
            return self.client
        if self._internal_client is None:
            self._internal_client = AsyncOpenAIWhisperClient(api_key=self.api_key, model=self.model)
        return self._internal_client

    async def transcribe(self, *, audio: RecordedAudio) -> str:
        logger.info(f"[STT] Transcribing {audio.filename} ({len(audio.data)} bytes)")
        text = await self._get_client().transcribe(audio=audio, language=self.language)
        logger.info(f"[STT] Transcript: '{text[:50]}'")
        return text

    async def close(self) -> None:
        if self._internal_client is not None:
            await self._internal_client.close()
            self._internal_client = None


@dataclass(slots=True)
class AsyncOpenAIWhisperClient:
    api_key: str
    model: str
    _client: Any = field(init=False, default=None, repr=False)

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import AsyncOpenAI  # type: ignore

            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def transcribe(self, *, audio: RecordedAudio, language: str | None) -> str:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "file": (audio.filename, audio.data, audio.mime_type),
        }
        if language:
            kwargs["language"] = language
        result = await self._get_client().audio.transcriptions.create(**kwargs)
        return str(getattr(result, "text", "") or "").strip()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
