from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from konnichiwa.core.audio.format import decode_wav, pcm16le_bytes_to_float32
from konnichiwa.domain.errors import PlaybackFailed
from konnichiwa.domain.models import SpeechAudio

logger = logging.getLogger(__name__)


class AudioPlayer(Protocol):
    async def play(self, audio: SpeechAudio) -> None: ...


@dataclass(slots=True)
class SoundDevicePlayer:
    """Plays synthesized speech through the default output device; returns when done."""

    device: int | str | None = None

    async def play(self, audio: SpeechAudio) -> None:
        if audio.format == "pcm":
            samples = pcm16le_bytes_to_float32(audio.data)
            rate = audio.sample_rate_hz
        elif audio.format == "wav":
            samples, rate = decode_wav(audio.data)
        else:
            raise PlaybackFailed(f"unsupported audio format: {audio.format}")

        def _play() -> None:
            import sounddevice as sd  # type: ignore

            sd.play(samples, samplerate=rate, device=self.device)
            sd.wait()

        logger.info(f"[Player] Playing {samples.size / rate:.2f}s of audio")
        try:
            await asyncio.to_thread(_play)
        except Exception as exc:
            raise PlaybackFailed(str(exc)) from exc
