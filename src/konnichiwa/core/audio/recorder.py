from __future__ import annotations

import asyncio
import contextlib
import logging
import queue
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, Protocol

import janus
import numpy as np

from konnichiwa.core.audio.format import average_power_db, encode_wav
from konnichiwa.domain.errors import ResourceUnavailable
from konnichiwa.domain.models import RecordedAudio

logger = logging.getLogger(__name__)


class AudioRecorder(Protocol):
    async def start(self) -> None: ...
    async def stop(self) -> RecordedAudio: ...
    def levels(self) -> AsyncIterator[float]: ...


def recording_filename(now: datetime | None = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"recording_{stamp}.wav"


@dataclass(slots=True)
class SoundDeviceRecorder:
    """Microphone recorder using sounddevice/PortAudio.

    Samples are kept in memory and returned as one WAV file on `stop()`. Each input block
    also yields a meter reading (dBFS) through `levels()` for pause detection.
    """

    sample_rate_hz: int = 16000
    channels: int = 1
    device: int | str | None = None
    blocksize: int = 1600  # 0.1 s at 16 kHz
    max_queue_levels: int = 64

    _queue: janus.Queue[float | None] | None = field(init=False, default=None, repr=False)
    _stream: object | None = field(init=False, default=None, repr=False)
    _blocks: list[np.ndarray] = field(init=False, default_factory=list, repr=False)

    def __post_init__(self) -> None:
        if self.sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be > 0")
        if self.channels <= 0:
            raise ValueError("channels must be > 0")
        if self.blocksize <= 0:
            raise ValueError("blocksize must be > 0")

    async def start(self) -> None:
        if self._stream is not None:
            raise ResourceUnavailable("recorder is already running")

        try:
            import sounddevice as sd  # type: ignore
        except (ImportError, OSError) as exc:
            raise ResourceUnavailable(f"sounddevice unavailable: {exc}") from exc

        self._blocks = []
        levels: janus.Queue[float | None] = janus.Queue(maxsize=self.max_queue_levels)
        self._queue = levels
        blocks = self._blocks

        def _callback(indata, _frames, _time, status):  # called from PortAudio thread
            if levels.closed:
                return
            if status:
                logger.warning("sounddevice input status: %s", status)
            block = np.asarray(indata, dtype=np.float32).copy()
            blocks.append(block)
            try:
                levels.sync_q.put_nowait(average_power_db(block))
            except queue.Full:
                # Meter readings are disposable; never block the audio thread.
                return

        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate_hz,
                channels=self.channels,
                dtype="float32",
                callback=_callback,
                device=self.device,
                blocksize=self.blocksize,
            )
            stream.start()
        except Exception as exc:
            await self._close_queue()
            raise ResourceUnavailable(str(exc)) from exc
        self._stream = stream
        logger.info("[Recorder] Recording started")

    async def stop(self) -> RecordedAudio:
        stream = self._stream
        self._stream = None
        if stream is not None:
            with contextlib.suppress(Exception):
                stream.stop()
            with contextlib.suppress(Exception):
                stream.close()
        await self._close_queue()

        if not self._blocks:
            raise ResourceUnavailable("no audio was recorded")
        samples = np.concatenate(self._blocks, axis=0)
        self._blocks = []
        data = await asyncio.to_thread(encode_wav, samples, sample_rate_hz=self.sample_rate_hz)
        logger.info(f"[Recorder] Recording stopped ({len(data)} bytes)")
        return RecordedAudio(data=data, mime_type="audio/wav", filename=recording_filename())

    async def levels(self) -> AsyncIterator[float]:
        levels = self._queue
        if levels is None:
            return
        while not levels.closed:
            try:
                item = await levels.async_q.get()
            except janus.AsyncQueueShutDown:
                return
            if item is None:
                return
            yield item

    async def _close_queue(self) -> None:
        levels = self._queue
        self._queue = None
        if levels is None:
            return
        # Wakes a consumer still waiting for a reading.
        with contextlib.suppress(queue.Full):
            levels.sync_q.put_nowait(None)
        levels.close()
        await levels.wait_closed()
