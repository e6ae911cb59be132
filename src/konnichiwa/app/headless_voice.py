from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass, field
from typing import TextIO

from konnichiwa.app.console import ConsoleListener
from konnichiwa.app.wiring import create_dispatcher
from konnichiwa.config.settings import AppSettings
from konnichiwa.core.audio.pause import PauseDetector
from konnichiwa.core.audio.player import AudioPlayer
from konnichiwa.core.audio.recorder import AudioRecorder
from konnichiwa.core.clock import Clock, SystemClock
from konnichiwa.core.llm.provider import TranslationProvider
from konnichiwa.core.stt.provider import TranscriptionProvider
from konnichiwa.core.tts.provider import SpeechProvider
from konnichiwa.core.voice.pipeline import VoicePipeline
from konnichiwa.domain.events import UtteranceStage
from konnichiwa.domain.models import TextSource

logger = logging.getLogger(__name__)

QUIT_COMMANDS = frozenset({"q", "quit", "exit"})


@dataclass(slots=True)
class HeadlessVoiceRunner:
    """Voice flow on a terminal: Enter starts a recording, Enter (or a pause) stops it."""

    settings: AppSettings
    translator: TranslationProvider
    transcriber: TranscriptionProvider
    recorder: AudioRecorder
    speech: SpeechProvider | None = None
    player: AudioPlayer | None = None
    clock: Clock = field(default_factory=SystemClock)
    stdin: TextIO = field(default_factory=lambda: sys.stdin)
    out: TextIO = field(default_factory=lambda: sys.stdout)

    def build_pipeline(self) -> VoicePipeline:
        listener = ConsoleListener(out=self.out, show_stages=True)
        dispatcher = create_dispatcher(
            self.settings,
            provider=self.translator,
            source=TextSource.VOICE,
            listener=listener,
            clock=self.clock,
        )
        return VoicePipeline(
            recorder=self.recorder,
            transcriber=self.transcriber,
            dispatcher=dispatcher,
            speech=self.speech,
            player=self.player,
            listener=listener,
            pause_detector=PauseDetector(
                clock=self.clock,
                threshold_db=self.settings.audio.pause_threshold_db,
                pause_duration_s=self.settings.audio.pause_duration_s,
            ),
            voice=self.settings.openai.voice,
            min_transcription_interval_s=self.settings.audio.min_transcription_interval_s,
        )

    async def run(self) -> int:
        pipeline = self.build_pipeline()
        try:
            await self._session_loop(pipeline)
        except KeyboardInterrupt:
            return 0
        finally:
            await pipeline.aclose()
            await pipeline.dispatcher.aclose()
            await self._close_providers()
        return 0

    async def _session_loop(self, pipeline: VoicePipeline) -> None:
        loop = asyncio.get_running_loop()
        print("Press Enter to record, Enter again to stop, 'q' to quit.", file=self.out, flush=True)
        while True:
            line = await loop.run_in_executor(None, self.stdin.readline)
            if not line or line.strip().lower() in QUIT_COMMANDS:
                return

            if pipeline.stage == UtteranceStage.RECORDING:
                await pipeline.stop_recording()
                await pipeline.wait_idle()
            elif pipeline.stage == UtteranceStage.IDLE:
                await pipeline.start_recording()
            else:
                print("Still processing the last utterance...", file=self.out, flush=True)

    async def _close_providers(self) -> None:
        await self.translator.close()
        await self.transcriber.close()
        if self.speech is not None:
            await self.speech.close()
