from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from uuid import UUID

from konnichiwa.core.audio.pause import PauseDetector
from konnichiwa.core.audio.player import AudioPlayer
from konnichiwa.core.audio.recorder import AudioRecorder
from konnichiwa.core.dispatcher import DispatchOutcome, TranslationDispatcher
from konnichiwa.core.listener import NullListener, PipelineListener, SafeListener
from konnichiwa.core.stt.provider import TranscriptionProvider
from konnichiwa.core.tts.provider import SpeechProvider
from konnichiwa.domain.errors import (
    IllegalTransition,
    PipelineError,
    ResourceUnavailable,
    SynthesisFailed,
    TranscriptionFailed,
)
from konnichiwa.domain.events import UtteranceStage, can_transition
from konnichiwa.domain.models import HistoryEntry, Utterance

logger = logging.getLogger(__name__)

Stage = UtteranceStage


@dataclass(slots=True)
class VoicePipeline:
    """Drives one utterance at a time through record → transcribe → translate → speak.

    Every stage change goes through `_transition`, which rejects moves the stage table
    does not allow. A failing stage always ends in FAILED and then IDLE.
    """

    recorder: AudioRecorder
    transcriber: TranscriptionProvider
    dispatcher: TranslationDispatcher
    speech: SpeechProvider | None = None
    player: AudioPlayer | None = None
    listener: PipelineListener = field(default_factory=NullListener)
    pause_detector: PauseDetector | None = None
    voice: str = "shimmer"
    # Recordings that end sooner than this after the last transcript are not transcribed.
    min_transcription_interval_s: float = 0.0

    _stage: UtteranceStage = field(default=Stage.IDLE, init=False)
    _utterance: Utterance | None = field(default=None, init=False, repr=False)
    _history: list[HistoryEntry] = field(default_factory=list, init=False, repr=False)
    _session_active: bool = field(default=False, init=False)
    _process_task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)
    _monitor_task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)
    _last_transcribed_at: float | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.min_transcription_interval_s < 0:
            raise ValueError("min_transcription_interval_s must be >= 0")
        if not isinstance(self.listener, SafeListener):
            self.listener = SafeListener(self.listener)

    @property
    def stage(self) -> UtteranceStage:
        return self._stage

    @property
    def session_active(self) -> bool:
        return self._session_active

    @property
    def history(self) -> list[HistoryEntry]:
        return list(self._history)

    @property
    def utterance_id(self) -> UUID | None:
        return self._utterance.utterance_id if self._utterance else None

    async def start_recording(self) -> bool:
        if self._stage != Stage.IDLE:
            logger.info(f"[Voice] Cannot start recording while {self._stage.value}")
            return False

        self._utterance = Utterance()
        self._session_active = True
        self._transition(Stage.RECORDING)
        try:
            await self.recorder.start()
        except Exception as exc:
            error = exc if isinstance(exc, ResourceUnavailable) else ResourceUnavailable(str(exc))
            logger.error(f"[Voice] {error.status_message()}")
            self.listener.on_status_changed(error.status_message())
            self._transition(Stage.IDLE)
            self._utterance = None
            return False

        if self.pause_detector is not None:
            self.pause_detector.reset()
            self._monitor_task = asyncio.create_task(self._monitor_pauses())
        self.listener.on_status_changed("Recording...")
        return True

    async def stop_recording(self) -> bool:
        """Stop signal from the user or the pause detector. Only the first one counts."""
        if self._stage != Stage.RECORDING:
            return False

        utterance = self._utterance
        assert utterance is not None
        self._transition(Stage.TRANSCRIBING)
        self._cancel_monitor()
        self.listener.on_status_changed("Processing audio...")
        self._process_task = asyncio.create_task(self._process(utterance))
        return True

    async def end_session(self) -> None:
        self._session_active = False
        await self.stop_recording()
        self.listener.on_status_changed("Session ended")

    async def wait_idle(self) -> None:
        task = self._process_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def aclose(self) -> None:
        await self.end_session()
        await self.wait_idle()

    async def _monitor_pauses(self) -> None:
        detector = self.pause_detector
        assert detector is not None
        try:
            async for level_db in self.recorder.levels():
                if self._stage != Stage.RECORDING:
                    return
                if detector.process_level(level_db):
                    logger.info("[Voice] Pause detected; stopping recording")
                    self._monitor_task = None
                    await self.stop_recording()
                    return
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("[Voice] Level monitor failed")

    def _cancel_monitor(self) -> None:
        task = self._monitor_task
        self._monitor_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _process(self, utterance: Utterance) -> None:
        try:
            await self._run_stages(utterance)
        except PipelineError as exc:
            logger.error(f"[Voice] {exc.status_message()}")
            self._fail(exc.status_message())
        except Exception as exc:
            logger.exception("[Voice] Unexpected pipeline failure")
            self._fail(f"Error: {exc}")
        finally:
            self._utterance = None

    async def _run_stages(self, utterance: Utterance) -> None:
        try:
            utterance.audio = await self.recorder.stop()
        except Exception as exc:
            raise TranscriptionFailed(f"failed to load audio data: {exc}") from exc

        if self._too_soon_to_transcribe():
            logger.info("[Voice] Transcription skipped; previous transcript is too recent")
            self.listener.on_status_changed("Transcription skipped")
            self._transition(Stage.TRANSLATING)
            self._transition(Stage.IDLE)
            return

        try:
            text = (await self.transcriber.transcribe(audio=utterance.audio)).strip()
        except PipelineError:
            raise
        except Exception as exc:
            raise TranscriptionFailed(str(exc)) from exc
        utterance.transcript = text
        self._last_transcribed_at = self.dispatcher.clock.now()
        self.listener.on_status_changed("Transcription successful")

        self._transition(Stage.TRANSLATING)
        if not text:
            self.listener.on_status_changed("No speech recognized")
            self._transition(Stage.IDLE)
            return

        result = await self.dispatcher.translate(text)
        if result.outcome in (DispatchOutcome.FILTERED_OUT, DispatchOutcome.RATE_LIMITED):
            logger.info(f"[Voice] Translation skipped ({result.outcome.value})")
            self._history.append(HistoryEntry(text=text))
            self._transition(Stage.IDLE)
            return

        translated = result.translated_text or ""
        utterance.translation = translated
        self._history.append(HistoryEntry(text=text, translation=translated))

        if self.speech is None:
            self.listener.on_status_changed("Translation complete")
            self._transition(Stage.IDLE)
            return

        self._transition(Stage.SYNTHESIZING)
        try:
            utterance.speech = await self.speech.synthesize(text=translated, voice=self.voice)
        except PipelineError:
            raise
        except Exception as exc:
            raise SynthesisFailed(str(exc)) from exc

        self._transition(Stage.PLAYING)
        self.listener.on_status_changed("Translation complete")
        if self.player is not None:
            await self.player.play(utterance.speech)
        # Playback finished; recording is not re-armed automatically.
        self._transition(Stage.IDLE)

    def _too_soon_to_transcribe(self) -> bool:
        last = self._last_transcribed_at
        if last is None or self.min_transcription_interval_s <= 0:
            return False
        return self.dispatcher.clock.now() - last < self.min_transcription_interval_s

    def _fail(self, message: str) -> None:
        self.listener.on_status_changed(message)
        if self._stage == Stage.IDLE:
            return
        self._transition(Stage.FAILED)
        self._transition(Stage.IDLE)

    def _transition(self, target: UtteranceStage) -> None:
        current = self._stage
        if not can_transition(current, target):
            raise IllegalTransition(f"{current.value} -> {target.value}")
        self._stage = target
        logger.debug(f"[Voice] {current.value} -> {target.value}")
        self.listener.on_utterance_stage_changed(target, self.utterance_id)
