from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from konnichiwa.core.audio.pause import PauseDetector
from konnichiwa.core.cache import TranslationCache
from konnichiwa.core.clock import FakeClock
from konnichiwa.core.dispatcher import TranslationDispatcher
from konnichiwa.core.rate_limit import RateLimiter
from konnichiwa.core.text_filter import NonEmptyFilter
from konnichiwa.core.voice.pipeline import VoicePipeline
from konnichiwa.domain.errors import PlaybackFailed, ResourceUnavailable
from konnichiwa.domain.events import UtteranceStage
from konnichiwa.domain.models import (
    HistoryEntry,
    RecordedAudio,
    SpeechAudio,
    TextSource,
    Translation,
)

Stage = UtteranceStage


@dataclass
class FakeRecorder:
    levels_db: list[float] = field(default_factory=list)
    fail_start: Exception | None = None
    fail_stop: Exception | None = None
    started: int = 0
    stopped: int = 0

    async def start(self) -> None:
        if self.fail_start is not None:
            raise self.fail_start
        self.started += 1

    async def stop(self) -> RecordedAudio:
        self.stopped += 1
        if self.fail_stop is not None:
            raise self.fail_stop
        return RecordedAudio(data=b"RIFF....WAVE", filename="recording_test.wav")

    async def levels(self):
        for level in self.levels_db:
            yield level


@dataclass
class FakeTranscriber:
    text: str = "ありがとう"
    error: Exception | None = None
    calls: int = 0

    async def transcribe(self, *, audio: RecordedAudio) -> str:
        _ = audio
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text

    async def close(self) -> None:
        return


@dataclass
class FakeTranslator:
    responses: dict[str, str] = field(default_factory=lambda: {"ありがとう": "Thank you"})
    error: Exception | None = None
    calls: list[str] = field(default_factory=list)

    async def translate(self, *, text, system_prompt, user_message, language_pair):
        _ = (system_prompt, user_message, language_pair)
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return Translation(source_text=text, text=self.responses.get(text, text))

    async def close(self) -> None:
        return


@dataclass
class FakeSpeech:
    error: Exception | None = None
    requests: list[tuple[str, str]] = field(default_factory=list)

    async def synthesize(self, *, text: str, voice: str) -> SpeechAudio:
        self.requests.append((text, voice))
        if self.error is not None:
            raise self.error
        return SpeechAudio(data=b"\x00\x00" * 10)

    async def close(self) -> None:
        return


@dataclass
class FakePlayer:
    error: Exception | None = None
    played: list[SpeechAudio] = field(default_factory=list)

    async def play(self, audio: SpeechAudio) -> None:
        if self.error is not None:
            raise self.error
        self.played.append(audio)


class RecordingListener:
    def __init__(self) -> None:
        self.translations: list[tuple[str, str]] = []
        self.statuses: list[str] = []
        self.stages: list[UtteranceStage] = []

    def on_translation_updated(self, source_text: str, translated_text: str) -> None:
        self.translations.append((source_text, translated_text))

    def on_status_changed(self, message: str) -> None:
        self.statuses.append(message)

    def on_utterance_stage_changed(self, stage, utterance_id=None) -> None:
        self.stages.append(stage)


def _pipeline(
    *,
    recorder=None,
    transcriber=None,
    translator=None,
    speech=None,
    player=None,
    listener=None,
    clock=None,
    pause_detector=None,
    min_transcription_interval_s=0.0,
):
    clock = clock or FakeClock()
    dispatcher = TranslationDispatcher(
        provider=translator or FakeTranslator(),
        cache=TranslationCache(),
        limiter=RateLimiter(cooldown_s=5.0),
        text_filter=NonEmptyFilter(),
        source=TextSource.VOICE,
        clock=clock,
    )
    return VoicePipeline(
        recorder=recorder or FakeRecorder(),
        transcriber=transcriber or FakeTranscriber(),
        dispatcher=dispatcher,
        speech=speech,
        player=player,
        listener=listener or RecordingListener(),
        pause_detector=pause_detector,
        min_transcription_interval_s=min_transcription_interval_s,
    )


def test_utterance_runs_every_stage_and_caches_translation():
    async def run() -> None:
        listener = RecordingListener()
        speech = FakeSpeech()
        player = FakePlayer()
        pipeline = _pipeline(speech=speech, player=player, listener=listener)

        assert await pipeline.start_recording()
        assert pipeline.stage == Stage.RECORDING
        assert await pipeline.stop_recording()
        await pipeline.wait_idle()

        assert listener.stages == [
            Stage.RECORDING,
            Stage.TRANSCRIBING,
            Stage.TRANSLATING,
            Stage.SYNTHESIZING,
            Stage.PLAYING,
            Stage.IDLE,
        ]
        assert pipeline.stage == Stage.IDLE
        assert pipeline.dispatcher.cache.snapshot() == {"ありがとう": "Thank you"}
        assert pipeline.history == [HistoryEntry(text="ありがとう", translation="Thank you")]
        assert speech.requests == [("Thank you", "shimmer")]
        assert len(player.played) == 1
        assert "Translation complete" in listener.statuses

    asyncio.run(run())


def test_stop_is_idempotent():
    async def run() -> None:
        transcriber = FakeTranscriber()
        pipeline = _pipeline(transcriber=transcriber)

        await pipeline.start_recording()
        assert await pipeline.stop_recording()
        assert not await pipeline.stop_recording()
        await pipeline.wait_idle()
        assert not await pipeline.stop_recording()

        assert transcriber.calls == 1

    asyncio.run(run())


def test_start_is_rejected_unless_idle():
    async def run() -> None:
        recorder = FakeRecorder()
        pipeline = _pipeline(recorder=recorder)

        assert await pipeline.start_recording()
        assert not await pipeline.start_recording()
        assert recorder.started == 1
        await pipeline.aclose()

    asyncio.run(run())


def test_start_failure_reports_and_returns_to_idle():
    async def run() -> None:
        listener = RecordingListener()
        recorder = FakeRecorder(fail_start=ResourceUnavailable("no microphone"))
        pipeline = _pipeline(recorder=recorder, listener=listener)

        assert not await pipeline.start_recording()
        assert pipeline.stage == Stage.IDLE
        assert listener.statuses == ["Failed to start recording: no microphone"]
        assert listener.stages == [Stage.RECORDING, Stage.IDLE]

    asyncio.run(run())


def test_transcription_failure_goes_through_failed():
    async def run() -> None:
        listener = RecordingListener()
        transcriber = FakeTranscriber(error=RuntimeError("network down"))
        translator = FakeTranslator()
        pipeline = _pipeline(transcriber=transcriber, translator=translator, listener=listener)

        await pipeline.start_recording()
        await pipeline.stop_recording()
        await pipeline.wait_idle()

        assert listener.stages[-2:] == [Stage.FAILED, Stage.IDLE]
        assert "Transcription error: network down" in listener.statuses
        assert translator.calls == []
        assert pipeline.history == []

    asyncio.run(run())


def test_missing_audio_is_a_transcription_failure():
    async def run() -> None:
        listener = RecordingListener()
        recorder = FakeRecorder(fail_stop=ResourceUnavailable("no audio was recorded"))
        pipeline = _pipeline(recorder=recorder, listener=listener)

        await pipeline.start_recording()
        await pipeline.stop_recording()
        await pipeline.wait_idle()

        assert pipeline.stage == Stage.IDLE
        assert any(s.startswith("Transcription error") for s in listener.statuses)

    asyncio.run(run())


def test_translation_failure_returns_to_idle_and_releases_limiter():
    async def run() -> None:
        listener = RecordingListener()
        translator = FakeTranslator(error=RuntimeError("quota"))
        pipeline = _pipeline(translator=translator, listener=listener)

        await pipeline.start_recording()
        await pipeline.stop_recording()
        await pipeline.wait_idle()

        assert listener.stages[-3:] == [Stage.TRANSLATING, Stage.FAILED, Stage.IDLE]
        assert "Translation error: quota" in listener.statuses
        assert not pipeline.dispatcher.is_translating

    asyncio.run(run())


def test_synthesis_and_playback_failures_return_to_idle():
    async def run() -> None:
        listener = RecordingListener()
        pipeline = _pipeline(speech=FakeSpeech(error=RuntimeError("tts down")), listener=listener)
        await pipeline.start_recording()
        await pipeline.stop_recording()
        await pipeline.wait_idle()
        assert listener.stages[-3:] == [Stage.SYNTHESIZING, Stage.FAILED, Stage.IDLE]
        assert "Speech generation error: tts down" in listener.statuses
        # The translation itself succeeded and is kept.
        assert pipeline.history == [HistoryEntry(text="ありがとう", translation="Thank you")]

        listener = RecordingListener()
        pipeline = _pipeline(
            speech=FakeSpeech(),
            player=FakePlayer(error=PlaybackFailed("device busy")),
            listener=listener,
        )
        await pipeline.start_recording()
        await pipeline.stop_recording()
        await pipeline.wait_idle()
        assert listener.stages[-3:] == [Stage.PLAYING, Stage.FAILED, Stage.IDLE]
        assert "Error playing audio: device busy" in listener.statuses

    asyncio.run(run())


def test_empty_transcript_ends_at_translating():
    async def run() -> None:
        listener = RecordingListener()
        translator = FakeTranslator()
        pipeline = _pipeline(
            transcriber=FakeTranscriber(text="  "), translator=translator, listener=listener
        )

        await pipeline.start_recording()
        await pipeline.stop_recording()
        await pipeline.wait_idle()

        assert listener.stages[-2:] == [Stage.TRANSLATING, Stage.IDLE]
        assert "No speech recognized" in listener.statuses
        assert translator.calls == []

    asyncio.run(run())


def test_without_speech_provider_translation_completes_at_translating():
    async def run() -> None:
        listener = RecordingListener()
        pipeline = _pipeline(listener=listener)

        await pipeline.start_recording()
        await pipeline.stop_recording()
        await pipeline.wait_idle()

        assert Stage.SYNTHESIZING not in listener.stages
        assert listener.stages[-1] == Stage.IDLE
        assert pipeline.history[-1].translation == "Thank you"

    asyncio.run(run())


def test_rate_limited_second_utterance_is_kept_untranslated():
    async def run() -> None:
        transcriber = FakeTranscriber(text="ありがとう")
        translator = FakeTranslator()
        pipeline = _pipeline(transcriber=transcriber, translator=translator)

        await pipeline.start_recording()
        await pipeline.stop_recording()
        await pipeline.wait_idle()

        transcriber.text = "おはよう"
        await pipeline.start_recording()
        await pipeline.stop_recording()
        await pipeline.wait_idle()

        assert translator.calls == ["ありがとう"]
        assert pipeline.history[-1] == HistoryEntry(text="おはよう")
        assert pipeline.stage == Stage.IDLE

    asyncio.run(run())


def test_pause_stops_recording_automatically():
    async def run() -> None:
        clock = FakeClock()

        class TickingRecorder(FakeRecorder):
            async def levels(self):
                for level in self.levels_db:
                    clock.advance(0.5)
                    yield level
                    await asyncio.sleep(0)

        recorder = TickingRecorder(levels_db=[-10.0, -40.0, -45.0, -50.0, -50.0, -50.0])
        transcriber = FakeTranscriber()
        pipeline = _pipeline(
            recorder=recorder,
            transcriber=transcriber,
            clock=clock,
            pause_detector=PauseDetector(clock=clock, threshold_db=-30.0, pause_duration_s=1.5),
        )

        await pipeline.start_recording()
        for _ in range(100):
            if pipeline.stage != Stage.RECORDING:
                break
            await asyncio.sleep(0)
        await pipeline.wait_idle()

        assert recorder.stopped == 1
        assert transcriber.calls == 1
        assert pipeline.stage == Stage.IDLE

    asyncio.run(run())


def test_end_session_stops_recording():
    async def run() -> None:
        listener = RecordingListener()
        pipeline = _pipeline(listener=listener)

        await pipeline.start_recording()
        assert pipeline.session_active
        await pipeline.end_session()
        await pipeline.wait_idle()

        assert not pipeline.session_active
        assert pipeline.stage == Stage.IDLE
        assert "Session ended" in listener.statuses

    asyncio.run(run())


def test_recording_soon_after_a_transcript_is_not_transcribed():
    async def run() -> None:
        clock = FakeClock()
        listener = RecordingListener()
        transcriber = FakeTranscriber()
        recorder = FakeRecorder()
        pipeline = _pipeline(
            recorder=recorder,
            transcriber=transcriber,
            listener=listener,
            clock=clock,
            min_transcription_interval_s=5.0,
        )

        await pipeline.start_recording()
        await pipeline.stop_recording()
        await pipeline.wait_idle()
        assert transcriber.calls == 1

        clock.advance(4.0)
        listener.stages.clear()
        await pipeline.start_recording()
        await pipeline.stop_recording()
        await pipeline.wait_idle()

        assert transcriber.calls == 1
        assert recorder.stopped == 2
        assert "Transcription skipped" in listener.statuses
        assert listener.stages == [
            Stage.RECORDING,
            Stage.TRANSCRIBING,
            Stage.TRANSLATING,
            Stage.IDLE,
        ]
        assert len(pipeline.history) == 1

        clock.advance(1.0)
        await pipeline.start_recording()
        await pipeline.stop_recording()
        await pipeline.wait_idle()
        assert transcriber.calls == 2

    asyncio.run(run())


def test_negative_transcription_interval_is_rejected():
    with pytest.raises(ValueError):
        _pipeline(min_transcription_interval_s=-1.0)
