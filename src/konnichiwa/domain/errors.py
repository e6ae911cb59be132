from __future__ import annotations


class PipelineError(Exception):
    """Base class for failures surfaced as status messages."""

    status_prefix = "Error"

    def status_message(self) -> str:
        return f"{self.status_prefix}: {self}"


class TranscriptionFailed(PipelineError):
    status_prefix = "Transcription error"


class TranslationFailed(PipelineError):
    status_prefix = "Translation error"


class SynthesisFailed(PipelineError):
    status_prefix = "Speech generation error"


class PlaybackFailed(PipelineError):
    status_prefix = "Error playing audio"


class ResourceUnavailable(PipelineError):
    status_prefix = "Failed to start recording"


class IllegalTransition(RuntimeError):
    pass
