from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from konnichiwa.core.cache import DEFAULT_CLEANUP_INTERVAL_S, DEFAULT_TTL_S
from konnichiwa.core.dispatcher import LatestTextPolicy
from konnichiwa.core.language import LanguagePair, get_language_info
from konnichiwa.core.rate_limit import DEFAULT_COOLDOWN_S
from konnichiwa.core.text_filter import DEFAULT_SCRIPT_RANGES

OPENAI_VOICES = ("alloy", "echo", "fable", "nova", "onyx", "shimmer")


class TranslationProviderName(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"


class TranscriptionProviderName(str, Enum):
    OPENAI = "openai"


class SpeechProviderName(str, Enum):
    OPENAI = "openai"
    NONE = "none"


class SecretsBackend(str, Enum):
    KEYRING = "keyring"
    ENCRYPTED_FILE = "encrypted_file"


@dataclass(slots=True)
class ProviderSettings:
    translation: TranslationProviderName = TranslationProviderName.OPENAI
    transcription: TranscriptionProviderName = TranscriptionProviderName.OPENAI
    speech: SpeechProviderName = SpeechProviderName.OPENAI

    def validate(self) -> None:
        if not isinstance(self.translation, TranslationProviderName):
            raise ValueError("invalid translation provider")
        if not isinstance(self.transcription, TranscriptionProviderName):
            raise ValueError("invalid transcription provider")
        if not isinstance(self.speech, SpeechProviderName):
            raise ValueError("invalid speech provider")


@dataclass(slots=True)
class LanguageSettings:
    source_language: str = "ja"
    target_language: str = "en"

    def validate(self) -> None:
        if get_language_info(self.source_language) is None:
            raise ValueError(f"unsupported source_language: {self.source_language!r}")
        if get_language_info(self.target_language) is None:
            raise ValueError(f"unsupported target_language: {self.target_language!r}")
        self.pair()

    def pair(self) -> LanguagePair:
        return LanguagePair(source=self.source_language, target=self.target_language)


@dataclass(slots=True)
class DispatchSettings:
    cooldown_s: float = DEFAULT_COOLDOWN_S
    latest_text_policy: LatestTextPolicy = LatestTextPolicy.DROP
    concurrency_limit: int = 1

    def validate(self) -> None:
        if self.cooldown_s < 0:
            raise ValueError("cooldown_s must be >= 0")
        if not isinstance(self.latest_text_policy, LatestTextPolicy):
            raise ValueError("invalid latest_text_policy")
        if self.concurrency_limit <= 0:
            raise ValueError("concurrency_limit must be > 0")


@dataclass(slots=True)
class CacheSettings:
    ttl_s: float = DEFAULT_TTL_S
    cleanup_interval_s: float = DEFAULT_CLEANUP_INTERVAL_S

    def validate(self) -> None:
        if self.ttl_s <= 0:
            raise ValueError("ttl_s must be > 0")
        if self.cleanup_interval_s <= 0:
            raise ValueError("cleanup_interval_s must be > 0")


@dataclass(slots=True)
class FilterSettings:
    script_ranges: list[tuple[int, int]] = field(
        default_factory=lambda: [tuple(r) for r in DEFAULT_SCRIPT_RANGES]
    )

    def validate(self) -> None:
        if not self.script_ranges:
            raise ValueError("script_ranges must be non-empty")
        for item in self.script_ranges:
            if len(item) != 2:
                raise ValueError("each script range must be a [low, high] pair")
            low, high = item
            if not (0 <= low <= high <= 0x10FFFF):
                raise ValueError(f"invalid script range: {low}..{high}")


@dataclass(slots=True)
class OpenAISettings:
    chat_model: str = "gpt-4o"
    transcription_model: str = "whisper-1"
    speech_model: str = "tts-1"
    voice: str = "shimmer"

    def validate(self) -> None:
        if not self.chat_model:
            raise ValueError("chat_model must be non-empty")
        if not self.transcription_model:
            raise ValueError("transcription_model must be non-empty")
        if not self.speech_model:
            raise ValueError("speech_model must be non-empty")
        if self.voice not in OPENAI_VOICES:
            raise ValueError(f"voice must be one of {', '.join(OPENAI_VOICES)}")


@dataclass(slots=True)
class GeminiSettings:
    model: str = "gemini-2.5-flash"

    def validate(self) -> None:
        if not self.model:
            raise ValueError("model must be non-empty")


@dataclass(slots=True)
class AudioSettings:
    sample_rate_hz: int = 16000
    input_device: str = ""
    output_device: str = ""
    pause_threshold_db: float = -30.0
    pause_duration_s: float = 1.5
    min_transcription_interval_s: float = 0.0

    def validate(self) -> None:
        if self.sample_rate_hz not in (8000, 16000, 22050, 24000, 44100, 48000):
            raise ValueError("sample_rate_hz must be a standard rate")
        if self.pause_threshold_db > 0:
            raise ValueError("pause_threshold_db must be <= 0")
        if self.pause_duration_s <= 0:
            raise ValueError("pause_duration_s must be > 0")
        if self.min_transcription_interval_s < 0:
            raise ValueError("min_transcription_interval_s must be >= 0")
        if self.input_device is None or self.output_device is None:
            raise ValueError("audio devices must be strings")


@dataclass(slots=True)
class SecretsSettings:
    backend: SecretsBackend = SecretsBackend.KEYRING
    encrypted_file_path: str = "secrets.json"

    def validate(self) -> None:
        if not isinstance(self.backend, SecretsBackend):
            raise ValueError("invalid secrets backend")
        if self.backend == SecretsBackend.ENCRYPTED_FILE and not self.encrypted_file_path:
            raise ValueError("encrypted_file_path must be set for encrypted_file backend")


@dataclass(slots=True)
class AppSettings:
    provider: ProviderSettings = field(default_factory=ProviderSettings)
    languages: LanguageSettings = field(default_factory=LanguageSettings)
    dispatch: DispatchSettings = field(default_factory=DispatchSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    filter: FilterSettings = field(default_factory=FilterSettings)
    openai: OpenAISettings = field(default_factory=OpenAISettings)
    gemini: GeminiSettings = field(default_factory=GeminiSettings)
    audio: AudioSettings = field(default_factory=AudioSettings)
    secrets: SecretsSettings = field(default_factory=SecretsSettings)

    def validate(self) -> None:
        self.provider.validate()
        self.languages.validate()
        self.dispatch.validate()
        self.cache.validate()
        self.filter.validate()
        self.openai.validate()
        self.gemini.validate()
        self.audio.validate()
        self.secrets.validate()


def to_dict(settings: AppSettings) -> dict[str, Any]:
    return {
        "provider": {
            "translation": settings.provider.translation.value,
            "transcription": settings.provider.transcription.value,
            "speech": settings.provider.speech.value,
        },
        "languages": {
            "source_language": settings.languages.source_language,
            "target_language": settings.languages.target_language,
        },
        "dispatch": {
            "cooldown_s": settings.dispatch.cooldown_s,
            "latest_text_policy": settings.dispatch.latest_text_policy.value,
            "concurrency_limit": settings.dispatch.concurrency_limit,
        },
        "cache": {
            "ttl_s": settings.cache.ttl_s,
            "cleanup_interval_s": settings.cache.cleanup_interval_s,
        },
        "filter": {
            "script_ranges": [[low, high] for low, high in settings.filter.script_ranges],
        },
        "openai": {
            "chat_model": settings.openai.chat_model,
            "transcription_model": settings.openai.transcription_model,
            "speech_model": settings.openai.speech_model,
            "voice": settings.openai.voice,
        },
        "gemini": {"model": settings.gemini.model},
        "audio": {
            "sample_rate_hz": settings.audio.sample_rate_hz,
            "input_device": settings.audio.input_device,
            "output_device": settings.audio.output_device,
            "pause_threshold_db": settings.audio.pause_threshold_db,
            "pause_duration_s": settings.audio.pause_duration_s,
            "min_transcription_interval_s": settings.audio.min_transcription_interval_s,
        },
        "secrets": {
            "backend": settings.secrets.backend.value,
            "encrypted_file_path": settings.secrets.encrypted_file_path,
        },
    }


def from_dict(data: dict[str, Any]) -> AppSettings:
    provider = data.get("provider") or {}
    languages = data.get("languages") or {}
    dispatch = data.get("dispatch") or {}
    cache = data.get("cache") or {}
    filter_data = data.get("filter") or {}
    openai = data.get("openai") or {}
    gemini = data.get("gemini") or {}
    audio = data.get("audio") or {}
    secrets = data.get("secrets") or {}

    ranges_raw = filter_data.get("script_ranges")
    script_ranges = (
        [(int(low), int(high)) for low, high in ranges_raw]
        if ranges_raw is not None
        else [tuple(r) for r in DEFAULT_SCRIPT_RANGES]
    )

    settings = AppSettings(
        provider=ProviderSettings(
            translation=TranslationProviderName(
                provider.get("translation", TranslationProviderName.OPENAI.value)
            ),
            transcription=TranscriptionProviderName(
                provider.get("transcription", TranscriptionProviderName.OPENAI.value)
            ),
            speech=SpeechProviderName(provider.get("speech", SpeechProviderName.OPENAI.value)),
        ),
        languages=LanguageSettings(
            source_language=str(languages.get("source_language", "ja")),
            target_language=str(languages.get("target_language", "en")),
        ),
        dispatch=DispatchSettings(
            cooldown_s=float(dispatch.get("cooldown_s", DEFAULT_COOLDOWN_S)),
            latest_text_policy=LatestTextPolicy(
                dispatch.get("latest_text_policy", LatestTextPolicy.DROP.value)
            ),
            concurrency_limit=int(dispatch.get("concurrency_limit", 1)),
        ),
        cache=CacheSettings(
            ttl_s=float(cache.get("ttl_s", DEFAULT_TTL_S)),
            cleanup_interval_s=float(cache.get("cleanup_interval_s", DEFAULT_CLEANUP_INTERVAL_S)),
        ),
        filter=FilterSettings(script_ranges=script_ranges),
        openai=OpenAISettings(
            chat_model=str(openai.get("chat_model", "gpt-4o")),
            transcription_model=str(openai.get("transcription_model", "whisper-1")),
            speech_model=str(openai.get("speech_model", "tts-1")),
            voice=str(openai.get("voice", "shimmer")),
        ),
        gemini=GeminiSettings(model=str(gemini.get("model", "gemini-2.5-flash"))),
        audio=AudioSettings(
            sample_rate_hz=int(audio.get("sample_rate_hz", 16000)),
            input_device=str(audio.get("input_device") or ""),
            output_device=str(audio.get("output_device") or ""),
            pause_threshold_db=float(audio.get("pause_threshold_db", -30.0)),
            pause_duration_s=float(audio.get("pause_duration_s", 1.5)),
            min_transcription_interval_s=float(audio.get("min_transcription_interval_s", 0.0)),
        ),
        secrets=SecretsSettings(
            backend=SecretsBackend(secrets.get("backend", SecretsBackend.KEYRING.value)),
            encrypted_file_path=str(secrets.get("encrypted_file_path", "secrets.json")),
        ),
    )
    settings.validate()
    return settings


def load_settings(path: Path) -> AppSettings:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("settings file must contain a JSON object")
    return from_dict(raw)


def load_settings_or_default(path: Path) -> AppSettings:
    if path.exists():
        return load_settings(path)
    return AppSettings()


def save_settings(path: Path, settings: AppSettings) -> None:
    settings.validate()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(to_dict(settings), ensure_ascii=False, indent=2), encoding="utf-8")
