from __future__ import annotations

import asyncio
import os
from pathlib import Path

from konnichiwa.config.settings import (
    AppSettings,
    SecretsBackend,
    SecretsSettings,
    SpeechProviderName,
    TranscriptionProviderName,
    TranslationProviderName,
)
from konnichiwa.core.cache import TranslationCache
from konnichiwa.core.clock import Clock, SystemClock
from konnichiwa.core.dispatcher import TranslationDispatcher
from konnichiwa.core.listener import NullListener, PipelineListener
from konnichiwa.core.llm.provider import SemaphoreTranslationProvider, TranslationProvider
from konnichiwa.core.rate_limit import RateLimiter
from konnichiwa.core.storage.secrets import (
    GOOGLE_API_KEY,
    OPENAI_API_KEY,
    EncryptedFileSecretStore,
    KeyringSecretStore,
    SecretStore,
    require_secret,
)
from konnichiwa.core.stt.provider import TranscriptionProvider
from konnichiwa.core.text_filter import NonEmptyFilter, ScriptFilter
from konnichiwa.core.tts.provider import SpeechProvider
from konnichiwa.domain.models import TextSource
from konnichiwa.providers.llm.gemini import GeminiTranslationProvider
from konnichiwa.providers.llm.openai_chat import OpenAIChatTranslationProvider
from konnichiwa.providers.stt.openai_whisper import OpenAIWhisperTranscriptionProvider
from konnichiwa.providers.tts.openai_speech import OpenAISpeechProvider

SECRETS_PASSPHRASE_ENV = "KONNICHIWA_SECRETS_PASSPHRASE"


def create_secret_store(
    settings: SecretsSettings,
    *,
    config_path: Path,
    passphrase: str | None = None,
) -> SecretStore:
    passphrase = passphrase or os.getenv(SECRETS_PASSPHRASE_ENV)

    if settings.backend == SecretsBackend.KEYRING:
        return KeyringSecretStore()

    if settings.backend == SecretsBackend.ENCRYPTED_FILE:
        if not passphrase:
            raise ValueError(
                "encrypted_file secrets backend requires a passphrase; "
                f"set {SECRETS_PASSPHRASE_ENV} or pass passphrase explicitly"
            )
        path = Path(settings.encrypted_file_path)
        if not path.is_absolute():
            path = config_path.parent / path
        return EncryptedFileSecretStore(path=path, passphrase=passphrase)

    raise ValueError(f"Unsupported secrets backend: {settings.backend}")


def create_translation_provider(
    settings: AppSettings, *, secrets: SecretStore
) -> TranslationProvider:
    if settings.provider.translation == TranslationProviderName.OPENAI:
        base: TranslationProvider = OpenAIChatTranslationProvider(
            api_key=require_secret(secrets, OPENAI_API_KEY),
            model=settings.openai.chat_model,
        )
    elif settings.provider.translation == TranslationProviderName.GEMINI:
        base = GeminiTranslationProvider(
            api_key=require_secret(secrets, GOOGLE_API_KEY),
            model=settings.gemini.model,
        )
    else:
        raise ValueError(f"Unsupported translation provider: {settings.provider.translation}")

    return SemaphoreTranslationProvider(
        inner=base,
        semaphore=asyncio.Semaphore(settings.dispatch.concurrency_limit),
    )


def create_transcription_provider(
    settings: AppSettings, *, secrets: SecretStore
) -> TranscriptionProvider:
    if settings.provider.transcription == TranscriptionProviderName.OPENAI:
        return OpenAIWhisperTranscriptionProvider(
            api_key=require_secret(secrets, OPENAI_API_KEY),
            model=settings.openai.transcription_model,
        )
    raise ValueError(f"Unsupported transcription provider: {settings.provider.transcription}")


def create_speech_provider(
    settings: AppSettings, *, secrets: SecretStore
) -> SpeechProvider | None:
    if settings.provider.speech == SpeechProviderName.NONE:
        return None
    if settings.provider.speech == SpeechProviderName.OPENAI:
        return OpenAISpeechProvider(
            api_key=require_secret(secrets, OPENAI_API_KEY),
            model=settings.openai.speech_model,
        )
    raise ValueError(f"Unsupported speech provider: {settings.provider.speech}")


def create_dispatcher(
    settings: AppSettings,
    *,
    provider: TranslationProvider,
    source: TextSource,
    cache: TranslationCache | None = None,
    listener: PipelineListener | None = None,
    clock: Clock | None = None,
) -> TranslationDispatcher:
    """One dispatcher per flow; pass the same `cache` to share results between flows."""
    if source == TextSource.OCR:
        text_filter = ScriptFilter(ranges=tuple(tuple(r) for r in settings.filter.script_ranges))
    else:
        text_filter = NonEmptyFilter()

    return TranslationDispatcher(
        provider=provider,
        cache=cache or TranslationCache(ttl_s=settings.cache.ttl_s),
        limiter=RateLimiter(cooldown_s=settings.dispatch.cooldown_s),
        text_filter=text_filter,
        source=source,
        language_pair=settings.languages.pair(),
        listener=listener or NullListener(),
        clock=clock or SystemClock(),
        latest_text_policy=settings.dispatch.latest_text_policy,
    )
