from __future__ import annotations

import asyncio

import pytest

from konnichiwa.app.wiring import (
    SECRETS_PASSPHRASE_ENV,
    create_dispatcher,
    create_secret_store,
    create_speech_provider,
    create_transcription_provider,
    create_translation_provider,
)
from konnichiwa.config.settings import (
    AppSettings,
    SecretsBackend,
    SecretsSettings,
    SpeechProviderName,
    TranslationProviderName,
)
from konnichiwa.core.cache import TranslationCache
from konnichiwa.core.llm.provider import SemaphoreTranslationProvider
from konnichiwa.core.storage.secrets import (
    EncryptedFileSecretStore,
    InMemorySecretStore,
    KeyringSecretStore,
    MissingSecret,
)
from konnichiwa.core.text_filter import NonEmptyFilter, ScriptFilter
from konnichiwa.domain.models import TextSource
from konnichiwa.providers.llm.gemini import GeminiTranslationProvider
from konnichiwa.providers.llm.openai_chat import OpenAIChatTranslationProvider
from konnichiwa.providers.stt.openai_whisper import OpenAIWhisperTranscriptionProvider
from konnichiwa.providers.tts.openai_speech import OpenAISpeechProvider


@pytest.fixture(autouse=True)
def _no_env_keys(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.delenv(SECRETS_PASSPHRASE_ENV, raising=False)


def test_secret_store_backends(tmp_path, monkeypatch):
    config_path = tmp_path / "settings.json"

    store = create_secret_store(SecretsSettings(), config_path=config_path)
    assert isinstance(store, KeyringSecretStore)

    encrypted = SecretsSettings(backend=SecretsBackend.ENCRYPTED_FILE)
    with pytest.raises(ValueError):
        create_secret_store(encrypted, config_path=config_path)

    monkeypatch.setenv(SECRETS_PASSPHRASE_ENV, "pass")
    store = create_secret_store(encrypted, config_path=config_path)
    assert isinstance(store, EncryptedFileSecretStore)
    assert store.path == tmp_path / "secrets.json"


def test_translation_provider_selection():
    async def run() -> None:
        settings = AppSettings()
        secrets = InMemorySecretStore({"openai_api_key": "sk-x", "google_api_key": "g-x"})

        provider = create_translation_provider(settings, secrets=secrets)
        assert isinstance(provider, SemaphoreTranslationProvider)
        assert isinstance(provider.inner, OpenAIChatTranslationProvider)
        assert provider.inner.model == "gpt-4o"

        settings.provider.translation = TranslationProviderName.GEMINI
        provider = create_translation_provider(settings, secrets=secrets)
        assert isinstance(provider.inner, GeminiTranslationProvider)

    asyncio.run(run())


def test_missing_key_fails_fast():
    with pytest.raises(MissingSecret):
        create_translation_provider(AppSettings(), secrets=InMemorySecretStore())
    with pytest.raises(MissingSecret):
        create_transcription_provider(AppSettings(), secrets=InMemorySecretStore())


def test_voice_providers():
    settings = AppSettings()
    secrets = InMemorySecretStore({"openai_api_key": "sk-x"})

    stt = create_transcription_provider(settings, secrets=secrets)
    assert isinstance(stt, OpenAIWhisperTranscriptionProvider)
    assert stt.model == "whisper-1"

    tts = create_speech_provider(settings, secrets=secrets)
    assert isinstance(tts, OpenAISpeechProvider)
    assert tts.model == "tts-1"

    settings.provider.speech = SpeechProviderName.NONE
    assert create_speech_provider(settings, secrets=secrets) is None


def test_dispatcher_per_source():
    settings = AppSettings()
    settings.dispatch.cooldown_s = 2.0
    provider = object()
    shared = TranslationCache()

    ocr = create_dispatcher(settings, provider=provider, source=TextSource.OCR, cache=shared)
    voice = create_dispatcher(settings, provider=provider, source=TextSource.VOICE, cache=shared)

    assert isinstance(ocr.text_filter, ScriptFilter)
    assert isinstance(voice.text_filter, NonEmptyFilter)
    assert ocr.cache is voice.cache
    assert ocr.limiter is not voice.limiter
    assert ocr.limiter.cooldown_s == 2.0
