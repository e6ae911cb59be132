"""Language codes and display names shared by settings, prompts and providers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LanguageInfo:
    code: str  # ISO 639-1 code: "ja", "en", etc.
    name: str  # English name: "Japanese", "English"


SUPPORTED_LANGUAGES: dict[str, LanguageInfo] = {
    "de": LanguageInfo(code="de", name="German"),
    "en": LanguageInfo(code="en", name="English"),
    "es": LanguageInfo(code="es", name="Spanish"),
    "fr": LanguageInfo(code="fr", name="French"),
    "it": LanguageInfo(code="it", name="Italian"),
    "ja": LanguageInfo(code="ja", name="Japanese"),
    "ko": LanguageInfo(code="ko", name="Korean"),
    "pt": LanguageInfo(code="pt", name="Portuguese"),
    "zh-CN": LanguageInfo(code="zh-CN", name="Chinese (Simplified)"),
    "zh-TW": LanguageInfo(code="zh-TW", name="Chinese (Traditional)"),
}


def get_language_info(code: str) -> LanguageInfo | None:
    """Get language info by code. Returns None if not supported."""
    if code in SUPPORTED_LANGUAGES:
        return SUPPORTED_LANGUAGES[code]

    # "ja-JP" -> "ja"
    normalized = code.split("-")[0].lower()
    return SUPPORTED_LANGUAGES.get(normalized)


def get_language_name(code: str) -> str:
    info = get_language_info(code)
    return info.name if info else code


def get_whisper_language(code: str) -> str:
    """Whisper expects bare ISO 639-1 codes."""
    return code.split("-")[0].lower()


@dataclass(frozen=True, slots=True)
class LanguagePair:
    source: str = "ja"
    target: str = "en"

    def __post_init__(self) -> None:
        if get_language_info(self.source) is None:
            raise ValueError(f"unsupported source language: {self.source}")
        if get_language_info(self.target) is None:
            raise ValueError(f"unsupported target language: {self.target}")
        if get_language_info(self.source) == get_language_info(self.target):
            raise ValueError("source and target language must differ")

    @property
    def source_name(self) -> str:
        return get_language_name(self.source)

    @property
    def target_name(self) -> str:
        return get_language_name(self.target)

    def __str__(self) -> str:
        return f"{self.source}<->{self.target}"
