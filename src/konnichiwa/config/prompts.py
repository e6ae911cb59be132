"""Fixed instructions sent with every translation request.

Both instructions constrain the model to return the translated text only.
"""

from __future__ import annotations

from konnichiwa.core.language import LanguagePair
from konnichiwa.domain.models import TextSource

OCR_SYSTEM_PROMPT = "You are a helpful assistant that translates {source_name} to {target_name}."

OCR_USER_TEMPLATE = (
    "Translate the following {source_name} text to {target_name}. "
    "Only output the translation, do not output anything else: {text}"
)

VOICE_SYSTEM_PROMPT = (
    "You are a helpful assistant that detects the language of the input and translates it "
    "to the other language ({source_name} or {target_name}). If the text is in "
    "{source_name}, translate to {target_name}. If the text is in {target_name}, translate "
    "to {source_name}. Respond only with the translation, nothing else."
)

VOICE_USER_TEMPLATE = "{text}"


def system_prompt_for(source: TextSource, pair: LanguagePair) -> str:
    template = OCR_SYSTEM_PROMPT if source == TextSource.OCR else VOICE_SYSTEM_PROMPT
    return template.format(source_name=pair.source_name, target_name=pair.target_name)


def user_message_for(source: TextSource, pair: LanguagePair, text: str) -> str:
    template = OCR_USER_TEMPLATE if source == TextSource.OCR else VOICE_USER_TEMPLATE
    return template.format(source_name=pair.source_name, target_name=pair.target_name, text=text)
