from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from konnichiwa.core.language import LanguagePair
from konnichiwa.domain.models import Translation

logger = logging.getLogger(__name__)


class GeminiClient(Protocol):
    async def generate(self, *, system_prompt: str, user_message: str) -> str: ...

    async def close(self) -> None: ...


@dataclass(slots=True)
class GeminiTranslationProvider:
    """Translation through Gemini; the prompts are built by the caller."""

    api_key: str
    model: str = "gemini-2.5-flash"
    temperature: float = 0.2
    client: GeminiClient | None = None
    _sdk_client: GeminiClient | None = field(init=False, default=None, repr=False)

    def _client(self) -> GeminiClient:
        if self.client is not None:
            return self.client
        if self._sdk_client is None:
            self._sdk_client = GoogleGenaiGeminiClient(
                api_key=self.api_key, model=self.model, temperature=self.temperature
            )
        return self._sdk_client

    async def translate(
        self,
        *,
        text: str,
        system_prompt: str,
        user_message: str,
        language_pair: LanguagePair,
    ) -> Translation:
        logger.info(f"[LLM] Gemini request ({language_pair}): '{text[:50]}'")
        translated = await self._client().generate(
            system_prompt=system_prompt, user_message=user_message
        )
        logger.info(f"[LLM] Gemini response: '{translated[:50]}'")
        return Translation(source_text=text, text=translated)

    async def close(self) -> None:
        sdk_client, self._sdk_client = self._sdk_client, None
        if sdk_client is not None:
            await sdk_client.close()


@dataclass(slots=True)
class GoogleGenaiGeminiClient:
    api_key: str
    model: str
    temperature: float = 0.2
    _genai: Any = field(init=False, default=None, repr=False)

    def _sdk(self) -> Any:
        if self._genai is None:
            from google import genai  # type: ignore

            self._genai = genai.Client(api_key=self.api_key)
        return self._genai

    async def generate(self, *, system_prompt: str, user_message: str) -> str:
        from google.genai import types  # type: ignore

        response = await self._sdk().aio.models.generate_content(
            model=self.model,
            contents=user_message,
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=self.temperature,
            ),
        )
        text = getattr(response, "text", None)
        if text:
            return str(text).strip()

        feedback = getattr(response, "prompt_feedback", None)
        reason = getattr(feedback, "block_reason", None)
        if reason:
            raise RuntimeError(f"Gemini blocked the request: {reason}")
        raise RuntimeError("Gemini response did not contain text")

    async def close(self) -> None:
        self._genai = None
