from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from konnichiwa.core.language import LanguagePair
from konnichiwa.domain.models import Translation

logger = logging.getLogger(__name__)


class OpenAIChatClient(Protocol):
    async def complete(self, *, system_prompt: str, user_message: str) -> str: ...

    async def close(self) -> None: ...


@dataclass(slots=True)
class OpenAIChatTranslationProvider:
    api_key: str
    model: str = "gpt-4o"
    client: OpenAIChatClient | None = None
    _internal_client: OpenAIChatClient | None = field(init=False, default=None, repr=False)

    def _get_client(self) -> OpenAIChatClient:
        if self.client is not None:
            return self.client
        if self._internal_client is None:
            self._internal_client = AsyncOpenAIChatClient(api_key=self.api_key, model=self.model)
        return self._internal_client

    async def translate(
        self,
        *,
        text: str,
        system_prompt: str,
        user_message: str,
        language_pair: LanguagePair,
    ) -> Translation:
        logger.info(f"[LLM] Request: '{text[:50]}' ({language_pair})")
        translated = await self._get_client().complete(
            system_prompt=system_prompt, user_message=user_message
        )
        logger.info(f"[LLM] Response: '{translated[:50]}'")
        return Translation(source_text=text, text=translated)

    async def close(self) -> None:
        if self._internal_client is not None:
            await self._internal_client.close()
            self._internal_client = None


@dataclass(slots=True)
class AsyncOpenAIChatClient:
    api_key: str
    model: str
    temperature: float = 0.2
    _client: Any = field(init=False, default=None, repr=False)

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import AsyncOpenAI  # type: ignore

            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def complete(self, *, system_prompt: str, user_message: str) -> str:
        response = await self._get_client().chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            temperature=self.temperature,
        )
        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise RuntimeError("OpenAI response did not contain message content")
        return str(content).strip()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
