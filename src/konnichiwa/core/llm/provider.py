from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol

from konnichiwa.core.language import LanguagePair
from konnichiwa.domain.models import Translation


class TranslationProvider(Protocol):
    async def translate(
        self,
        *,
        text: str,
        system_prompt: str,
        user_message: str,
        language_pair: LanguagePair,
    ) -> Translation: ...

    async def close(self) -> None: ...


@dataclass(slots=True)
class SemaphoreTranslationProvider:
    """Caps concurrent calls when one provider is shared by several dispatchers."""

    inner: TranslationProvider
    semaphore: asyncio.Semaphore

    async def translate(
        self,
        *,
        text: str,
        system_prompt: str,
        user_message: str,
        language_pair: LanguagePair,
    ) -> Translation:
        async with self.semaphore:
            return await self.inner.translate(
                text=text,
                system_prompt=system_prompt,
                user_message=user_message,
                language_pair=language_pair,
            )

    async def close(self) -> None:
        await self.inner.close()
