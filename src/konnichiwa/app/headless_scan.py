from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass, field
from typing import TextIO

from konnichiwa.app.console import ConsoleListener
from konnichiwa.app.wiring import create_dispatcher
from konnichiwa.config.settings import AppSettings
from konnichiwa.core.cache import TranslationCache
from konnichiwa.core.clock import Clock, SystemClock
from konnichiwa.core.dispatcher import TranslationDispatcher
from konnichiwa.core.llm.provider import TranslationProvider
from konnichiwa.core.text_filter import ScriptFilter
from konnichiwa.domain.models import TextEvent, TextSource

logger = logging.getLogger(__name__)

# One stdin line is one camera frame; recognized text blocks are tab separated.
OBSERVATION_SEPARATOR = "\t"


@dataclass(slots=True)
class HeadlessScanRunner:
    """OCR flow without a camera: frame text arrives on stdin."""

    settings: AppSettings
    provider: TranslationProvider
    clock: Clock = field(default_factory=SystemClock)
    stdin: TextIO = field(default_factory=lambda: sys.stdin)
    out: TextIO = field(default_factory=lambda: sys.stdout)

    async def run(self) -> int:
        listener = ConsoleListener(out=self.out)
        cache = TranslationCache(ttl_s=self.settings.cache.ttl_s)
        dispatcher = create_dispatcher(
            self.settings,
            provider=self.provider,
            source=TextSource.OCR,
            cache=cache,
            listener=listener,
            clock=self.clock,
        )
        cleanup_task = asyncio.create_task(
            cache.run_cleanup_loop(self.clock, interval_s=self.settings.cache.cleanup_interval_s)
        )
        try:
            await self._frame_loop(dispatcher)
        except KeyboardInterrupt:
            return 0
        finally:
            await dispatcher.aclose()
            cleanup_task.cancel()
            await asyncio.gather(cleanup_task, return_exceptions=True)
            await self.provider.close()
        return 0

    async def _frame_loop(self, dispatcher: TranslationDispatcher) -> None:
        loop = asyncio.get_running_loop()
        text_filter = dispatcher.text_filter
        while True:
            line = await loop.run_in_executor(None, self.stdin.readline)
            if not line:
                return
            observations = line.rstrip("\n").split(OBSERVATION_SEPARATOR)
            if isinstance(text_filter, ScriptFilter):
                frame_text = text_filter.join_ocr_lines(observations)
            else:
                frame_text = "\n".join(o.strip() for o in observations if o.strip())
            dispatcher.handle(
                TextEvent(text=frame_text, source=TextSource.OCR, observed_at=self.clock.now())
            )
