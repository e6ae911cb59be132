from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from konnichiwa.config.prompts import system_prompt_for, user_message_for
from konnichiwa.core.cache import TranslationCache
from konnichiwa.core.clock import Clock, SystemClock
from konnichiwa.core.language import LanguagePair
from konnichiwa.core.listener import NullListener, PipelineListener, SafeListener
from konnichiwa.core.llm.provider import TranslationProvider
from konnichiwa.core.rate_limit import RateLimiter
from konnichiwa.core.text_filter import TextFilter
from konnichiwa.domain.errors import TranslationFailed
from konnichiwa.domain.models import TextEvent, TextSource

logger = logging.getLogger(__name__)


class LatestTextPolicy(str, Enum):
    # Rate-limited text is gone for good; the next observed text gets evaluated.
    DROP = "drop"
    # Remember only the newest rate-limited text and send it once the limiter allows.
    TRANSLATE_LATEST = "translate_latest"


class DispatchOutcome(str, Enum):
    TRANSLATED = "TRANSLATED"
    CACHED = "CACHED"
    FILTERED_OUT = "FILTERED_OUT"
    RATE_LIMITED = "RATE_LIMITED"


@dataclass(frozen=True, slots=True)
class DispatchResult:
    outcome: DispatchOutcome
    source_text: str
    translated_text: str | None = None


@dataclass(slots=True)
class TranslationDispatcher:
    """Decides which observed texts reach the translation provider.

    One instance per flow. At most one provider call is in flight at a time and calls are
    spaced by the limiter's cooldown. Texts that are filtered out or rate limited are
    dropped, never queued.
    """

    provider: TranslationProvider
    cache: TranslationCache
    limiter: RateLimiter
    text_filter: TextFilter
    source: TextSource = TextSource.OCR
    language_pair: LanguagePair = field(default_factory=LanguagePair)
    listener: PipelineListener = field(default_factory=NullListener)
    clock: Clock = field(default_factory=SystemClock)
    latest_text_policy: LatestTextPolicy = LatestTextPolicy.DROP

    _tasks: set[asyncio.Task[None]] = field(default_factory=set, init=False, repr=False)
    _pending_text: str | None = field(default=None, init=False, repr=False)
    _pending_timer: asyncio.TimerHandle | None = field(default=None, init=False, repr=False)
    _closed: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.listener, SafeListener):
            self.listener = SafeListener(self.listener)

    @property
    def is_translating(self) -> bool:
        return self.limiter.is_translating

    @property
    def pending_text(self) -> str | None:
        return self._pending_text

    def handle(self, event: TextEvent) -> DispatchResult | None:
        """Evaluate one observed text; schedules the provider call and returns at once.

        Returns the immediate outcome, or None when a request was scheduled.
        Must be called from the event loop thread.

        Cache age and cooldown are measured when the event is handled, not at
        `event.observed_at`: a frame that reaches the loop late through
        `handle_threadsafe` is judged against the limiter state it actually meets.
        """
        if self._closed:
            logger.debug("[Dispatch] Closed; ignoring text event")
            return None

        decision = self._admit(event.text)
        if decision is not None:
            return decision

        task = asyncio.get_running_loop().create_task(self._dispatch_in_background(event.text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return None

    def handle_threadsafe(self, event: TextEvent, loop: asyncio.AbstractEventLoop) -> None:
        """Entry point for sources that deliver text from their own thread."""
        loop.call_soon_threadsafe(self.handle, event)

    async def translate(self, text: str) -> DispatchResult:
        """Awaitable variant of `handle` used by the voice pipeline.

        Raises TranslationFailed when the provider call fails.
        """
        decision = self._admit(text)
        if decision is not None:
            return decision
        translated = await self._request(text)
        return DispatchResult(DispatchOutcome.TRANSLATED, text, translated)

    async def wait_idle(self) -> None:
        """Wait for requests already in flight; new text is still admitted."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Stop admitting new text and wait for the in-flight request, if any."""
        self._closed = True
        self._clear_pending()
        await self.wait_idle()

    def _admit(self, text: str) -> DispatchResult | None:
        if not self.text_filter.should_translate(text):
            self._clear_pending()
            logger.debug(f"[Dispatch] Filtered out: '{text[:30]}'")
            if self.source == TextSource.OCR:
                self.listener.on_translation_updated(text, "")
            return DispatchResult(DispatchOutcome.FILTERED_OUT, text)

        now = self.clock.now()
        cached = self.cache.lookup(text, now)
        if cached is not None:
            self._clear_pending()
            logger.debug(f"[Dispatch] Cache hit: '{text[:30]}'")
            self.listener.on_translation_updated(text, cached)
            return DispatchResult(DispatchOutcome.CACHED, text, cached)

        if not self.limiter.try_acquire(now):
            if self.latest_text_policy == LatestTextPolicy.TRANSLATE_LATEST:
                self._pending_text = text
                if not self.limiter.is_translating:
                    # Only a cooldown is in the way; nothing in flight will reschedule it.
                    self._schedule_pending()
            return DispatchResult(DispatchOutcome.RATE_LIMITED, text)

        # Granted text is newer than anything still waiting.
        self._clear_pending()
        return None

    async def _request(self, text: str) -> str:
        """Issue one provider call. The caller must hold a limiter grant."""
        logger.info(f"[Dispatch] Translating ({self.language_pair}): '{text[:50]}'")
        try:
            translation = await self.provider.translate(
                text=text,
                system_prompt=system_prompt_for(self.source, self.language_pair),
                user_message=user_message_for(self.source, self.language_pair, text),
                language_pair=self.language_pair,
            )
            translated = translation.text.strip()
            if not translated:
                raise TranslationFailed("provider returned an empty translation")
            self.cache.store(text, translated, self.clock.now())
            self.listener.on_translation_updated(text, translated)
            return translated
        except asyncio.CancelledError:
            raise
        except TranslationFailed:
            raise
        except Exception as exc:
            raise TranslationFailed(str(exc)) from exc
        finally:
            self.limiter.release()
            self._schedule_pending()

    async def _dispatch_in_background(self, text: str) -> None:
        try:
            await self._request(text)
        except TranslationFailed as exc:
            logger.error(f"[Dispatch] Translation failed: {exc}")
            self.listener.on_status_changed(exc.status_message())

    def _schedule_pending(self) -> None:
        if self._closed or self._pending_text is None or self._pending_timer is not None:
            return
        delay = self.limiter.cooldown_remaining(self.clock.now())
        loop = asyncio.get_running_loop()
        self._pending_timer = loop.call_later(delay, self._flush_pending)

    def _flush_pending(self) -> None:
        self._pending_timer = None
        text, self._pending_text = self._pending_text, None
        if text is None or self._closed:
            return
        logger.info(f"[Dispatch] Sending latest rate-limited text: '{text[:30]}'")
        self.handle(TextEvent(text=text, source=self.source, observed_at=self.clock.now()))

    def _clear_pending(self) -> None:
        self._pending_text = None
        if self._pending_timer is not None:
            self._pending_timer.cancel()
            self._pending_timer = None
