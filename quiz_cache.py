#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Rolling cache of ready-to-serve quiz entries and the engine that refills it.

All cache state lives on one asyncio loop. Upstream work is blocking
`requests` code, pushed through run_in_executor one call at a time, so a
refill never has more than one request in flight and the cache is only ever
mutated from the loop thread. At most one refill task exists at a time;
everybody who needs a refill awaits that same task.
"""

import asyncio
import concurrent.futures
import logging
import random
import re
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

import requests

from hint_mask import display_name, mask_hint, trim_description
from image_resolver import ImageResolver, StabilityChecker
from settings import QuizSettings
from wiki_client import WikiClient, WikiError

log = logging.getLogger(__name__)

BIRTH_CATEGORY = "분류:{year}년 태어남"

# Discovery titles that are lists, disambiguations or occupation-qualified pages
DISCOVERY_NOISE_RE = re.compile(
    r"(목록|동음이의|정치인|군인|선수|배우|가수|작가|화가|승려|왕족|귀족|성인|주교|교황|장군)"
)

# Upstream failures that only cost us the current candidate
TRANSIENT_ERRORS = (WikiError, requests.RequestException)


@dataclass(frozen=True)
class QuizEntry:
    name: str
    image: str
    hint: str
    description: str

    def to_payload(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "image": self.image,
            "hint": self.hint,
            "description": self.description,
            "imageUrl": self.image,
        }


def birth_category(year: int) -> str:
    return BIRTH_CATEGORY.format(year=year)


def filter_discovery_titles(titles: List[str]) -> List[str]:
    out = []
    for t in titles:
        if not t or "(" in t:
            continue
        if DISCOVERY_NOISE_RE.search(t):
            continue
        out.append(t)
    return out


class QuizService:
    def __init__(
        self,
        client: WikiClient,
        settings: Optional[QuizSettings] = None,
        resolver: Optional[ImageResolver] = None,
        stability: Optional[StabilityChecker] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or QuizSettings()
        self.client = client
        self.stability = stability or StabilityChecker.from_settings(client, self.settings)
        self.resolver = resolver or ImageResolver(client, self.settings, stability=self.stability)
        self.rng = rng or random.Random()

        self.cache: Deque[QuizEntry] = deque()
        self._refill_task: Optional["asyncio.Task[None]"] = None
        self._retry_handle: Optional[asyncio.TimerHandle] = None

    # --------------------------------------------------------
    # state
    # --------------------------------------------------------

    @property
    def capacity(self) -> int:
        return self.settings.cache_size

    @property
    def is_full(self) -> bool:
        return len(self.cache) >= self.capacity

    @property
    def refill_in_progress(self) -> bool:
        return self._refill_task is not None and not self._refill_task.done()

    @property
    def retry_scheduled(self) -> bool:
        return self._retry_handle is not None

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self.cache),
            "capacity": self.capacity,
            "refilling": self.refill_in_progress,
            "retryScheduled": self.retry_scheduled,
        }

    def _has_name(self, name: str) -> bool:
        return any(e.name == name for e in self.cache)

    # --------------------------------------------------------
    # serving
    # --------------------------------------------------------

    def trigger_refill(self) -> Optional["asyncio.Task[None]"]:
        """
        Returns the in-flight refill if there is one, otherwise starts a new
        one when the cache has room. None means the cache is already full.
        Must be called on the loop thread.
        """
        if self.refill_in_progress:
            return self._refill_task
        if self.is_full:
            return None
        self._refill_task = asyncio.get_running_loop().create_task(self._refill())
        return self._refill_task

    async def refill_once(self) -> None:
        task = self.trigger_refill()
        if task is not None:
            await asyncio.shield(task)

    async def serve(self) -> Optional[QuizEntry]:
        if not self.cache:
            # shielded: a consumer giving up must not cancel the shared refill
            await self.refill_once()
        if not self.cache:
            return None

        entry = self.cache.popleft()
        if len(self.cache) < self.settings.refill_threshold:
            self.trigger_refill()
        return entry

    # --------------------------------------------------------
    # refill
    # --------------------------------------------------------

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.get_running_loop().run_in_executor(None, fn, *args)

    async def _refill(self) -> None:
        start = len(self.cache)
        log.info("refill start (cache=%d/%d)", start, self.capacity)
        try:
            await self._curated_phase()
            if not self.is_full:
                await self._discovery_phase()
        except Exception:
            log.exception("refill aborted (cache=%d/%d)", len(self.cache), self.capacity)
        finally:
            self._refill_task = None
            log.info("refill done: +%d (cache=%d/%d)", len(self.cache) - start, len(self.cache), self.capacity)
            if len(self.cache) < self.settings.critical_low:
                self._schedule_retry()

    def _schedule_retry(self) -> None:
        if self._retry_handle is not None:
            return
        delay = self.settings.retry_delay_s
        log.warning("cache critically low (%d), retrying refill in %.0fs", len(self.cache), delay)
        self._retry_handle = asyncio.get_running_loop().call_later(delay, self._retry_refill)

    def _retry_refill(self) -> None:
        self._retry_handle = None
        self.trigger_refill()

    async def _curated_phase(self) -> None:
        names = list(self.settings.curated_names)
        self.rng.shuffle(names)
        for title in names[: self.settings.curated_sample]:
            if self.is_full:
                return
            await self._try_add(title, self.settings.curated_min_extract)

    async def _discovery_phase(self) -> None:
        s = self.settings
        for attempt in range(1, s.discovery_attempts + 1):
            if self.is_full:
                return
            year = self.rng.randint(s.year_min, s.year_max)
            category = birth_category(year)
            try:
                members = await self._run(self.client.category_members, category, s.discovery_page_limit)
            except TRANSIENT_ERRORS as e:
                log.info("discovery %d/%d: %s unavailable: %s", attempt, s.discovery_attempts, category, e)
                continue

            titles = filter_discovery_titles(members)
            self.rng.shuffle(titles)
            log.info("discovery %d/%d: %s -> %d candidates", attempt, s.discovery_attempts, category, len(titles))
            for title in titles[: s.discovery_candidates]:
                if self.is_full:
                    return
                await self._try_add(title, s.discovery_min_extract)

    async def _try_add(self, title: str, min_extract: int) -> bool:
        name = display_name(title)
        if self._has_name(name):
            return False

        try:
            extract = await self._run(self.client.intro_extract, title)
        except TRANSIENT_ERRORS as e:
            log.info("skip %s: extract unavailable: %s", title, e)
            return False
        if not extract or len(extract) < min_extract:
            log.debug("skip %s: extract too short (%d < %d)", title, len(extract or ""), min_extract)
            return False

        image = await self._run(self.resolver.resolve, title)
        if not image:
            return False
        if not await self._run(self.stability.check, image):
            log.info("skip %s: image failed re-check", title)
            return False

        entry = QuizEntry(
            name=name,
            image=image,
            hint=mask_hint(title, extract, self.settings.hint_max_chars),
            description=trim_description(extract, self.settings.description_max_chars),
        )
        if self.is_full or self._has_name(name):
            return False
        self.cache.append(entry)
        log.info("cached %s (cache=%d/%d)", name, len(self.cache), self.capacity)
        return True


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
    log.error("unhandled error on quiz loop: %s", context.get("message"), exc_info=context.get("exception"))


class QuizRuntime:
    """
    Runs a QuizService on its own event loop thread so that synchronous
    Flask handlers can share one cache and one refill.
    """

    def __init__(self, service: QuizService) -> None:
        self.service = service
        self.loop = asyncio.new_event_loop()
        self.loop.set_exception_handler(_log_loop_exception)
        self._thread: Optional[threading.Thread] = None

    def start(self, warm: bool = True) -> "QuizRuntime":
        if self._thread is not None:
            return self
        self._thread = threading.Thread(target=self._run_loop, name="quiz-loop", daemon=True)
        self._thread.start()
        if warm:
            self.loop.call_soon_threadsafe(self.service.trigger_refill)
        return self

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def serve_blocking(self, timeout: Optional[float] = None) -> Optional[QuizEntry]:
        fut = asyncio.run_coroutine_threadsafe(self.service.serve(), self.loop)
        try:
            return fut.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            fut.cancel()
            log.warning("gave up waiting for refill after %ss", timeout)
            return None

    def call(self, fn: Callable[..., Any], *args: Any, timeout: float = 5.0) -> Any:
        async def _call() -> Any:
            return fn(*args)

        return asyncio.run_coroutine_threadsafe(_call(), self.loop).result(timeout=timeout)

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout)
        self._thread = None
