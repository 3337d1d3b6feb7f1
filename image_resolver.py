#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import logging
import time
from typing import Callable, List, Optional, Sequence, Set, Tuple

from image_extract import STRATEGIES, Strategy
from image_filters import is_valid_image_url, make_aliases
from settings import QuizSettings
from wiki_client import WikiClient

log = logging.getLogger(__name__)


class StabilityChecker:
    """
    Probes a URL several times; every probe must answer 200 with an image/*
    content type. The first failing probe fails the whole check.
    """

    def __init__(
        self,
        client: WikiClient,
        attempts: int = 3,
        timeout_s: float = 2.5,
        pause_s: float = 0.3,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.attempts = attempts
        self.timeout_s = timeout_s
        self.pause_s = pause_s
        self._sleep = sleep

    @classmethod
    def from_settings(cls, client: WikiClient, settings: QuizSettings) -> "StabilityChecker":
        return cls(
            client,
            attempts=settings.stability_attempts,
            timeout_s=settings.stability_timeout_s,
            pause_s=settings.stability_pause_s,
        )

    def check(self, url: str) -> bool:
        for attempt in range(1, self.attempts + 1):
            if attempt > 1 and self.pause_s > 0:
                self._sleep(self.pause_s)
            try:
                status, content_type = self.client.probe(url, timeout=self.timeout_s)
            except Exception as e:
                log.info("unstable image (probe %d/%d: %s): %s", attempt, self.attempts, e, url)
                return False
            if status != 200 or not content_type.startswith("image/"):
                log.info(
                    "unstable image (probe %d/%d: status=%s type=%s): %s",
                    attempt,
                    self.attempts,
                    status,
                    content_type or "-",
                    url,
                )
                return False
        return True


class ImageResolver:
    """
    Title -> one validated, stability-confirmed image URL, or None.

    Strategy errors are logged and treated as "try the next strategy";
    nothing raised by the upstream escapes resolve().
    """

    def __init__(
        self,
        client: WikiClient,
        settings: QuizSettings,
        stability: Optional[StabilityChecker] = None,
        strategies: Optional[Sequence[Tuple[str, Strategy]]] = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.stability = stability or StabilityChecker.from_settings(client, settings)
        self.strategies: List[Tuple[str, Strategy]] = list(strategies if strategies is not None else STRATEGIES)

    def resolve(self, title: str) -> Optional[str]:
        aliases = make_aliases(title)
        probed: Set[str] = set()

        for name, strategy in self.strategies:
            try:
                for candidate in strategy(self.client, title, aliases, self.settings):
                    url = candidate.url
                    if url in probed or not is_valid_image_url(url):
                        continue
                    probed.add(url)
                    if self.stability.check(url):
                        log.info("image for %s via %s: %s", title, candidate.source, url)
                        return url
            except Exception as e:
                log.info("strategy %s failed for %s: %s", name, title, e)

        log.warning("no usable image: %s", title)
        return None
