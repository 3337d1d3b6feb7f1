#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Portrait candidate extraction strategies.

Each strategy has the same shape:

    strategy(client, title, aliases, settings) -> Iterator[ImageCandidate]

and yields candidates lazily, best first. Strategies do not validate or probe
anything themselves; ImageResolver applies the URL validator and the
stability check to what they yield. They raise freely on upstream errors.
"""

import logging
from typing import Callable, Iterator, List, NamedTuple, Optional, Sequence, Tuple
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from image_filters import rank_image_files
from settings import WIKI_BASE, QuizSettings
from wiki_client import WikiClient, WikiError

log = logging.getLogger(__name__)

SPACER_IMAGES = ("pixel.gif", "blank.gif")


class ImageCandidate(NamedTuple):
    url: str
    source: str


Strategy = Callable[[WikiClient, str, Sequence[str], QuizSettings], Iterator[ImageCandidate]]


# ------------------------------------------------------------
# 0) HTML HELPERS
# ------------------------------------------------------------

def normalize_image_src(src: str, base_url: str = WIKI_BASE) -> str:
    src = (src or "").strip()
    if src.startswith("//"):
        return "https:" + src
    return urljoin(base_url.rstrip("/") + "/", src)


def _og_image(soup: BeautifulSoup) -> Optional[str]:
    meta = soup.select_one('meta[property="og:image"]')
    if not meta:
        return None
    content = (meta.get("content") or "").strip()
    return content or None


def _infobox_image(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    infobox = soup.select_one("table.infobox")
    if not infobox:
        return None
    for img in infobox.select("img[src]"):
        src = img.get("src") or ""
        if not src or any(s in src.lower() for s in SPACER_IMAGES):
            continue
        return normalize_image_src(src, base_url)
    return None


def extract_og_image(html: str) -> Optional[str]:
    """
    Social preview image (<meta property="og:image">), entities unescaped.
    """
    return _og_image(BeautifulSoup(html or "", "html.parser"))


def extract_infobox_image(html: str, base_url: str = WIKI_BASE) -> Optional[str]:
    """
    First real <img> inside the first infobox table, as an absolute URL.
    """
    return _infobox_image(BeautifulSoup(html or "", "html.parser"), base_url)


# ------------------------------------------------------------
# 1) STRATEGIES
# ------------------------------------------------------------

def thumbnail_candidates(
    client: WikiClient, title: str, aliases: Sequence[str], settings: QuizSettings
) -> Iterator[ImageCandidate]:
    url = client.page_thumbnail(title, size=settings.thumbnail_size)
    if url:
        yield ImageCandidate(url, "thumbnail")


def document_candidates(
    client: WikiClient, title: str, aliases: Sequence[str], settings: QuizSettings
) -> Iterator[ImageCandidate]:
    html = client.page_html(title)
    soup = BeautifulSoup(html, "html.parser")

    og = _og_image(soup)
    if og:
        yield ImageCandidate(og, "og:image")

    infobox = _infobox_image(soup, WIKI_BASE)
    if infobox:
        yield ImageCandidate(infobox, "infobox")


def image_list_candidates(
    client: WikiClient, title: str, aliases: Sequence[str], settings: QuizSettings
) -> Iterator[ImageCandidate]:
    files = client.page_images(title, limit=settings.image_list_limit)
    ranked = rank_image_files(files, aliases, allow_fallback=settings.allow_fallback_images)
    log.debug("image-list %s: %d files, %d candidates", title, len(files), len(ranked))

    for file_title in ranked:
        try:
            url = client.image_url(file_title)
        except (WikiError, requests.RequestException) as e:
            log.debug("imageinfo failed for %s: %s", file_title, e)
            continue
        if url:
            yield ImageCandidate(url, "image-list")


# Priority order: platform-curated thumbnail, page markup, full media scan
STRATEGIES: List[Tuple[str, Strategy]] = [
    ("thumbnail", thumbnail_candidates),
    ("document", document_candidates),
    ("image-list", image_list_candidates),
]
