#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Korean Wikipedia client used by the quiz refill pipeline.

- MediaWiki query API (page images, image lists, image info, intro extracts,
  category members), always JSON with formatversion=2
- Rendered article HTML (/wiki/<title>) for og:image and infobox scraping
- Lightweight binary probe for arbitrary image URLs (stability checks)

Every call carries WIKI_HEADERS and a timeout. Callers decide what a failure
means; this module only raises.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests

from settings import API_URL, HTTP_CONNECT_TIMEOUT, HTTP_READ_TIMEOUT, WIKI_BASE, WIKI_HEADERS

log = logging.getLogger(__name__)

RETRY_STATUS = (429, 502, 503)


class WikiError(RuntimeError):
    """Upstream API failure (after retries) or an error payload."""


def article_url(title: str) -> str:
    return f"{WIKI_BASE}/wiki/{quote(title.replace(' ', '_'))}"


def _malformed(what: str) -> WikiError:
    return WikiError(f"malformed payload: {what}")


def _query(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise _malformed("response is not an object")
    query = data.get("query") or {}
    if not isinstance(query, dict):
        raise _malformed("'query' is not an object")
    return query


def _first_page(data: Any) -> Dict[str, Any]:
    # formatversion=2: pages is a list of objects
    pages = _query(data).get("pages") or []
    if not isinstance(pages, list):
        raise _malformed("'pages' is not a list")
    if not pages:
        return {}
    page = pages[0] or {}
    if not isinstance(page, dict):
        raise _malformed("page is not an object")
    return page


def _list_field(obj: Dict[str, Any], key: str) -> List[Any]:
    value = obj.get(key) or []
    if not isinstance(value, list):
        raise _malformed(f"'{key}' is not a list")
    return value


class WikiClient:
    def __init__(self, sleep_s: float = 0.0, max_retries: int = 2, session: Optional[requests.Session] = None) -> None:
        self.sleep_s = sleep_s
        self.max_retries = max_retries
        self.s = session or requests.Session()
        self.s.headers.update(WIKI_HEADERS)
        self.timeout = (HTTP_CONNECT_TIMEOUT, HTTP_READ_TIMEOUT)

    def _sleep(self) -> None:
        if self.sleep_s > 0:
            time.sleep(self.sleep_s)

    def _backoff(self, attempt: int) -> float:
        return min(4.0, max(self.sleep_s, 0.2) * (2 ** (attempt - 1)))

    def api_get(self, params: Dict[str, Any]) -> Dict[str, Any]:
        # Always request JSON
        params = dict(params)
        params.setdefault("format", "json")
        params.setdefault("formatversion", "2")

        last_err: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                r = self.s.get(API_URL, params=params, timeout=self.timeout)
                if r.status_code in RETRY_STATUS:
                    last_err = WikiError(f"HTTP {r.status_code}")
                    time.sleep(self._backoff(attempt))
                    continue
                r.raise_for_status()
                data = r.json()
                self._sleep()
                break
            except (requests.RequestException, ValueError) as e:
                last_err = e
                log.debug("api_get attempt %d failed (%s): %s", attempt, params.get("titles") or params.get("list"), e)
                time.sleep(self._backoff(attempt))
        else:
            raise WikiError(f"API request failed after retries: {last_err}")

        if not isinstance(data, dict):
            raise _malformed("response is not an object")
        if "error" in data:
            err = data.get("error")
            info = (err.get("info") if isinstance(err, dict) else None) or "unknown API error"
            raise WikiError(info)
        return data

    # --------------------------------------------------------
    # query helpers
    # --------------------------------------------------------

    def page_thumbnail(self, title: str, size: int = 600) -> Optional[str]:
        data = self.api_get(
            {
                "action": "query",
                "titles": title,
                "prop": "pageimages",
                "pithumbsize": size,
                "pilimit": 1,
                "redirects": "1",
            }
        )
        thumb = _first_page(data).get("thumbnail") or {}
        if not isinstance(thumb, dict):
            raise _malformed("'thumbnail' is not an object")
        source = thumb.get("source")
        return source if isinstance(source, str) else None

    def page_html(self, title: str) -> str:
        r = self.s.get(article_url(title), timeout=self.timeout)
        r.raise_for_status()
        html = r.text or ""
        if not html.strip():
            raise WikiError(f"empty HTML for {title}")
        return html

    def page_images(self, title: str, limit: int = 50) -> List[str]:
        """
        File titles ("파일:XYZ.jpg") attached to the article, in API order.
        """
        data = self.api_get(
            {
                "action": "query",
                "titles": title,
                "prop": "images",
                "imlimit": limit,
                "redirects": "1",
            }
        )
        images = _list_field(_first_page(data), "images")
        return [i.get("title") for i in images if isinstance(i, dict) and i.get("title")]

    def image_url(self, file_title: str) -> Optional[str]:
        data = self.api_get(
            {
                "action": "query",
                "titles": file_title,
                "prop": "imageinfo",
                "iiprop": "url",
                "iilimit": 1,
            }
        )
        ii = _list_field(_first_page(data), "imageinfo")
        if not ii:
            return None
        if not isinstance(ii[0], dict):
            raise _malformed("imageinfo entry is not an object")
        url = ii[0].get("url")
        return url if isinstance(url, str) else None

    def intro_extract(self, title: str) -> Optional[str]:
        data = self.api_get(
            {
                "action": "query",
                "titles": title,
                "prop": "extracts",
                "exintro": "1",
                "explaintext": "1",
                "redirects": "1",
            }
        )
        page = _first_page(data)
        if page.get("missing"):
            return None
        extract = page.get("extract") or ""
        if not isinstance(extract, str):
            raise _malformed("'extract' is not a string")
        extract = extract.strip()
        return extract or None

    def category_members(self, category: str, limit: int = 50) -> List[str]:
        data = self.api_get(
            {
                "action": "query",
                "list": "categorymembers",
                "cmtitle": category,
                "cmnamespace": 0,
                "cmtype": "page",
                "cmlimit": limit,
            }
        )
        members = _list_field(_query(data), "categorymembers")
        return [m.get("title") for m in members if isinstance(m, dict) and m.get("title")]

    # --------------------------------------------------------
    # binary probe
    # --------------------------------------------------------

    def probe(self, url: str, timeout: float) -> Tuple[int, str]:
        """
        Returns (status_code, content_type) without reading the body.
        """
        with self.s.get(url, timeout=timeout, stream=True) as r:
            ct = (r.headers.get("Content-Type") or "").split(";")[0].strip().lower()
            return r.status_code, ct
