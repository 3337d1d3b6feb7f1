#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os
from dataclasses import dataclass, field
from typing import Tuple

# ------------------------------------------------------------
# 0) UPSTREAM (ENV overridable)
# ------------------------------------------------------------

WIKI_BASE = os.getenv("WIKI_BASE", "https://ko.wikipedia.org")
API_URL = f"{WIKI_BASE}/w/api.php"

DEFAULT_USER_AGENT = os.getenv(
    "USER_AGENT",
    "PortraitQuizBot/1.0 (trivia quiz; low request rate)",
)

WIKI_HEADERS = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Accept": "application/json,text/html;q=0.9,*/*;q=0.8",
    "Accept-Language": "ko,en;q=0.8",
}

HTTP_CONNECT_TIMEOUT = float(os.getenv("HTTP_CONNECT_TIMEOUT", "5"))
HTTP_READ_TIMEOUT = float(os.getenv("HTTP_READ_TIMEOUT", "10"))

# ------------------------------------------------------------
# 1) QUIZ CACHE / REFILL
# ------------------------------------------------------------

CURATED_NAMES: Tuple[str, ...] = (
    "볼프강 아마데우스 모차르트",
    "루트비히 판 베토벤",
    "요한 제바스티안 바흐",
    "프레데리크 쇼팽",
    "파블로 피카소",
    "빈센트 반 고흐",
    "레오나르도 다 빈치",
    "마하트마 간디",
    "알베르트 아인슈타인",
    "아이작 뉴턴",
    "찰스 다윈",
    "마리 퀴리",
    "니콜라 테슬라",
    "토머스 에디슨",
    "갈릴레오 갈릴레이",
    "윌리엄 셰익스피어",
    "나폴레옹 보나파르트",
    "에이브러햄 링컨",
    "윈스턴 처칠",
    "넬슨 만델라",
    "마틴 루서 킹 주니어",
    "세종",
    "이순신",
    "안중근",
    "김구",
    "유관순",
    "정약용",
    "장영실",
)


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class QuizSettings:
    # cache
    cache_size: int = 20
    refill_threshold: int = 10
    critical_low: int = 5
    retry_delay_s: float = 30.0
    serve_wait_timeout_s: float = 90.0

    # curated phase
    curated_names: Tuple[str, ...] = field(default=CURATED_NAMES)
    curated_sample: int = 5
    curated_min_extract: int = 30

    # discovery phase
    discovery_attempts: int = 3
    discovery_candidates: int = 10
    discovery_page_limit: int = 50
    discovery_min_extract: int = 300
    year_min: int = 500
    year_max: int = 1940

    # image resolution
    thumbnail_size: int = 600
    image_list_limit: int = 50
    allow_fallback_images: bool = True

    # stability probes
    stability_attempts: int = 3
    stability_timeout_s: float = 2.5
    stability_pause_s: float = 0.3

    # text budgets
    hint_max_chars: int = 150
    description_max_chars: int = 400

    @classmethod
    def from_env(cls) -> "QuizSettings":
        return cls(
            cache_size=_env_int("CACHE_SIZE", 20),
            refill_threshold=_env_int("REFILL_THRESHOLD", 10),
            critical_low=_env_int("CRITICAL_LOW", 5),
            retry_delay_s=_env_float("RETRY_DELAY_SECONDS", 30.0),
            serve_wait_timeout_s=_env_float("SERVE_WAIT_TIMEOUT_SECONDS", 90.0),
            curated_sample=_env_int("CURATED_SAMPLE", 5),
            curated_min_extract=_env_int("CURATED_MIN_EXTRACT", 30),
            discovery_attempts=_env_int("DISCOVERY_ATTEMPTS", 3),
            discovery_candidates=_env_int("DISCOVERY_CANDIDATES", 10),
            discovery_page_limit=_env_int("DISCOVERY_PAGE_LIMIT", 50),
            discovery_min_extract=_env_int("DISCOVERY_MIN_EXTRACT", 300),
            year_min=_env_int("YEAR_MIN", 500),
            year_max=_env_int("YEAR_MAX", 1940),
            thumbnail_size=_env_int("THUMBNAIL_SIZE", 600),
            image_list_limit=_env_int("IMAGE_LIST_LIMIT", 50),
            allow_fallback_images=_env_bool("ALLOW_FALLBACK_IMAGES", True),
            stability_attempts=_env_int("STABILITY_ATTEMPTS", 3),
            stability_timeout_s=_env_float("STABILITY_TIMEOUT_SECONDS", 2.5),
            stability_pause_s=_env_float("STABILITY_PAUSE_SECONDS", 0.3),
            hint_max_chars=_env_int("HINT_MAX_CHARS", 150),
            description_max_chars=_env_int("DESCRIPTION_MAX_CHARS", 400),
        )


# ------------------------------------------------------------
# 2) HTTP SERVING
# ------------------------------------------------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
# Static assets are fingerprinted; cache them for a week by default
STATIC_MAX_AGE_SECONDS = int(os.getenv("STATIC_MAX_AGE_SECONDS", str(7 * 24 * 3600)))
