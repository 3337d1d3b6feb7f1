#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Rule tables and pure predicates for portrait candidates.

Nothing here touches the network: URL validation, name alias generation and
the filename heuristic used to rank an article's attached media.
"""

import re
from typing import Any, Iterable, List, Optional
from urllib.parse import unquote

# ------------------------------------------------------------
# 0) RULE TABLES
# ------------------------------------------------------------

# Parenthetical disambiguation, e.g. "모차르트 (음악가)"
PAREN_RE = re.compile(r"\(.+?\)")
WS_RE = re.compile(r"\s+")

# Statically known alternate spellings (Korean title fragment -> latin aliases)
KNOWN_ALIASES = (
    ("모차르트", ("mozart",)),
    ("베토벤", ("beethoven",)),
    ("피카소", ("picasso",)),
    ("간디", ("gandhi",)),
    ("고흐", ("gogh",)),
)

VECTOR_PATTERNS = (
    re.compile(r"\.svg", re.IGNORECASE),
    re.compile(r"/svg/", re.IGNORECASE),
)

# Non-portrait iconography (matched after '_' / '-' / '%20' become spaces)
ICONOGRAPHY_KEYWORDS = (
    "flag",
    "emblem",
    "seal",
    "coat of arms",
    "logo",
    "map",
    "signature",
    "memorial",
    "국기",
    "휘장",
    "문장",
    "서명",
    "지도",
    "기념비",
)

RASTER_EXTENSION_RE = re.compile(r"\.(jpg|jpeg|png|webp)(\?.*)?$", re.IGNORECASE)

# Filename heuristic for attached media
NON_PHOTO_EXTENSION_RE = re.compile(r"\.(svg|gif)$", re.IGNORECASE)
NON_PORTRAIT_FILE_KEYWORDS = (
    "map",
    "flag",
    "icon",
    "logo",
    "sign",
    "signature",
    "book",
    "cover",
    "chart",
    "diagram",
    "coat of arms",
    # statues and graves are people-adjacent but not faces
    "grave",
    "tomb",
    "monument",
    "statue",
    "museum",
)
PORTRAIT_FILE_KEYWORDS = ("portrait", "photo", "face", "profile", "bust", "초상")

FILE_NAMESPACE_RE = re.compile(r"^(file|image|파일|그림):", re.IGNORECASE)
NAME_SEPARATORS_RE = re.compile(r"[\s\-_]")


def _normalize_for_keywords(s: str) -> str:
    s = unquote(s).lower()
    s = s.replace("_", " ").replace("-", " ")
    return WS_RE.sub(" ", s)


def _has_keyword(s: str, keywords: Iterable[str]) -> bool:
    return any(k in s for k in keywords)


# ------------------------------------------------------------
# 1) ALIASES
# ------------------------------------------------------------

def strip_parenthetical(title: str) -> str:
    return WS_RE.sub(" ", PAREN_RE.sub("", title or "")).strip()


def make_aliases(title: str) -> List[str]:
    """
    Lowercase name variants used to match media filenames to a person.
    The first element is always the lowercase base name.
    """
    clean = strip_parenthetical(title)
    lower = clean.lower()

    aliases = [
        lower,
        WS_RE.sub("_", lower),
        WS_RE.sub("-", lower),
    ]
    for fragment, extra in KNOWN_ALIASES:
        if fragment in clean:
            aliases.extend(extra)

    out: List[str] = []
    seen = set()
    for a in aliases:
        if a in seen:
            continue
        seen.add(a)
        out.append(a)
    return out


# ------------------------------------------------------------
# 2) URL VALIDATOR
# ------------------------------------------------------------

def is_valid_image_url(url: Optional[Any]) -> bool:
    """
    Single gate for every candidate: raster photo formats only, no vector
    graphics, no flags/seals/maps/signatures and similar iconography.
    """
    if not url or not isinstance(url, str):
        return False
    if any(p.search(url) for p in VECTOR_PATTERNS):
        return False
    if _has_keyword(_normalize_for_keywords(url), ICONOGRAPHY_KEYWORDS):
        return False
    return bool(RASTER_EXTENSION_RE.search(url))


# ------------------------------------------------------------
# 3) ATTACHED MEDIA HEURISTIC
# ------------------------------------------------------------

def _bare_filename(filename: str) -> str:
    return FILE_NAMESPACE_RE.sub("", filename.strip())


def is_rejected_file(filename: Optional[Any]) -> bool:
    if not filename or not isinstance(filename, str):
        return True
    n = _bare_filename(filename)
    if NON_PHOTO_EXTENSION_RE.search(n):
        return True
    return _has_keyword(_normalize_for_keywords(n), NON_PORTRAIT_FILE_KEYWORDS)


def matches_alias(filename: str, aliases: Iterable[str]) -> bool:
    clean_file = NAME_SEPARATORS_RE.sub("", _bare_filename(filename).lower())
    for a in aliases:
        if not a:
            continue
        clean_name = NAME_SEPARATORS_RE.sub("", a)
        if clean_name and clean_name in clean_file:
            return True
    return False


def is_human_photo(filename: Optional[Any], aliases: Iterable[str]) -> bool:
    if is_rejected_file(filename):
        return False
    n = _normalize_for_keywords(_bare_filename(filename))
    if _has_keyword(n, PORTRAIT_FILE_KEYWORDS):
        return True
    return matches_alias(filename, aliases)


def rank_image_files(files: Iterable[str], aliases: Iterable[str], allow_fallback: bool = True) -> List[str]:
    """
    Portrait-looking files first (keyword or name match), then, if allowed,
    any other raster file that is not obviously iconography.
    """
    aliases = list(aliases)
    preferred: List[str] = []
    fallback: List[str] = []
    for f in files:
        if is_rejected_file(f):
            continue
        if is_human_photo(f, aliases):
            preferred.append(f)
        elif allow_fallback and RASTER_EXTENSION_RE.search(f):
            fallback.append(f)
    return preferred + fallback
