#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Best-effort redaction of name-revealing text in a biography excerpt.

This only has to stop trivial answer leakage through the hint; it is not a
complete anonymiser.
"""

import re
from typing import Iterable, List

from image_filters import WS_RE, strip_parenthetical

MASK = "○○"
TRUNCATION_MARKER = "..."

PAREN_CONTENT_RE = re.compile(r"\((.+?)\)")
PAREN_TOKEN_SPLIT_RE = re.compile(r"[\s,/·]+")
# Latin letters / digits / punctuation left over after name masking
LATIN_RUN_RE = re.compile(r"[A-Za-z0-9.,:;'’\"()\-]{2,}")
MASK_RUN_RE = re.compile(rf"(?:{re.escape(MASK)})+")


def _mask_all(text: str, needle: str) -> str:
    if not needle:
        return text
    return re.sub(re.escape(needle), MASK, text, flags=re.IGNORECASE)


def paren_tokens(title: str) -> List[str]:
    tokens: List[str] = []
    for content in PAREN_CONTENT_RE.findall(title or ""):
        tokens.extend(t for t in PAREN_TOKEN_SPLIT_RE.split(content) if t)
    return tokens


def bigrams(word: str) -> Iterable[str]:
    return (word[i:i + 2] for i in range(len(word) - 1))


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + TRUNCATION_MARKER


def mask_hint(title: str, extract: str, max_chars: int = 150) -> str:
    text = WS_RE.sub(" ", extract or "").strip()

    # (a) disambiguation words, e.g. "(음악가)"
    for tok in paren_tokens(title):
        if len(tok) > 1:
            text = _mask_all(text, tok)

    # (b) the name itself, its words, and 2-char pieces of longer words
    base = strip_parenthetical(title)
    text = _mask_all(text, base)
    for word in base.split():
        if len(word) < 2:
            continue
        text = _mask_all(text, word)
        if len(word) >= 3 and not WS_RE.search(word):
            for piece in bigrams(word):
                text = _mask_all(text, piece)

    # (c) transliterated leftovers
    text = LATIN_RUN_RE.sub(MASK, text)
    text = MASK_RUN_RE.sub(MASK, text)

    return truncate(text, max_chars)


def trim_description(extract: str, max_chars: int = 400) -> str:
    return truncate(WS_RE.sub(" ", extract or "").strip(), max_chars)


def display_name(title: str) -> str:
    return strip_parenthetical(title) or (title or "").strip()
