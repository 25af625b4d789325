"""Search text normalization and phonetic encoding.

Shopper input goes through two steps before it reaches the index:

1) :func:`normalize_query` lowercases, strips punctuation and collapses
   whitespace. The result is also the cache key for suggestion lookups, so
   ``"Head Phones!"`` and ``"head  phones"`` share an entry.
2) :func:`to_phonetic` transliterates to ASCII and emits double metaphone
   codes per token, so misspellings such as ``"hedfones"`` still land on the
   phonetic fields of the index.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable

from metaphone import doublemetaphone
from unidecode import unidecode

logger = logging.getLogger(__name__)

# Keep letters (any script), digits and spaces during normalization.
_NON_WORD_RE = re.compile(r"[^\w ]+|_")
# After transliteration only Latin letters/digits/spaces are fed to metaphone.
_ASCII_ALNUM_SPACE_RE = re.compile(r"[^0-9a-zA-Z ]+")


def normalize_query(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    lowered = (text or "").lower()
    cleaned = _NON_WORD_RE.sub(" ", lowered)
    compact = " ".join(cleaned.split())
    logger.debug("normalize_query raw=%r compact=%r", text, compact)
    return compact


def transliterate_text(text: str) -> str:
    """ASCII-only variant of :func:`normalize_query` (``"Café"`` -> ``"cafe"``)."""
    normalized = normalize_query(text)
    if not normalized:
        return ""
    ascii_only = _ASCII_ALNUM_SPACE_RE.sub(" ", unidecode(normalized))
    return " ".join(ascii_only.split())


def _metaphone_tokens(tokens: Iterable[str]) -> list[str]:
    phonetics: list[str] = []
    for token in tokens:
        primary, secondary = doublemetaphone(token)
        for code in (primary, secondary):
            if code and code not in phonetics:
                phonetics.append(code)
    return phonetics


def to_phonetic(text: str) -> str:
    """Space separated double metaphone codes for every token of ``text``."""
    tokens = transliterate_text(text).split()
    if not tokens:
        return ""
    phonetic = " ".join(_metaphone_tokens(tokens))
    logger.debug("to_phonetic text=%r tokens=%s phonetic=%r", text, tokens, phonetic)
    return phonetic
