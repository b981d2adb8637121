"""Text matching helpers shared by the detectors."""

from __future__ import annotations

import re
import unicodedata
from functools import lru_cache


def normalize(text: str) -> str:
    """Lower-case and strip diacritics (``Díaz`` -> ``diaz``)."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


@lru_cache(maxsize=4096)
def phrase_pattern(phrase: str) -> re.Pattern:
    """Whole-word pattern for a (possibly multi-word) phrase."""
    return re.compile(rf"(?<!\w){re.escape(phrase)}(?!\w)")


def find_keywords(text: str, keywords) -> list[str]:
    """Keywords that occur in ``text`` as whole words, in list order.

    ``text`` is expected to be lower-cased already.
    """
    return [kw for kw in keywords if phrase_pattern(kw.lower()).search(text)]


def first_position(text: str, phrase: str) -> int:
    """Index of the first whole-word occurrence, or -1."""
    match = phrase_pattern(phrase).search(text)
    return match.start() if match else -1
