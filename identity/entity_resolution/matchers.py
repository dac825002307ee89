"""
Name normalization and similarity measures for employer names.

Every comparison in the identity core goes through ``normalize_employer_name``
so aliases, duplicate scans and conflict checks agree on what "the same name"
means.
"""

import re
import unicodedata
from typing import Optional

from rapidfuzz.distance import Levenshtein

_APOSTROPHES = re.compile(r"['‘’`]")
_NON_WORD = re.compile(r"[\W_]+", re.UNICODE)
_WORDS = re.compile(r"[^\W_]+", re.UNICODE)


def normalize_employer_name(name: Optional[str]) -> str:
    """
    Normalize an employer name for storage and comparison.

    - Unicode NFKC + case folding
    - "&" spelled out as "and"
    - Apostrophes dropped ("O'Brien" -> "obrien")
    - Any other punctuation becomes a space
    - Whitespace collapsed and trimmed

    Corporate suffixes ("Pty Ltd", "Inc") are kept: two employers that differ
    only by entity type are still surfaced for review rather than conflated.
    """
    if not name:
        return ""

    normalized = unicodedata.normalize("NFKC", name).casefold()
    normalized = normalized.replace("&", " and ")
    normalized = _APOSTROPHES.sub("", normalized)
    normalized = _NON_WORD.sub(" ", normalized)
    return " ".join(normalized.split())


def name_similarity(a: str, b: str) -> float:
    """
    Edit-distance similarity of two normalized names on a 0-100 scale.

    similarity = round((1 - levenshtein(a, b) / max(len(a), len(b))) * 100, 2)

    Two empty names are identical (100).
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 100.0
    distance = Levenshtein.distance(a, b)
    return round((1.0 - distance / longest) * 100, 2)


def trigrams(text: str) -> set[str]:
    """
    Trigram set of a string, using pg_trgm's rules: lower-cased alphanumeric
    words, each padded with two leading spaces and one trailing space.
    """
    grams: set[str] = set()
    for word in _WORDS.findall(text.lower()):
        padded = f"  {word} "
        grams.update(padded[i:i + 3] for i in range(len(padded) - 2))
    return grams


def trigram_similarity(a: str, b: str) -> float:
    """
    Shared trigrams over all distinct trigrams, in [0, 1].

    Strings without any alphanumeric content have no trigrams and score 0.
    """
    grams_a = trigrams(a)
    grams_b = trigrams(b)
    union = grams_a | grams_b
    if not union:
        return 0.0
    return len(grams_a & grams_b) / len(union)
