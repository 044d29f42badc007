"""
String similarity helpers used by column detection and duplicate detection.

Both Jaro-Winkler and Levenshtein come from rapidfuzz; this module only adds
the normalization and the containment rule on top.
"""
import re
from typing import Optional

from rapidfuzz.distance import JaroWinkler, Levenshtein

CONTAINMENT_FACTOR = 0.9

_PUNCTUATION = re.compile(r'[^\w\s]', re.UNICODE)
_WHITESPACE = re.compile(r'\s+')


def normalize_for_comparison(value: Optional[str]) -> str:
    """
    Lower-case, drop punctuation and collapse whitespace.

    Examples:
        "Google Inc." -> "google inc"
        "  Software   Eng. " -> "software eng"
    """
    if not value:
        return ""
    normalized = _PUNCTUATION.sub(" ", str(value).lower())
    return _WHITESPACE.sub(" ", normalized).strip()


def jaro_winkler(first: str, second: str) -> float:
    """Standard Jaro-Winkler similarity (prefix scale 0.1, prefix up to 4 chars)."""
    if not first or not second:
        return 0.0
    return float(JaroWinkler.similarity(first, second, prefix_weight=0.1))


def levenshtein_similarity(first: str, second: str) -> float:
    """``(max_len - distance) / max_len``; two empty strings are identical."""
    if not first and not second:
        return 1.0
    return float(Levenshtein.normalized_similarity(first, second))


def enhanced_string_similarity(first: Optional[str], second: Optional[str]) -> float:
    """
    Similarity of two free-text values in [0, 1].

    Equal after normalization scores 1.0; when one contains the other the
    score is the length ratio scaled by 0.9; otherwise Levenshtein similarity.
    """
    a = normalize_for_comparison(first)
    b = normalize_for_comparison(second)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if shorter in longer:
        return len(shorter) / len(longer) * CONTAINMENT_FACTOR

    return levenshtein_similarity(a, b)
