"""
Fuzzy text matching for recipe search, filters and autocomplete.

Uses Levenshtein distance to tolerate typos in user queries
("colaa", "energey", "bery") and to rank near-miss recipe names.

Example:
    >>> similarity("cola", "kola")
    0.75
    >>> fuzzy_match("Classic Cola", "cola")
    True
"""

import logging
import re
import unicodedata
from typing import Any

from config import MAX_QUERY_LENGTH

logger = logging.getLogger(__name__)

_SPECIAL_CHARS = re.compile(r"[^\w\s\-]")
_WHITESPACE = re.compile(r"\s+")


def levenshtein_distance(s1: str, s2: str) -> int:
    """
    Calculate the Levenshtein (edit) distance between two strings.

    Args:
        s1: First string
        s2: Second string

    Returns:
        Minimum number of insertions, deletions and substitutions
        needed to turn ``s1`` into ``s2`` (0 = identical)
    """
    if len(s1) < len(s2):
        return levenshtein_distance(s2, s1)

    if len(s2) == 0:
        return len(s1)

    previous_row = list(range(len(s2) + 1))

    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]


def similarity(s1: str, s2: str) -> float:
    """
    Normalized similarity: ``(len(longer) - distance) / len(longer)``.

    Two empty strings are identical (1.0).
    """
    longer, shorter = (s1, s2) if len(s1) >= len(s2) else (s2, s1)
    if len(longer) == 0:
        return 1.0
    distance = levenshtein_distance(longer, shorter)
    return (len(longer) - distance) / len(longer)


def fuzzy_match(value: Any, search: Any, threshold: float = 0.6) -> bool:
    """
    Case-insensitive fuzzy comparison used by the ``fuzzy`` filter operator.

    A value matches when it contains the search text or when the
    normalized similarity exceeds ``threshold``. Non-string values
    never match. The relation is reflexive: any string matches itself.

    Args:
        value: Field value taken from a record
        search: Text supplied by the user
        threshold: Similarity that must be exceeded

    Returns:
        True if the value is "close enough" to the search text
    """
    if not isinstance(value, str) or not isinstance(search, str):
        return False

    normalized_value = value.lower()
    normalized_search = search.lower()

    if normalized_search in normalized_value:
        return True

    return similarity(normalized_value, normalized_search) > threshold


def normalize_text(text: str) -> str:
    """Lowercase, trim and strip diacritics (NFD decomposition)."""
    decomposed = unicodedata.normalize("NFD", text.lower().strip())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def preprocess_query(query: str) -> str:
    """
    Clean a raw autocomplete query.

    Lowercases, trims, removes special characters except hyphens,
    collapses whitespace and caps the length.
    """
    if not query:
        return ""
    cleaned = _SPECIAL_CHARS.sub("", query.lower().strip())
    cleaned = _WHITESPACE.sub(" ", cleaned)
    return cleaned[:MAX_QUERY_LENGTH]
