"""
Trigram similarity with PostgreSQL pg_trgm semantics.

Words are lowercased alphanumeric runs, padded with two leading spaces and
one trailing space; similarity is |A & B| / |A | B| over the trigram sets.
Registered as the ``trigram_similarity`` SQL function on every connection.
"""

from __future__ import annotations

import re
from functools import lru_cache

__all__ = ["trigrams", "trigram_similarity"]

_WORD = re.compile(r"[^\W_]+")


@lru_cache(maxsize=4096)
def trigrams(text: str) -> frozenset[str]:
    """Trigram set of a string."""
    grams: set[str] = set()
    for word in _WORD.findall(text.lower()):
        padded = f"  {word} "
        grams.update(padded[i : i + 3] for i in range(len(padded) - 2))
    return frozenset(grams)


def trigram_similarity(a: str | None, b: str | None) -> float:
    """Similarity in [0, 1]; NULL or word-less input scores 0."""
    if not a or not b:
        return 0.0
    left, right = trigrams(a), trigrams(b)
    if not left or not right:
        return 0.0
    return len(left & right) / len(left | right)
