"""Trigram-based fuzzy matching for game name search."""

from typing import Set

# Minimum similarity for a fuzzy (non-substring) match
SIMILARITY_THRESHOLD = 0.4


def trigrams(s: str) -> Set[str]:
    """All overlapping 3-character windows of s padded as '  ' + s + ' '."""
    padded = f"  {s} "
    return {padded[i:i + 3] for i in range(len(padded) - 2)}


def similarity(a: str, b: str) -> float:
    """Share of a's trigrams that also appear in b.

    This is a containment score, not a symmetric distance:
    similarity("halo", "halo 3") == 1.0 while similarity("halo 3", "halo") < 1.0.
    """
    tri_a = trigrams(a)
    tri_b = trigrams(b)
    return len(tri_a & tri_b) / len(tri_a)


def matches_name(query: str, name: str, threshold: float = SIMILARITY_THRESHOLD) -> bool:
    """Case-insensitive substring match, falling back to trigram similarity."""
    query_lower = query.lower()
    name_lower = name.lower()

    if query_lower in name_lower:
        return True

    return similarity(query_lower, name_lower) > threshold
