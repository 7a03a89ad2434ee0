"""Tag normalisation and set-overlap scoring for duplicate detection."""

from typing import FrozenSet, Iterable, Optional


def normalize_tags(tags: Optional[Iterable[Optional[str]]]) -> FrozenSet[str]:
    """Lower-case and trim each tag, dropping blanks and duplicates."""
    if not tags:
        return frozenset()
    return frozenset(
        tag.strip().lower()
        for tag in tags
        if tag is not None and tag.strip()
    )


def jaccard_similarity(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    """
    |a & b| / |a | b|.

    Returns 0.0 when either set is empty; callers skip empty candidates
    before scoring.
    """
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)
