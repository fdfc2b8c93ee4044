"""Retrieve a bounded, deduplicated verse candidate pool for ranked stress tags."""

from __future__ import annotations

import logging
from typing import AbstractSet, List, Protocol, Sequence, TypeVar

from walkworthy.config.settings import normalize_reference
from walkworthy.models import VerseCandidate

logger = logging.getLogger(__name__)

DEFAULT_POOL_CAP = 8
DEFAULT_PER_TAG = 5


class VerseSearcher(Protocol):
    async def search_by_keywords(
        self, keywords: Sequence[str], translation: str | None = None, limit: int = 5
    ) -> List[VerseCandidate]: ...


class _HasRef(Protocol):
    ref: str


T = TypeVar("T", bound=_HasRef)


def exclude_verses(items: Sequence[T], excluded: AbstractSet[str]) -> List[T]:
    """Drop items whose normalized reference is in ``excluded`` (already normalized)."""

    if not excluded:
        return list(items)
    return [item for item in items if normalize_reference(item.ref) not in excluded]


async def build_candidates(
    provider: VerseSearcher,
    ranked_tags: Sequence[str],
    translation: str,
    *,
    excluded: AbstractSet[str] = frozenset(),
    per_tag: int = DEFAULT_PER_TAG,
    pool_cap: int = DEFAULT_POOL_CAP,
) -> List[VerseCandidate]:
    verses: List[VerseCandidate] = []
    seen: set[str] = set()

    for tag in ranked_tags:
        try:
            found = await provider.search_by_keywords([tag], translation, per_tag)
        except Exception:
            logger.warning("Verse search failed for tag %r; skipping", tag, exc_info=True)
            continue
        for candidate in exclude_verses(found, excluded):
            key = candidate.ref.lower()
            if key in seen:
                continue
            seen.add(key)
            verses.append(candidate)
        if len(verses) >= pool_cap:
            break

    return verses[:pool_cap]
