from __future__ import annotations

import pytest

from conftest import StaticVerses
from walkworthy.candidates import build_candidates, exclude_verses
from walkworthy.config.settings import parse_excluded_refs
from walkworthy.models import VerseCandidate


def _verse(ref: str) -> VerseCandidate:
    return VerseCandidate(ref=ref, text=f"text of {ref}", translation="ESV")


def test_exclusion_is_case_and_whitespace_insensitive() -> None:
    excluded = parse_excluded_refs('["philippians  4:6-7"]')
    verses = [_verse("Philippians 4:6-7"), _verse("John 14:27")]
    assert [v.ref for v in exclude_verses(verses, excluded)] == ["John 14:27"]


def test_exclusion_filter_is_idempotent() -> None:
    excluded = parse_excluded_refs("John 14:27, Psalm 4:8")
    verses = [_verse("John 14:27"), _verse("Psalm 4:8"), _verse("James 1:5")]
    once = exclude_verses(verses, excluded)
    assert exclude_verses(once, excluded) == once


@pytest.mark.asyncio
async def test_dedupes_across_tags_and_caps_pool() -> None:
    provider = StaticVerses(
        {
            "anxiety": [_verse("John 14:27"), _verse("1 Peter 5:7")],
            "stress": [_verse("JOHN 14:27"), _verse("Psalm 4:8")],
            "rest": [_verse(f"Psalm {n}:1") for n in range(1, 6)],
            "peace": [_verse("Isaiah 26:3")],
        }
    )
    result = await build_candidates(provider, ["anxiety", "stress", "rest", "peace"], "ESV", pool_cap=6)
    assert [v.ref for v in result] == [
        "John 14:27",
        "1 Peter 5:7",
        "Psalm 4:8",
        "Psalm 1:1",
        "Psalm 2:1",
        "Psalm 3:1",
    ]
    # the pool filled before the last tag was queried
    assert [q[0] for q in provider.queries] == [["anxiety"], ["stress"], ["rest"]]
    assert all(q[1] == "ESV" and q[2] == 5 for q in provider.queries)


@pytest.mark.asyncio
async def test_failed_tag_is_skipped() -> None:
    provider = StaticVerses(
        {"anxiety": RuntimeError("verse service down"), "stress": [_verse("Psalm 4:8")]}
    )
    result = await build_candidates(provider, ["anxiety", "stress"], "KJV")
    assert [v.ref for v in result] == ["Psalm 4:8"]


@pytest.mark.asyncio
async def test_excluded_refs_do_not_take_pool_slots() -> None:
    provider = StaticVerses({"anxiety": [_verse("Philippians 4:6-7"), _verse("John 14:27")]})
    result = await build_candidates(
        provider,
        ["anxiety"],
        "ESV",
        excluded=parse_excluded_refs(None),
        pool_cap=1,
    )
    assert [v.ref for v in result] == ["John 14:27"]


@pytest.mark.asyncio
async def test_empty_when_every_tag_fails() -> None:
    provider = StaticVerses(default=RuntimeError("boom"))
    assert await build_candidates(provider, ["anxiety", "stress"], "ESV") == []
