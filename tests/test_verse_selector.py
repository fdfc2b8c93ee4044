from __future__ import annotations

import asyncio
import json

import pytest

from walkworthy.agent.verse_selector import parse_selection, select_verse
from walkworthy.config.settings import normalize_reference
from walkworthy.errors import ConfigurationError, VerseSelectionError
from walkworthy.models import StressfulItem, UserProfile, VerseCandidate

CANDIDATES = [
    VerseCandidate(ref="John 14:27", text="Peace I leave with you.", translation="ESV"),
    VerseCandidate(ref="1 Peter 5:7", text="Casting all your anxieties on him.", translation="ESV"),
]
ITEMS = [StressfulItem(kind="exam", title="Midterm", stress_tags=["encouragement", "exam"])]


def _reply(ref: str = "John 14:27", **overrides):
    data = {
        "ref": ref,
        "text": "Peace I leave with you.",
        "encouragement": "You do not carry this exam alone.",
        "translation": "ESV",
    }
    data.update(overrides)
    return data


def test_parse_selection_accepts_fenced_json() -> None:
    raw = "```json\n" + json.dumps(_reply()) + "\n```"
    assert parse_selection(raw).ref == "John 14:27"


def test_parse_selection_rejects_prose() -> None:
    with pytest.raises(VerseSelectionError, match="unparseable"):
        parse_selection("Here is a verse for you")


def test_parse_selection_rejects_extra_fields() -> None:
    with pytest.raises(VerseSelectionError, match="schema validation"):
        parse_selection({**_reply(), "note": "extra"})


def test_parse_selection_rejects_bad_reference() -> None:
    with pytest.raises(VerseSelectionError, match="ref"):
        parse_selection(_reply(ref="not a verse"))


def test_parse_selection_rejects_long_encouragement() -> None:
    with pytest.raises(VerseSelectionError):
        parse_selection(_reply(encouragement="x" * 281))


@pytest.mark.asyncio
async def test_returns_valid_selection(fake_llm, settings) -> None:
    fake_llm.queue(_reply())
    result = await select_verse(UserProfile(major="History"), ITEMS, CANDIDATES, "esv", settings=settings)

    assert result.ref == "John 14:27"
    assert normalize_reference(result.ref) in {normalize_reference(c.ref) for c in CANDIDATES}
    assert len(fake_llm.calls) == 1
    config = fake_llm.calls[0]["config"]
    assert config == {"callbacks": []}
    payload = fake_llm.calls[0]["messages"][1].content
    assert "UNTRUSTED DATA" in payload
    assert "Midterm" in payload


@pytest.mark.asyncio
async def test_messy_candidate_reference_still_matches(fake_llm, settings) -> None:
    messy = [VerseCandidate(ref=" <b>john   14:27</b> ", text="Peace I leave with you.", translation="ESV")]
    fake_llm.queue(_reply())
    result = await select_verse(None, ITEMS, messy, "ESV", settings=settings)
    assert result.ref == "John 14:27"
    assert len(fake_llm.calls) == 1


@pytest.mark.asyncio
async def test_each_attempt_is_one_model_call(fake_llm, settings) -> None:
    fake_llm.queue(_reply(ref="John 3:16"))
    three = settings.model_copy(update={"max_selection_attempts": 3})
    with pytest.raises(VerseSelectionError, match="after 3 attempts"):
        await select_verse(None, ITEMS, CANDIDATES, "ESV", settings=three)
    assert len(fake_llm.calls) == 3


@pytest.mark.asyncio
async def test_empty_candidates_rejected(settings) -> None:
    with pytest.raises(VerseSelectionError):
        await select_verse(None, ITEMS, [], "ESV", settings=settings)


@pytest.mark.asyncio
async def test_retries_after_hallucinated_reference(fake_llm, settings) -> None:
    fake_llm.queue(_reply(ref="John 3:16"), _reply(ref="1 Peter 5:7", text="Casting all your anxieties on him."))
    result = await select_verse(None, ITEMS, CANDIDATES, "ESV", settings=settings)
    assert result.ref == "1 Peter 5:7"
    assert len(fake_llm.calls) == 2


@pytest.mark.asyncio
async def test_fails_after_two_disallowed_references(fake_llm, settings) -> None:
    fake_llm.queue(_reply(ref="John 3:16"))
    with pytest.raises(VerseSelectionError, match="not among the supplied candidates"):
        await select_verse(None, ITEMS, CANDIDATES, "ESV", settings=settings)
    assert len(fake_llm.calls) == 2


@pytest.mark.asyncio
async def test_guardrail_trip_is_retried(fake_llm, settings) -> None:
    fake_llm.queue(_reply(encouragement="Write to help@example.com"), _reply())
    result = await select_verse(None, ITEMS, CANDIDATES, "ESV", settings=settings)
    assert result.ref == "John 14:27"


@pytest.mark.asyncio
async def test_transport_error_is_retried(fake_llm, settings) -> None:
    fake_llm.queue(RuntimeError("connection reset"), _reply())
    result = await select_verse(None, ITEMS, CANDIDATES, "ESV", settings=settings)
    assert result.encouragement


@pytest.mark.asyncio
async def test_translation_switch_is_rejected(fake_llm, settings) -> None:
    fake_llm.queue(_reply(translation="KJV"))
    with pytest.raises(VerseSelectionError, match="switched translation"):
        await select_verse(None, ITEMS, CANDIDATES, "ESV", settings=settings)


@pytest.mark.asyncio
async def test_attempt_timeout_counts_as_failure(settings) -> None:
    class SlowModel:
        calls = 0

        async def ainvoke(self, messages, config=None):
            SlowModel.calls += 1
            await asyncio.sleep(1)

    slow = settings.model_copy(update={"stage_timeout_seconds": 0.01})
    with pytest.raises(VerseSelectionError, match="timed out"):
        await select_verse(None, ITEMS, CANDIDATES, "ESV", settings=slow, llm=SlowModel())
    assert SlowModel.calls == 2


@pytest.mark.asyncio
async def test_missing_api_key_is_not_retried(monkeypatch, settings) -> None:
    def _unconfigured(*args, **kwargs):
        raise ConfigurationError("OPENAI_API_KEY is not configured")

    monkeypatch.setattr("walkworthy.agent.verse_selector.get_chat_model", _unconfigured)
    with pytest.raises(ConfigurationError):
        await select_verse(None, ITEMS, CANDIDATES, "ESV", settings=settings)
