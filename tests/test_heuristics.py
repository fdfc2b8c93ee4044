from __future__ import annotations

from datetime import datetime, timedelta, timezone

from walkworthy.heuristics import (
    DEFAULT_TAGS,
    MAX_TAGS_PER_ITEM,
    infer_kind,
    rank_tags,
    tag_item,
    to_stressful_items,
    unique_tags,
)
from walkworthy.models import StressfulItem, WorkloadItem
from walkworthy.utils.time import to_iso

NOW = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)


def _item(title, kind="assignment", due_in_hours=None, points=None, item_id="1"):
    due = to_iso(NOW + timedelta(hours=due_in_hours)) if due_in_hours is not None else None
    return WorkloadItem(id=item_id, kind=kind, title=title, due_at=due, points=points)


def test_infer_kind_from_provider_type() -> None:
    assert infer_kind("Quiz") == "exam"
    assert infer_kind("final_exam") == "exam"
    assert infer_kind("Discussion_Topic") == "assignment"
    assert infer_kind("essay") == "assignment"
    assert infer_kind("calendar_event") == "event"
    assert infer_kind(None) == "event"


def test_exam_due_soon_gets_full_tag_set() -> None:
    tags = tag_item("exam", None, NOW + timedelta(hours=3), NOW)
    assert tags == ["encouragement", "exam", "courage", "deadline", "urgency"]


def test_tags_capped_without_resorting() -> None:
    tags = tag_item("exam", 50, NOW - timedelta(hours=1), NOW)
    assert len(tags) == MAX_TAGS_PER_ITEM
    assert tags == ["encouragement", "exam", "courage", "weight", "pressure", "deadline"]


def test_untitled_items_are_dropped_and_order_kept() -> None:
    items = [
        _item("Essay draft", item_id="a"),
        _item(None, item_id="b"),
        _item("   ", item_id="c"),
        _item("Lab report", item_id="d"),
    ]
    result = to_stressful_items(items, now=NOW)
    assert [item.title for item in result] == ["Essay draft", "Lab report"]


def test_stressful_items_bounded() -> None:
    items = [_item(f"Task {i}", item_id=str(i)) for i in range(30)]
    assert len(to_stressful_items(items, max_items=20, now=NOW)) == 20


def test_rank_tags_top_four_with_defaults() -> None:
    items = [
        StressfulItem(kind="exam", title="Midterm", stress_tags=["encouragement", "exam", "deadline"]),
        StressfulItem(kind="exam", title="Quiz", stress_tags=["Encouragement", "exam"]),
    ]
    ranked = rank_tags(items)
    assert ranked == ["encouragement", "exam", "deadline", "anxiety"]


def test_rank_tags_with_no_items_returns_defaults() -> None:
    assert rank_tags([]) == list(DEFAULT_TAGS)


def test_rank_tags_never_exceeds_limit() -> None:
    items = [StressfulItem(kind="event", title=str(i), stress_tags=[f"t{i}"]) for i in range(10)]
    assert len(rank_tags(items)) == 4
    assert len(rank_tags(items, limit=2)) == 2


def test_unique_tags_lowercase_first_seen() -> None:
    items = [
        StressfulItem(kind="exam", title="a", stress_tags=["Exam", "courage"]),
        StressfulItem(kind="assignment", title="b", stress_tags=["exam", "assignment"]),
    ]
    assert unique_tags(items) == ["exam", "courage", "assignment"]
