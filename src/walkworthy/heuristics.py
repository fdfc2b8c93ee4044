"""Map raw workload items to stress-tagged items and rank their tags."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from walkworthy.models import ItemKind, StressfulItem, WorkloadItem
from walkworthy.utils.time import parse_iso, to_iso, utcnow

DEFAULT_TAGS = ("anxiety", "stress", "rest", "peace")
MAX_TAGS_PER_ITEM = 6
DEFAULT_MAX_ITEMS = 20
HEAVY_WEIGHT_POINTS = 20

_EXAM_MARKERS = ("quiz", "exam", "test")
_ASSIGNMENT_MARKERS = ("discussion", "assignment", "essay")


def infer_kind(provider_type: Optional[str]) -> ItemKind:
    value = (provider_type or "").lower()
    if any(marker in value for marker in _EXAM_MARKERS):
        return "exam"
    if any(marker in value for marker in _ASSIGNMENT_MARKERS):
        return "assignment"
    return "event"


def tag_item(kind: ItemKind, weight: Optional[float], due: Optional[datetime], now: datetime) -> List[str]:
    """Apply the tagging rules in order and cap the result without re-sorting."""

    tags: List[str] = ["encouragement"]
    if kind == "exam":
        tags += ["exam", "courage"]
    if kind == "assignment":
        tags.append("assignment")
    if weight is not None and weight >= HEAVY_WEIGHT_POINTS:
        tags += ["weight", "pressure"]
    if due is not None:
        hours_until_due = (due - now).total_seconds() / 3600
        if hours_until_due <= 48:
            tags.append("deadline")
        if hours_until_due <= 6:
            tags.append("urgency")
        if hours_until_due < 0:
            tags.append("overdue")
    return list(dict.fromkeys(tags))[:MAX_TAGS_PER_ITEM]


def to_stressful_item(item: WorkloadItem, now: Optional[datetime] = None) -> Optional[StressfulItem]:
    title = (item.title or "").strip()
    if not title:
        return None
    due = parse_iso(item.due_at)
    return StressfulItem(
        kind=item.kind,
        title=title,
        course=item.course_id,
        due_at=to_iso(due) if due else None,
        stress_tags=tag_item(item.kind, item.points, due, now or utcnow()),
        weight=item.points,
    )


def to_stressful_items(
    items: Iterable[WorkloadItem],
    max_items: int = DEFAULT_MAX_ITEMS,
    now: Optional[datetime] = None,
) -> List[StressfulItem]:
    """Convert workload items in order, dropping untitled ones, bounded to ``max_items``."""

    now = now or utcnow()
    mapped = [to_stressful_item(item, now) for item in items]
    return [item for item in mapped if item is not None][:max_items]


def unique_tags(items: Sequence[StressfulItem]) -> List[str]:
    """Lowercased tags across all items, deduplicated in first-seen order."""

    return list(dict.fromkeys(tag.lower() for item in items for tag in item.stress_tags))


def rank_tags(items: Sequence[StressfulItem], limit: int = 4) -> List[str]:
    counts: Dict[str, int] = {}
    for tag in (tag.lower() for item in items for tag in item.stress_tags):
        counts[tag] = counts.get(tag, 0) + 1
    for tag in DEFAULT_TAGS:
        counts.setdefault(tag, 1)
    # sorted() is stable, so equal counts keep first-seen order
    ranked = sorted(counts.items(), key=lambda entry: entry[1], reverse=True)
    return [tag for tag, _ in ranked[:limit]]
