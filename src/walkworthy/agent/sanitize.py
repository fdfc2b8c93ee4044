"""Neutralize untrusted third-party and user-editable text before it reaches the model."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence

from walkworthy.models import StressfulItem, UserProfile, VerseCandidate, normalize_translation

_TAG_RE = re.compile(r"<[^>]+>")
_URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")

TITLE_MAX = 160
COURSE_MAX = 80
TAG_MAX = 32
MAJOR_MAX = 120
SHORT_FIELD_MAX = 20
HOBBY_MAX = 40
MAX_HOBBIES = 6
CANDIDATE_REF_MAX = 80
CANDIDATE_TEXT_MAX = 600
MAX_AGENT_ITEMS = 12


def sanitize(text: Optional[str], max_len: int = 400) -> str:
    stripped = _URL_RE.sub(" ", _TAG_RE.sub(" ", text or ""))
    return _WS_RE.sub(" ", stripped).strip()[:max_len]


def _optional(text: Optional[str], max_len: int) -> Optional[str]:
    return sanitize(text, max_len) or None if text else None


def sanitize_item(item: StressfulItem) -> Dict[str, Any]:
    tags = [sanitize(tag, TAG_MAX) for tag in item.stress_tags]
    return {
        "type": item.kind,
        "title": sanitize(item.title, TITLE_MAX),
        "course": _optional(item.course, COURSE_MAX),
        "dueAt": item.due_at,
        "stressTags": [tag for tag in tags if tag],
        "weight": item.weight,
    }


def sanitize_profile(profile: Optional[UserProfile]) -> Optional[Dict[str, Any]]:
    if profile is None:
        return None
    return {
        "major": _optional(profile.major, MAJOR_MAX),
        "gender": _optional(profile.gender, SHORT_FIELD_MAX),
        "ageRange": _optional(profile.age_range, SHORT_FIELD_MAX),
        "hobbies": [sanitize(hobby, HOBBY_MAX) for hobby in profile.hobbies[:MAX_HOBBIES]],
        "optInTailored": bool(profile.opt_in_tailored),
    }


def sanitize_candidate(candidate: VerseCandidate) -> VerseCandidate:
    return VerseCandidate(
        ref=sanitize(candidate.ref, CANDIDATE_REF_MAX),
        text=sanitize(candidate.text, CANDIDATE_TEXT_MAX),
        translation=normalize_translation(candidate.translation) if candidate.translation else None,
    )


def build_agent_payload(
    profile: Optional[UserProfile],
    stressful_items: Sequence[StressfulItem],
    candidates: Sequence[VerseCandidate],
    translation: str,
) -> Dict[str, Any]:
    """Assemble the data-only payload handed to the model."""

    items: List[Dict[str, Any]] = [sanitize_item(item) for item in stressful_items[:MAX_AGENT_ITEMS]]
    return {
        "profile": sanitize_profile(profile),
        "translationPreference": normalize_translation(translation),
        "verseCandidates": [candidate.model_dump(exclude_none=True) for candidate in candidates],
        "stressfulItems": items,
    }
