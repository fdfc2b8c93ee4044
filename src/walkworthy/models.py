"""Typed records flowing through the scan pipeline."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field

Translation = Literal["ESV", "KJV", "NIV", "NKJV", "NASB", "CSB", "NLT"]
TRANSLATIONS = get_args(Translation)
DEFAULT_TRANSLATION: Translation = "ESV"

ItemKind = Literal["assignment", "exam", "event"]
ScanStatus = Literal["SUCCESS", "FALLBACK"]

VERSE_REFERENCE_PATTERN = r"^[1-3]?\s?[A-Za-z]+\s\d+:\d+(-\d+)?$"


def normalize_translation(value: Optional[str]) -> Translation:
    """Uppercase a translation code; anything outside the supported set becomes ESV."""

    upper = (value or DEFAULT_TRANSLATION).strip().upper()
    return upper if upper in TRANSLATIONS else DEFAULT_TRANSLATION  # type: ignore[return-value]


class WorkloadItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    kind: ItemKind = "event"
    title: Optional[str] = None
    course_id: Optional[str] = None
    due_at: Optional[str] = None
    points: Optional[float] = None
    html_url: Optional[str] = None


class StressfulItem(BaseModel):
    kind: ItemKind
    title: str
    course: Optional[str] = None
    due_at: Optional[str] = None
    stress_tags: List[str] = Field(default_factory=list)
    weight: Optional[float] = None


class VerseCandidate(BaseModel):
    ref: str
    text: str
    translation: Optional[str] = None


class VerseSelectionResult(BaseModel):
    """Strict output contract of the selection agent."""

    model_config = ConfigDict(extra="forbid", strict=True)

    ref: str = Field(pattern=VERSE_REFERENCE_PATTERN)
    text: str = Field(max_length=1200)
    encouragement: str = Field(max_length=280)
    translation: Translation


class CanvasLinkRecord(BaseModel):
    canvas_base_url: str
    refresh_secret_ref: str


class UserProfile(BaseModel):
    age_range: Optional[str] = None
    major: Optional[str] = None
    gender: Optional[str] = None
    hobbies: List[str] = Field(default_factory=list)
    opt_in_tailored: bool = False
    translation_preference: Optional[str] = None


class PendingEncouragement(BaseModel):
    id: str
    ref: str
    text: str
    encouragement: str
    translation: str
    created_at: str
    expires_at_epoch: int
    expires_at_iso: str
    delivered: bool = False

    def is_expired(self, now_epoch: int) -> bool:
        return self.expires_at_epoch <= now_epoch


class ScanLog(BaseModel):
    encouragement_id: str
    status: ScanStatus
    planner_count: int = 0
    stressful_count: int = 0
    candidate_count: int = 0
    translation: Translation = DEFAULT_TRANSLATION
    tags: List[str] = Field(default_factory=list)
    error_message: Optional[str] = None
    created_at: Optional[str] = None


class ScanResult(BaseModel):
    encouragement_id: str
    status: ScanStatus
    log: ScanLog
    trace: List[Dict[str, Any]] = Field(default_factory=list)
