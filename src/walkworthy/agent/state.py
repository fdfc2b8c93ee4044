"""State schema carried through the scan graph."""

from __future__ import annotations

import operator
from typing import Annotated, Any, Dict, List, Optional

from typing_extensions import TypedDict

from walkworthy.agent.fallback import FallbackVerse
from walkworthy.models import (
    CanvasLinkRecord,
    PendingEncouragement,
    ScanLog,
    StressfulItem,
    UserProfile,
    VerseCandidate,
    VerseSelectionResult,
    WorkloadItem,
)
from walkworthy.store.records import ProfileCache


class ScanState(TypedDict, total=False):
    user_id: str
    profile_cache: ProfileCache

    link: CanvasLinkRecord
    profile: Optional[UserProfile]
    translation: str

    workload_items: List[WorkloadItem]
    stressful_items: List[StressfulItem]
    ranked_tags: List[str]
    candidates: List[VerseCandidate]
    selection: VerseSelectionResult

    failure: Optional[str]
    fallback_verse: FallbackVerse

    encouragement: PendingEncouragement
    log: ScanLog
    trace: Annotated[List[Dict[str, Any]], operator.add]
