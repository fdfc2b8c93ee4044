from __future__ import annotations

import json
import re
from typing import Iterable

from walkworthy.config.settings import normalize_reference
from walkworthy.errors import CandidateNotAllowedError, GuardrailTripped, TranslationMismatchError
from walkworthy.models import VerseCandidate, VerseSelectionResult


SENSITIVE_RE = re.compile(
    r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b"
    r"|https?://\S+"
    r"|(AKIA|ASI|SK|PK)[A-Z0-9]{16,}",
    re.IGNORECASE,
)


def check_sensitive_output(result: VerseSelectionResult) -> None:
    """Trip when the serialized output carries emails, URLs or key-like tokens."""

    if SENSITIVE_RE.search(json.dumps(result.model_dump(), ensure_ascii=False)):
        raise GuardrailTripped("Sensitive data detected in agent output")


def check_allowed(result: VerseSelectionResult, candidates: Iterable[VerseCandidate]) -> None:
    allowed = {normalize_reference(candidate.ref) for candidate in candidates}
    if normalize_reference(result.ref) not in allowed:
        raise CandidateNotAllowedError(f"Selected verse {result.ref!r} is not among the supplied candidates")


def check_translation(result: VerseSelectionResult, requested: str) -> None:
    if result.translation != requested:
        raise TranslationMismatchError(
            f"Agent switched translation to {result.translation} (requested {requested})"
        )
