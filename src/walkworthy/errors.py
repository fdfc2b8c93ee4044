"""Exception hierarchy for the scan pipeline."""

from __future__ import annotations


class WalkWorthyError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(WalkWorthyError):
    """Required configuration is missing or invalid. Never recovered by fallback."""


class MalformedSecretError(ConfigurationError):
    """A stored credential secret could not be repaired by trimming."""


class CanvasLinkMissingError(WalkWorthyError):
    """The user has no usable external account link; the scan is rejected."""

    def __init__(self, user_id: str):
        super().__init__(f"Canvas account not linked for {user_id}")
        self.user_id = user_id


class CanvasAuthError(WalkWorthyError):
    """The provider refused the credential and refreshing did not help."""


class CanvasRequestError(WalkWorthyError):
    """The provider returned a non-success response."""


class VerseServiceError(WalkWorthyError):
    """The verse lookup service failed or returned a JSON-RPC error."""


class VerseSelectionError(WalkWorthyError):
    """The selection agent could not produce an acceptable verse."""


class GuardrailTripped(VerseSelectionError):
    """Agent output contained sensitive-looking data."""


class CandidateNotAllowedError(VerseSelectionError):
    """Agent picked a reference it was not shown."""


class TranslationMismatchError(VerseSelectionError):
    """Agent answered in a translation other than the requested one."""


class StageTimeoutError(WalkWorthyError):
    """A pipeline stage exceeded its wall-clock budget."""


class StoreError(WalkWorthyError):
    """The persistence gateway failed."""


class PendingSupersessionError(StoreError):
    """Some stale pending encouragements could not be marked delivered."""


class EncouragementNotFoundError(WalkWorthyError):
    """No pending encouragement exists with the given id."""


__all__ = [
    "WalkWorthyError",
    "ConfigurationError",
    "MalformedSecretError",
    "CanvasLinkMissingError",
    "CanvasAuthError",
    "CanvasRequestError",
    "VerseServiceError",
    "VerseSelectionError",
    "GuardrailTripped",
    "CandidateNotAllowedError",
    "TranslationMismatchError",
    "StageTimeoutError",
    "StoreError",
    "PendingSupersessionError",
    "EncouragementNotFoundError",
]
