"""Typed parse-with-defaults for records written by outside collaborators.

Each parser returns ``(value, valid)`` and never raises on missing or
mistyped fields; callers decide what an invalid record means.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from walkworthy.models import CanvasLinkRecord, PendingEncouragement, ScanLog, UserProfile

from .base import KeyValueStore, link_key, profile_key


def _str_field(raw: Dict[str, Any], *names: str) -> Optional[str]:
    for name in names:
        value = raw.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def parse_link_record(raw: Any) -> Tuple[Optional[CanvasLinkRecord], bool]:
    if not isinstance(raw, dict):
        return None, False
    base_url = _str_field(raw, "canvasBaseUrl", "canvas_base_url")
    secret_ref = _str_field(raw, "refreshSecretRef", "refreshSecretArn", "refresh_secret_ref")
    if not base_url or not secret_ref:
        return None, False
    return CanvasLinkRecord(canvas_base_url=base_url, refresh_secret_ref=secret_ref), True


def parse_profile_record(raw: Any) -> Tuple[Optional[UserProfile], bool]:
    if not isinstance(raw, dict):
        return None, False
    hobbies_raw = raw.get("hobbies")
    hobbies: List[str] = (
        [h for h in hobbies_raw if isinstance(h, str) and h.strip()] if isinstance(hobbies_raw, list) else []
    )
    opt_in = raw.get("optInTailored", raw.get("opt_in_tailored"))
    profile = UserProfile(
        age_range=_str_field(raw, "ageRange", "age_range"),
        major=_str_field(raw, "major"),
        gender=_str_field(raw, "gender"),
        hobbies=hobbies,
        opt_in_tailored=opt_in is True,
        translation_preference=_str_field(raw, "translationPreference", "translation_preference"),
    )
    return profile, True


async def load_link(store: KeyValueStore, user_id: str) -> Optional[CanvasLinkRecord]:
    link, valid = parse_link_record(await store.get(*link_key(user_id)))
    return link if valid else None


class ProfileCache:
    """Profile reads memoized for the lifetime of one scan call."""

    def __init__(self) -> None:
        self._profiles: Dict[str, Optional[UserProfile]] = {}

    async def get(self, store: KeyValueStore, user_id: str) -> Optional[UserProfile]:
        if user_id not in self._profiles:
            profile, valid = parse_profile_record(await store.get(*profile_key(user_id)))
            self._profiles[user_id] = profile if valid else None
        return self._profiles[user_id]

    def invalidate(self, user_id: Optional[str] = None) -> None:
        if user_id is None:
            self._profiles.clear()
        else:
            self._profiles.pop(user_id, None)


def pending_to_item(pk: str, sk: str, pending: PendingEncouragement) -> Dict[str, Any]:
    return {
        "pk": pk,
        "sk": sk,
        "id": pending.id,
        "ref": pending.ref,
        "text": pending.text,
        "encouragement": pending.encouragement,
        "translation": pending.translation,
        "createdAt": pending.created_at,
        "expiresAt": pending.expires_at_epoch,
        "expiresAtIso": pending.expires_at_iso,
        "delivered": pending.delivered,
    }


def parse_pending_item(raw: Any) -> Tuple[Optional[PendingEncouragement], bool]:
    if not isinstance(raw, dict):
        return None, False
    expires = raw.get("expiresAt")
    fields = {name: _str_field(raw, name) for name in ("id", "ref", "text", "encouragement", "expiresAtIso")}
    if not isinstance(expires, int) or isinstance(expires, bool) or not all(fields.values()):
        return None, False
    pending = PendingEncouragement(
        id=fields["id"],
        ref=fields["ref"],
        text=fields["text"],
        encouragement=fields["encouragement"],
        translation=_str_field(raw, "translation") or "ESV",
        created_at=_str_field(raw, "createdAt") or "",
        expires_at_epoch=expires,
        expires_at_iso=fields["expiresAtIso"],
        delivered=raw.get("delivered") is True,
    )
    return pending, True


def scan_log_to_item(pk: str, sk: str, log: ScanLog) -> Dict[str, Any]:
    item: Dict[str, Any] = {
        "pk": pk,
        "sk": sk,
        "createdAt": log.created_at,
        "encouragementId": log.encouragement_id,
        "status": log.status,
        "plannerCount": log.planner_count,
        "stressfulCount": log.stressful_count,
        "candidateCount": log.candidate_count,
        "translation": log.translation,
        "tags": list(log.tags),
    }
    if log.error_message is not None:
        item["errorMessage"] = log.error_message
    return item
