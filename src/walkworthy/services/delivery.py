"""Serve and acknowledge pending encouragements."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from walkworthy.errors import EncouragementNotFoundError
from walkworthy.store.base import PENDING_PREFIX, KeyValueStore, pending_key, user_pk
from walkworthy.store.records import parse_pending_item
from walkworthy.utils.time import now_iso, utcnow

logger = logging.getLogger(__name__)


async def next_encouragement(
    store: KeyValueStore, user_id: str, now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Return the newest undelivered, unexpired encouragement for ``user_id``."""

    now_epoch = int((now or utcnow()).timestamp())
    best = None
    for raw in await store.query(user_pk(user_id), PENDING_PREFIX):
        pending, valid = parse_pending_item(raw)
        if not valid or pending.delivered or pending.is_expired(now_epoch):
            continue
        if best is None or pending.created_at > best.created_at:
            best = pending

    if best is None:
        return {"shouldNotify": False}
    return {
        "shouldNotify": True,
        "payload": {
            "id": best.id,
            "ref": best.ref,
            "text": best.text,
            "encouragement": best.encouragement,
            "translation": best.translation,
            "expiresAt": best.expires_at_iso,
        },
    }


async def acknowledge_delivery(store: KeyValueStore, user_id: str, encouragement_id: str) -> None:
    pk, sk = pending_key(user_id, encouragement_id)
    if await store.get(pk, sk) is None:
        raise EncouragementNotFoundError(f"No pending encouragement {encouragement_id} for {user_id}")
    await store.update(pk, sk, {"delivered": True, "deliveredAt": now_iso()})
    logger.info("Encouragement %s delivered to %s", encouragement_id, user_id)
