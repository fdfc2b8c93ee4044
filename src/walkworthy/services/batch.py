"""Weekday batch: scan every user with a Canvas link."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, List

from walkworthy.errors import StoreError
from walkworthy.store.base import LINK_SK, USER_PREFIX
from walkworthy.store.records import ProfileCache

from .scan_runner import ScanOrchestrator

logger = logging.getLogger(__name__)


async def run_weekday_scan(orchestrator: ScanOrchestrator) -> List[Dict[str, Any]]:
    """Scan linked users one at a time and report a status per user.

    A store failure aborts the batch; any other per-user error is recorded
    as ``ERROR`` and the batch moves on.
    """

    links = await orchestrator.store.scan_sort_key(LINK_SK)
    user_ids = [item["pk"][len(USER_PREFIX):] for item in links if str(item.get("pk", "")).startswith(USER_PREFIX)]
    logger.info("Weekday scan over %d linked users", len(user_ids))

    cache = ProfileCache()
    results: List[Dict[str, Any]] = []
    for user_id in user_ids:
        try:
            result = await orchestrator.run_scan_for_user(user_id, cache)
        except StoreError:
            logger.exception("Store failure during weekday scan; aborting at %s", user_id)
            raise
        except Exception as exc:
            logger.exception("Weekday scan failed for %s", user_id)
            results.append({"userId": user_id, "status": "ERROR", "error": str(exc)})
            continue
        results.append(
            {"userId": user_id, "status": result.status, "encouragementId": result.encouragement_id}
        )

    totals = Counter(entry["status"] for entry in results)
    logger.info(
        "Weekday scan done: %d success, %d fallback, %d error",
        totals["SUCCESS"],
        totals["FALLBACK"],
        totals["ERROR"],
    )
    return results
