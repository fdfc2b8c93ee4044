from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import StaticVerses, StaticWorkload, link_user
from walkworthy.errors import EncouragementNotFoundError, StoreError
from walkworthy.models import VerseCandidate, WorkloadItem
from walkworthy.services import ScanOrchestrator, acknowledge_delivery, next_encouragement, run_weekday_scan
from walkworthy.store.memory import MemoryStore

NOW = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)


def _pending(encouragement_id: str, created_at: str, expires_at: datetime, delivered: bool = False):
    return {
        "pk": "USER#u1",
        "sk": f"PENDING#{encouragement_id}",
        "id": encouragement_id,
        "ref": "John 14:27",
        "text": "Peace I leave with you.",
        "encouragement": "Rest in His peace.",
        "translation": "ESV",
        "createdAt": created_at,
        "expiresAt": int(expires_at.timestamp()),
        "expiresAtIso": expires_at.isoformat().replace("+00:00", "Z"),
        "delivered": delivered,
    }


@pytest.mark.asyncio
async def test_next_encouragement_picks_newest_live(store) -> None:
    await store.put(_pending("old", "2025-03-03T08:00:00.000Z", NOW + timedelta(hours=2)))
    await store.put(_pending("new", "2025-03-03T10:00:00.000Z", NOW + timedelta(hours=10)))
    await store.put(_pending("seen", "2025-03-03T11:00:00.000Z", NOW + timedelta(hours=11), delivered=True))

    response = await next_encouragement(store, "u1", now=NOW)

    assert response["shouldNotify"] is True
    assert response["payload"]["id"] == "new"
    assert set(response["payload"]) == {"id", "ref", "text", "encouragement", "translation", "expiresAt"}


@pytest.mark.asyncio
async def test_expired_pending_is_not_delivered(store) -> None:
    await store.put(_pending("stale", "2025-03-02T20:00:00.000Z", NOW - timedelta(minutes=1)))
    assert await next_encouragement(store, "u1", now=NOW) == {"shouldNotify": False}


@pytest.mark.asyncio
async def test_acknowledge_marks_delivered(store) -> None:
    await store.put(_pending("e1", "2025-03-03T10:00:00.000Z", NOW + timedelta(hours=10)))

    await acknowledge_delivery(store, "u1", "e1")

    item = await store.get("USER#u1", "PENDING#e1")
    assert item["delivered"] is True and item["deliveredAt"]
    assert (await next_encouragement(store, "u1", now=NOW))["shouldNotify"] is False
    with pytest.raises(EncouragementNotFoundError):
        await acknowledge_delivery(store, "u1", "missing")


@pytest.mark.asyncio
async def test_weekday_scan_records_each_user(store, settings, fake_llm) -> None:
    await link_user(store, "alice")
    await link_user(store, "bob")
    await store.put({"pk": "USER#carol", "sk": "CANVAS_LINK", "canvasBaseUrl": "https://c"})

    class PerUserWorkload:
        async def fetch_workload_items(self, link):
            if link.refresh_secret_ref.endswith("bob"):
                raise RuntimeError("Canvas 500")
            return [WorkloadItem(id="1", title="Quiz", kind="exam")]

    fake_llm.queue(
        {"ref": "Joshua 1:9", "text": "Be strong", "encouragement": "Take heart.", "translation": "ESV"}
    )
    orchestrator = ScanOrchestrator(
        store,
        settings,
        workload_source=PerUserWorkload(),
        verse_provider=StaticVerses(default=[VerseCandidate(ref="Joshua 1:9", text="Be strong")]),
    )

    results = await run_weekday_scan(orchestrator)

    by_user = {entry["userId"]: entry for entry in results}
    assert [entry["userId"] for entry in results] == ["alice", "bob", "carol"]
    assert by_user["alice"]["status"] == "SUCCESS"
    assert by_user["bob"]["status"] == "FALLBACK"
    assert by_user["carol"]["status"] == "ERROR"
    assert "not linked" in by_user["carol"]["error"]


@pytest.mark.asyncio
async def test_weekday_scan_aborts_on_store_failure(settings) -> None:
    class BrokenStore(MemoryStore):
        async def put(self, item):
            if item["sk"].startswith("PENDING#"):
                raise StoreError("disk full")
            await super().put(item)

    store = BrokenStore()
    await link_user(store, "alice")
    await link_user(store, "bob")
    workload = StaticWorkload()
    orchestrator = ScanOrchestrator(store, settings, workload_source=workload, verse_provider=StaticVerses())

    with pytest.raises(StoreError):
        await run_weekday_scan(orchestrator)
    assert workload.calls == 1
