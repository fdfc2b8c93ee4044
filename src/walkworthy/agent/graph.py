"""Scan state machine compiled as a LangGraph ``StateGraph``.

START -> link_check -> clear_pending -> fetch_workload -> heuristics
-> candidates -> select -> persist -> END, with any failure in the guarded
steps routed to ``fallback`` and from there to ``persist``.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, TypeVar

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, START, StateGraph

from walkworthy.agent.fallback import NO_CANDIDATES_MESSAGE, pick_fallback
from walkworthy.agent.state import ScanState
from walkworthy.candidates import build_candidates
from walkworthy.config.settings import Settings
from walkworthy.errors import (
    CanvasLinkMissingError,
    ConfigurationError,
    PendingSupersessionError,
    StageTimeoutError,
)
from walkworthy.heuristics import rank_tags, to_stressful_items, unique_tags
from walkworthy.models import (
    CanvasLinkRecord,
    PendingEncouragement,
    ScanLog,
    WorkloadItem,
    normalize_translation,
)
from walkworthy.store.base import PENDING_PREFIX, KeyValueStore, pending_key, scan_key, user_pk
from walkworthy.store.records import ProfileCache, load_link, pending_to_item, scan_log_to_item
from walkworthy.utils.time import epoch_to_iso, future_epoch_seconds, now_iso, utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")
Node = Callable[[ScanState, RunnableConfig], Awaitable[Dict[str, Any]]]


class WorkloadSource(Protocol):
    async def fetch_workload_items(self, link: CanvasLinkRecord) -> List[WorkloadItem]: ...


@dataclass
class ScanDependencies:
    store: KeyValueStore
    settings: Settings
    workload_source: WorkloadSource
    verse_provider: Any
    selector: Callable[..., Awaitable[Any]]
    rng: random.Random = field(default_factory=random.Random)


def _deps(config: RunnableConfig) -> ScanDependencies:
    return config["configurable"]["deps"]


def _trace(step: str, status: str = "success", **details: Any) -> List[Dict[str, Any]]:
    entry = {"step": step, "status": status}
    entry.update(details)
    return [entry]


async def with_timeout(awaitable: Awaitable[T], seconds: Optional[float], step: str) -> T:
    if not seconds:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, seconds)
    except asyncio.TimeoutError as exc:
        raise StageTimeoutError(f"{step} timed out after {seconds:g}s") from exc


def guarded(step: str) -> Callable[[Node], Node]:
    """Turn a step's exception into a recorded failure that routes to fallback."""

    def decorator(func: Node) -> Node:
        @functools.wraps(func)
        async def wrapper(state: ScanState, config: RunnableConfig) -> Dict[str, Any]:
            try:
                update = await func(state, config)
            except (ConfigurationError, CanvasLinkMissingError):
                raise
            except Exception as exc:
                message = str(exc) or exc.__class__.__name__
                logger.exception("Scan step '%s' failed for %s", step, state.get("user_id"))
                return {"failure": message, "trace": _trace(step, "error", error=message)}
            update.setdefault("trace", _trace(step))
            return update

        return wrapper

    return decorator


def route_on_failure(state: ScanState) -> str:
    return "fallback" if state.get("failure") else "continue"


async def link_check(state: ScanState, config: RunnableConfig) -> Dict[str, Any]:
    deps = _deps(config)
    user_id = state["user_id"]
    cache = state.get("profile_cache") or ProfileCache()
    link, profile = await asyncio.gather(load_link(deps.store, user_id), cache.get(deps.store, user_id))
    if link is None:
        raise CanvasLinkMissingError(user_id)

    preference = profile.translation_preference if profile and profile.translation_preference else None
    translation = normalize_translation(preference or deps.settings.default_translation)
    return {"link": link, "profile": profile, "translation": translation, "trace": _trace("link_check")}


async def clear_pending(state: ScanState, config: RunnableConfig) -> Dict[str, Any]:
    """Mark every undelivered pending encouragement delivered before a new one is written."""

    store = _deps(config).store
    pending = await store.query(user_pk(state["user_id"]), PENDING_PREFIX)
    stale = [item for item in pending if item.get("delivered") is not True]
    delivered_at = now_iso()
    results = await asyncio.gather(
        *(
            store.update(item["pk"], item["sk"], {"delivered": True, "deliveredAt": delivered_at})
            for item in stale
        ),
        return_exceptions=True,
    )
    failures = [result for result in results if isinstance(result, BaseException)]
    if failures:
        raise PendingSupersessionError(
            f"Failed to supersede {len(failures)} of {len(stale)} pending encouragements: {failures[0]}"
        ) from failures[0]
    return {"trace": _trace("clear_pending", superseded=len(stale))}


@guarded("fetch_workload")
async def fetch_workload(state: ScanState, config: RunnableConfig) -> Dict[str, Any]:
    deps = _deps(config)
    items = await with_timeout(
        deps.workload_source.fetch_workload_items(state["link"]),
        deps.settings.stage_timeout_seconds,
        "fetch_workload",
    )
    return {"workload_items": items}


@guarded("heuristics")
async def heuristics(state: ScanState, config: RunnableConfig) -> Dict[str, Any]:
    settings = _deps(config).settings
    items = to_stressful_items(state.get("workload_items") or [], max_items=settings.max_stressful_items)
    return {"stressful_items": items}


@guarded("candidates")
async def candidates(state: ScanState, config: RunnableConfig) -> Dict[str, Any]:
    deps = _deps(config)
    ranked = rank_tags(state.get("stressful_items") or [])
    found = await with_timeout(
        build_candidates(
            deps.verse_provider,
            ranked,
            state["translation"],
            excluded=deps.settings.excluded_refs,
            per_tag=deps.settings.candidates_per_tag,
            pool_cap=deps.settings.candidate_pool_cap,
        ),
        deps.settings.stage_timeout_seconds,
        "candidates",
    )
    if not found:
        return {
            "ranked_tags": ranked,
            "candidates": [],
            "failure": NO_CANDIDATES_MESSAGE,
            "trace": _trace("candidates", "empty", error=NO_CANDIDATES_MESSAGE),
        }
    return {"ranked_tags": ranked, "candidates": found}


@guarded("select")
async def select(state: ScanState, config: RunnableConfig) -> Dict[str, Any]:
    selection = await _deps(config).selector(
        state.get("profile"),
        state.get("stressful_items") or [],
        state["candidates"],
        state["translation"],
    )
    return {"selection": selection}


async def fallback(state: ScanState, config: RunnableConfig) -> Dict[str, Any]:
    deps = _deps(config)
    verse = pick_fallback(deps.settings.excluded_refs, deps.rng)
    logger.warning("Using fallback verse %s for %s: %s", verse.ref, state["user_id"], state.get("failure"))
    return {"fallback_verse": verse, "trace": _trace("fallback", reason=state.get("failure"))}


def _finalize(ref: str, text: str, encouragement: str, translation: str, ttl_hours: int) -> PendingEncouragement:
    now = utcnow()
    expires_epoch = future_epoch_seconds(ttl_hours, now)
    return PendingEncouragement(
        id=str(uuid.uuid4()),
        ref=ref,
        text=text,
        encouragement=encouragement,
        translation=translation,
        created_at=now_iso(),
        expires_at_epoch=expires_epoch,
        expires_at_iso=epoch_to_iso(expires_epoch),
    )


async def persist(state: ScanState, config: RunnableConfig) -> Dict[str, Any]:
    deps = _deps(config)
    user_id = state["user_id"]
    translation = state["translation"]
    ttl = deps.settings.pending_ttl_hours

    verse = state.get("fallback_verse")
    if verse is not None:
        status = "FALLBACK"
        encouragement = _finalize(verse.ref, verse.text, verse.encouragement, translation, ttl)
    else:
        status = "SUCCESS"
        chosen = state["selection"]
        encouragement = _finalize(chosen.ref, chosen.text, chosen.encouragement, chosen.translation, ttl)

    log = ScanLog(
        encouragement_id=encouragement.id,
        status=status,
        planner_count=len(state.get("workload_items") or []),
        stressful_count=len(state.get("stressful_items") or []),
        candidate_count=len(state.get("candidates") or []),
        translation=translation,
        tags=unique_tags(state.get("stressful_items") or []),
        error_message=state.get("failure") if status == "FALLBACK" else None,
        created_at=now_iso(),
    )

    await deps.store.put(pending_to_item(*pending_key(user_id, encouragement.id), encouragement))
    pk, sk = scan_key(user_id, log.created_at)
    if not await deps.store.put_if_absent(scan_log_to_item(pk, sk, log)):
        # another scan for this user logged in the same millisecond
        sk = f"{sk}#{encouragement.id}"
        await deps.store.put(scan_log_to_item(pk, sk, log))
    logger.info("Scan for %s finished with %s (%s)", user_id, status, encouragement.ref)
    return {"encouragement": encouragement, "log": log, "trace": _trace("persist", status=status)}


def build_scan_graph():
    g = StateGraph(ScanState)

    g.add_node("link_check", link_check)
    g.add_node("clear_pending", clear_pending)
    g.add_node("fetch_workload", fetch_workload)
    g.add_node("heuristics", heuristics)
    g.add_node("candidates", candidates)
    g.add_node("select", select)
    g.add_node("fallback", fallback)
    g.add_node("persist", persist)

    g.add_edge(START, "link_check")
    g.add_edge("link_check", "clear_pending")
    g.add_edge("clear_pending", "fetch_workload")
    for step, next_step in (
        ("fetch_workload", "heuristics"),
        ("heuristics", "candidates"),
        ("candidates", "select"),
        ("select", "persist"),
    ):
        g.add_conditional_edges(step, route_on_failure, {"continue": next_step, "fallback": "fallback"})
    g.add_edge("fallback", "persist")
    g.add_edge("persist", END)

    return g.compile()
