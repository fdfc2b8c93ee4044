"""Constrained verse selection: sanitize, invoke, validate, guard, retry."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Optional, Sequence

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import ValidationError

from walkworthy.agent.guardrails import check_allowed, check_sensitive_output, check_translation
from walkworthy.agent.prompts import SYSTEM_PROMPT, USER_PREAMBLE
from walkworthy.agent.sanitize import build_agent_payload, sanitize_candidate
from walkworthy.config.settings import Settings, get_settings
from walkworthy.errors import ConfigurationError, StageTimeoutError, VerseSelectionError
from walkworthy.llm.client import get_chat_model, tracing_callbacks
from walkworthy.models import (
    StressfulItem,
    UserProfile,
    VerseCandidate,
    VerseSelectionResult,
)

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2

_JSON_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.S | re.I)


def _content_text(response: Any) -> Any:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        # content blocks; keep only text parts
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block) for block in content
        )
    return content


def parse_selection(raw: Any) -> VerseSelectionResult:
    """Turn untyped model output into a validated result or raise."""

    data = raw
    if isinstance(raw, str):
        match = _JSON_BLOCK.search(raw)
        text = match.group(1) if match else raw
        try:
            data = json.loads(text.strip())
        except ValueError as exc:
            raise VerseSelectionError("Agent returned unparseable string output") from exc
    try:
        return VerseSelectionResult.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "<root>" for err in exc.errors())
        raise VerseSelectionError(f"Agent output failed schema validation ({fields})") from exc


async def _invoke_once(llm: Any, messages: list, *, timeout: Optional[float], callbacks: list) -> Any:
    # one chat completion per attempt, so a selection takes at most max_selection_attempts turns
    call = llm.ainvoke(messages, config={"callbacks": callbacks})
    if timeout is None:
        return await call
    try:
        return await asyncio.wait_for(call, timeout)
    except asyncio.TimeoutError as exc:
        raise StageTimeoutError(f"Verse agent timed out after {timeout:g}s") from exc


async def select_verse(
    profile: Optional[UserProfile],
    stressful_items: Sequence[StressfulItem],
    verse_candidates: Sequence[VerseCandidate],
    translation_preference: str,
    *,
    settings: Optional[Settings] = None,
    llm: Any = None,
) -> VerseSelectionResult:
    if not verse_candidates:
        raise VerseSelectionError("verse_candidates must contain at least one candidate")

    cfg = settings or get_settings()
    llm = llm or get_chat_model(cfg)
    max_attempts = max(1, cfg.max_selection_attempts or MAX_ATTEMPTS)

    allowed = [sanitize_candidate(candidate) for candidate in verse_candidates]
    payload = build_agent_payload(profile, stressful_items, allowed, translation_preference)
    messages = [
        SystemMessage(SYSTEM_PROMPT),
        HumanMessage(USER_PREAMBLE + json.dumps(payload, indent=2, ensure_ascii=False)),
    ]
    callbacks = tracing_callbacks(cfg)

    last_error: Optional[Exception] = None
    for attempt in range(1, max_attempts + 1):
        try:
            response = await _invoke_once(
                llm,
                messages,
                timeout=cfg.stage_timeout_seconds,
                callbacks=callbacks,
            )
            result = parse_selection(_content_text(response))
            check_sensitive_output(result)
            check_allowed(result, allowed)
            check_translation(result, payload["translationPreference"])
            logger.debug("Verse agent selected %s on attempt %d", result.ref, attempt)
            return result
        except ConfigurationError:
            raise
        except Exception as exc:
            last_error = exc
            logger.warning("Verse agent attempt %d/%d failed: %s", attempt, max_attempts, exc)

    raise VerseSelectionError(
        f"Verse agent failed after {max_attempts} attempts: {last_error or 'unknown error'}"
    )
