from __future__ import annotations

import logging
from typing import Any, List, Optional

from langchain_openai import ChatOpenAI

from walkworthy.config.settings import Settings, get_settings
from walkworthy.errors import ConfigurationError

logger = logging.getLogger(__name__)


def get_chat_model(settings: Optional[Settings] = None, **overrides: Any) -> ChatOpenAI:
    cfg = settings or get_settings()
    if cfg.llm_api_key is None or not cfg.llm_api_key.get_secret_value():
        raise ConfigurationError("OPENAI_API_KEY is not configured")

    params = {
        "model": cfg.llm_model,
        "api_key": cfg.llm_api_key.get_secret_value(),
        "temperature": cfg.temperature,
        "top_p": 1,
        "timeout": cfg.stage_timeout_seconds,
        # attempts are retried by the selector, not the transport
        "max_retries": 0,
    }
    if cfg.llm_base_url:
        params["base_url"] = cfg.llm_base_url

    params.update(overrides)
    return ChatOpenAI(**params)


def tracing_callbacks(settings: Optional[Settings] = None) -> List[Any]:
    """Langfuse callback handlers when tracing keys are configured."""

    cfg = settings or get_settings()
    if not cfg.tracing_enabled:
        return []
    from langfuse.langchain import CallbackHandler

    return [CallbackHandler()]
