"""Runtime configuration loaded from the environment and ``.env``."""

from __future__ import annotations

import json
import re
from functools import lru_cache
from typing import FrozenSet, Iterable, Literal, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_EXCLUDED_REFS = ("Philippians 4:6-7",)

_WS = re.compile(r"\s+")


def normalize_reference(ref: Optional[str]) -> str:
    """Collapse whitespace and lowercase a verse reference for comparisons."""

    return _WS.sub(" ", ref or "").strip().lower()


def parse_excluded_refs(raw: Optional[str], defaults: Iterable[str] = DEFAULT_EXCLUDED_REFS) -> FrozenSet[str]:
    """Parse the excluded-verse setting.

    Accepts a JSON array, a JSON string, or a comma-separated list. An unset or
    empty value falls back to ``defaults``; ``[]`` means exclude nothing.
    """

    values = list(defaults)
    if raw:
        try:
            parsed = json.loads(raw)
        except ValueError:
            values = [part.strip() for part in raw.split(",") if part.strip()]
        else:
            if isinstance(parsed, list):
                values = [entry for entry in parsed if isinstance(entry, str)]
            elif isinstance(parsed, str):
                values = [parsed]
    normalized = (normalize_reference(entry) for entry in values)
    return frozenset(entry for entry in normalized if entry)


load_dotenv(override=False)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="WALKWORTHY_", extra="ignore", populate_by_name=True)

    # Persistence
    store_backend: Literal["memory", "sqlite"] = "memory"
    sqlite_path: str = "walkworthy.db"

    # Canvas OAuth application credentials
    canvas_client_id: Optional[str] = None
    canvas_client_secret: Optional[SecretStr] = None
    lookahead_days: int = 14
    http_timeout_seconds: float = 20.0

    # Verse service
    bible_mcp_mode: Literal["http", "local", "disabled"] = "local"
    bible_mcp_url: Optional[str] = None
    default_translation: str = "ESV"
    excluded_verses: Optional[str] = None
    candidate_pool_cap: int = 8
    candidates_per_tag: int = 5

    # Generative model
    llm_model: str = "gpt-4.1"
    llm_base_url: Optional[str] = None
    llm_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("WALKWORTHY_LLM_API_KEY", "OPENAI_API_KEY"),
    )
    temperature: float = 0.2
    max_selection_attempts: int = 2

    # Pipeline
    max_stressful_items: int = 25
    pending_ttl_hours: int = 12
    stage_timeout_seconds: float = 30.0

    # Tracing
    langfuse_public_key: Optional[str] = Field(default=None, validation_alias="LANGFUSE_PUBLIC_KEY")
    langfuse_secret_key: Optional[SecretStr] = Field(default=None, validation_alias="LANGFUSE_SECRET_KEY")
    langfuse_host: Optional[str] = Field(default=None, validation_alias="LANGFUSE_HOST")

    @property
    def excluded_refs(self) -> FrozenSet[str]:
        return parse_excluded_refs(self.excluded_verses)

    @property
    def tracing_enabled(self) -> bool:
        return bool(self.langfuse_public_key and self.langfuse_secret_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
