"""LLM client factory package."""

from .client import get_chat_model, tracing_callbacks

__all__ = ["get_chat_model", "tracing_callbacks"]
