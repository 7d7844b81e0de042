"""Shared utilities for LLM creation."""
from typing import Optional

from langchain_openai import ChatOpenAI

from .config import Configuration
from .callbacks import ChatMessagesLogger


def _normalize_base_url(url: Optional[str]) -> Optional[str]:
    """Normalize user-provided base URL for OpenAI-compatible endpoints.

    - If it ends with "/chat/completions", strip that suffix.
    - Trim any trailing slash.
    """
    if not url:
        return url
    u = url.rstrip("/")
    if u.endswith("/chat/completions"):
        u = u[: -len("/chat/completions")]
    return u


def get_text_llm(
    cfg: Configuration,
    api_key: Optional[str] = None,
    temperature: float = 1.0,
) -> ChatOpenAI:
    """Get the text generation LLM instance.

    Used for chat answers and for the daily coaching analysis. The model is
    reached through Gemini's OpenAI-compatible endpoint unless
    ``cfg.gemini_base_url`` points somewhere else.

    Args:
        cfg: Configuration instance with model settings
        api_key: Key to use instead of ``cfg.gemini_api_key`` (the admin
            settings page may have rotated it since startup)
        temperature: Sampling temperature

    Returns:
        ChatOpenAI instance configured for text generation
    """
    return ChatOpenAI(
        model=cfg.text_model,
        api_key=api_key or cfg.gemini_api_key,
        base_url=_normalize_base_url(cfg.gemini_base_url),
        streaming=False,
        timeout=cfg.llm_timeout,
        max_retries=cfg.llm_max_retries,
        temperature=temperature,
        callbacks=[ChatMessagesLogger()],
    )
