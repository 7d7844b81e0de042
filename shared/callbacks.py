"""LangChain callbacks and logging helpers for model calls."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List

from langchain_core.callbacks import BaseCallbackHandler

_logger = logging.getLogger("chat")


def _preview(text: Any, limit: int = 300) -> str:
    s = str(text)
    return s if len(s) <= limit else s[:limit] + "... [truncated]"


def enable_chat_logging(level: int = logging.INFO, to_console: bool = True, to_file: bool = True) -> None:
    """Enable chat logging on demand.

    Adds console and file handlers to the 'chat' logger. Safe to call multiple times.
    """
    _logger.setLevel(level)
    if _logger.handlers:
        return
    fmt = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    if to_file:
        log_dir = Path(__file__).parent.parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_dir / "chat.log", encoding="utf-8")
        fh.setFormatter(fmt)
        _logger.addHandler(fh)
    if to_console:
        sh = logging.StreamHandler()
        sh.setFormatter(fmt)
        _logger.addHandler(sh)


class ChatMessagesLogger(BaseCallbackHandler):
    """Logs roles and a content preview of messages sent to the model,
    and the token usage reported back."""

    def on_chat_model_start(
        self,
        serialized: dict[str, Any],
        messages: List[List[Any]],
        **kwargs: Any,
    ) -> None:
        if not _logger.handlers:
            return  # logging disabled
        batch = messages[0] if messages else []
        compact = []
        for m in batch:
            role = getattr(m, "type", None) or "?"
            entry = {"role": role}
            content = getattr(m, "content", None)
            if isinstance(content, str) and content:
                entry["content"] = _preview(content, 180)
            compact.append(entry)
        _logger.info("LLM REQ MESSAGES: %s", json.dumps(compact, ensure_ascii=False))

    def on_llm_end(self, response: Any, **kwargs: Any) -> None:
        if not _logger.handlers:
            return
        usage = (getattr(response, "llm_output", None) or {}).get("token_usage")
        if usage:
            _logger.info("LLM TOKEN USAGE: %s", usage)
