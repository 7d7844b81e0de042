"""Shared configuration and utilities."""
from .config import Configuration
from .context import RequestContext, SYSTEM_USER
from .utils import get_text_llm

__all__ = ["Configuration", "RequestContext", "SYSTEM_USER", "get_text_llm"]
