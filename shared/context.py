"""Request-scoped context passed to every service call."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .config import Configuration

if TYPE_CHECKING:
    from database.tabular import TabularStore
    from file_store import FileStore
    from services.secrets import SecretStore

SYSTEM_USER = "system@deskpilot.local"


@dataclass(frozen=True)
class RequestContext:
    """Caller identity plus the collaborators a service call may need.

    The web layer builds one per request from the identity headers; batch
    jobs build one with ``SYSTEM_USER``.
    """

    user_email: str
    store: "TabularStore"
    secrets: "SecretStore"
    config: Configuration
    files: Optional["FileStore"] = None
