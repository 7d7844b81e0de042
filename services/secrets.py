"""Secret configuration store for API keys.

Keys live in the process environment, backed by a dotenv file so that a value
written through the admin settings page survives a restart. They never go to
the tabular database.
"""
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values, set_key

from shared.errors import NotFoundError

logger = logging.getLogger(__name__)

SECRET_SETTING_NAMES = ("GEMINI_API_KEY", "GOOGLE_SEARCH_API_KEY")


class SecretStore:
    """Process-wide key/value store for credentials."""

    def __init__(self, env_path: str | Path = ".env"):
        self.env_path = Path(env_path)

    def get(self, name: str) -> Optional[str]:
        value = os.environ.get(name)
        if value:
            return value
        if self.env_path.exists():
            return dotenv_values(self.env_path).get(name) or None
        return None

    def require(self, name: str) -> str:
        value = self.get(name)
        if not value:
            raise NotFoundError(f'API Key "{name}" not found in the secret store.')
        return value

    def set(self, name: str, value: str) -> None:
        self.env_path.parent.mkdir(parents=True, exist_ok=True)
        self.env_path.touch(exist_ok=True)
        set_key(str(self.env_path), name, value)
        os.environ[name] = value
        logger.info("Securely updated %s in %s", name, self.env_path)
