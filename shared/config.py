"""Shared configuration for the DeskPilot service."""
import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Annotated, Any, Dict, Optional

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


def _load_model_config() -> dict:
    """Load model configuration from JSON file."""
    config_path = Path(__file__).parent.parent / "model_config.json"
    if not config_path.exists():
        return {"text_model": "gemini-1.5-pro"}

    with open(config_path) as f:
        config = json.load(f)

    return {"text_model": config.get("text_model", "gemini-1.5-pro")}


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(kw_only=True)
class Configuration:
    """Shared configuration for the web app, services and batch jobs.

    Every field defaults to an environment variable so that a `.env` file
    loaded with python-dotenv is enough to run the service. Tests and the CLI
    can override any field through ``from_mapping``.
    """

    # GENERATIVE MODEL
    gemini_api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("GEMINI_API_KEY"),
        metadata={"description": "API key for the Gemini endpoint"}
    )
    gemini_base_url: str = field(
        default_factory=lambda: os.getenv("GEMINI_BASE_URL", GEMINI_OPENAI_BASE_URL),
        metadata={"description": "OpenAI-compatible base URL for the generative model"}
    )
    text_model: Annotated[str, {"__template_metadata__": {"kind": "llm"}}] = field(
        default_factory=lambda: os.getenv("GEMINI_MODEL") or _load_model_config()["text_model"],
        metadata={"description": "Model used for chat answers and coaching reports"}
    )
    llm_timeout: int = field(
        default_factory=lambda: int(os.getenv("LLM_TIMEOUT", "60")),
        metadata={"description": "HTTP timeout (seconds) for model calls"}
    )
    llm_max_retries: int = field(
        default_factory=lambda: int(os.getenv("LLM_MAX_RETRIES", "0")),
        metadata={"description": "Max retries for model calls"}
    )

    # WEB SEARCH
    google_search_api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("GOOGLE_SEARCH_API_KEY"),
        metadata={"description": "Custom Search JSON API key"}
    )
    google_search_engine_id: Optional[str] = field(
        default_factory=lambda: os.getenv("GOOGLE_SEARCH_ENGINE_ID"),
        metadata={"description": "Programmable Search Engine id (cx)"}
    )
    search_timeout: int = field(
        default_factory=lambda: int(os.getenv("SEARCH_TIMEOUT", "15")),
        metadata={"description": "HTTP timeout (seconds) for search calls"}
    )

    # TABULAR STORE
    tabular_backend: str = field(
        default_factory=lambda: os.getenv("TABULAR_BACKEND", "sqlite").lower(),
        metadata={"description": "'sheets' for Google Sheets, 'sqlite' for a local database"}
    )
    spreadsheet_id: Optional[str] = field(
        default_factory=lambda: os.getenv("SPREADSHEET_ID"),
        metadata={"description": "Google Sheets spreadsheet id"}
    )
    database_path: Optional[str] = field(
        default_factory=lambda: os.getenv("DATABASE_PATH"),
        metadata={"description": "SQLite file used by the sqlite backend"}
    )

    # FILE STORE
    file_store_backend: str = field(
        default_factory=lambda: os.getenv("FILE_STORE_BACKEND", "local").lower(),
        metadata={"description": "'drive' for Google Drive, 'local' for the filesystem"}
    )
    local_file_root: str = field(
        default_factory=lambda: os.getenv(
            "LOCAL_FILE_ROOT", str(Path(__file__).parent.parent / "data" / "files")
        ),
        metadata={"description": "Base directory used by the local file store"}
    )
    root_folder_name: str = field(
        default_factory=lambda: os.getenv("ROOT_FOLDER_NAME", "DeskPilot_Projects"),
        metadata={"description": "Top-level folder holding every project tree"}
    )

    # IDENTITY / SCHEDULING / SECRETS
    default_user_email: Optional[str] = field(
        default_factory=lambda: os.getenv("DEFAULT_USER_EMAIL"),
        metadata={"description": "Caller identity used when no identity header is sent"}
    )
    trust_forwarded_email: bool = field(
        default_factory=lambda: _env_flag("TRUST_FORWARDED_EMAIL"),
        metadata={"description": "Accept X-Forwarded-Email from a trusted reverse proxy"}
    )
    daily_report_hour: int = field(
        default_factory=lambda: int(os.getenv("DAILY_REPORT_HOUR", "20")),
        metadata={"description": "Local hour at which the coaching job runs"}
    )
    enable_daily_scheduler: bool = field(
        default_factory=lambda: _env_flag("ENABLE_DAILY_SCHEDULER"),
        metadata={"description": "Run the coaching job inside the web process"}
    )
    secrets_env_path: str = field(
        default_factory=lambda: os.getenv("SECRETS_ENV_PATH", ".env"),
        metadata={"description": "dotenv file that holds API keys"}
    )

    @classmethod
    def from_mapping(cls, data: Optional[Dict[str, Any]] = None) -> "Configuration":
        """Create a Configuration, ignoring keys that are not fields."""
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in {f.name for f in fields(cls)}})

    def validate(self) -> None:
        """Validate that the selected storage backends are configured."""
        if self.tabular_backend not in {"sheets", "sqlite"}:
            raise ValueError(f"Unknown TABULAR_BACKEND '{self.tabular_backend}'.")
        if self.tabular_backend == "sheets" and not self.spreadsheet_id:
            raise ValueError(
                "SPREADSHEET_ID environment variable is not set. "
                "It is required when TABULAR_BACKEND=sheets."
            )
        if self.file_store_backend not in {"drive", "local"}:
            raise ValueError(f"Unknown FILE_STORE_BACKEND '{self.file_store_backend}'.")
        if not 0 <= self.daily_report_hour <= 23:
            raise ValueError("DAILY_REPORT_HOUR must be between 0 and 23.")
