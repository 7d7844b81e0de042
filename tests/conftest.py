import importlib
import sys
from pathlib import Path
from typing import Generator

import pytest
from langchain_core.messages import AIMessage


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from database import SqlTabularStore, seed_default_settings, setup_database
from database.schema import USERS, build_row
from file_store import LocalFileStore
from services.secrets import SecretStore
from shared.config import Configuration
from shared.context import RequestContext

ADMIN_EMAIL = "admin@example.com"
USER_EMAIL = "user@example.com"


@pytest.fixture()
def temp_database(tmp_path, monkeypatch) -> Generator[Path, None, None]:
    """Point DATABASE_PATH at a temporary SQLite file and reload the connection module."""
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_PATH", str(db_path))

    # Reload database.connection so it picks up the new env variable
    from database import connection as connection_module

    importlib.reload(connection_module)

    yield db_path

    # Cleanup: remove env, reload to default state
    monkeypatch.delenv("DATABASE_PATH", raising=False)
    importlib.reload(connection_module)


@pytest.fixture()
def store(tmp_path):
    """Fresh tabular store with every table created and default settings seeded."""
    store = SqlTabularStore(tmp_path / "store.db")
    setup_database(store)
    seed_default_settings(store)
    store.open_table(USERS).append_row(
        build_row(USERS, {"User_ID": ADMIN_EMAIL, "Display_Name": "admin", "Role": "Admin"})
    )
    return store


@pytest.fixture()
def files(tmp_path):
    return LocalFileStore(tmp_path / "files")


@pytest.fixture()
def secrets(tmp_path, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_SEARCH_API_KEY", raising=False)
    return SecretStore(tmp_path / "secrets.env")


@pytest.fixture()
def config(tmp_path):
    return Configuration.from_mapping({
        "gemini_api_key": None,
        "google_search_api_key": None,
        "google_search_engine_id": "engine-test",
        "text_model": "gemini-test",
        "tabular_backend": "sqlite",
        "database_path": str(tmp_path / "store.db"),
        "file_store_backend": "local",
        "local_file_root": str(tmp_path / "files"),
        "default_user_email": None,
        "trust_forwarded_email": False,
        "enable_daily_scheduler": False,
        "secrets_env_path": str(tmp_path / "secrets.env"),
    })


@pytest.fixture()
def make_ctx(store, files, secrets, config):
    """Factory for request contexts bound to the test collaborators."""

    def _make(email: str = USER_EMAIL) -> RequestContext:
        return RequestContext(user_email=email, store=store, secrets=secrets, config=config, files=files)

    return _make


@pytest.fixture()
def admin_ctx(make_ctx):
    return make_ctx(ADMIN_EMAIL)


@pytest.fixture()
def user_ctx(make_ctx):
    return make_ctx(USER_EMAIL)


class FakeLLM:
    """Stands in for ChatOpenAI; records prompts and replays a canned answer."""

    def __init__(self, reply="Fake answer", total_tokens=42, error=None):
        self.reply = reply
        self.total_tokens = total_tokens
        self.error = error
        self.prompts = []
        self.temperatures = []

    def invoke(self, messages):
        self.prompts.append(messages[-1].content)
        if self.error is not None:
            raise self.error
        return AIMessage(
            content=self.reply,
            usage_metadata={
                "input_tokens": self.total_tokens // 2,
                "output_tokens": self.total_tokens - self.total_tokens // 2,
                "total_tokens": self.total_tokens,
            },
        )


@pytest.fixture()
def fake_llm(monkeypatch, secrets):
    """Patch the model factory and provide an API key."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    llm = FakeLLM()

    def fake_get_text_llm(cfg, api_key=None, temperature=1.0):
        llm.temperatures.append(temperature)
        return llm

    monkeypatch.setattr("services.ai_gateway.get_text_llm", fake_get_text_llm)
    return llm
