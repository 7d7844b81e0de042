"""Initialize or reset the tabular database schema.

``setup_database`` is destructive: every table in ``SCHEMA`` is cleared and
its header row rewritten. Run it once for a new spreadsheet, or to reset one.
"""
import logging
from datetime import datetime
from typing import List, Tuple

from .schema import CONFIG, SCHEMA, SCHEMA_VERSION, build_row
from .tabular import TabularStore

logger = logging.getLogger(__name__)

SECRET_PLACEHOLDER = "(stored securely)"

DEFAULT_SETTINGS: List[Tuple[str, str, str, str, bool]] = [
    ("APP_TITLE", "DeskPilot", "Title shown in the browser tab", "string", True),
    ("DAILY_REPORT_HOUR", "20", "Local hour at which coaching reports are generated", "number", True),
    ("SCHEMA_VERSION", str(SCHEMA_VERSION), "Version of the table layout", "number", False),
    ("GEMINI_API_KEY", SECRET_PLACEHOLDER, "Generative model API key", "secret", True),
    ("GOOGLE_SEARCH_API_KEY", SECRET_PLACEHOLDER, "Custom Search API key", "secret", True),
]


def setup_database(store: TabularStore) -> List[str]:
    """Create missing tables, clear all of them and write the header rows.

    Returns:
        Names of the tables that were reset
    """
    processed = []
    for table_name, headers in SCHEMA.items():
        logger.info("Processing sheet: %s...", table_name)
        table = store.create_table(table_name)
        table.clear()
        table.append_row(headers)
        processed.append(table_name)
    logger.info("Database setup complete: %d sheets reset (schema v%d).", len(processed), SCHEMA_VERSION)
    return processed


def seed_default_settings(store: TabularStore) -> int:
    """Append default Config_Settings rows that are not present yet."""
    table = store.open_table(CONFIG)
    existing = {r.get("Setting_Name") for r in table.records()}
    added = 0
    for name, value, description, data_type, editable in DEFAULT_SETTINGS:
        if name in existing:
            continue
        table.append_row(build_row(CONFIG, {
            "Setting_Name": name,
            "Setting_Value": value,
            "Description": description,
            "Data_Type": data_type,
            "Is_Editable_By_Admin": "TRUE" if editable else "FALSE",
        }))
        added += 1
    logger.info("Seeded %d default settings at %s", added, datetime.now().isoformat())
    return added
