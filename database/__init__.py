"""Tabular database package."""
from .tabular import (
    Table,
    TabularStore,
    SheetsTabularStore,
    SqlTabularStore,
    get_tabular_store,
)
from .bootstrap import setup_database, seed_default_settings
from . import schema

__all__ = [
    "Table",
    "TabularStore",
    "SheetsTabularStore",
    "SqlTabularStore",
    "get_tabular_store",
    "setup_database",
    "seed_default_settings",
    "schema",
]
