"""Tabular store adapter.

The application treats a spreadsheet as a row-oriented database: a store holds
named tables, each table is a list of rows whose first row is the header.
Two backends implement the same contract:

- ``SheetsTabularStore``: a Google Sheets spreadsheet (production).
- ``SqlTabularStore``: a local SQLite file through SQLAlchemy (development
  and tests).

There are no multi-row transactions. Appends from concurrent requests
interleave at row granularity and never overwrite each other; cell updates
are last-write-wins.
"""
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from googleapiclient.errors import HttpError
from sqlalchemy import func, insert, select

from shared.config import Configuration
from shared.errors import NotFoundError

from .connection import get_engine, init_db, make_session_factory, session_scope
from .models import SheetRow, SheetTable

logger = logging.getLogger(__name__)


class Table(ABC):
    """One named table inside a tabular store."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def read_all_rows(self) -> List[list]:
        """All rows in order, header first."""

    @abstractmethod
    def append_row(self, row: Sequence[Any]) -> None:
        """Add one row after the last one."""

    @abstractmethod
    def update_cell(self, row_index: int, col_index: int, value: Any) -> None:
        """Overwrite one cell. Indexes are zero-based into ``read_all_rows()``."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every row, header included."""

    def headers(self, rows: Optional[List[list]] = None) -> List[str]:
        rows = self.read_all_rows() if rows is None else rows
        return [str(h) for h in rows[0]] if rows else []

    def column_index(self, column: str, rows: Optional[List[list]] = None) -> int:
        """Position of ``column`` in the header row.

        Raises:
            NotFoundError: the header has no such column
        """
        headers = self.headers(rows)
        try:
            return headers.index(column)
        except ValueError:
            raise NotFoundError(f"Could not find '{column}' column in {self.name} sheet.") from None

    def records(self, rows: Optional[List[list]] = None) -> List[Dict[str, Any]]:
        """Data rows as dicts keyed by header name."""
        rows = self.read_all_rows() if rows is None else rows
        if not rows:
            return []
        headers = self.headers(rows)
        records = []
        for row in rows[1:]:
            padded = list(row) + [""] * (len(headers) - len(row))
            records.append(dict(zip(headers, padded)))
        return records

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class TabularStore(ABC):
    """A database of named tables."""

    @abstractmethod
    def open_table(self, name: str) -> Table:
        """Resolve a table by name.

        Raises:
            NotFoundError: the database or the table does not exist
        """

    @abstractmethod
    def create_table(self, name: str) -> Table:
        """Return the named table, creating it empty if it is absent."""

    @abstractmethod
    def table_names(self) -> List[str]:
        ...


# --------------------------------------------------------------------------- #
# Google Sheets backend
# --------------------------------------------------------------------------- #


def _column_letter(col_index: int) -> str:
    """Zero-based column index to A1 letters (0 -> A, 26 -> AA)."""
    letters = ""
    n = col_index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def _quote_sheet(name: str) -> str:
    return "'" + name.replace("'", "''") + "'"


class SheetsTable(Table):
    """A single sheet (tab) of a spreadsheet."""

    def __init__(self, service, spreadsheet_id: str, name: str):
        super().__init__(name)
        self._service = service
        self._spreadsheet_id = spreadsheet_id

    def _values(self):
        return self._service.spreadsheets().values()

    def read_all_rows(self) -> List[list]:
        result = self._values().get(
            spreadsheetId=self._spreadsheet_id,
            range=_quote_sheet(self.name),
            valueRenderOption="UNFORMATTED_VALUE",
            dateTimeRenderOption="FORMATTED_STRING",
        ).execute()
        rows = result.get("values", [])
        if not rows:
            return []
        # The API drops trailing empty cells; pad so positions line up with the header.
        width = max(len(r) for r in rows)
        return [list(r) + [""] * (width - len(r)) for r in rows]

    def append_row(self, row: Sequence[Any]) -> None:
        self._values().append(
            spreadsheetId=self._spreadsheet_id,
            range=f"{_quote_sheet(self.name)}!A1",
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [["" if v is None else v for v in row]]},
        ).execute()

    def update_cell(self, row_index: int, col_index: int, value: Any) -> None:
        a1 = f"{_quote_sheet(self.name)}!{_column_letter(col_index)}{row_index + 1}"
        self._values().update(
            spreadsheetId=self._spreadsheet_id,
            range=a1,
            valueInputOption="RAW",
            body={"values": [["" if value is None else value]]},
        ).execute()

    def clear(self) -> None:
        self._values().clear(
            spreadsheetId=self._spreadsheet_id,
            range=_quote_sheet(self.name),
            body={},
        ).execute()


class SheetsTabularStore(TabularStore):
    """Tables are the sheets of one spreadsheet, opened by a fixed id."""

    def __init__(self, spreadsheet_id: str, service=None):
        self.spreadsheet_id = spreadsheet_id
        self._service = service

    @property
    def service(self):
        if self._service is None:
            from shared.google_auth import get_sheets_api_resource

            self._service = get_sheets_api_resource()
        return self._service

    def table_names(self) -> List[str]:
        try:
            meta = self.service.spreadsheets().get(
                spreadsheetId=self.spreadsheet_id,
                fields="sheets.properties.title",
            ).execute()
        except HttpError as e:
            logger.error("Could not open spreadsheet %s: %s", self.spreadsheet_id, e)
            raise NotFoundError("Database spreadsheet not found or inaccessible.") from e
        return [s["properties"]["title"] for s in meta.get("sheets", [])]

    def open_table(self, name: str) -> Table:
        if name not in self.table_names():
            raise NotFoundError(f'Sheet "{name}" not found in the database.')
        return SheetsTable(self.service, self.spreadsheet_id, name)

    def create_table(self, name: str) -> Table:
        if name not in self.table_names():
            self.service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"requests": [{"addSheet": {"properties": {"title": name}}}]},
            ).execute()
            logger.info('Sheet "%s" did not exist. Created a new one.', name)
        return SheetsTable(self.service, self.spreadsheet_id, name)


# --------------------------------------------------------------------------- #
# SQLite backend
# --------------------------------------------------------------------------- #


class SqlTable(Table):
    """A table stored as ordered JSON rows."""

    def __init__(self, session_factory, name: str, write_lock: threading.Lock):
        super().__init__(name)
        self._factory = session_factory
        self._write_lock = write_lock

    def read_all_rows(self) -> List[list]:
        with session_scope(self._factory) as db:
            rows = (
                db.query(SheetRow)
                .filter(SheetRow.table_name == self.name)
                .order_by(SheetRow.position.asc())
                .all()
            )
            return [list(r.cells or []) for r in rows]

    def append_row(self, row: Sequence[Any]) -> None:
        # The next position is computed inside the INSERT so that concurrent
        # appends from other processes cannot claim the same slot.
        next_position = (
            select(func.coalesce(func.max(SheetRow.position), -1) + 1)
            .where(SheetRow.table_name == self.name)
            .correlate(None)
            .scalar_subquery()
        )
        with self._write_lock, session_scope(self._factory) as db:
            db.execute(
                insert(SheetRow).values(table_name=self.name, position=next_position, cells=list(row))
            )

    def update_cell(self, row_index: int, col_index: int, value: Any) -> None:
        with self._write_lock, session_scope(self._factory) as db:
            row = (
                db.query(SheetRow)
                .filter(SheetRow.table_name == self.name)
                .order_by(SheetRow.position.asc())
                .offset(row_index)
                .first()
            )
            if row is None:
                raise NotFoundError(f"Row {row_index} not found in {self.name} sheet.")
            cells = list(row.cells or [])
            if col_index >= len(cells):
                cells.extend([""] * (col_index + 1 - len(cells)))
            cells[col_index] = value
            # Reassign so the JSON column is flagged dirty.
            row.cells = cells

    def clear(self) -> None:
        with self._write_lock, session_scope(self._factory) as db:
            db.query(SheetRow).filter(SheetRow.table_name == self.name).delete()


class SqlTabularStore(TabularStore):
    """Tabular store kept in a local SQLite file."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        self.engine = get_engine(db_path)
        init_db(self.engine)
        self._factory = make_session_factory(self.engine)
        # Serializes writers in this process; SQLite allows one writer at a time.
        self._write_lock = threading.Lock()

    def table_names(self) -> List[str]:
        with session_scope(self._factory) as db:
            return [t.name for t in db.query(SheetTable).order_by(SheetTable.name).all()]

    def open_table(self, name: str) -> Table:
        with session_scope(self._factory) as db:
            exists = db.query(SheetTable).filter_by(name=name).first() is not None
        if not exists:
            raise NotFoundError(f'Sheet "{name}" not found in the database.')
        return SqlTable(self._factory, name, self._write_lock)

    def create_table(self, name: str) -> Table:
        with session_scope(self._factory) as db:
            if db.query(SheetTable).filter_by(name=name).first() is None:
                db.add(SheetTable(name=name))
                logger.info('Sheet "%s" did not exist. Created a new one.', name)
        return SqlTable(self._factory, name, self._write_lock)


def get_tabular_store(config: Configuration) -> TabularStore:
    """Build the tabular store selected by ``config.tabular_backend``."""
    if config.tabular_backend == "sheets":
        return SheetsTabularStore(config.spreadsheet_id)
    return SqlTabularStore(config.database_path)
