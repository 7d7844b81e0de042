"""SQLAlchemy models backing the local tabular store.

Each spreadsheet-like table is a ``SheetTable`` and each of its rows (header
included, at position 0) is a ``SheetRow`` holding the cell values as JSON.
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class SheetTable(Base):
    """A named table."""
    __tablename__ = "sheet_tables"

    name = Column(String, primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    rows = relationship(
        "SheetRow",
        back_populates="table",
        cascade="all, delete-orphan",
        order_by="SheetRow.position",
    )


class SheetRow(Base):
    """One row of a table; ``position`` 0 is the header."""
    __tablename__ = "sheet_rows"
    __table_args__ = (UniqueConstraint("table_name", "position"),)

    id = Column(Integer, primary_key=True)
    table_name = Column(String, ForeignKey("sheet_tables.name"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    cells = Column(JSON, nullable=False, default=list)

    table = relationship("SheetTable", back_populates="rows")
