"""Database connection and session management for the local tabular store."""
import os
from pathlib import Path
from contextlib import contextmanager
from typing import Generator, Optional, Union

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from .models import Base

# Database path - in the project root by default
DB_DIR = Path(__file__).parent.parent / "data"
DB_PATH = DB_DIR / "deskpilot.db"

# Override with environment variable if provided
if os.getenv("DATABASE_PATH"):
    DB_PATH = Path(os.getenv("DATABASE_PATH"))


def get_engine(db_path: Optional[Union[str, Path]] = None) -> Engine:
    """Create a SQLite engine for ``db_path`` (default: DB_PATH)."""
    path = Path(db_path) if db_path else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite:///{path}",
        echo=False,  # Set to True for SQL logging
        connect_args={"check_same_thread": False}  # Needed for SQLite
    )


def init_db(engine: Engine) -> None:
    """Initialize the database, creating all tables."""
    Base.metadata.create_all(bind=engine)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """Get a database session with automatic cleanup.

    Usage:
        with session_scope(factory) as db:
            rows = db.query(SheetRow).all()
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
