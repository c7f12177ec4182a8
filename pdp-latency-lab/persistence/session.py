"""Database session management."""

import os
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from persistence.models import Base

DATABASE_FILE = "benchmark.db"


def default_database_url(output_dir: Path) -> str:
    """DATABASE_URL from the environment, else a SQLite file in output_dir."""
    return os.environ.get("DATABASE_URL") or f"sqlite:///{output_dir / DATABASE_FILE}"


def make_engine(database_url: str) -> Engine:
    """Create an engine; SQLite URLs skip the pooling options."""
    if database_url.startswith("sqlite"):
        return create_engine(database_url)
    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connections before use
        pool_size=5,
        max_overflow=10,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create tables if they don't exist."""
    Base.metadata.create_all(bind=engine)


def open_session(database_url: str, create_tables: bool = True) -> Session:
    """Open a session against database_url, creating tables on first use."""
    engine = make_engine(database_url)
    if create_tables:
        init_db(engine)
    return make_session_factory(engine)()
