# storage/db.py
from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, Union

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from core.errors import StorageUnavailable
from core.settings import STORE_DB_PATH

# Ensure SQLModel metadata is populated
import models.stored_record  # noqa: F401


SessionFactory = Callable[[], Session]

MEMORY_URL = "sqlite:///:memory:"


def create_store_engine(path: Union[str, Path, None] = None) -> Engine:
    """Build an engine for ``path``; ``":memory:"`` yields a private in-memory store."""

    if path is not None and str(path) == ":memory:":
        return create_engine(
            MEMORY_URL,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    db_path = Path(path or STORE_DB_PATH)
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageUnavailable(f"Cannot create storage directory {db_path.parent}: {exc}") from exc
    return create_engine(f"sqlite:///{db_path.as_posix()}", echo=False)


def init_db(engine: Engine) -> None:
    try:
        SQLModel.metadata.create_all(engine)
    except SQLAlchemyError as exc:
        raise StorageUnavailable(f"Failed to open local store: {exc}") from exc


def session_factory(engine: Engine) -> SessionFactory:
    def factory() -> Session:
        return Session(engine)

    return factory


def database_file(engine: Engine) -> Optional[Path]:
    database = engine.url.database
    if not database or database == ":memory:":
        return None
    return Path(database)


__all__ = [
    "SessionFactory",
    "create_store_engine",
    "database_file",
    "init_db",
    "session_factory",
]
