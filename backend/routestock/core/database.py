from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from routestock.core.config import DEFAULT_DATABASE_URL

DATABASE_URL = os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        opts: dict = {"connect_args": {"check_same_thread": False}}
        # in-memory databases only live as long as their single connection
        if url in ("sqlite://", "sqlite:///:memory:"):
            opts["poolclass"] = StaticPool
        return opts
    return {"pool_pre_ping": True}


engine = create_engine(
    DATABASE_URL.replace("+asyncpg", ""),  # Alembic / services use the sync engine
    echo=False,
    **_engine_options(DATABASE_URL),
)


def get_session() -> Generator[Session, None, None]:  # dependency
    with Session(engine) as ses:
        yield ses


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """Commit everything written inside the block, or roll all of it back."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


__all__ = ["engine", "get_session", "unit_of_work", "SQLModel", "DATABASE_URL"]
