from __future__ import annotations

import datetime as dt
from typing import Any

from sqlalchemy import DateTime
from sqlmodel import Field


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def timestamp_field(**kwargs: Any) -> Any:
    """A timezone-aware column defaulting to the current UTC time."""
    return Field(default_factory=utcnow, sa_type=DateTime(timezone=True), **kwargs)
