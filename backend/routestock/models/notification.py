from __future__ import annotations

import datetime as dt
from typing import Optional

from sqlmodel import Field, SQLModel

from routestock.models._time import timestamp_field


class Notification(SQLModel, table=True):
    __tablename__ = "notification"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    message: str
    type: str = Field(default="info", description="info / warning / success / error")
    category: str = Field(default="system", index=True)
    is_read: bool = Field(default=False, index=True)
    created_at: dt.datetime = timestamp_field(index=True)
