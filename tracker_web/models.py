"""Database models for the web API."""

import datetime as dt
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class User(SQLModel, table=True):
    """Registered API user. Emails are stored lower-cased."""

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    hashed_password: str
    created_at: dt.datetime = Field(default_factory=_utcnow)


class Collection(SQLModel, table=True):
    """Card collection owned by a single user.

    ``cards`` maps a card identifier to ``{variant name: owned count}``.
    Keys starting with ``_`` inside a card entry hold client metadata.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, unique=True)
    cards: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: dt.datetime = Field(default_factory=_utcnow)
    updated_at: dt.datetime = Field(default_factory=_utcnow)


class PriceHistoryEntry(SQLModel, table=True):
    """Aggregate collection value recorded on every save."""

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    date: dt.datetime = Field(default_factory=_utcnow, index=True)
    total_value: int
    card_count: int
