"""Pydantic/SQLModel schemas for the web API."""

from __future__ import annotations

import datetime as dt
from typing import Any, List, Optional

from pydantic import ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import Field, SQLModel


class CamelModel(SQLModel):
    """Schema serialised with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignupRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class AuthResponse(CamelModel):
    success: bool = True
    token: str
    user_id: str


class VerifyResponse(CamelModel):
    success: bool = True
    email: str


class TokenIdentity(SQLModel):
    """Claims extracted from a verified session token."""

    user_id: str
    email: str


class HealthStatus(CamelModel):
    status: str = "ok"
    api_key_set: bool
    db_connected: bool


class CollectionSave(CamelModel):
    cards: Optional[dict[str, Any]] = None


class CollectionRead(CamelModel):
    cards: dict[str, Any] = Field(default_factory=dict)
    synced: bool = True


class CollectionSaved(CamelModel):
    success: bool = True
    synced: bool = True
    total_value: int


class PriceHistoryPoint(CamelModel):
    date: dt.datetime
    total_value: int
    card_count: int


class PriceHistoryRead(CamelModel):
    price_history: List[PriceHistoryPoint] = Field(default_factory=list)
    success: bool = True


class RecognizeRequest(SQLModel):
    messages: Any = None
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    tools: Any = None
