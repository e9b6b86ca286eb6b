"""Persistence for user card collections and their price history."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, NamedTuple, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .. import database, models
from ..config import get_settings
from ..valuation import MAX_TOTAL, compute_value, count_cards

logger = logging.getLogger(__name__)


class SaveResult(NamedTuple):
    total_value: int
    card_count: int


def get_cards(user_id: str) -> dict[str, Any]:
    """Return the stored cards for ``user_id`` or an empty mapping."""
    with database.session_scope() as session:
        collection = session.exec(
            select(models.Collection).where(models.Collection.user_id == user_id)
        ).first()
        return dict(collection.cards) if collection else {}


def get_price_history(user_id: str) -> list[models.PriceHistoryEntry]:
    """Return the price history for ``user_id``, oldest entry first."""
    with database.session_scope() as session:
        entries = session.exec(
            select(models.PriceHistoryEntry)
            .where(models.PriceHistoryEntry.user_id == user_id)
            .order_by(models.PriceHistoryEntry.id)
        ).all()
        for entry in entries:
            session.expunge(entry)
        return list(entries)


def _get_or_create_collection(session: Session, user_id: str) -> models.Collection:
    collection = session.exec(
        select(models.Collection)
        .where(models.Collection.user_id == user_id)
        .with_for_update()
    ).first()
    if collection is None:
        collection = models.Collection(user_id=user_id, cards={})
        session.add(collection)
        session.flush()
    return collection


def append_price_history(
    session: Session,
    user_id: str,
    total_value: int,
    card_count: int,
    limit: int,
) -> models.PriceHistoryEntry:
    """Append an entry and evict everything older than the newest ``limit``.

    Must run inside the transaction that holds the collection row lock.
    """
    entry = models.PriceHistoryEntry(
        user_id=user_id,
        total_value=total_value,
        card_count=card_count,
    )
    session.add(entry)
    session.flush()

    # Oldest id that still fits inside the cap.
    cutoff_id = session.exec(
        select(models.PriceHistoryEntry.id)
        .where(models.PriceHistoryEntry.user_id == user_id)
        .order_by(models.PriceHistoryEntry.id.desc())
        .offset(limit - 1)
        .limit(1)
    ).first()
    if cutoff_id is not None:
        evicted = session.connection().execute(
            delete(models.PriceHistoryEntry)
            .where(models.PriceHistoryEntry.user_id == user_id)
            .where(models.PriceHistoryEntry.id < cutoff_id)
        )
        if evicted.rowcount:
            logger.debug("Evicted %s price history entries for %s", evicted.rowcount, user_id)
    return entry


def _save(user_id: str, cards: dict[str, Any], limit: int) -> SaveResult:
    total_value = compute_value(cards)
    card_count = count_cards(cards)
    if abs(total_value) > MAX_TOTAL or abs(card_count) > MAX_TOTAL:
        raise ValueError("Collection value is out of range")

    with database.session_scope() as session:
        collection = _get_or_create_collection(session, user_id)
        collection.cards = dict(cards)
        collection.updated_at = dt.datetime.now(dt.timezone.utc)
        session.add(collection)
        append_price_history(session, user_id, total_value, card_count, limit=limit)

    return SaveResult(total_value=total_value, card_count=card_count)


def save_cards(
    user_id: str,
    cards: dict[str, Any],
    limit: Optional[int] = None,
) -> SaveResult:
    """Upsert the collection for ``user_id`` and record its value.

    A concurrent first save for the same user can lose the unique insert
    race; the save is retried once against the row the other writer created.
    """
    if limit is None:
        limit = get_settings().price_history_limit
    try:
        result = _save(user_id, cards, limit)
    except IntegrityError:
        logger.info("Collection for %s created concurrently, retrying save", user_id)
        result = _save(user_id, cards, limit)

    logger.info(
        "Saved collection for %s: %s cards valued at %s",
        user_id,
        result.card_count,
        result.total_value,
    )
    return result
