"""Card collection API routes: sync, save and price history."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError

from .. import schemas
from ..auth import get_current_identity
from ..services import collections as collection_store
from ..valuation import count_in_range, is_count_value, is_metadata_key

router = APIRouter(prefix="/api/collection", tags=["collection"])

logger = logging.getLogger(__name__)


def _require_owner(user_id: str, identity: schemas.TokenIdentity) -> None:
    if user_id != identity.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


def _validate_cards(cards: dict[str, Any]) -> None:
    """Reject card entries that are not ``{variant: count}`` objects."""
    for card_id, variants in cards.items():
        if not isinstance(variants, dict):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Card entry {card_id!r} must be an object",
            )
        for variant, value in variants.items():
            if is_metadata_key(variant):
                continue
            if not is_count_value(value):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Count for {card_id!r} / {variant!r} must be a number",
                )
            if value is not None and not count_in_range(variant, value):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Count for {card_id!r} / {variant!r} is out of range",
                )


@router.get("/{user_id}", response_model=schemas.CollectionRead)
def read_collection(
    user_id: str,
    identity: schemas.TokenIdentity = Depends(get_current_identity),
):
    _require_owner(user_id, identity)
    try:
        cards = collection_store.get_cards(user_id)
    except SQLAlchemyError:
        logger.exception("Error fetching collection for %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch collection",
        )
    return schemas.CollectionRead(cards=cards)


@router.post("/{user_id}", response_model=schemas.CollectionSaved)
def save_collection(
    user_id: str,
    payload: schemas.CollectionSave,
    request: Request,
    identity: schemas.TokenIdentity = Depends(get_current_identity),
):
    _require_owner(user_id, identity)
    if payload.cards is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cards data required")
    _validate_cards(payload.cards)

    limit = request.app.state.settings.price_history_limit
    try:
        result = collection_store.save_cards(user_id, payload.cards, limit=limit)
    except (OverflowError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Collection value is out of range",
        )
    except SQLAlchemyError:
        logger.exception("Error saving collection for %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save collection",
        )
    return schemas.CollectionSaved(total_value=result.total_value)


@router.get("/{user_id}/history", response_model=schemas.PriceHistoryRead)
def read_price_history(
    user_id: str,
    identity: schemas.TokenIdentity = Depends(get_current_identity),
):
    _require_owner(user_id, identity)
    try:
        entries = collection_store.get_price_history(user_id)
    except SQLAlchemyError:
        logger.exception("Error fetching price history for %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch price history",
        )
    return schemas.PriceHistoryRead(
        price_history=[
            schemas.PriceHistoryPoint(
                date=entry.date,
                total_value=entry.total_value,
                card_count=entry.card_count,
            )
            for entry in entries
        ]
    )
