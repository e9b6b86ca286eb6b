"""Card recognition proxy route."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from .. import schemas
from ..auth import get_current_identity
from ..services.recognition import (
    InvalidRecognitionRequest,
    RecognitionClient,
    RecognitionPayloadTooLarge,
)

router = APIRouter(prefix="/api", tags=["recognition"])

logger = logging.getLogger(__name__)


def get_recognition_client(request: Request) -> RecognitionClient:
    return request.app.state.recognition_client


@router.post("/recognize")
async def recognize(
    payload: schemas.RecognizeRequest,
    identity: schemas.TokenIdentity = Depends(get_current_identity),
    client: RecognitionClient = Depends(get_recognition_client),
):
    try:
        return await client.recognize(
            payload.messages,
            model=payload.model,
            max_tokens=payload.max_tokens,
            tools=payload.tools,
        )
    except InvalidRecognitionRequest as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except RecognitionPayloadTooLarge as exc:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc))
    except Exception as exc:
        logger.exception("Recognition request for user %s failed", identity.user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc) or "Failed to process request",
        )
