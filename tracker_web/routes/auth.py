"""Signup, login and token verification routes."""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from .. import models, schemas
from ..auth import (
    authenticate_user,
    create_access_token,
    get_current_identity,
    get_password_hash,
    get_user_by_email,
    normalize_email,
)
from ..database import get_session

router = APIRouter(prefix="/api/auth", tags=["auth"])

logger = logging.getLogger(__name__)

# Email validation regex (RFC 5322 simplified)
EMAIL_REGEX = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
)

MIN_PASSWORD_LENGTH = 6

INVALID_CREDENTIALS = "Invalid credentials"


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.post("/signup", response_model=schemas.AuthResponse)
def signup(
    payload: schemas.SignupRequest,
    session: Session = Depends(get_session),
):
    if not payload.email or not payload.password or not payload.confirm_password:
        raise _bad_request("Email, password and password confirmation are required")

    clean_email = normalize_email(payload.email)
    if not EMAIL_REGEX.match(clean_email):
        raise _bad_request("Invalid email address")

    if payload.password != payload.confirm_password:
        raise _bad_request("Passwords do not match")

    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise _bad_request(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    try:
        if get_user_by_email(session, clean_email):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

        user = models.User(
            email=clean_email,
            hashed_password=get_password_hash(payload.password),
        )
        session.add(user)
        session.commit()
        session.refresh(user)
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Signup failed for %s", clean_email)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))

    logger.info("Registered user %s", user.id)
    return schemas.AuthResponse(token=create_access_token(user), user_id=str(user.id))


@router.post("/login", response_model=schemas.AuthResponse)
def login(
    payload: schemas.LoginRequest,
    session: Session = Depends(get_session),
):
    if not payload.email or not payload.password:
        raise _bad_request("Email and password are required")

    try:
        user = authenticate_user(session, payload.email, payload.password)
    except SQLAlchemyError as exc:
        logger.exception("Login lookup failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))

    # Unknown email and wrong password must look the same to the caller.
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    return schemas.AuthResponse(token=create_access_token(user), user_id=str(user.id))


@router.post("/verify", response_model=schemas.VerifyResponse)
async def verify(identity: schemas.TokenIdentity = Depends(get_current_identity)):
    return schemas.VerifyResponse(email=identity.email)
