"""Authentication utilities for the web API."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session, select

from .config import get_settings
from .models import User
from .schemas import TokenIdentity

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_default_secret = "your-secret-key-change-this"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def warn_if_default_secret() -> None:
    if get_settings().jwt_secret == _default_secret:
        logger.warning(
            "⚠️  SECURITY WARNING: Using default JWT_SECRET! "
            "Set the JWT_SECRET environment variable to a secure random value."
        )


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(session: Session, email: str) -> Optional[User]:
    return session.exec(select(User).where(User.email == normalize_email(email))).first()


def authenticate_user(session: Session, email: str, password: str) -> Optional[User]:
    user = get_user_by_email(session, email)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def create_access_token(user: User, expires_delta: Optional[dt.timedelta] = None) -> str:
    settings = get_settings()
    expire = dt.datetime.now(dt.timezone.utc) + (
        expires_delta or dt.timedelta(days=settings.access_token_expire_days)
    )
    to_encode = {"sub": str(user.id), "email": user.email, "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[TokenIdentity]:
    """Return the token's identity, or None for any invalid or expired token."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    subject = payload.get("sub")
    email = payload.get("email")
    if not subject or not email:
        return None
    return TokenIdentity(user_id=str(subject), email=str(email))


async def get_current_identity(token: Optional[str] = Depends(oauth2_scheme)) -> TokenIdentity:
    """FastAPI dependency returning the identity bound to the Bearer token."""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    identity = decode_access_token(token)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity
