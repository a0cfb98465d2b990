# PURPOSE: password hashing, JWT issuing/decoding, current-user dependency and OTP codes.
# The JWT subject is the user's phone number.

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
import bcrypt
from sqlalchemy.orm import Session

from .config import settings
from .db_models import UserDB
from .models import UserPublic
from .store_db import get_db

# OAuth2 password flow
# Point tokenUrl to versioned endpoint for accurate OpenAPI examples
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


# --- Password helpers (bcrypt, no passlib) ---

def hash_password(password: str) -> str:
    """Return a bcrypt hash for the given plain password."""
    if not isinstance(password, str):
        raise TypeError("password must be a string")
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    """Verify a plain password against its bcrypt hash; OTP-only users never match."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        return False


def generate_otp() -> str:
    """Six-digit numeric login code."""
    return str(100000 + secrets.randbelow(900000))


# --- JWT helpers ---

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(subject: str | Dict[str, Any]) -> str:
    """
    Create a signed JWT for a user.
    - `subject` is the phone number (str) or a payload dict; `sub` is always set.
    - Expiration controlled by settings.JWT_EXPIRE_MIN.
    """
    if isinstance(subject, str):
        payload: Dict[str, Any] = {"sub": subject}
    else:
        payload = {**subject}
        payload.setdefault("sub", subject.get("phone_number") or subject.get("sub"))

    expire = _now_utc() + timedelta(minutes=settings.JWT_EXPIRE_MIN)
    payload.update({"exp": expire})
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> UserPublic:
    """Decode JWT, load user by phone number (sub), return public user schema."""
    cred_error = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            raise cred_error
    except JWTError:
        raise cred_error

    row = db.query(UserDB).filter(UserDB.phone_number == subject).one_or_none()
    if row is None:
        raise cred_error

    return UserPublic.model_validate(row)
