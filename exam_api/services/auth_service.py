"""Bearer token verification and user lookup.

Tokens are issued by the platform's auth service; this engine only verifies
them. ``create_access_token`` mirrors the issuer's claims so local tooling
and tests can mint tokens against the same secret.
"""
import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.orm import Session as DbSession

from exam_api.config import ALGORITHM, SECRET_KEY
from exam_api.models.db.user import User


def create_access_token(
    user_id: int, expires_minutes: int = 60, jti: str | None = None
) -> tuple[str, str]:
    """Create a JWT access token.

    Returns:
        Tuple of (token, jti)
    """
    if jti is None:
        jti = str(uuid.uuid4())

    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode = {
        "sub": str(user_id),
        "exp": expire,
        "jti": jti,
    }
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt, jti


def verify_token(token: str) -> dict | None:
    """Verify and decode a JWT token.

    Returns:
        Decoded token payload or None if invalid.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload
    except JWTError:
        return None


def get_user_by_username(db: DbSession, username: str) -> User | None:
    """Get user by username."""
    return db.execute(select(User).where(User.username == username)).scalar_one_or_none()


def get_user_by_id(db: DbSession, user_id: int) -> User | None:
    """Get user by ID."""
    return db.get(User, user_id)


def create_user(db: DbSession, username: str, display_name: str | None = None) -> User:
    """Create a new user."""
    user = User(username=username, display_name=display_name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
