"""
JWT authentication for API endpoints.

Tokens are issued elsewhere (the sign-in provider); this module verifies
them, resolves the caller and enforces the account type.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
security = HTTPBearer(auto_error=False)


class TokenData(BaseModel):
    """Token payload data."""

    user_id: Optional[int] = None
    email: Optional[str] = None
    user_type: Optional[str] = None


class AuthUser(BaseModel):
    """Authenticated caller resolved from a bearer token."""

    id: int
    email: str
    user_type: str

    @property
    def is_diner(self) -> bool:
        return self.user_type == "diner"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )
    if "sub" in to_encode:
        to_encode["sub"] = str(to_encode["sub"])
    to_encode.update({"exp": expire, "iat": now, "type": "access"})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_user_token(user) -> str:
    return create_access_token(
        {"sub": user.id, "email": user.email, "user_type": user.user_type}
    )


def verify_token(token: str) -> Optional[TokenData]:
    """
    Verify and decode a JWT token.

    Returns:
        TokenData if valid, None otherwise
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except JWTError as e:
        logger.warning(f"Rejected token: {e}")
        return None

    if payload.get("type") != "access":
        logger.warning(f"Token type mismatch: got {payload.get('type')}")
        return None

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None

    return TokenData(
        user_id=user_id, email=payload.get("email"), user_type=payload.get("user_type")
    )


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> AuthUser:
    """Resolve the authenticated caller and confirm the account still exists."""
    from modules.auth.models import User

    if not credentials:
        raise _credentials_exception()

    token_data = verify_token(credentials.credentials)
    if token_data is None:
        raise _credentials_exception()

    user = db.query(User).filter(User.id == token_data.user_id).first()
    if user is None:
        raise _credentials_exception()

    return AuthUser(id=user.id, email=user.email, user_type=user.user_type)


def require_diner(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if user.user_type != "diner":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This endpoint is only available to diners",
        )
    return user


def require_restaurant_admin(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if user.user_type != "restaurant_admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This endpoint is only available to restaurant staff",
        )
    return user
