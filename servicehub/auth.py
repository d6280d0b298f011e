import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, SECRET_KEY
from .database import get_db
from .models import ADMIN_ROLES, STAFF_ROLES, User
from .shared.errors import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def create_access_token(user_id: int, role: str, expires_minutes: Optional[int] = None) -> str:
    """Issue a signed access token (sub = user id)"""
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes if expires_minutes is not None else ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload = {"sub": str(user_id), "role": role, "exp": expire}
    return jwt.encode(payload, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and expiry of an access token"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError as e:
        logger.info("ℹ️ Expired access token rejected")
        raise AuthenticationError("Authentication token has expired", code="TOKEN_EXPIRED") from e
    except JWTError as e:
        logger.warning(f"⚠️ Invalid access token: {e}")
        raise AuthenticationError("Invalid authentication token", code="INVALID_TOKEN") from e


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the acting user from the Bearer token"""
    if not credentials:
        raise AuthenticationError(
            "Not authenticated. Please provide a valid Bearer token in the Authorization header."
        )

    payload = decode_access_token(credentials.credentials)

    user_id = payload.get("sub")
    if not user_id or not str(user_id).isdigit():
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(payload.keys())}")
        raise AuthenticationError("Invalid token claims", code="INVALID_TOKEN")

    user = db.query(User).filter(User.id == int(user_id)).first()
    if not user or not user.is_active:
        logger.warning(f"⚠️ Token for unknown or inactive user {user_id}")
        raise AuthenticationError("User not found or inactive", code="INVALID_TOKEN")

    return user


async def get_current_staff(user: User = Depends(get_current_user)) -> User:
    """Require one of the staff roles"""
    if user.role not in STAFF_ROLES:
        logger.warning(f"⚠️ User {user.id} ({user.role}) attempted a staff-only action")
        raise AuthorizationError("Insufficient role for this action")
    return user


async def get_current_admin(user: User = Depends(get_current_user)) -> User:
    """Require admin or super_admin"""
    if user.role not in ADMIN_ROLES:
        logger.warning(f"⚠️ User {user.id} ({user.role}) attempted an admin-only action")
        raise AuthorizationError("Admin access required")
    return user
