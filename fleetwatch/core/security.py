"""
Security utilities for authentication and route-level authorization
"""
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
import bcrypt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from fleetwatch.core.config import settings
from fleetwatch.models.database import get_db
from fleetwatch.models.user import User
from fleetwatch.schemas.user import Actor
from fleetwatch.services.route_guard import RouteAccessGuard


# Bearer token security; a missing token is turned into a login redirect by the guard
security = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def get_password_hash(password: str) -> str:
    """Generate password hash"""
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt()
    ).decode('utf-8')


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str, token_type: str = "access") -> Optional[dict]:
    """Verify and decode JWT token"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        if payload.get("type") != token_type:
            return None
        return payload
    except JWTError:
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """Resolve the authenticated user from the bearer token, or None"""
    if credentials is None:
        return None

    payload = verify_token(credentials.credentials, "access")
    if payload is None:
        return None

    user_id: str = payload.get("sub")
    if user_id is None:
        return None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        return None

    return user


async def get_current_actor(user: Optional[User] = Depends(get_current_user)) -> Optional[Actor]:
    return Actor.from_user(user) if user is not None else None


def require_screen(screen: str):
    """Dependency gating an endpoint with the screen's role allow-list"""
    async def screen_guard(actor: Optional[Actor] = Depends(get_current_actor)) -> Actor:
        return RouteAccessGuard.for_screen(screen).enforce(actor)
    return screen_guard


# Role-based access shortcuts
require_authenticated = require_screen("home")
require_admin = require_screen("users")
require_geofence_editor = require_screen("geofence_editor")
