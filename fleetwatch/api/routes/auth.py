"""
Authentication routes
"""
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from fleetwatch.models import get_db, User
from fleetwatch.schemas import Actor, LoginRequest, TokenResponse
from fleetwatch.core.security import verify_password, create_access_token, require_authenticated
from fleetwatch.core.config import settings
from fleetwatch.services import audit_service

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
async def login(
    request: Request,
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Authenticate user and return a JWT access token.
    """
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        # Log failed attempt
        if user:
            await audit_service.log_login(db, user, request, success=False)
            await db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated"
        )

    user.last_login = datetime.utcnow()

    token_data = {"sub": str(user.id), "role": user.role.value, "client_id": user.client_id}
    access_token = create_access_token(token_data)

    await audit_service.log_login(db, user, request, success=True)
    await db.commit()

    return TokenResponse(
        access_token=access_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    )


@router.get("/me", response_model=Actor)
async def read_current_actor(actor: Actor = Depends(require_authenticated)):
    """
    The authenticated actor: id, role and client organisation.
    """
    return actor
