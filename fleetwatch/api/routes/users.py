"""
User directory routes
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from fleetwatch.models import get_db
from fleetwatch.schemas import Actor, UserListResponse
from fleetwatch.core.security import require_admin, require_authenticated
from fleetwatch.services.user_directory import SqlUserDirectory

router = APIRouter(prefix="/users", tags=["User Directory"])


@router.get("", response_model=UserListResponse)
async def list_users(
    client_id: Optional[str] = None,
    current_actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    List active users, optionally restricted to one client.
    Requires Admin or Superuser role.
    """
    directory = SqlUserDirectory(db)
    if client_id:
        users = await directory.list_by_client(client_id)
    else:
        users = await directory.list_all()

    return UserListResponse(users=users, total=len(users))


@router.get("/eligible", response_model=UserListResponse)
async def list_eligible_users(
    client_id: Optional[str] = None,
    current_actor: Actor = Depends(require_authenticated),
    db: AsyncSession = Depends(get_db)
):
    """
    Users that may be assigned to a resource of the given client.
    Filtering always happens here, whatever the caller's role.
    """
    effective_client_id = client_id or current_actor.client_id
    if not current_actor.is_superuser and effective_client_id != current_actor.client_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Users of other clients are not accessible"
        )
    if not effective_client_id:
        return UserListResponse(users=[], total=0)

    users = await SqlUserDirectory(db).list_by_client(effective_client_id)
    return UserListResponse(users=users, total=len(users))
