"""
User directory collaborator and eligible-user resolution
"""
import logging
from typing import List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fleetwatch.core.exceptions import DirectoryFetchError
from fleetwatch.models import User, UserRole
from fleetwatch.schemas.user import Actor, UserSummary

logger = logging.getLogger(__name__)

# Roles that receive the unfiltered user collection from the directory
UNSCOPED_DIRECTORY_ROLES = (UserRole.SUPERUSER, UserRole.ADMIN)


class UserDirectory(Protocol):
    async def list_all(self) -> List[UserSummary]: ...

    async def list_by_client(self, client_id: str) -> List[UserSummary]: ...


class SqlUserDirectory:
    """Directory backed by the users table"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _summary(user: User) -> UserSummary:
        return UserSummary(
            id=user.id,
            name=user.full_name,
            email=user.email,
            role=user.role,
            client_id=user.client_id,
        )

    async def _fetch(self, query) -> List[UserSummary]:
        try:
            result = await self.db.execute(query.order_by(User.full_name))
        except SQLAlchemyError as e:
            logger.error(f"User directory query failed: {e}")
            raise DirectoryFetchError(str(e)) from e
        return [self._summary(user) for user in result.scalars().all()]

    async def list_all(self) -> List[UserSummary]:
        return await self._fetch(select(User).where(User.is_active == True))

    async def list_by_client(self, client_id: str) -> List[UserSummary]:
        return await self._fetch(
            select(User).where(User.is_active == True, User.client_id == client_id)
        )


async def resolve_eligible_users(
    actor: Actor,
    client_id: Optional[str],
    directory: UserDirectory,
) -> List[UserSummary]:
    """
    Users sharing the resource's organisation, the actor included.

    Superusers and admins read the whole directory and filter by client
    here; every other role asks the directory for the client's users.
    Both paths must yield the same set for the same client.
    """
    if not client_id:
        return []
    if actor.role in UNSCOPED_DIRECTORY_ROLES:
        users = await directory.list_all()
        return [user for user in users if user.client_id == client_id]
    return await directory.list_by_client(client_id)
