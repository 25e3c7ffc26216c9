"""
Resource visibility scoping.

Route-level role gating decides whether a screen can be reached at all;
this module answers the finer question of whether one particular record
(a geofence, a piece of equipment, ...) is visible to or editable by the
current actor within the record's client organisation.
"""
import logging
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Protocol, Sequence

from fleetwatch.core.exceptions import DirectoryFetchError, ValidationError
from fleetwatch.models.geofence import Visibility
from fleetwatch.models.user import UserRole
from fleetwatch.schemas.user import Actor, UserSummary
from fleetwatch.schemas.visibility import VisibilityScope
from fleetwatch.services.user_directory import UserDirectory, resolve_eligible_users

logger = logging.getLogger(__name__)


class ScopedResource(Protocol):
    created_by: Optional[str]
    client_id: Optional[str]
    is_global: bool
    visibility: Visibility
    assigned_user_ids: Sequence[str]


class ListingFilter(str, Enum):
    OWN = "own"
    ASSIGNED = "assigned"
    ALL = "all"


def is_visible(actor: Actor, record: ScopedResource) -> bool:
    if actor.is_superuser or record.is_global:
        return True
    if actor.client_id is None or record.client_id != actor.client_id:
        return False
    if actor.role == UserRole.ADMIN or record.created_by == actor.id:
        return True
    if record.visibility == Visibility.ALL:
        return True
    if record.visibility == Visibility.ASSIGNED:
        return actor.id in (record.assigned_user_ids or [])
    return False


def can_edit(actor: Actor, record: ScopedResource) -> bool:
    """Editing requires visibility first; operator admins only edit what they can see"""
    if not is_visible(actor, record):
        return False
    if actor.is_superuser:
        return True
    if record.is_global:
        return False
    if actor.role in (UserRole.ADMIN, UserRole.OPERATOR_ADMIN):
        return True
    if actor.role == UserRole.CLIENT_USER:
        return record.created_by == actor.id
    return False


def matches_filter(actor: Actor, record: ScopedResource, listing: ListingFilter) -> bool:
    """own: created by the actor; assigned: shared with the actor; all: both"""
    if not is_visible(actor, record):
        return False
    if listing == ListingFilter.OWN:
        return record.created_by == actor.id
    if listing == ListingFilter.ASSIGNED:
        return record.created_by != actor.id
    return True


def ensure_assignable(assigned_user_ids: Iterable[str], eligible_users: Iterable[UserSummary]) -> None:
    """Assigned users must belong to the resource's organisation"""
    eligible_ids = {user.id for user in eligible_users}
    outsiders = sorted(set(assigned_user_ids) - eligible_ids)
    if outsiders:
        raise ValidationError(
            "assigned_user_ids",
            f"Users outside the organisation cannot be assigned: {', '.join(outsiders)}",
        )


class VisibilityScopeModel:
    """
    Selection state for a resource's visibility plus the users eligible
    for explicit assignment.

    Leaving ASSIGNED clears the selection, and coming back starts from an
    empty selection; a previous choice is never restored.
    """

    def __init__(
        self,
        actor: Actor,
        directory: Optional[UserDirectory] = None,
        client_id: Optional[str] = None,
        visibility: Visibility = Visibility.ALL,
        assigned_user_ids: Iterable[str] = (),
    ):
        self.actor = actor
        self.client_id = client_id or actor.client_id
        self._directory = directory
        self._visibility = visibility
        self._assigned: List[str] = (
            list(dict.fromkeys(assigned_user_ids)) if visibility == Visibility.ASSIGNED else []
        )
        self.eligible_users: List[UserSummary] = []
        self.directory_error: Optional[str] = None

    @property
    def visibility(self) -> Visibility:
        return self._visibility

    @property
    def assigned_user_ids(self) -> FrozenSet[str]:
        return frozenset(self._assigned)

    def set_visibility(self, visibility: Visibility) -> None:
        if visibility != self._visibility:
            self._assigned = []
        self._visibility = visibility

    def toggle_user(self, user_id: str) -> None:
        if self._visibility != Visibility.ASSIGNED:
            return
        if user_id in self._assigned:
            self._assigned.remove(user_id)
            return
        ensure_assignable([user_id], self.eligible_users)
        self._assigned.append(user_id)

    def select_all(self) -> None:
        if self._visibility != Visibility.ASSIGNED:
            return
        self._assigned = [user.id for user in self.eligible_users]

    def deselect_all(self) -> None:
        if self._visibility != Visibility.ASSIGNED:
            return
        self._assigned = []

    async def load_eligible_users(self) -> List[UserSummary]:
        """Fetch the organisation's users; a failing directory leaves the list empty"""
        if self._directory is None:
            self.eligible_users = []
            return self.eligible_users
        try:
            self.eligible_users = await resolve_eligible_users(
                self.actor, self.client_id, self._directory
            )
            self.directory_error = None
        except DirectoryFetchError as e:
            logger.warning(f"Could not load users for client {self.client_id}: {e}")
            self.eligible_users = []
            self.directory_error = "Users could not be loaded"
        return self.eligible_users

    def validate(self) -> VisibilityScope:
        if self._visibility == Visibility.ASSIGNED:
            ensure_assignable(self._assigned, self.eligible_users)
        return self.scope()

    def scope(self) -> VisibilityScope:
        return VisibilityScope(
            visibility=self._visibility,
            assigned_user_ids=list(self._assigned),
        )
