"""
Route-level role gating.

Answers only "may this actor reach this screen". Whether a given record
on the screen is visible is decided separately by the visibility scope.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional

from fleetwatch.core.config import settings
from fleetwatch.core.exceptions import AuthorizationDenied
from fleetwatch.models.user import UserRole
from fleetwatch.schemas.user import Actor

logger = logging.getLogger(__name__)

# Screen allow-lists; None means any authenticated actor
SCREEN_ACCESS: Dict[str, Optional[FrozenSet[UserRole]]] = {
    "home": None,
    "vehicles": None,
    "reports": None,
    "notifications": None,
    "clients": frozenset({UserRole.SUPERUSER, UserRole.ADMIN}),
    "roles": frozenset({UserRole.SUPERUSER, UserRole.ADMIN}),
    "users": frozenset({UserRole.SUPERUSER, UserRole.ADMIN}),
    "geofences": None,
    "geofence_editor": frozenset({
        UserRole.SUPERUSER, UserRole.ADMIN, UserRole.OPERATOR_ADMIN, UserRole.CLIENT_USER,
    }),
}


class GuardState(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    AUTHORIZED = "authorized"


@dataclass(frozen=True)
class GuardDecision:
    state: GuardState
    redirect_to: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.state == GuardState.AUTHORIZED


class RouteAccessGuard:
    """Evaluates one screen's allow-list against the resolved actor"""

    def __init__(
        self,
        allowed_roles: Optional[Iterable[UserRole]] = None,
        login_route: Optional[str] = None,
        home_route: Optional[str] = None,
    ):
        self.allowed_roles = frozenset(allowed_roles) if allowed_roles is not None else None
        self.login_route = login_route or settings.LOGIN_ROUTE
        self.home_route = home_route or settings.HOME_ROUTE
        self._decision = GuardDecision(GuardState.LOADING)

    @classmethod
    def for_screen(cls, screen: str, **kwargs) -> "RouteAccessGuard":
        return cls(allowed_roles=SCREEN_ACCESS[screen], **kwargs)

    @property
    def state(self) -> GuardState:
        return self._decision.state

    @property
    def decision(self) -> GuardDecision:
        return self._decision

    def evaluate(self, actor: Optional[Actor]) -> GuardDecision:
        """Pure decision for an already resolved identity"""
        if actor is None:
            return GuardDecision(GuardState.UNAUTHENTICATED, redirect_to=self.login_route)
        if self.allowed_roles is not None and actor.role not in self.allowed_roles:
            return GuardDecision(GuardState.FORBIDDEN, redirect_to=self.home_route)
        return GuardDecision(GuardState.AUTHORIZED)

    def begin_loading(self) -> GuardDecision:
        self._decision = GuardDecision(GuardState.LOADING)
        return self._decision

    def resolve(self, actor: Optional[Actor]) -> GuardDecision:
        """Identity lookup finished: move out of LOADING"""
        self._decision = self.evaluate(actor)
        if self._decision.state == GuardState.FORBIDDEN:
            logger.info(f"Role {actor.role.value} denied; redirecting to {self.home_route}")
        return self._decision

    def enforce(self, actor: Optional[Actor]) -> Actor:
        """Resolve and raise AuthorizationDenied unless authorized"""
        decision = self.resolve(actor)
        if decision.state == GuardState.UNAUTHENTICATED:
            raise AuthorizationDenied(
                "Authentication required", redirect_to=decision.redirect_to, status_code=401
            )
        if decision.state == GuardState.FORBIDDEN:
            raise AuthorizationDenied(
                "Insufficient permissions", redirect_to=decision.redirect_to, status_code=403
            )
        return actor
