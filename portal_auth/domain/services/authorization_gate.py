from __future__ import annotations
import logging
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from portal_auth.config import settings
from portal_auth.domain.entities.role import Role
from portal_auth.domain.entities.session import Session, SessionStatus

logger = logging.getLogger(__name__)


class Verdict(str, Enum):
    ADMIT = "admit"
    DENY = "deny"


class GateDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    redirect_to: Optional[str] = None
    reason: Optional[str] = None

    @property
    def admitted(self) -> bool:
        return self.verdict == Verdict.ADMIT


class RoleRoutes(BaseModel):
    model_config = ConfigDict(frozen=True)

    home: str
    prefixes: Tuple[str, ...] = ()


# Static role -> views policy. Roles without portal views fall back to the login route.
ROUTE_TABLE: Dict[Role, RoleRoutes] = {
    Role.SUPER_ADMIN: RoleRoutes(home="/super-admin", prefixes=("/super-admin",)),
    Role.BRAND_ADMIN: RoleRoutes(home="/brand-admin", prefixes=("/brand-admin",)),
    Role.DISTRICT_MANAGER: RoleRoutes(home="/district-manager/dashboard", prefixes=("/district-manager",)),
    Role.SHOP_MANAGER: RoleRoutes(home="/shop-manager/dashboard", prefixes=("/shop-manager",)),
}

RequiredRoles = Union[Role, Iterable[Role]]


def resolve_home(role: Optional[Role]) -> str:
    """Landing route for a role. Total: anything unmapped goes to the login route."""
    routes = ROUTE_TABLE.get(role) if isinstance(role, Role) else None
    return routes.home if routes else settings.LOGIN_ROUTE


def _deny(reason: str, redirect_to: Optional[str] = None) -> GateDecision:
    return GateDecision(verdict=Verdict.DENY, redirect_to=redirect_to or settings.LOGIN_ROUTE, reason=reason)


def _required_set(required_roles: RequiredRoles) -> frozenset:
    if isinstance(required_roles, Role):
        return frozenset({required_roles})
    return frozenset(required_roles)


def authorize(session: Session, required_roles: RequiredRoles) -> GateDecision:
    """
    Admit a session to a view guarded by a set of roles.

    Args:
        session: Current session value
        required_roles: A single Role or any iterable of Roles

    Returns:
        GateDecision; DENY decisions always carry the login route as redirect
    """
    if session.status != SessionStatus.AUTHENTICATED or session.principal is None:
        return _deny("not_authenticated")

    required = _required_set(required_roles)
    role = session.principal.role
    # Set membership only, no role implies another
    if role not in required:
        logger.info(f"🚫 {role.value} denied; requires one of {sorted(r.value for r in required)}")
        return _deny("role_not_permitted")

    return GateDecision(verdict=Verdict.ADMIT)


def _matches_prefix(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def authorize_path(session: Session, path: str) -> GateDecision:
    """Check a concrete path against the route table for the session's role."""
    if session.status != SessionStatus.AUTHENTICATED or session.principal is None:
        return _deny("not_authenticated")

    role = session.principal.role
    routes = ROUTE_TABLE.get(role)
    if routes is None:
        return _deny("no_portal_views")

    if any(_matches_prefix(path, prefix) for prefix in routes.prefixes):
        return GateDecision(verdict=Verdict.ADMIT)

    logger.info(f"🚫 {role.value} denied access to {path}")
    return _deny("path_not_permitted")
