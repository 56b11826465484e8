from __future__ import annotations
from typing import Callable
import logging

from fastapi import Depends, Request, Response

from portal_auth.api.flow_registry import FlowRegistry
from portal_auth.config import settings
from portal_auth.domain.entities.principal import Principal
from portal_auth.domain.entities.role import Role
from portal_auth.domain.services.authorization_gate import authorize, authorize_path
from portal_auth.domain.services.session_machine import SessionStateMachine

logger = logging.getLogger(__name__)


class LoginRedirect(Exception):
    """Raised by view guards; rendered as a 303 to the login route."""

    def __init__(self, location: str, reason: str = ""):
        super().__init__(reason or location)
        self.location = location
        self.reason = reason


def get_registry(request: Request) -> FlowRegistry:
    return request.app.state.flow_registry


def get_flow(
    request: Request,
    response: Response,
    registry: FlowRegistry = Depends(get_registry),
) -> SessionStateMachine:
    """
    Resolve the caller's auth flow from the flow cookie.

    A fresh flow (and cookie) is issued when the cookie is missing or no
    longer known to this process. Only routes that begin a flow use this.
    """
    flow_id, machine, created = registry.get_or_create(request.cookies.get(settings.FLOW_COOKIE_NAME))
    if created:
        response.set_cookie(
            settings.FLOW_COOKIE_NAME,
            flow_id,
            httponly=True,
            samesite="lax",
        )
    request.state.flow_id = flow_id
    return machine


def peek_flow(request: Request, registry: FlowRegistry = Depends(get_registry)) -> SessionStateMachine:
    """Resolve the caller's flow for routes that must not start one."""
    return registry.peek(request.cookies.get(settings.FLOW_COOKIE_NAME))


def require_roles(*required_roles: Role) -> Callable[..., Principal]:
    """
    Dependency factory for role-gated views.

    Args:
        required_roles: Roles admitted to the view (membership only, no hierarchy)

    Returns:
        Dependency function that yields the admitted principal or redirects to login
    """
    def role_dependency(flow: SessionStateMachine = Depends(peek_flow)) -> Principal:
        decision = authorize(flow.session, required_roles)
        if not decision.admitted:
            raise LoginRedirect(decision.redirect_to, decision.reason)
        return flow.session.principal

    return role_dependency


def require_path_access(request: Request, flow: SessionStateMachine = Depends(peek_flow)) -> None:
    """Router-level guard: the requested path must fall under the role's route prefixes."""
    decision = authorize_path(flow.session, request.url.path)
    if not decision.admitted:
        raise LoginRedirect(decision.redirect_to, decision.reason)
