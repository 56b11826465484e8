from fastapi import APIRouter, Depends, Request, Response

from portal_auth.api.flow_registry import FlowRegistry
from portal_auth.config import settings
from portal_auth.dependencies import get_flow, get_registry, peek_flow
from portal_auth.domain.entities.credential import Credential
from portal_auth.domain.services.session_machine import SessionStateMachine
from portal_auth.api.v1.presenters import session_view
from portal_auth.schemas.auth import (
    ContactNumberRequest,
    FirstLoginRotationRequest,
    LoginRequest,
    SessionView,
)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=SessionView)
async def login(body: LoginRequest, flow: SessionStateMachine = Depends(get_flow)):
    """
    Check credentials against the backend.

    A first-time account comes back as `first_login_pending` and must call
    `/auth/first-login` before any portal view is reachable.
    """
    await flow.login(Credential(email=body.email, secret=body.password))
    return session_view(flow)


@router.post("/first-login", response_model=SessionView)
async def complete_first_login(body: FirstLoginRotationRequest, flow: SessionStateMachine = Depends(peek_flow)):
    """Store the contact number, replace the temporary password and sign in again."""
    await flow.rotate_first_login_credentials(
        body.contact_number,
        body.new_password,
        body.confirm_password,
        current_secret=body.current_password,
    )
    return session_view(flow)


@router.post("/logout", response_model=SessionView)
async def logout(
    request: Request,
    response: Response,
    registry: FlowRegistry = Depends(get_registry),
):
    """
    Drop the caller's flow. Always succeeds, even without a session.
    """
    flow_id = request.cookies.get(settings.FLOW_COOKIE_NAME)
    if flow_id:
        registry.discard(flow_id)
    response.delete_cookie(settings.FLOW_COOKIE_NAME)
    return SessionView(status="unauthenticated", home=settings.LOGIN_ROUTE)


@router.get("/me", response_model=SessionView)
async def get_current_session(flow: SessionStateMachine = Depends(peek_flow)):
    return session_view(flow)


@router.patch("/contact-number", response_model=SessionView)
async def update_contact_number(body: ContactNumberRequest, flow: SessionStateMachine = Depends(peek_flow)):
    await flow.update_contact_number(body.contact_number)
    return session_view(flow)
