"""Forgot-password endpoints, one OTP challenge per browser flow."""
from fastapi import APIRouter, Depends

from portal_auth.api.v1.presenters import reset_status_view
from portal_auth.dependencies import get_flow, peek_flow
from portal_auth.domain.errors import InvalidStateError
from portal_auth.domain.services.otp_challenge import OTPChallenge
from portal_auth.domain.services.session_machine import SessionStateMachine
from portal_auth.schemas.auth import ResetCodeRequest, ResetCommitRequest, ResetStatusView, ResetVerifyRequest

router = APIRouter(prefix="/auth/password-reset", tags=["password-reset"])


def _live_challenge(flow: SessionStateMachine) -> OTPChallenge:
    if flow.challenge is None:
        raise InvalidStateError("Start a password reset first")
    return flow.challenge


@router.post("/request", response_model=ResetStatusView)
async def request_code(body: ResetCodeRequest, flow: SessionStateMachine = Depends(get_flow)):
    challenge = flow.reset_via_otp()
    await challenge.request_code(body.email)
    return reset_status_view(flow, challenge)


@router.post("/resend", response_model=ResetStatusView)
async def resend_code(flow: SessionStateMachine = Depends(peek_flow)):
    challenge = _live_challenge(flow)
    await challenge.resend()
    return reset_status_view(flow, challenge)


@router.post("/verify", response_model=ResetStatusView)
async def verify_code(body: ResetVerifyRequest, flow: SessionStateMachine = Depends(peek_flow)):
    challenge = _live_challenge(flow)
    await challenge.verify(body.code)
    return reset_status_view(flow, challenge)


@router.post("/commit", response_model=ResetStatusView)
async def commit_new_password(body: ResetCommitRequest, flow: SessionStateMachine = Depends(peek_flow)):
    """
    Set the new password. On success the login form gets `prefill_email`.
    """
    challenge = _live_challenge(flow)
    await challenge.commit_new_password(body.new_password, body.confirm_password)
    return reset_status_view(flow, challenge)


@router.post("/cancel", response_model=ResetStatusView)
async def cancel_reset(flow: SessionStateMachine = Depends(peek_flow)):
    flow.abandon_password_reset()
    return reset_status_view(flow)


@router.get("/status", response_model=ResetStatusView)
async def reset_status(flow: SessionStateMachine = Depends(peek_flow)):
    return reset_status_view(flow)
