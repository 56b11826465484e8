from typing import Optional

from portal_auth.domain.entities.principal import Principal
from portal_auth.domain.services.authorization_gate import resolve_home
from portal_auth.domain.services.otp_challenge import ChallengeState, OTPChallenge
from portal_auth.domain.services.session_machine import SessionStateMachine
from portal_auth.schemas.auth import PrincipalView, ResetStatusView, SessionView


def principal_view(principal: Principal) -> PrincipalView:
    return PrincipalView(
        id=principal.id,
        email=principal.email,
        role=principal.role.value,
        name=principal.display_name,
        contact_number=principal.contact_number,
        scope_ids=principal.scope_ids.model_dump(),
    )


def session_view(flow: SessionStateMachine) -> SessionView:
    session = flow.session
    principal = session.principal
    return SessionView(
        status=session.status.value,
        principal=principal_view(principal) if principal else None,
        # Only a finalized session has somewhere to go besides login
        home=resolve_home(principal.role if session.is_authenticated else None),
        message=session.message,
        prefill_email=flow.prefill_email,
    )


def reset_status_view(flow: SessionStateMachine, challenge: Optional[OTPChallenge] = None) -> ResetStatusView:
    challenge = challenge or flow.challenge
    if challenge is None:
        return ResetStatusView(state=ChallengeState.EMAIL_ENTRY.value, prefill_email=flow.prefill_email)
    return ResetStatusView(
        state=challenge.state.value,
        email=challenge.email,
        remaining_seconds=challenge.remaining_seconds,
        can_resend=challenge.can_resend,
        seconds_until_resend=challenge.seconds_until_resend,
        prefill_email=flow.prefill_email,
    )
