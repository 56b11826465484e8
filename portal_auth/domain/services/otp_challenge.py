"""
OTP password-reset challenge.

One instance drives a single reset attempt:

    EMAIL_ENTRY -> ISSUED -> VERIFIED -> COMPLETED
                     |  ^
                     v  | resend
                   EXPIRED

The countdown starts when a code is issued. Resend is held back until at
least half of the window has elapsed, and verification must succeed before
a new password can be committed.
"""

from __future__ import annotations
import logging
import re
from enum import Enum
from typing import Callable, Optional

from portal_auth.config import settings
from portal_auth.domain.entities.credential import PasswordChangeRequest
from portal_auth.domain.entities.otp_attempt import OTPAttempt
from portal_auth.domain.errors import (
    ChallengeExpired,
    DeliveryError,
    InvalidEmail,
    InvalidOTP,
    InvalidOTPFormat,
    InvalidStateError,
    PasswordUpdateError,
    ResendCooldownError,
)
from portal_auth.domain.services.flow_base import FlowMachine
from portal_auth.infrastructure.auth.auth_api_client import AuthApiClient
from portal_auth.utils.countdown import CountdownTimer, Scheduler

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ChallengeState(str, Enum):
    EMAIL_ENTRY = "email_entry"
    ISSUED = "issued"
    VERIFIED = "verified"
    COMPLETED = "completed"
    EXPIRED = "expired"


class OTPChallenge(FlowMachine):
    def __init__(
        self,
        api: AuthApiClient,
        scheduler: Optional[Scheduler] = None,
        on_completed: Optional[Callable[[str], None]] = None,
        ttl_seconds: Optional[int] = None,
        resend_threshold_seconds: Optional[int] = None,
    ):
        super().__init__()
        self.api = api
        self.ttl_seconds = settings.OTP_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.resend_threshold_seconds = (
            settings.OTP_RESEND_THRESHOLD_SECONDS if resend_threshold_seconds is None else resend_threshold_seconds
        )
        self._timer = CountdownTimer(scheduler)
        self._on_completed = on_completed
        self._state = ChallengeState.EMAIL_ENTRY
        self._attempt: Optional[OTPAttempt] = None
        self._history: list[OTPAttempt] = []

    @property
    def state(self) -> ChallengeState:
        return self._state

    @property
    def attempt(self) -> Optional[OTPAttempt]:
        return self._attempt

    @property
    def history(self) -> tuple[OTPAttempt, ...]:
        """Attempts that were consumed, superseded or expired."""
        return tuple(self._history)

    @property
    def email(self) -> Optional[str]:
        return self._attempt.email if self._attempt else None

    @property
    def remaining_seconds(self) -> int:
        return self._timer.remaining if self._state == ChallengeState.ISSUED else 0

    @property
    def seconds_until_resend(self) -> int:
        if self._state != ChallengeState.ISSUED:
            return 0
        return max(0, self.remaining_seconds - self.resend_threshold_seconds)

    @property
    def can_resend(self) -> bool:
        if self._state == ChallengeState.EXPIRED:
            return True
        return self._state == ChallengeState.ISSUED and self.seconds_until_resend == 0

    async def request_code(self, email: str) -> OTPAttempt:
        """Ask the backend to dispatch a code and start the expiry countdown."""
        if self._state not in (ChallengeState.EMAIL_ENTRY, ChallengeState.EXPIRED):
            raise InvalidStateError("A verification code has already been sent")

        email = (email or "").strip()
        if not EMAIL_PATTERN.match(email):
            raise InvalidEmail()

        with self._operation("request_code") as generation:
            await self._call_backend(
                self.api.request_password_reset(email), generation, DeliveryError
            )
            attempt = self._issue(email)

        logger.info(f"📧 Password reset code issued for {email}")
        return attempt

    async def resend(self) -> OTPAttempt:
        if self._state == ChallengeState.ISSUED:
            wait = self.seconds_until_resend
            if wait > 0:
                # Must not reach the network: a new code would supersede the one being read.
                raise ResendCooldownError(wait)
        elif self._state != ChallengeState.EXPIRED:
            raise InvalidStateError("There is no code to resend")

        email = self._attempt.email
        with self._operation("resend") as generation:
            await self._call_backend(
                self.api.request_password_reset(email), generation, DeliveryError
            )
            attempt = self._issue(email)

        logger.info(f"🔁 Password reset code re-sent for {email}")
        return attempt

    async def verify(self, code: str) -> bool:
        if self._state == ChallengeState.EXPIRED:
            raise ChallengeExpired()
        if self._state != ChallengeState.ISSUED:
            raise InvalidStateError("Request a verification code first")

        code = (code or "").strip()
        if not re.fullmatch(rf"[0-9]{{{settings.OTP_CODE_LENGTH}}}", code):
            raise InvalidOTPFormat()

        with self._operation("verify") as generation:
            await self._call_backend(
                self.api.verify_password_reset(self._attempt.email, code), generation, InvalidOTP
            )
            if self._state == ChallengeState.EXPIRED:
                # Window elapsed while the request was in flight
                raise ChallengeExpired()

            self._timer.cancel()
            self._attempt = self._attempt.mark_verified(code)
            self._state = ChallengeState.VERIFIED

        logger.info(f"✅ Password reset code verified for {self._attempt.email}")
        return True

    async def commit_new_password(self, new_secret: str, confirm_secret: str) -> str:
        if self._state == ChallengeState.EXPIRED:
            raise ChallengeExpired()
        if self._state != ChallengeState.VERIFIED:
            raise InvalidStateError("Verify the code before choosing a new password")

        PasswordChangeRequest(new_secret=new_secret, confirm_secret=confirm_secret).validate_new_secret()

        attempt = self._attempt
        with self._operation("commit_new_password") as generation:
            await self._call_backend(
                self.api.commit_password_reset(attempt.email, attempt.code, new_secret),
                generation,
                PasswordUpdateError,
            )
            self._retire()
            self._state = ChallengeState.COMPLETED

        logger.info(f"🔐 Password reset completed for {attempt.email}")
        if self._on_completed is not None:
            self._on_completed(attempt.email)
        return attempt.email

    def cancel(self) -> None:
        """Abandon the flow. Responses still in flight are dropped."""
        self._timer.cancel()
        self._retire()
        self._bump_generation()
        self._state = ChallengeState.EMAIL_ENTRY
        logger.info("↩️ Password reset abandoned")

    def _issue(self, email: str) -> OTPAttempt:
        # No await between the cancel and the restart, so two countdowns never overlap.
        self._retire()
        self._attempt = OTPAttempt.issue(email, self.ttl_seconds)
        self._state = ChallengeState.ISSUED
        self._timer.start(self.ttl_seconds, on_expire=self._on_expired)
        return self._attempt

    def _on_expired(self) -> None:
        if self._state != ChallengeState.ISSUED:
            return
        self._attempt = self._attempt.invalidate()
        self._state = ChallengeState.EXPIRED
        logger.info(f"⌛ Password reset code expired for {self._attempt.email}")

    def _retire(self) -> None:
        if self._attempt is None:
            return
        self._history.append(self._attempt if self._attempt.invalidated else self._attempt.invalidate())
        self._attempt = None
