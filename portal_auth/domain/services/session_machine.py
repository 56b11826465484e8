"""
Session and credential-lifecycle state machine.

    UNAUTHENTICATED -> AUTHENTICATING -> AUTHENTICATED
                                      -> FIRST_LOGIN_PENDING -> ROTATING_CREDENTIALS -> AUTHENTICATED

Any state falls back to UNAUTHENTICATED on logout or token invalidation.
Consumers never mutate the Session; they receive a new immutable value on
every transition, either through `session` or a subscribed listener.
"""

from __future__ import annotations
import logging
import secrets
from enum import Enum
from typing import Callable, List, Optional

from portal_auth.domain.entities.credential import Credential, PasswordChangeRequest
from portal_auth.domain.entities.principal import Principal, ScopeIds
from portal_auth.domain.entities.role import Role
from portal_auth.domain.entities.session import Session, SessionStatus
from portal_auth.domain.errors import (
    AuthFlowError,
    ContactUpdateError,
    InvalidCredentials,
    InvalidEmail,
    InvalidPhoneNumber,
    InvalidStateError,
    OperationInProgress,
    PasswordUpdateError,
    ReloginRequired,
    StaleResponseError,
    TemporarySecretMismatch,
    UnsupportedRoleError,
)
from portal_auth.domain.services.flow_base import FlowMachine, status_code_of
from portal_auth.domain.services.otp_challenge import ChallengeState, OTPChallenge
from portal_auth.infrastructure.auth.auth_api_client import AuthApiClient
from portal_auth.infrastructure.auth.token_store import InMemoryTokenStore, TokenStore
from portal_auth.schemas.auth import BackendUser
from portal_auth.utils import phone_formatter
from portal_auth.utils.countdown import Scheduler

logger = logging.getLogger(__name__)

SessionListener = Callable[[Session], None]

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please sign in again."
RESET_COMPLETED_MESSAGE = "Password updated. Please sign in with your new password."


class MachineState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    FIRST_LOGIN_PENDING = "first_login_pending"
    ROTATING_CREDENTIALS = "rotating_credentials"


def principal_from_backend(user: BackendUser, is_first_login: bool) -> Principal:
    role = Role.parse(user.role)
    if role is None:
        logger.warning(f"⚠️ Backend returned unrecognised role '{user.role}' for user {user.id}")
        raise UnsupportedRoleError()

    return Principal(
        id=user.id,
        email=user.email,
        role=role,
        contact_number=user.contact_no,
        is_first_login=is_first_login,
        scope_ids=ScopeIds(brand_id=user.brand_id, district_id=user.district_id, shop_id=user.shop_id),
        first_name=user.first_name,
        last_name=user.last_name,
    )


class SessionStateMachine(FlowMachine):
    def __init__(
        self,
        api: AuthApiClient,
        token_store: Optional[TokenStore] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        super().__init__()
        self.api = api
        self.token_store = token_store if token_store is not None else InMemoryTokenStore()
        self._scheduler = scheduler
        self._state = MachineState.UNAUTHENTICATED
        self._session = Session.anonymous()
        self._listeners: List[SessionListener] = []

        # First-login working memory, never exposed through the Session
        self._temporary_secret: Optional[str] = None
        self._pending_token: Optional[str] = None
        self._preserved_contact_number: Optional[str] = None

        self._challenge: Optional[OTPChallenge] = None
        self._prefill_email: Optional[str] = None

    @property
    def state(self) -> MachineState:
        return self._state

    @property
    def session(self) -> Session:
        return self._session

    @property
    def challenge(self) -> Optional[OTPChallenge]:
        return self._challenge

    @property
    def prefill_email(self) -> Optional[str]:
        """Email to pre-populate on the login form after a reset or a failed re-login."""
        return self._prefill_email

    @property
    def preserved_contact_number(self) -> Optional[str]:
        return self._preserved_contact_number

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def login(self, credential: Credential) -> Session:
        if self._state in (MachineState.AUTHENTICATING, MachineState.ROTATING_CREDENTIALS):
            raise OperationInProgress()

        email = credential.email.strip()
        if not email or "@" not in email:
            raise InvalidEmail()
        if not credential.secret:
            raise InvalidCredentials()

        with self._operation("login") as generation:
            self._state = MachineState.AUTHENTICATING
            logger.info(f"🔄 Authenticating {email}...")
            try:
                result = await self._call_backend(
                    self.api.login(email, credential.secret), generation, InvalidCredentials
                )
                principal = principal_from_backend(result.user, result.is_first_login)
            except StaleResponseError:
                raise
            except AuthFlowError as e:
                logger.warning(f"❌ Login failed for {email}: {e.code.value}")
                self._reset(message=e.message, keep_challenge=True)
                raise

            # A successful login supersedes any reset the user had open.
            self._abandon_challenge()
            self._prefill_email = None

            if result.is_first_login:
                self._temporary_secret = credential.secret
                self._pending_token = result.token
                self._preserved_contact_number = principal.contact_number
                self._state = MachineState.FIRST_LOGIN_PENDING
                self._publish(Session(status=SessionStatus.FIRST_LOGIN_PENDING, principal=principal))
                logger.info(f"🔑 First login for {email}; credential rotation required")
            else:
                self._finalize(principal, result.token)

        return self._session

    async def rotate_first_login_credentials(
        self,
        contact_number: str,
        new_secret: str,
        confirm_secret: str,
        current_secret: Optional[str] = None,
    ) -> Session:
        """
        Complete the mandatory first-login update.

        Checks run in order and stop at the first failure, all before any
        network call: contact number, confirmation match, minimum length,
        then the temporary secret captured at login (used when the form
        does not submit one). The contact number is committed before the
        password, and a successful rotation ends with a fresh login using
        the new secret.
        """
        if self._state == MachineState.ROTATING_CREDENTIALS:
            raise OperationInProgress()
        if self._state != MachineState.FIRST_LOGIN_PENDING:
            raise InvalidStateError("There is no pending first-login update")

        formatted = phone_formatter.format(contact_number)
        self._preserved_contact_number = formatted or None
        if not phone_formatter.is_valid(formatted):
            raise InvalidPhoneNumber()

        request = PasswordChangeRequest(
            current_secret=self._temporary_secret if current_secret is None else current_secret,
            new_secret=new_secret,
            confirm_secret=confirm_secret,
        )
        request.validate_new_secret()
        if self._temporary_secret is None or not secrets.compare_digest(
            request.current_secret.encode(), self._temporary_secret.encode()
        ):
            raise TemporarySecretMismatch()

        principal = self._session.principal
        with self._operation("rotate_first_login_credentials") as generation:
            self._state = MachineState.ROTATING_CREDENTIALS
            logger.info(f"🔄 Rotating first-login credentials for {principal.email}")
            try:
                await self._call_backend(
                    self.api.update_contact_number(principal.id, formatted, self._pending_token),
                    generation,
                    ContactUpdateError,
                    unavailable=ContactUpdateError,
                )
                # Only reached once the contact number is stored.
                await self._call_backend(
                    self.api.change_first_login_password(
                        request.current_secret, request.new_secret, self._pending_token
                    ),
                    generation,
                    PasswordUpdateError,
                    unavailable=PasswordUpdateError,
                )
            except StaleResponseError:
                raise
            except AuthFlowError as e:
                logger.warning(f"❌ First-login rotation aborted for {principal.email}: {e.code.value}")
                self._state = MachineState.FIRST_LOGIN_PENDING
                raise

            # The temporary secret is dead from here on.
            self._temporary_secret = None
            self._pending_token = None
            await self._relogin(principal.email, request.new_secret, formatted, generation)

        return self._session

    async def _relogin(self, email: str, new_secret: str, contact_number: str, generation: int) -> None:
        try:
            result = await self._call_backend(
                self.api.login(email, new_secret), generation, InvalidCredentials
            )
            principal = principal_from_backend(result.user, result.is_first_login)
        except StaleResponseError:
            raise
        except AuthFlowError as e:
            logger.error(f"❌ Re-login after rotation failed for {email}: {e.code.value}")
            self._fall_back_to_manual_login(email)
            raise ReloginRequired(email) from e

        if result.is_first_login:
            logger.error(f"❌ Backend still reports first login for {email} after rotation")
            self._fall_back_to_manual_login(email)
            raise ReloginRequired(email)

        if not principal.contact_number:
            principal = principal.model_copy(update={"contact_number": contact_number})
        self._finalize(principal, result.token)
        logger.info(f"✅ First-login rotation complete for {email}")

    def _fall_back_to_manual_login(self, email: str) -> None:
        self._reset(message=ReloginRequired.default_message)
        self._prefill_email = email

    async def update_contact_number(self, contact_number: str) -> Session:
        """Standalone contact-number change for an authenticated principal."""
        if self._state != MachineState.AUTHENTICATED:
            raise InvalidStateError("Sign in to update your contact number")

        formatted = phone_formatter.format(contact_number)
        if not phone_formatter.is_valid(formatted):
            raise InvalidPhoneNumber()

        principal = self._session.principal
        with self._operation("update_contact_number") as generation:
            try:
                await self._call_backend(
                    self.api.update_contact_number(principal.id, formatted, self._session.token),
                    generation,
                    ContactUpdateError,
                    unavailable=ContactUpdateError,
                )
            except ContactUpdateError as e:
                if status_code_of(e) == 401:
                    self.invalidate_token()
                    raise ReloginRequired(principal.email, SESSION_EXPIRED_MESSAGE) from e
                raise

            updated = principal.model_copy(update={"contact_number": formatted})
            self._publish(self._session.model_copy(update={"principal": updated}))

        logger.info(f"📞 Contact number updated for {principal.email}")
        return self._session

    def reset_via_otp(self) -> OTPChallenge:
        """
        Enter the OTP password-reset sub-flow.

        The challenge runs on its own; the session is left untouched and,
        once the challenge completes, the login form gets the email pre-filled.
        """
        if self._state != MachineState.UNAUTHENTICATED:
            raise InvalidStateError("Sign out before resetting the password")

        if self._challenge is None or self._challenge.state == ChallengeState.COMPLETED:
            self._challenge = OTPChallenge(
                self.api, scheduler=self._scheduler, on_completed=self._on_reset_completed
            )
        return self._challenge

    def abandon_password_reset(self) -> None:
        self._abandon_challenge()

    def logout(self) -> Session:
        logger.info("👋 Logging out")
        self._reset()
        return self._session

    def invalidate_token(self) -> Session:
        logger.warning("⚠️ Session token rejected; returning to login")
        self._reset(message=SESSION_EXPIRED_MESSAGE)
        return self._session

    def _on_reset_completed(self, email: str) -> None:
        self._challenge = None
        self._prefill_email = email
        logger.info(f"↩️ Returning to login for {email} after password reset")

    def _abandon_challenge(self) -> None:
        if self._challenge is not None:
            self._challenge.cancel()
            self._challenge = None

    def _finalize(self, principal: Principal, token: Optional[str]) -> None:
        if token:
            try:
                self.token_store.save(token)
            except OSError as e:
                logger.error(f"❌ Could not persist session token: {e}")

        self._temporary_secret = None
        self._pending_token = None
        self._preserved_contact_number = None
        self._state = MachineState.AUTHENTICATED
        self._publish(Session(status=SessionStatus.AUTHENTICATED, principal=principal, token=token))
        logger.info(f"✅ Authenticated {principal.email} as {principal.role.value}")

    def _reset(self, message: Optional[str] = None, keep_challenge: bool = False) -> None:
        """Drop everything and land in UNAUTHENTICATED. Never raises."""
        self._bump_generation()
        if not keep_challenge:
            self._abandon_challenge()
        self._temporary_secret = None
        self._pending_token = None
        self._preserved_contact_number = None
        try:
            self.token_store.clear()
        except OSError as e:
            logger.error(f"❌ Could not clear stored session token: {e}")
        self._state = MachineState.UNAUTHENTICATED
        self._publish(Session.anonymous(message=message))

    def _publish(self, session: Session) -> None:
        self._session = session
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception as e:
                logger.error(f"❌ Session listener failed: {e}")
