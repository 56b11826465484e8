"""
OTPChallenge Tests

Covers the reset lifecycle against the fake backend plus in-flight
behaviour (double submit, abandoned requests) against a gated API.
"""

import asyncio

import httpx
import pytest

from portal_auth.domain.errors import (
    ChallengeExpired,
    DeliveryError,
    InvalidEmail,
    InvalidOTP,
    InvalidOTPFormat,
    InvalidStateError,
    OperationInProgress,
    PasswordMismatch,
    PasswordTooWeak,
    ResendCooldownError,
    StaleResponseError,
    TransportError,
)
from portal_auth.domain.services.otp_challenge import ChallengeState, OTPChallenge

from tests.conftest import RESET_CODE


@pytest.fixture
def completed():
    return []


@pytest.fixture
def challenge(api, scheduler, completed):
    return OTPChallenge(api, scheduler=scheduler, on_completed=completed.append)


class GatedApi:
    """Holds every call open until the test releases the gate."""

    def __init__(self):
        self.gate = asyncio.Event()
        self.calls = []

    async def _hold(self, name, *args):
        self.calls.append((name, args))
        await self.gate.wait()
        return {"success": True}

    async def request_password_reset(self, email):
        return await self._hold("request", email)

    async def verify_password_reset(self, email, code):
        return await self._hold("verify", email, code)


class TestRequestCode:
    @pytest.mark.asyncio
    async def test_issues_code_and_starts_countdown(self, challenge, backend):
        attempt = await challenge.request_code("a@x.com")

        assert challenge.state == ChallengeState.ISSUED
        assert attempt.email == "a@x.com"
        assert challenge.remaining_seconds == 600
        assert backend.paths() == ["POST /password-reset/request"]

    @pytest.mark.asyncio
    async def test_invalid_email_never_reaches_backend(self, challenge, backend):
        with pytest.raises(InvalidEmail):
            await challenge.request_code("not-an-email")

        assert challenge.state == ChallengeState.EMAIL_ENTRY
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_rejected_request_is_delivery_error(self, challenge):
        with pytest.raises(DeliveryError):
            await challenge.request_code("nobody@x.com")

        assert challenge.state == ChallengeState.EMAIL_ENTRY
        assert challenge.attempt is None

    @pytest.mark.asyncio
    async def test_second_request_while_issued_is_rejected(self, challenge):
        await challenge.request_code("a@x.com")

        with pytest.raises(InvalidStateError):
            await challenge.request_code("a@x.com")


class TestExpiry:
    @pytest.mark.asyncio
    async def test_verify_after_window_is_expired(self, challenge, scheduler):
        """Scenario B: 601 seconds after issue the code can no longer be used."""
        await challenge.request_code("a@x.com")

        scheduler.advance(601)

        assert challenge.state == ChallengeState.EXPIRED
        assert challenge.attempt.invalidated
        with pytest.raises(ChallengeExpired):
            await challenge.verify(RESET_CODE)

    @pytest.mark.asyncio
    async def test_expired_challenge_can_resend_immediately(self, challenge, scheduler, backend):
        await challenge.request_code("a@x.com")
        scheduler.advance(600)

        assert challenge.can_resend
        await challenge.resend()

        assert challenge.state == ChallengeState.ISSUED
        assert challenge.remaining_seconds == 600
        assert len(challenge.history) == 1
        assert backend.paths().count("POST /password-reset/request") == 2

    @pytest.mark.asyncio
    async def test_expiry_while_verify_in_flight(self, scheduler):
        api = GatedApi()
        challenge = OTPChallenge(api, scheduler=scheduler)
        api.gate.set()
        await challenge.request_code("a@x.com")
        api.gate.clear()

        task = asyncio.create_task(challenge.verify(RESET_CODE))
        await asyncio.sleep(0)
        scheduler.advance(600)
        api.gate.set()

        with pytest.raises(ChallengeExpired):
            await task
        assert challenge.state == ChallengeState.EXPIRED


class TestVerify:
    @pytest.mark.asyncio
    async def test_wrong_code_keeps_challenge_open(self, challenge, scheduler):
        """Scenario C: a wrong code does not reset or stop the countdown."""
        await challenge.request_code("a@x.com")
        scheduler.advance(100)

        with pytest.raises(InvalidOTP):
            await challenge.verify("000000")

        assert challenge.state == ChallengeState.ISSUED
        assert challenge.remaining_seconds == 500
        scheduler.advance(1)
        assert challenge.remaining_seconds == 499

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["", "12345", "1234567", "12a456", "١٢٣٤٥٦", "１２３４５６"])
    async def test_malformed_code_never_reaches_backend(self, challenge, backend, code):
        await challenge.request_code("a@x.com")

        with pytest.raises(InvalidOTPFormat):
            await challenge.verify(code)

        assert backend.paths() == ["POST /password-reset/request"]

    @pytest.mark.asyncio
    async def test_correct_code_stops_countdown(self, challenge, scheduler):
        await challenge.request_code("a@x.com")

        assert await challenge.verify(RESET_CODE) is True

        assert challenge.state == ChallengeState.VERIFIED
        assert challenge.attempt.verified
        scheduler.advance(1000)
        assert challenge.state == ChallengeState.VERIFIED

    @pytest.mark.asyncio
    async def test_verify_before_request(self, challenge):
        with pytest.raises(InvalidStateError):
            await challenge.verify(RESET_CODE)


class TestResend:
    @pytest.mark.asyncio
    async def test_rejected_while_more_than_threshold_remains(self, challenge, scheduler, backend):
        await challenge.request_code("a@x.com")
        scheduler.advance(299)
        assert challenge.remaining_seconds == 301

        with pytest.raises(ResendCooldownError) as exc_info:
            await challenge.resend()

        assert exc_info.value.seconds_until_allowed == 1
        assert backend.paths() == ["POST /password-reset/request"]

    @pytest.mark.asyncio
    async def test_accepted_at_threshold(self, challenge, scheduler, backend):
        first = await challenge.request_code("a@x.com")
        scheduler.advance(300)
        assert challenge.can_resend

        second = await challenge.resend()

        assert second.attempt_id != first.attempt_id
        assert challenge.remaining_seconds == 600
        assert [a.attempt_id for a in challenge.history] == [first.attempt_id]
        assert challenge.history[0].invalidated
        assert len(scheduler.pending) == 1

    @pytest.mark.asyncio
    async def test_failed_resend_leaves_countdown_running(self, challenge, scheduler, backend):
        await challenge.request_code("a@x.com")
        scheduler.advance(300)
        backend.fail("POST", "/password-reset/request", exc=httpx.ConnectError("backend down"))

        with pytest.raises(TransportError):
            await challenge.resend()

        assert challenge.state == ChallengeState.ISSUED
        assert challenge.remaining_seconds == 300
        scheduler.advance(300)
        assert challenge.state == ChallengeState.EXPIRED

    @pytest.mark.asyncio
    async def test_nothing_to_resend(self, challenge):
        with pytest.raises(InvalidStateError):
            await challenge.resend()


class TestCommit:
    @pytest.mark.asyncio
    async def test_completes_and_reports_email(self, challenge, backend, completed):
        await challenge.request_code("a@x.com")
        await challenge.verify(RESET_CODE)

        email = await challenge.commit_new_password("Newpass1!", "Newpass1!")

        assert email == "a@x.com"
        assert challenge.state == ChallengeState.COMPLETED
        assert completed == ["a@x.com"]
        assert backend.users["a@x.com"]["password"] == "Newpass1!"
        assert backend.calls[-1][2] == {"email": "a@x.com", "code": RESET_CODE, "newPassword": "Newpass1!"}
        assert challenge.attempt is None
        assert challenge.history[-1].verified and challenge.history[-1].invalidated

    @pytest.mark.asyncio
    async def test_mismatch_is_checked_before_length(self, challenge, backend):
        await challenge.request_code("a@x.com")
        await challenge.verify(RESET_CODE)
        calls_before = len(backend.calls)

        with pytest.raises(PasswordMismatch):
            await challenge.commit_new_password("short", "different")
        with pytest.raises(PasswordTooWeak):
            await challenge.commit_new_password("short", "short")

        assert len(backend.calls) == calls_before
        assert challenge.state == ChallengeState.VERIFIED

    @pytest.mark.asyncio
    async def test_commit_requires_verification(self, challenge):
        await challenge.request_code("a@x.com")

        with pytest.raises(InvalidStateError):
            await challenge.commit_new_password("Newpass1!", "Newpass1!")


class TestInFlight:
    @pytest.mark.asyncio
    async def test_double_submit_is_rejected(self, scheduler):
        api = GatedApi()
        challenge = OTPChallenge(api, scheduler=scheduler)

        first = asyncio.create_task(challenge.request_code("a@x.com"))
        await asyncio.sleep(0)

        with pytest.raises(OperationInProgress):
            await challenge.request_code("a@x.com")

        api.gate.set()
        await first
        assert challenge.state == ChallengeState.ISSUED
        assert len(api.calls) == 1

    @pytest.mark.asyncio
    async def test_response_after_cancel_is_dropped(self, scheduler):
        api = GatedApi()
        challenge = OTPChallenge(api, scheduler=scheduler)

        task = asyncio.create_task(challenge.request_code("a@x.com"))
        await asyncio.sleep(0)
        challenge.cancel()
        api.gate.set()

        with pytest.raises(StaleResponseError):
            await task
        assert challenge.state == ChallengeState.EMAIL_ENTRY
        assert challenge.attempt is None
        assert scheduler.pending == []
        assert not challenge.busy
