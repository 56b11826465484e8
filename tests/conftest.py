"""
Shared fixtures: a manual clock for countdowns and an in-process fake of
the auth backend served through httpx.MockTransport.
"""

import json
import itertools
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from portal_auth.api.flow_registry import FlowRegistry
from portal_auth.domain.services.session_machine import SessionStateMachine
from portal_auth.infrastructure.auth.auth_api_client import AuthApiClient
from portal_auth.main import create_app

BACKEND_URL = "http://backend.test/api"
RESET_CODE = "123456"


class ScheduledCall:
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose clock only moves when a test calls advance()."""

    def __init__(self):
        self.now = 0.0
        self._calls: List[ScheduledCall] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall(self.now + delay, callback)
        self._calls.append(call)
        return call

    @property
    def pending(self) -> List[ScheduledCall]:
        return [c for c in self._calls if not c.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [c for c in self.pending if c.when <= target]
            if not due:
                break
            call = min(due, key=lambda c: c.when)
            self._calls.remove(call)
            self.now = call.when
            call.callback()
        self.now = target


class FakeBackend:
    """
    Minimal stand-in for the portal REST backend.

    Every request is recorded in `calls` as (method, path, json body).
    `fail(method, path, ...)` makes one endpoint answer with an error status
    or raise a transport exception.
    """

    def __init__(self):
        self.users: Dict[str, Dict[str, Any]] = {}
        self.tokens: Dict[str, str] = {}
        self.reset_codes: Dict[str, str] = {}
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self.failures: Dict[Tuple[str, str], Any] = {}
        self._ids = itertools.count(1)
        self._token_ids = itertools.count(1)

    def add_user(
        self,
        email: str,
        password: str,
        role: str = "brand_admin",
        is_first_login: bool = False,
        contact_no: Optional[str] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        user = {
            "id": next(self._ids),
            "email": email,
            "role": role,
            "contact_no": contact_no,
            "is_first_login": is_first_login,
            "first_name": "Test",
            "last_name": "User",
            **extra,
        }
        self.users[email] = {"password": password, "user": user}
        return user

    def fail(self, method: str, path: str, status_code: int = 500, exc: Optional[Exception] = None) -> None:
        self.failures[(method, path)] = exc if exc is not None else status_code

    def paths(self) -> List[str]:
        return [f"{method} {path}" for method, path, _ in self.calls]

    def _user_for_token(self, request: httpx.Request) -> Optional[Dict[str, Any]]:
        header = request.headers.get("authorization", "")
        email = self.tokens.get(header.removeprefix("Bearer "))
        return self.users.get(email) if email else None

    def _issue_token(self, email: str) -> str:
        token = f"token-{next(self._token_ids)}"
        self.tokens[token] = email
        return token

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        body = json.loads(request.content) if request.content else {}
        self.calls.append((request.method, path, body))

        failure = self.failures.get((request.method, path))
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return httpx.Response(failure, json={"success": False, "error": "Backend failure"})

        if request.method == "POST" and path == "/login":
            record = self.users.get(body.get("email"))
            if record is None or record["password"] != body.get("password"):
                return httpx.Response(401, json={"success": False, "error": "Invalid credentials"})
            user = record["user"]
            return httpx.Response(200, json={
                "success": True,
                "message": "Login successful",
                "data": {
                    "user": user,
                    "token": self._issue_token(user["email"]),
                    "isFirstLogin": user["is_first_login"],
                },
            })

        if request.method == "PATCH" and path.startswith("/user/"):
            record = self._user_for_token(request)
            if record is None:
                return httpx.Response(401, json={"success": False, "error": "Unauthorized"})
            record["user"]["contact_no"] = body.get("contact_no")
            return httpx.Response(200, json={"success": True, "data": record["user"]})

        if request.method == "PATCH" and path == "/password/first-login":
            record = self._user_for_token(request)
            if record is None:
                return httpx.Response(401, json={"success": False, "error": "Unauthorized"})
            if record["password"] != body.get("currentPassword"):
                return httpx.Response(400, json={"success": False, "error": "Current password is incorrect"})
            record["password"] = body["newPassword"]
            record["user"]["is_first_login"] = False
            return httpx.Response(200, json={"success": True})

        if request.method == "POST" and path == "/password-reset/request":
            if body.get("email") not in self.users:
                return httpx.Response(404, json={"success": False, "error": "User not found"})
            self.reset_codes[body["email"]] = RESET_CODE
            return httpx.Response(200, json={"success": True})

        if request.method == "POST" and path == "/password-reset/verify":
            if self.reset_codes.get(body.get("email")) != body.get("code"):
                return httpx.Response(400, json={"success": False, "error": "Invalid code"})
            return httpx.Response(200, json={"success": True})

        if request.method == "POST" and path == "/password-reset/commit":
            email = body.get("email")
            if self.reset_codes.get(email) != body.get("code"):
                return httpx.Response(400, json={"success": False, "error": "Invalid code"})
            self.users[email]["password"] = body["newPassword"]
            del self.reset_codes[email]
            return httpx.Response(200, json={"success": True})

        return httpx.Response(404, json={"success": False, "error": "Not found"})


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def backend():
    backend = FakeBackend()
    backend.add_user("a@x.com", "temp1", role="brand_admin", is_first_login=True, brand_id=7)
    backend.add_user("boss@x.com", "Secret99!", role="super_admin", contact_no="+1 (555) 000-1111")
    backend.add_user("dm@x.com", "Secret99!", role="district_manager", brand_id=7, district_id=3)
    backend.add_user("tech@x.com", "Secret99!", role="technician")
    return backend


@pytest.fixture
async def api(backend):
    client = AuthApiClient(base_url=BACKEND_URL, transport=httpx.MockTransport(backend.handler))
    yield client
    await client.close()


@pytest.fixture
def machine(api, scheduler):
    return SessionStateMachine(api, scheduler=scheduler)


@pytest.fixture
def registry(api, scheduler):
    return FlowRegistry(api=api, scheduler=scheduler, token_store_path="")


@pytest.fixture
async def client(registry):
    """Gateway under test, wired to the fake backend and the manual clock."""
    app = create_app(registry)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
