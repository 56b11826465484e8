"""HTTP client for the portal's authentication backend."""
from __future__ import annotations
from typing import Any, Dict, Optional
import logging

import httpx
from pydantic import ValidationError

from portal_auth.config import settings
from portal_auth.schemas.auth import BackendUser, LoginResult

logger = logging.getLogger(__name__)


class AuthApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}


class AuthApiRejected(AuthApiError):
    """The backend answered and refused the request."""


class AuthApiUnavailable(AuthApiError):
    """The backend could not be reached or answered with garbage."""


class AuthApiClient:
    """
    Thin async wrapper around the auth backend endpoints.

    Every method either returns the decoded JSON payload or raises
    AuthApiRejected / AuthApiUnavailable. The client never retries.
    """

    LOGIN_PATH = "/login"
    USER_PATH = "/user/{user_id}"
    FIRST_LOGIN_PASSWORD_PATH = "/password/first-login"
    RESET_REQUEST_PATH = "/password-reset/request"
    RESET_VERIFY_PATH = "/password-reset/verify"
    RESET_COMMIT_PATH = "/password-reset/commit"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.AUTH_API_BASE_URL).rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.AUTH_API_TIMEOUT_SECONDS if timeout is None else timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    def _get_headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _make_request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            response = await self.client.request(method, path, json=json, headers=self._get_headers(token))
        except httpx.HTTPError as e:
            logger.error(f"❌ Auth API {method} {path} failed: {e}")
            raise AuthApiUnavailable(f"Auth service unreachable: {e}") from e

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {"data": payload}

        if response.is_error or payload.get("success") is False:
            message = payload.get("error") or payload.get("message") or f"HTTP {response.status_code}"
            logger.warning(f"⚠️ Auth API {method} {path} rejected with {response.status_code}: {message}")
            if response.status_code >= 500:
                raise AuthApiUnavailable(message, status_code=response.status_code, payload=payload)
            raise AuthApiRejected(message, status_code=response.status_code, payload=payload)

        logger.info(f"✅ Auth API {method} {path} -> {response.status_code}")
        return payload

    async def login(self, email: str, password: str) -> LoginResult:
        payload = await self._make_request("POST", self.LOGIN_PATH, json={"email": email, "password": password})
        data = payload.get("data") or {}
        try:
            user = BackendUser.model_validate(data.get("user") or {})
        except ValidationError as e:
            logger.error(f"❌ Login response carried an unusable user record: {e}")
            raise AuthApiUnavailable("Malformed login response", payload=payload) from e

        first_login_flag = data.get("isFirstLogin")
        if first_login_flag is None:
            first_login_flag = user.is_first_login
        return LoginResult(
            user=user,
            token=data.get("token"),
            is_first_login=bool(first_login_flag),
            message=payload.get("message"),
        )

    async def update_contact_number(self, user_id: str, contact_no: str, token: Optional[str]) -> Dict[str, Any]:
        return await self._make_request(
            "PATCH", self.USER_PATH.format(user_id=user_id), json={"contact_no": contact_no}, token=token
        )

    async def change_first_login_password(self, current_password: str, new_password: str, token: Optional[str]) -> Dict[str, Any]:
        return await self._make_request(
            "PATCH",
            self.FIRST_LOGIN_PASSWORD_PATH,
            json={"currentPassword": current_password, "newPassword": new_password},
            token=token,
        )

    async def request_password_reset(self, email: str) -> Dict[str, Any]:
        return await self._make_request("POST", self.RESET_REQUEST_PATH, json={"email": email})

    async def verify_password_reset(self, email: str, code: str) -> Dict[str, Any]:
        return await self._make_request("POST", self.RESET_VERIFY_PATH, json={"email": email, "code": code})

    async def commit_password_reset(self, email: str, code: str, new_password: str) -> Dict[str, Any]:
        return await self._make_request(
            "POST",
            self.RESET_COMMIT_PATH,
            json={"email": email, "code": code, "newPassword": new_password},
        )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
