"""
AuthApiClient Tests
"""

import httpx
import pytest

from portal_auth.infrastructure.auth.auth_api_client import (
    AuthApiClient,
    AuthApiRejected,
    AuthApiUnavailable,
)

from tests.conftest import BACKEND_URL


def client_for(handler):
    return AuthApiClient(base_url=BACKEND_URL, transport=httpx.MockTransport(handler))


class TestLogin:
    @pytest.mark.asyncio
    async def test_decodes_login_payload(self, api):
        result = await api.login("a@x.com", "temp1")

        assert result.user.email == "a@x.com"
        assert result.user.id == "1"
        assert result.user.brand_id == "7"
        assert result.is_first_login is True
        assert result.token == "token-1"

    @pytest.mark.asyncio
    async def test_falls_back_to_user_flag(self):
        def handler(request):
            return httpx.Response(200, json={
                "success": True,
                "data": {"user": {"id": 1, "email": "a@x.com", "role": "user", "is_first_login": True}},
            })

        api = client_for(handler)
        result = await api.login("a@x.com", "pw")
        await api.close()

        assert result.is_first_login is True
        assert result.token is None

    @pytest.mark.asyncio
    async def test_malformed_user_is_unavailable(self):
        def handler(request):
            return httpx.Response(200, json={"success": True, "data": {"user": {"email": "a@x.com"}}})

        api = client_for(handler)
        with pytest.raises(AuthApiUnavailable):
            await api.login("a@x.com", "pw")
        await api.close()


class TestErrors:
    @pytest.mark.asyncio
    async def test_client_error_is_rejected(self, api):
        with pytest.raises(AuthApiRejected) as exc_info:
            await api.login("a@x.com", "wrong")

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_success_false_is_rejected_even_on_200(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "error": "Nope"})

        api = client_for(handler)
        with pytest.raises(AuthApiRejected):
            await api.request_password_reset("a@x.com")
        await api.close()

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self, api, backend):
        backend.fail("POST", "/password-reset/request", status_code=503)

        with pytest.raises(AuthApiUnavailable) as exc_info:
            await api.request_password_reset("a@x.com")

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_connection_error_is_unavailable(self, api, backend):
        backend.fail("POST", "/login", exc=httpx.ConnectError("refused"))

        with pytest.raises(AuthApiUnavailable):
            await api.login("a@x.com", "temp1")

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(502, text="<html>Bad gateway</html>")

        api = client_for(handler)
        with pytest.raises(AuthApiUnavailable) as exc_info:
            await api.verify_password_reset("a@x.com", "123456")
        await api.close()

        assert exc_info.value.message == "HTTP 502"


class TestAuthenticatedCalls:
    @pytest.mark.asyncio
    async def test_bearer_token_is_sent(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path, request.headers.get("authorization")))
            return httpx.Response(200, json={"success": True})

        api = client_for(handler)
        await api.update_contact_number("12", "+1 (555) 123-4567", "abc")
        await api.change_first_login_password("temp1", "Abcd123!", "abc")
        await api.close()

        assert seen == [
            ("PATCH", "/api/user/12", "Bearer abc"),
            ("PATCH", "/api/password/first-login", "Bearer abc"),
        ]

    @pytest.mark.asyncio
    async def test_reset_calls_are_anonymous(self):
        seen = []

        def handler(request):
            seen.append(request.headers.get("authorization"))
            return httpx.Response(200, json={"success": True})

        api = client_for(handler)
        await api.commit_password_reset("a@x.com", "123456", "Newpass1!")
        await api.close()

        assert seen == [None]
