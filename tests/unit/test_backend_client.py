"""Unit tests for BackendClient (HTTP layer mocked with real httpx.Response objects)."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from client.backend import BackendClient
from config import ClientSettings
from errors import (
    BackendError,
    RateLimitError,
    ResetGrantUsedError,
    ValidationError,
)
from schemas.models.verification_code import Purpose


def _client(*responses):
    http = MagicMock()
    http.post = AsyncMock(side_effect=list(responses))
    http.aclose = AsyncMock()
    return BackendClient(http), http


class TestBackendClient:
    def test_from_settings(self):
        backend = BackendClient.from_settings(
            ClientSettings(backend_url="http://backend:8000/", backend_timeout_seconds=3)
        )
        assert backend._http._client.base_url.host == "backend"
        assert backend._http._client.timeout.read == 3

    async def test_generate_verification_code(self):
        backend, http = _client(
            httpx.Response(200, json={"code": "123456", "expires_at": "2024-01-01T12:10:00Z"})
        )
        issued = await backend.generate_verification_code("u1", "a@example.com", Purpose.TWO_FACTOR)
        assert issued.code == "123456"
        assert issued.expires_at.minute == 10
        path = http.post.call_args.args[0]
        assert path == "/rpc/generate_verification_code"
        assert http.post.call_args.kwargs["json"] == {
            "user_id": "u1",
            "email": "a@example.com",
            "purpose": "two_factor",
        }

    async def test_verify_code_failure_is_a_value(self):
        backend, _ = _client(
            httpx.Response(
                200,
                json={"success": False, "error": "invalid_code", "attempts_remaining": 3},
            )
        )
        result = await backend.verify_code("u1", "000000", Purpose.PASSWORD_RESET)
        assert result.success is False
        assert result.error == "invalid_code"
        assert result.attempts_remaining == 3

    async def test_error_body_becomes_typed_error(self):
        backend, _ = _client(
            httpx.Response(429, json={"error": "Too many", "code": "rate_limit_exceeded"})
        )
        with pytest.raises(RateLimitError):
            await backend.generate_verification_code("u1", "a@example.com", Purpose.TWO_FACTOR)

    async def test_request_validation_error(self):
        backend, _ = _client(
            httpx.Response(422, json={"detail": [{"loc": ["body", "email"], "msg": "bad"}]})
        )
        with pytest.raises(ValidationError) as exc:
            await backend.send_verification_email("bad", "123456")
        assert exc.value.details[0]["msg"] == "bad"

    async def test_unknown_error_body(self):
        backend, _ = _client(httpx.Response(500, text="Internal Server Error"))
        with pytest.raises(BackendError) as exc:
            await backend.check_two_factor_enabled("u1")
        assert exc.value.status_code == 500

    async def test_transport_error(self):
        http = MagicMock()
        http.post = AsyncMock(side_effect=httpx.ConnectTimeout("timeout"))
        with pytest.raises(BackendError):
            await BackendClient(http).invalidate_code("u1", Purpose.TWO_FACTOR)

    async def test_find_profile_not_found_is_none(self):
        backend, _ = _client(
            httpx.Response(404, json={"error": "Profile not found", "code": "not_found"})
        )
        assert await backend.find_profile_by_email("nobody@example.com") is None

    async def test_find_profile(self):
        backend, _ = _client(httpx.Response(200, json={"id": "u1", "full_name": "Ayşe"}))
        profile = await backend.find_profile_by_email("ayse@example.com")
        assert profile.id == "u1"
        assert profile.full_name == "Ayşe"

    async def test_send_email_payload(self):
        backend, http = _client(httpx.Response(200, json={"success": True, "message_id": "m1"}))
        result = await backend.send_verification_email(
            "a@example.com",
            "123456",
            user_name="Ayşe",
            language="en",
            purpose=Purpose.PASSWORD_RESET,
        )
        assert result.message_id == "m1"
        assert http.post.call_args.kwargs["json"] == {
            "email": "a@example.com",
            "code": "123456",
            "language": "en",
            "purpose": "password_reset",
            "user_name": "Ayşe",
        }

    async def test_send_email_custom_expiry(self):
        backend, http = _client(httpx.Response(200, json={"success": True, "message_id": "m1"}))
        await backend.send_verification_email("a@example.com", "123456", expires_minutes=3)
        assert http.post.call_args.kwargs["json"]["expires_minutes"] == 3

    async def test_update_password_grant_used(self):
        backend, _ = _client(
            httpx.Response(409, json={"error": "used", "code": "reset_grant_used"})
        )
        with pytest.raises(ResetGrantUsedError):
            await backend.update_password("u1", "NewPassw0rd", "grant")

    async def test_toggle_and_status(self):
        backend, _ = _client(
            httpx.Response(200, json={"success": True, "message": "enabled"}),
            httpx.Response(200, json={"enabled": True}),
        )
        assert (await backend.toggle_two_factor("u1", True)).success is True
        assert await backend.check_two_factor_enabled("u1") is True

    async def test_context_manager_closes_http(self):
        backend, http = _client()
        async with backend:
            pass
        http.aclose.assert_awaited_once()
