"""Integration tests for the /rpc and /functions endpoints.

Services run for real over the in-memory stores; only the email provider is
mocked. State is injected through the app lifespan, as create_app() does.
"""

import os
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.protocol import EmailSendResult
from routes.function_routes import router as function_router
from routes.rpc_routes import router as rpc_router
from schemas.models.user import UserDoc
from shared.datetime_utils import utc_now
from tests.unit.fakes import FakeClock, InProcessBackend

os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/")

EMAIL = "ayse@example.com"


def _build_test_app(backend: InProcessBackend, provider) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = AppSettings()
        app.state.verification_service = backend.verification
        app.state.account_service = backend.accounts
        app.state.credential_service = backend.credentials
        app.state.email_provider = provider
        yield

    app = FastAPI(lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(rpc_router)
    app.include_router(function_router)
    return app


@pytest.fixture
def backend():
    return InProcessBackend(FakeClock(utc_now()), UserDoc(email=EMAIL, full_name="Ayşe"))


@pytest.fixture
def user_id(backend):
    return next(iter(backend.users.users))


@pytest.fixture
def provider():
    mock = MagicMock()
    mock.send_verification_code = AsyncMock(
        return_value=EmailSendResult(success=True, message_id="m-1")
    )
    return mock


@pytest.fixture
def client(backend, provider):
    with TestClient(_build_test_app(backend, provider)) as c:
        yield c


def _issue(client, user_id, purpose="two_factor") -> str:
    resp = client.post(
        "/rpc/generate_verification_code",
        json={"user_id": user_id, "email": EMAIL, "purpose": purpose},
    )
    assert resp.status_code == 200
    return resp.json()["code"]


class TestVerificationRpc:
    def test_generate_and_verify(self, client, user_id):
        code = _issue(client, user_id)
        resp = client.post(
            "/rpc/verify_email_code",
            json={"user_id": user_id, "code": code, "purpose": "two_factor"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert "error" not in body
        assert "reset_grant" not in body

    def test_wrong_code_is_200_with_error(self, client, user_id):
        code = _issue(client, user_id)
        wrong = "000000" if code != "000000" else "999999"
        body = client.post(
            "/rpc/verify_email_code", json={"user_id": user_id, "code": wrong}
        ).json()
        assert body == {
            "success": False,
            "error": "invalid_code",
            "message": "Invalid verification code",
            "attempts_remaining": 4,
        }

    def test_password_reset_returns_grant(self, client, user_id):
        code = _issue(client, user_id, "password_reset")
        body = client.post(
            "/rpc/verify_email_code",
            json={"user_id": user_id, "code": code, "purpose": "password_reset"},
        ).json()
        assert body["success"] is True
        assert body["reset_grant"]

    def test_generate_validates_email(self, client, user_id):
        resp = client.post(
            "/rpc/generate_verification_code",
            json={"user_id": user_id, "email": "not-an-email"},
        )
        assert resp.status_code == 422

    def test_generate_rate_limited(self, client, user_id):
        for _ in range(5):
            _issue(client, user_id)
        resp = client.post(
            "/rpc/generate_verification_code", json={"user_id": user_id, "email": EMAIL}
        )
        assert resp.status_code == 429
        assert resp.json()["code"] == "rate_limit_exceeded"

    def test_invalidate(self, client, user_id):
        _issue(client, user_id)
        resp = client.post("/rpc/invalidate_verification_code", json={"user_id": user_id})
        assert resp.json() == {"invalidated": 1}


class TestAccountRpc:
    def test_two_factor_toggle_roundtrip(self, client, user_id):
        status = client.post("/rpc/check_two_factor_enabled", json={"user_id": user_id})
        assert status.json() == {"enabled": False}

        resp = client.post("/rpc/toggle_two_factor", json={"user_id": user_id, "enabled": True})
        assert resp.json() == {"success": True, "message": "Two-factor authentication enabled"}

        status = client.post("/rpc/check_two_factor_enabled", json={"user_id": user_id})
        assert status.json() == {"enabled": True}

    def test_toggle_unknown_user_404(self, client):
        resp = client.post("/rpc/toggle_two_factor", json={"user_id": "missing", "enabled": True})
        assert resp.status_code == 404
        assert resp.json()["code"] == "user_not_found"

    def test_find_profile(self, client, user_id):
        resp = client.post("/rpc/find_profile_by_email", json={"email": "AYSE@example.com"})
        assert resp.json() == {"id": user_id, "full_name": "Ayşe"}

    def test_find_profile_absent_404(self, client):
        resp = client.post("/rpc/find_profile_by_email", json={"email": "nobody@example.com"})
        assert resp.status_code == 404
        assert resp.json()["code"] == "not_found"


class TestSendVerificationEmail:
    def test_sends(self, client, provider):
        resp = client.post(
            "/functions/send-verification-email",
            json={"email": EMAIL, "code": "123456", "user_name": "Ayşe", "language": "en"},
        )
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message_id": "m-1", "dev": False}
        kwargs = provider.send_verification_code.call_args.kwargs
        assert kwargs["display_name"] == "Ayşe"
        assert kwargs["language"] == "en"
        assert kwargs["ttl_minutes"] == 10

    def test_custom_expiry_reaches_email(self, client, provider):
        resp = client.post(
            "/functions/send-verification-email",
            json={"email": EMAIL, "code": "123456", "expires_minutes": 3},
        )
        assert resp.status_code == 200
        assert provider.send_verification_code.call_args.kwargs["ttl_minutes"] == 3

    def test_provider_failure_is_generic_502(self, client, provider):
        provider.send_verification_code.return_value = EmailSendResult(
            success=False, error="delivery_failed"
        )
        resp = client.post(
            "/functions/send-verification-email", json={"email": EMAIL, "code": "123456"}
        )
        assert resp.status_code == 502
        assert resp.json() == {"error": "Failed to send email", "code": "email_delivery_failed"}

    @pytest.mark.parametrize(
        "payload",
        [
            {"email": "bad", "code": "123456"},
            {"email": EMAIL, "code": "12ab56"},
            {"email": EMAIL},
        ],
    )
    def test_malformed_input_422(self, client, payload):
        resp = client.post("/functions/send-verification-email", json=payload)
        assert resp.status_code == 422


class TestUpdatePassword:
    def _grant(self, client, user_id) -> str:
        code = _issue(client, user_id, "password_reset")
        return client.post(
            "/rpc/verify_email_code",
            json={"user_id": user_id, "code": code, "purpose": "password_reset"},
        ).json()["reset_grant"]

    def test_success_then_replay_409(self, client, user_id):
        grant = self._grant(client, user_id)
        payload = {"user_id": user_id, "new_password": "NewPassw0rd", "reset_grant": grant}
        first = client.post("/functions/update-password", json=payload)
        assert first.status_code == 200
        assert first.json() == {"success": True}

        replay = client.post("/functions/update-password", json=payload)
        assert replay.status_code == 409
        assert replay.json()["code"] == "reset_grant_used"

    def test_weak_password_400(self, client, user_id):
        grant = self._grant(client, user_id)
        resp = client.post(
            "/functions/update-password",
            json={"user_id": user_id, "new_password": "weak", "reset_grant": grant},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "weak_password"

    def test_missing_grant_401(self, client, user_id):
        resp = client.post(
            "/functions/update-password",
            json={"user_id": user_id, "new_password": "NewPassw0rd"},
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == "invalid_reset_grant"

    def test_missing_fields_422(self, client):
        resp = client.post("/functions/update-password", json={"user_id": "u1"})
        assert resp.status_code == 422
