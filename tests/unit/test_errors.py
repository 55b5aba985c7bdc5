"""Unit tests for AppError hierarchy."""

import pytest

from errors import (
    AppError,
    AuthenticationError,
    BackendError,
    ConflictError,
    EmailDeliveryError,
    EmailNotConfiguredError,
    ForbiddenError,
    InvalidResetGrantError,
    NotFoundError,
    RateLimitError,
    ResetGrantUsedError,
    UserNotFoundError,
    ValidationError,
    WeakPasswordError,
    error_from_payload,
)


class TestAppErrorSubclasses:
    @pytest.mark.parametrize(
        "cls, status, code",
        [
            (ValidationError, 400, "validation_error"),
            (AuthenticationError, 401, "authentication_error"),
            (ForbiddenError, 403, "forbidden"),
            (NotFoundError, 404, "not_found"),
            (ConflictError, 409, "conflict"),
            (RateLimitError, 429, "rate_limit_exceeded"),
            (WeakPasswordError, 400, "weak_password"),
            (InvalidResetGrantError, 401, "invalid_reset_grant"),
            (UserNotFoundError, 404, "user_not_found"),
            (ResetGrantUsedError, 409, "reset_grant_used"),
            (EmailDeliveryError, 502, "email_delivery_failed"),
            (EmailNotConfiguredError, 503, "email_not_configured"),
            (BackendError, 502, "backend_error"),
        ],
    )
    def test_status_and_code(self, cls, status, code):
        e = cls("boom")
        assert e.status_code == status
        assert e.error_code == code
        assert e.message == "boom"
        assert isinstance(e, AppError)

    def test_specialisations_keep_parent_type(self):
        assert isinstance(UserNotFoundError("x"), NotFoundError)
        assert isinstance(WeakPasswordError("x"), ValidationError)


class TestAppErrorToDict:
    def test_basic(self):
        e = UserNotFoundError("User not found")
        assert e.to_dict() == {"error": "User not found", "code": "user_not_found"}

    @pytest.mark.parametrize(
        "kwargs, key, value",
        [
            ({"field": "new_password"}, "field", "new_password"),
            ({"details": ["At least one number"]}, "details", ["At least one number"]),
        ],
        ids=["with_field", "with_details"],
    )
    def test_optional_key_present(self, kwargs, key, value):
        e = WeakPasswordError("weak", **kwargs)
        assert e.to_dict()[key] == value

    def test_no_optional_keys_when_absent(self):
        d = NotFoundError("missing").to_dict()
        assert "field" not in d
        assert "details" not in d


class TestErrorFromPayload:
    def test_known_code_rebuilds_typed_error(self):
        e = error_from_payload(409, {"error": "used", "code": "reset_grant_used"})
        assert isinstance(e, ResetGrantUsedError)
        assert e.message == "used"

    def test_field_and_details_carried(self):
        e = error_from_payload(
            400,
            {"error": "weak", "code": "weak_password", "field": "new_password", "details": ["a"]},
        )
        assert isinstance(e, WeakPasswordError)
        assert e.field == "new_password"
        assert e.details == ["a"]

    def test_unknown_code_becomes_backend_error_with_status(self):
        e = error_from_payload(500, {"error": "oops", "code": "internal_error"})
        assert isinstance(e, BackendError)
        assert e.status_code == 500
        assert e.message == "oops"

    def test_empty_payload(self):
        e = error_from_payload(502, {})
        assert isinstance(e, BackendError)
        assert e.message == "Request failed"
