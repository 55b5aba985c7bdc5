"""Unit tests for reset grants and the privileged password update."""

from datetime import timedelta

import jwt
import pytest

from errors import (
    AppError,
    InvalidResetGrantError,
    ResetGrantUsedError,
    UserNotFoundError,
    ValidationError,
    WeakPasswordError,
)
from schemas.models.user import UserDoc
from schemas.models.verification_code import Purpose
from services.account_service import AccountService
from services.credential_service import CredentialService
from services.reset_grants import GRANT_AUDIENCE, GRANT_ISSUER, ResetGrantSigner
from services.verification_service import VerificationService
from tests.unit.fakes import (
    FakeClock,
    InMemoryCodeStore,
    InMemoryUserStore,
    password_matches,
)

NEW_PASSWORD = "NewPassw0rd"
SECRET = "test-reset-grant-secret-0123456789abcdef"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def signer(clock):
    return ResetGrantSigner(SECRET, ttl_seconds=300, clock=clock)


@pytest.fixture
def codes():
    return InMemoryCodeStore()


@pytest.fixture
def users():
    return InMemoryUserStore()


@pytest.fixture
def user(users):
    return users.add(UserDoc(email="ayse@example.com", full_name="Ayşe", password_hash="old"))


@pytest.fixture
def credentials(users, codes, signer, clock):
    return CredentialService(users, codes, signer, clock=clock)


@pytest.fixture
async def grant(codes, signer, clock, user, mocker):
    """A reset grant minted from a real password_reset validation."""
    mocker.patch("services.verification_service.generate_otp_code", return_value="111111")
    service = VerificationService(codes, signer, clock=clock)
    await service.issue_code(str(user.id), user.email, Purpose.PASSWORD_RESET)
    result = await service.validate(str(user.id), Purpose.PASSWORD_RESET, "111111")
    return result.reset_grant


# ── ResetGrantSigner ──────────────────────────────────────────────────────────


class TestResetGrantSigner:
    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            ResetGrantSigner("")

    def test_mint_and_verify(self, signer, clock):
        claims = signer.verify(signer.mint("u1", "c1"), "u1")
        assert claims.user_id == "u1"
        assert claims.code_id == "c1"
        assert claims.expires_at == clock.now + timedelta(seconds=300)

    def test_bound_to_user(self, signer):
        with pytest.raises(InvalidResetGrantError):
            signer.verify(signer.mint("u1", "c1"), "u2")

    def test_expired(self, signer, clock):
        token = signer.mint("u1", "c1")
        clock.advance(seconds=301)
        with pytest.raises(InvalidResetGrantError):
            signer.verify(token, "u1")

    def test_forged_signature(self, signer):
        forged = ResetGrantSigner("other-reset-grant-secret-0123456789abcdef").mint("u1", "c1")
        with pytest.raises(InvalidResetGrantError):
            signer.verify(forged, "u1")

    def test_wrong_purpose_claim(self, signer, clock):
        token = jwt.encode(
            {
                "iss": GRANT_ISSUER,
                "aud": GRANT_AUDIENCE,
                "sub": "u1",
                "cid": "c1",
                "pur": "two_factor",
                "exp": int((clock.now + timedelta(minutes=5)).timestamp()),
            },
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidResetGrantError):
            signer.verify(token, "u1")

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
    def test_malformed(self, signer, token):
        with pytest.raises(InvalidResetGrantError):
            signer.verify(token, "u1")


# ── CredentialService ─────────────────────────────────────────────────────────


class TestUpdatePassword:
    async def test_success_stores_argon2_hash(self, credentials, users, user, grant):
        await credentials.update_password(str(user.id), NEW_PASSWORD, grant)
        stored = users.users[str(user.id)].password_hash
        assert stored != NEW_PASSWORD
        assert password_matches(NEW_PASSWORD, stored)

    async def test_grant_is_single_use(self, credentials, user, grant):
        await credentials.update_password(str(user.id), NEW_PASSWORD, grant)
        with pytest.raises(ResetGrantUsedError):
            await credentials.update_password(str(user.id), "AnotherPassw0rd", grant)

    @pytest.mark.parametrize("user_id, password", [("", NEW_PASSWORD), ("u1", "")])
    async def test_missing_input(self, credentials, user_id, password):
        with pytest.raises(ValidationError):
            await credentials.update_password(user_id, password, "grant")

    async def test_weak_password_rejected_even_with_valid_grant(
        self, credentials, users, user, grant
    ):
        with pytest.raises(WeakPasswordError) as exc:
            await credentials.update_password(str(user.id), "weakpass", grant)
        assert "At least one uppercase letter" in exc.value.details
        assert users.users[str(user.id)].password_hash == "old"

    async def test_missing_grant(self, credentials, user):
        with pytest.raises(InvalidResetGrantError):
            await credentials.update_password(str(user.id), NEW_PASSWORD, None)

    async def test_grant_for_other_user(self, credentials, users, grant):
        other = users.add(UserDoc(email="other@example.com"))
        with pytest.raises(InvalidResetGrantError):
            await credentials.update_password(str(other.id), NEW_PASSWORD, grant)

    async def test_unknown_user(self, credentials, signer):
        token = signer.mint("665f1f77bcf86cd799439099", "665f1f77bcf86cd799439098")
        with pytest.raises(UserNotFoundError):
            await credentials.update_password("665f1f77bcf86cd799439099", NEW_PASSWORD, token)

    async def test_grant_without_consumed_code(self, credentials, signer, user):
        token = signer.mint(str(user.id), "665f1f77bcf86cd799439098")
        with pytest.raises(ResetGrantUsedError):
            await credentials.update_password(str(user.id), NEW_PASSWORD, token)

    async def test_store_failure_is_generic(self, credentials, users, user, grant, mocker):
        mocker.patch.object(users, "update_password_hash", return_value=False)
        with pytest.raises(AppError) as exc:
            await credentials.update_password(str(user.id), NEW_PASSWORD, grant)
        assert exc.value.status_code == 500

    async def test_store_failure_releases_grant_for_retry(
        self, credentials, users, user, grant, mocker
    ):
        real_write = users.update_password_hash
        calls = []

        async def flaky_write(*args):
            calls.append(args)
            return False if len(calls) == 1 else await real_write(*args)

        mocker.patch.object(users, "update_password_hash", side_effect=flaky_write)
        with pytest.raises(AppError):
            await credentials.update_password(str(user.id), NEW_PASSWORD, grant)

        await credentials.update_password(str(user.id), NEW_PASSWORD, grant)
        assert password_matches(NEW_PASSWORD, users.users[str(user.id)].password_hash)

    async def test_store_exception_releases_grant_and_propagates(
        self, credentials, codes, users, user, grant, mocker
    ):
        mocker.patch.object(users, "update_password_hash", side_effect=RuntimeError("down"))
        with pytest.raises(RuntimeError):
            await credentials.update_password(str(user.id), NEW_PASSWORD, grant)
        (doc,) = codes.docs.values()
        assert doc.grant_redeemed_at is None

    async def test_failed_release_keeps_original_error(
        self, credentials, codes, users, user, grant, mocker
    ):
        mocker.patch.object(users, "update_password_hash", return_value=False)
        mocker.patch.object(codes, "release_grant", side_effect=RuntimeError("down"))
        with pytest.raises(AppError) as exc:
            await credentials.update_password(str(user.id), NEW_PASSWORD, grant)
        assert exc.value.status_code == 500


# ── AccountService ────────────────────────────────────────────────────────────


class TestAccountService:
    async def test_find_profile_normalises_email(self, users, user):
        found = await AccountService(users).find_profile_by_email(" AYSE@example.com ")
        assert found.id == user.id

    async def test_find_profile_unknown(self, users):
        assert await AccountService(users).find_profile_by_email("nobody@example.com") is None

    async def test_toggle_two_factor(self, users, user):
        service = AccountService(users)
        assert await service.is_two_factor_enabled(str(user.id)) is False
        await service.set_two_factor_enabled(str(user.id), True)
        assert await service.is_two_factor_enabled(str(user.id)) is True

    async def test_toggle_unknown_user(self, users):
        with pytest.raises(UserNotFoundError):
            await AccountService(users).set_two_factor_enabled("nope", True)

    async def test_status_unknown_user_is_false(self, users):
        assert await AccountService(users).is_two_factor_enabled("nope") is False
