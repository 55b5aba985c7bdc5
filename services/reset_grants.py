"""
Reset grants — short-lived signed proof that a password_reset code was
validated.

The grant is a HS256 JWT bound to the user id and to the verification code
record it was minted from. The privileged password update checks the
signature and expiry here and then spends the grant exactly once through the
code repository.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from errors import InvalidResetGrantError
from shared.datetime_utils import Clock, utc_now

GRANT_ISSUER = "tourapp.verification"
GRANT_AUDIENCE = "tourapp.update-password"
GRANT_PURPOSE = "password_reset"


@dataclass(frozen=True)
class ResetGrantClaims:
    user_id: str
    code_id: str
    expires_at: datetime


class ResetGrantSigner:
    def __init__(self, secret: str, ttl_seconds: int = 300, clock: Clock = utc_now) -> None:
        if not secret:
            raise ValueError("RESET_GRANT_SECRET must be set to mint reset grants")
        self._secret = secret
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def mint(self, user_id: str, code_id: str) -> str:
        now = self._clock()
        payload = {
            "iss": GRANT_ISSUER,
            "aud": GRANT_AUDIENCE,
            "sub": user_id,
            "cid": code_id,
            "pur": GRANT_PURPOSE,
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm="HS256")

    def verify(self, token: str, user_id: str) -> ResetGrantClaims:
        """Decode *token* and check it belongs to *user_id*.

        Raises:
            InvalidResetGrantError: forged, expired, malformed or foreign grant.
        """
        if not token:
            raise InvalidResetGrantError("Password reset requires a verified code")
        try:
            # exp is compared against the injected clock, not wall time
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=["HS256"],
                audience=GRANT_AUDIENCE,
                issuer=GRANT_ISSUER,
                options={
                    "require": ["exp", "sub", "cid"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.PyJWTError as e:
            raise InvalidResetGrantError("Invalid or expired reset grant") from e

        expires_at = datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
        if self._clock() > expires_at:
            raise InvalidResetGrantError("Invalid or expired reset grant")
        if claims.get("pur") != GRANT_PURPOSE or claims.get("sub") != user_id:
            raise InvalidResetGrantError("Invalid or expired reset grant")

        return ResetGrantClaims(user_id=claims["sub"], code_id=claims["cid"], expires_at=expires_at)
