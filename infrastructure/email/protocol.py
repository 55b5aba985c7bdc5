"""EmailProvider protocol — services depend on this, not the concrete implementation."""

from dataclasses import dataclass
from typing import Optional, Protocol

from schemas.models.verification_code import Purpose


@dataclass(frozen=True)
class EmailSendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    dev: bool = False


class EmailProvider(Protocol):
    async def send_verification_code(
        self,
        email: str,
        code: str,
        *,
        display_name: Optional[str] = None,
        language: str = "tr",
        purpose: Purpose = Purpose.TWO_FACTOR,
        ttl_minutes: int = 10,
    ) -> EmailSendResult: ...
