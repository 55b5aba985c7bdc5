"""
User profile document model.

Maps to the `users` MongoDB collection. Only the fields the verification
flows read or write are modelled; other profile data is ignored on load.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict

from schemas.models.base import MongoBaseModel


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore",
    )

    email: str
    full_name: Optional[str] = None
    password_hash: Optional[str] = None
    two_factor_enabled: bool = False
    updated_at: Optional[datetime] = None
