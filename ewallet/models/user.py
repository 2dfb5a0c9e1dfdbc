"""
User Account Model

A user is the owner of exactly one balance and one transaction log.

DESIGN DECISION: The password is NOT part of this model.
It lives in the secret store, keyed by the user's id, so a user
record can be listed, logged or cached without ever exposing it.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """
    A registered wallet user.

    Persisted inside the user registry with camelCase keys
    (`createdAt`).
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique user id"
    )
    name: str = Field(
        ...,
        description="Display name, free text stored as given"
    )
    identifier: str = Field(
        ...,
        description="Login handle (email or phone), unique across users"
    )
    balance: Decimal = Field(
        default=Decimal("0.00"),
        description="Running balance; only the ledger engine changes it"
    )
    created_at: datetime = Field(
        ...,
        alias="createdAt",
        description="When the account was created (UTC)"
    )

    def with_balance(self, balance: Decimal) -> "User":
        """Return a copy of this user carrying a new balance."""
        return self.model_copy(update={"balance": balance})

    def to_storage_dict(self) -> dict:
        """Convert to the JSON-safe dict stored in the registry."""
        return self.model_dump(mode="json", by_alias=True)
