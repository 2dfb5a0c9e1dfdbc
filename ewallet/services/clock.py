"""Identifier and time sources for the ledger."""

from datetime import datetime, timezone
from typing import Protocol
from uuid import uuid4


class IdGenerator(Protocol):
    def next(self) -> str:
        ...


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class UuidGenerator:
    """Random UUID4 ids, rendered in canonical string form."""

    def next(self) -> str:
        return str(uuid4())


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
