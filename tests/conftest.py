"""
Shared fixtures for the ledger tests.

Test strategy:
1. In-memory stores for engine and controller behaviour
2. Real files under tmp_path for the local backends
3. A stepping clock so ordering is deterministic
4. Cheap bcrypt cost so signups stay fast
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from ewallet.audit import AuditLogger
from ewallet.config import LedgerSettings, SecuritySettings
from ewallet.controller import WalletController
from ewallet.ledger import LedgerEngine
from ewallet.services.storage import (
    InMemoryKeyValueStore,
    InMemorySecretStore,
    KeyValueAuditStorage,
)


class SteppingClock:
    """
    Deterministic clock: every call to now() advances by `step`.

    A zero step freezes time, which forces timestamp ties.
    """

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self._current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._step = step

    def now(self):
        value = self._current
        self._current = self._current + self._step
        return value


class YieldingKeyValueStore(InMemoryKeyValueStore):
    """In-memory store that suspends on every call, like real I/O does."""

    async def get(self, key):
        await asyncio.sleep(0)
        return await super().get(key)

    async def set(self, key, value):
        await asyncio.sleep(0)
        await super().set(key, value)


@pytest.fixture
def kvs():
    return InMemoryKeyValueStore()


@pytest.fixture
def secrets():
    return InMemorySecretStore()


@pytest.fixture
def clock():
    return SteppingClock(
        start=datetime(2024, 12, 1, 9, 0, tzinfo=timezone.utc),
        step=timedelta(seconds=1),
    )


@pytest.fixture
def ledger_settings():
    return LedgerSettings(
        min_fee=Decimal("10"),
        fee_rate=Decimal("0.015"),
        allow_overdraft=True,
    )


@pytest.fixture
def security_settings():
    return SecuritySettings(bcrypt_rounds=4, min_password_length=6)


@pytest.fixture
def audit_storage(kvs):
    return KeyValueAuditStorage(kvs)


@pytest.fixture
def engine(kvs, secrets, clock, ledger_settings, security_settings, audit_storage):
    return LedgerEngine(
        kvs=kvs,
        secrets=secrets,
        clock=clock,
        audit_logger=AuditLogger(audit_storage),
        settings=ledger_settings,
        security=security_settings,
    )


@pytest.fixture
def controller(engine, security_settings):
    return WalletController(engine, security=security_settings)
