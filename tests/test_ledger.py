"""
Tests for the ledger engine.

Covers account uniqueness, the credential gate, the balance fold,
newest-first ordering, no-session safety and storage failure handling.
"""

import asyncio
import pytest
from datetime import timedelta
from decimal import Decimal

from ewallet.audit import AuditLogger
from ewallet.config import LedgerSettings
from ewallet.ledger import (
    AuthenticationError,
    CURRENT_USER_KEY,
    DuplicateIdentifier,
    InsufficientBalance,
    InvalidCredentials,
    InvalidTransactionRequest,
    LedgerEngine,
    NoActiveSession,
    SessionIntegrityError,
    USERS_KEY,
    UserNotFound,
    secret_key,
    transactions_key,
)
from ewallet.models.audit import AuditEventType
from ewallet.models.transaction import SendRequest, TransactionStatus, TransactionType
from ewallet.services.storage import KeyValueAuditStorage, StorageError

from tests.conftest import SteppingClock, YieldingKeyValueStore


async def snapshot(kvs) -> dict:
    return {key: await kvs.get(key) for key in kvs.keys()}


class TestSignup:
    """Account creation."""

    async def test_signup_creates_user_with_zero_balance(self, engine):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        assert user.name == "Ada"
        assert user.identifier == "ada@x.com"
        assert user.balance == Decimal("0")
        assert await engine.get_balance_for_current_user() == Decimal("0")

    async def test_signup_starts_session(self, engine):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        assert await engine.get_current_user() == user

    async def test_signup_initialises_empty_log(self, engine, kvs):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        assert await kvs.get(transactions_key(user.id)) == []
        assert await engine.get_transactions_for_user(user.id) == []

    async def test_signup_stores_hashed_secret(self, engine, secrets):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        stored = await secrets.get(secret_key(user.id))
        assert stored is not None
        assert stored != "secret1"
        assert stored.startswith("$2")

    async def test_secret_never_in_registry(self, engine, kvs):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        registry = await kvs.get(USERS_KEY)
        assert "secret1" not in str(registry)

    async def test_duplicate_identifier_rejected_and_registry_unchanged(self, engine, kvs):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        before = await kvs.get(USERS_KEY)

        with pytest.raises(DuplicateIdentifier):
            await engine.signup(name="Other", identifier="ada@x.com", password="different")

        assert await kvs.get(USERS_KEY) == before

    async def test_identifier_match_is_case_sensitive(self, engine):
        first = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        second = await engine.signup(name="Ada", identifier="ADA@x.com", password="secret1")
        assert first.id != second.id

    async def test_each_user_gets_unique_id(self, engine):
        ids = set()
        for i in range(5):
            user = await engine.signup(name=f"U{i}", identifier=f"u{i}@x.com", password="secret1")
            ids.add(user.id)
        assert len(ids) == 5

    async def test_name_and_identifier_are_free_text(self, engine, kvs):
        """Any name or identifier the caller passes is stored exactly."""
        long_name = " Ada " + "x" * 500
        long_identifier = "a" * 400 + "@x.com"
        user = await engine.signup(name=long_name, identifier=long_identifier, password="secret1")

        stored = await engine.get_current_user()
        assert stored.name == long_name
        assert stored.identifier == long_identifier
        assert (await kvs.get(USERS_KEY))[0]["name"] == long_name

        await engine.logout()
        assert (await engine.login(identifier=long_identifier, password="secret1")).id == user.id

    async def test_empty_name_is_accepted(self, engine):
        user = await engine.signup(name="", identifier="anon@x.com", password="secret1")
        assert user.name == ""
        assert (await engine.get_current_user()).id == user.id


class TestLogin:
    """The credential gate."""

    async def test_login_with_correct_password(self, engine):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        await engine.logout()

        logged_in = await engine.login(identifier="ada@x.com", password="secret1")
        assert logged_in == user
        assert await engine.get_current_user() == user

    async def test_wrong_password_fails_and_keeps_session(self, engine):
        ada = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        await engine.signup(name="Bob", identifier="bob@x.com", password="hunter22")
        await engine.login(identifier="ada@x.com", password="secret1")

        with pytest.raises(InvalidCredentials):
            await engine.login(identifier="bob@x.com", password="wrong-pass")

        assert (await engine.get_current_user()).id == ada.id

    async def test_wrong_password_does_not_open_session(self, engine):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        await engine.logout()

        with pytest.raises(InvalidCredentials):
            await engine.login(identifier="ada@x.com", password="secret2")

        assert await engine.get_current_user() is None

    async def test_unknown_identifier(self, engine):
        with pytest.raises(UserNotFound):
            await engine.login(identifier="nobody@x.com", password="secret1")

    async def test_missing_secret_is_invalid_credentials(self, engine, secrets):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        await engine.logout()
        await secrets.delete(secret_key(user.id))

        with pytest.raises(InvalidCredentials):
            await engine.login(identifier="ada@x.com", password="secret1")

    async def test_password_comparison_is_exact(self, engine):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        with pytest.raises(InvalidCredentials):
            await engine.login(identifier="ada@x.com", password="secret1 ")
        with pytest.raises(InvalidCredentials):
            await engine.login(identifier="ada@x.com", password="SECRET1")

    async def test_login_failures_share_a_base_class(self, engine):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        with pytest.raises(AuthenticationError):
            await engine.login(identifier="nobody@x.com", password="secret1")
        with pytest.raises(AuthenticationError):
            await engine.login(identifier="ada@x.com", password="nope")


class TestSession:
    """Logout and current-user lookup."""

    async def test_logout_clears_session(self, engine):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        await engine.logout()
        assert await engine.get_current_user() is None
        assert await engine.get_balance_for_current_user() == Decimal("0")

    async def test_logout_is_idempotent(self, engine):
        await engine.logout()
        await engine.logout()
        assert await engine.get_current_user() is None

    async def test_dangling_session_is_an_integrity_error(self, engine, kvs):
        await kvs.set(CURRENT_USER_KEY, "ghost")
        with pytest.raises(SessionIntegrityError):
            await engine.get_current_user()

    async def test_session_persists_across_engine_instances(self, engine, kvs, secrets,
                                                            ledger_settings, security_settings):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        restarted = LedgerEngine(
            kvs=kvs,
            secrets=secrets,
            settings=ledger_settings,
            security=security_settings,
        )
        assert await restarted.get_current_user() == user


class TestCreateTransaction:
    """Transaction creation and the balance rule."""

    async def test_signup_then_send_allows_negative_balance(self, engine):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")

        tx = await engine.create_transaction_for_current_user(
            "send", amount=50, fee=5, counterparty="Bob"
        )

        assert tx.total == Decimal("55")
        assert tx.type == TransactionType.SEND
        assert tx.counterparty == "Bob"
        assert await engine.get_balance_for_current_user() == Decimal("-55")

    async def test_topup_default_fee(self, engine):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")

        tx = await engine.create_transaction_for_current_user("topup", amount=100)

        assert tx.fee == Decimal("10")
        assert tx.total == Decimal("90")
        assert await engine.get_balance_for_current_user() == Decimal("90")

    async def test_transaction_fields(self, engine, clock):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        tx = await engine.create_transaction_for_current_user(
            TransactionType.REFUND, amount="20.00", fee="0", note="Order #12"
        )
        assert tx.user_id == user.id
        assert tx.status == TransactionStatus.COMPLETED
        assert tx.note == "Order #12"
        assert tx.id
        assert tx.created_at > user.created_at

    async def test_balance_equals_fold_of_net_effects(self, engine):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        calls = [
            ("topup", {"amount": 1000}),
            ("send", {"amount": "120.50", "counterparty": "Bob"}),
            ("receive", {"amount": 75, "fee": 0, "counterparty": "Carol"}),
            ("refund", {"amount": 30, "fee": "1.25"}),
            ("send", {"amount": "700.30", "counterparty": "Dan"}),
            ("topup", {"amount": 0}),
        ]
        created = []
        for kind, kwargs in calls:
            created.append(await engine.create_transaction_for_current_user(kind, **kwargs))

        expected = Decimal("0")
        for tx in created:
            expected = (expected + tx.net_effect).quantize(Decimal("0.01"))

        assert await engine.get_balance_for_current_user() == expected
        assert (await engine.get_current_user()).balance == expected

        listed = await engine.get_transactions_for_user(user.id)
        assert sum(t.net_effect for t in listed) == expected

    async def test_credit_nets_fee_from_amount(self, engine):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        await engine.create_transaction_for_current_user("receive", amount=2000, counterparty="Eve")
        # fee = 2000 * 0.015 = 30
        assert await engine.get_balance_for_current_user() == Decimal("1970")

    async def test_typed_request_entry_point(self, engine):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        tx = await engine.create_transaction(
            SendRequest(amount=Decimal("40"), fee=Decimal("2"), counterparty="Bob")
        )
        assert tx.total == Decimal("42")
        assert await engine.get_balance_for_current_user() == Decimal("-42")

    async def test_balances_are_per_user(self, engine):
        ada = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        await engine.create_transaction_for_current_user("topup", amount=100)
        bob = await engine.signup(name="Bob", identifier="bob@x.com", password="hunter22")
        await engine.create_transaction_for_current_user("topup", amount=500)

        assert await engine.get_balance_for_current_user() == Decimal("490")
        assert len(await engine.get_transactions_for_user(ada.id)) == 1
        assert len(await engine.get_transactions_for_user(bob.id)) == 1

        await engine.login(identifier="ada@x.com", password="secret1")
        assert await engine.get_balance_for_current_user() == Decimal("90")


class TestRequestValidation:
    """Malformed requests never reach storage."""

    async def test_long_note_round_trips_unchanged(self, engine):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        note = "  " + "n" * 5000 + "  "
        counterparty = " Bob " * 100

        await engine.create_transaction_for_current_user(
            "send", amount=10, counterparty=counterparty, note=note
        )

        stored = (await engine.get_transactions_for_user(user.id))[0]
        assert stored.note == note
        assert stored.counterparty == counterparty

    async def test_blank_recipient_is_a_typed_error(self, engine):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        with pytest.raises(InvalidTransactionRequest, match="counterparty"):
            await engine.create_transaction_for_current_user("send", amount=10, counterparty="   ")

    async def test_send_without_counterparty(self, engine, kvs):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        user = await engine.get_current_user()
        with pytest.raises(InvalidTransactionRequest):
            await engine.create_transaction_for_current_user("send", amount=10)
        assert await engine.get_transactions_for_user(user.id) == []

    async def test_negative_amount(self, engine):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        with pytest.raises(InvalidTransactionRequest):
            await engine.create_transaction_for_current_user("topup", amount=-5)

    async def test_unknown_type(self, engine):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        with pytest.raises(InvalidTransactionRequest):
            await engine.create_transaction_for_current_user("withdraw", amount=5)


class TestNoSession:
    """Behaviour with nobody logged in."""

    async def test_balance_is_zero_without_session(self, engine):
        assert await engine.get_balance_for_current_user() == Decimal("0")

    async def test_create_fails_without_session_and_writes_nothing(self, engine, kvs):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        await engine.logout()
        before = await snapshot(kvs)

        with pytest.raises(NoActiveSession):
            await engine.create_transaction_for_current_user("topup", amount=100)

        assert await snapshot(kvs) == before

    async def test_typed_entry_point_requires_session(self, engine):
        with pytest.raises(NoActiveSession):
            await engine.create_transaction(
                SendRequest(amount=Decimal("1"), counterparty="Bob")
            )


class TestOrdering:
    """Newest-first listing."""

    async def test_transactions_listed_newest_first(self, engine):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        created = [
            await engine.create_transaction_for_current_user("topup", amount=100 + i)
            for i in range(4)
        ]

        listed = await engine.get_transactions_for_user(user.id)

        assert [t.id for t in listed] == [t.id for t in reversed(created)]
        timestamps = [t.created_at for t in listed]
        assert timestamps == sorted(timestamps, reverse=True)

    async def test_equal_timestamps_fall_back_to_insertion_order(
        self, kvs, secrets, ledger_settings, security_settings
    ):
        frozen = SteppingClock(step=timedelta(0))
        engine = LedgerEngine(
            kvs=kvs,
            secrets=secrets,
            clock=frozen,
            settings=ledger_settings,
            security=security_settings,
        )
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        created = [
            await engine.create_transaction_for_current_user("topup", amount=10 * (i + 1))
            for i in range(3)
        ]

        listed = await engine.get_transactions_for_user(user.id)

        assert [t.sequence for t in listed] == [3, 2, 1]
        assert [t.id for t in listed] == [t.id for t in reversed(created)]

    async def test_stored_log_is_newest_first(self, engine, kvs):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        first = await engine.create_transaction_for_current_user("topup", amount=100)
        second = await engine.create_transaction_for_current_user("topup", amount=200)

        stored = await kvs.get(transactions_key(user.id))
        assert [item["id"] for item in stored] == [second.id, first.id]

    async def test_listing_reflects_current_storage(self, engine):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        assert await engine.get_transactions_for_user(user.id) == []
        await engine.create_transaction_for_current_user("topup", amount=100)
        assert len(await engine.get_transactions_for_user(user.id)) == 1

    async def test_unknown_user_has_no_transactions(self, engine):
        assert await engine.get_transactions_for_user("nobody") == []


class TestOverdraft:
    """Optional ledger-side overdraft protection."""

    async def test_overdraft_blocked_when_disabled(self, kvs, secrets, clock, security_settings):
        engine = LedgerEngine(
            kvs=kvs,
            secrets=secrets,
            clock=clock,
            settings=LedgerSettings(allow_overdraft=False),
            security=security_settings,
        )
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        await engine.create_transaction_for_current_user("topup", amount=100, fee=0)

        with pytest.raises(InsufficientBalance) as exc_info:
            await engine.create_transaction_for_current_user(
                "send", amount=95, fee=10, counterparty="Bob"
            )

        assert exc_info.value.required == Decimal("105")
        assert await engine.get_balance_for_current_user() == Decimal("100")
        assert len(await engine.get_transactions_for_user(user.id)) == 1

    async def test_send_within_balance_allowed_when_disabled(self, kvs, secrets, clock,
                                                             security_settings):
        engine = LedgerEngine(
            kvs=kvs,
            secrets=secrets,
            clock=clock,
            settings=LedgerSettings(allow_overdraft=False),
            security=security_settings,
        )
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        await engine.create_transaction_for_current_user("topup", amount=100, fee=0)
        await engine.create_transaction_for_current_user(
            "send", amount=90, fee=10, counterparty="Bob"
        )
        assert await engine.get_balance_for_current_user() == Decimal("0")


class TestConcurrency:
    """Overlapping calls for one user are serialized."""

    async def test_concurrent_sends_do_not_lose_updates(self, secrets, clock, ledger_settings,
                                                        security_settings):
        kvs = YieldingKeyValueStore()
        engine = LedgerEngine(
            kvs=kvs,
            secrets=secrets,
            clock=clock,
            settings=ledger_settings,
            security=security_settings,
        )
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")

        await asyncio.gather(*[
            engine.create_transaction_for_current_user(
                "send", amount=10, fee=1, counterparty="Bob"
            )
            for _ in range(5)
        ])

        assert await engine.get_balance_for_current_user() == Decimal("-55")
        assert len(await engine.get_transactions_for_user(user.id)) == 5


class TestStorageFailures:
    """Storage errors propagate unchanged."""

    async def test_failed_log_write_leaves_state_untouched(self, engine, kvs):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        kvs.fail_on = lambda op, key: op == "set" and key == transactions_key(user.id)

        with pytest.raises(StorageError):
            await engine.create_transaction_for_current_user("topup", amount=100)

        kvs.fail_on = None
        assert await engine.get_transactions_for_user(user.id) == []
        assert await engine.get_balance_for_current_user() == Decimal("0")

    async def test_failed_balance_write_keeps_transaction_in_log(self, engine, kvs, audit_storage):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        kvs.fail_on = lambda op, key: op == "set" and key == USERS_KEY

        with pytest.raises(StorageError):
            await engine.create_transaction_for_current_user("topup", amount=100)

        kvs.fail_on = None
        assert len(await engine.get_transactions_for_user(user.id)) == 1
        assert await engine.get_balance_for_current_user() == Decimal("0")

        events = await audit_storage.get_recent_events()
        assert any(e.event_type == AuditEventType.STORAGE_FAILED for e in events)

    async def test_secret_store_failure_propagates(self, engine, secrets):
        secrets.fail_on = lambda op, key: op == "set"
        with pytest.raises(StorageError):
            await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")


class TestAuditTrail:
    """Ledger actions leave audit events."""

    async def test_actions_are_audited(self, engine, audit_storage):
        user = await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        await engine.create_transaction_for_current_user("topup", amount=100)
        with pytest.raises(InvalidCredentials):
            await engine.login(identifier="ada@x.com", password="wrong-pass")
        await engine.logout()

        events = await audit_storage.get_recent_events()
        types = {e.event_type for e in events}
        assert {
            AuditEventType.USER_SIGNED_UP,
            AuditEventType.TRANSACTION_CREATED,
            AuditEventType.LOGIN_FAILED,
            AuditEventType.LOGGED_OUT,
        } <= types

        user_events = await audit_storage.get_events_by_entity("user", user.id)
        assert user_events[0].event_type == AuditEventType.USER_SIGNED_UP

    async def test_passwords_never_audited(self, engine, audit_storage):
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        with pytest.raises(InvalidCredentials):
            await engine.login(identifier="ada@x.com", password="guess-me")

        dumped = str([e.model_dump() for e in await audit_storage.get_recent_events()])
        assert "secret1" not in dumped
        assert "guess-me" not in dumped

    async def test_broken_audit_store_does_not_fail_ledger(self, kvs, secrets, clock,
                                                           ledger_settings, security_settings):
        audit_kvs = YieldingKeyValueStore(fail_on=lambda op, key: True)
        engine = LedgerEngine(
            kvs=kvs,
            secrets=secrets,
            clock=clock,
            audit_logger=AuditLogger(KeyValueAuditStorage(audit_kvs)),
            settings=ledger_settings,
            security=security_settings,
        )
        await engine.signup(name="Ada", identifier="ada@x.com", password="secret1")
        tx = await engine.create_transaction_for_current_user("topup", amount=100)
        assert tx.total == Decimal("90")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
