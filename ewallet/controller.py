"""
Wallet Controller

This module ties the ledger to a UI layer. It keeps an in-memory
projection of the current user's wallet (user, balance, newest-first
transactions) that screens can read without touching storage, and it
runs the caller-side checks the screens perform before calling the
ledger:

1. Signup   - name, identifier, password length, confirmation match
2. Login    - identifier and password present
3. Top up   - amount greater than zero
4. Send     - amount greater than zero, recipient present,
              amount + fee within the displayed balance

DESIGN DECISION: The controller never writes balances or logs itself.
Every change goes through LedgerEngine and the projection is refreshed
from what the ledger returns.
"""

import logging
from contextlib import asynccontextmanager
from decimal import Decimal, InvalidOperation
from typing import AsyncIterator, Optional, Union

import structlog
from pydantic import BaseModel, Field

from ewallet.audit import AuditLogger
from ewallet.config import SecuritySettings, Settings, get_settings
from ewallet.ledger import LedgerEngine, LedgerError
from ewallet.models.transaction import Transaction, TransactionType
from ewallet.models.user import User
from ewallet.services.storage import (
    FileSecretStore,
    InMemoryKeyValueStore,
    InMemorySecretStore,
    JsonFileKeyValueStore,
    KeyValueAuditStorage,
    StorageError,
)


logger = structlog.get_logger("ewallet.controller")

Amount = Union[Decimal, int, float, str]


class WalletValidationError(ValueError):
    """Input rejected before reaching the ledger."""
    pass


class AppState(BaseModel):
    """In-memory projection read by the UI."""

    initialized: bool = False
    loading: bool = False
    user: Optional[User] = None
    balance: Optional[Decimal] = None
    transactions: list[Transaction] = Field(
        default_factory=list,
        description="Current user's transactions, newest first"
    )
    error: Optional[str] = None


def _parse_amount(value: Amount) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise WalletValidationError("Enter an amount greater than 0.") from None
    if not amount.is_finite() or amount <= 0:
        raise WalletValidationError("Enter an amount greater than 0.")
    return amount


class WalletController:
    """
    Holds AppState and exposes the actions a wallet UI needs.

    Every action records its failure message in `state.error` and
    re-raises, so screens can both render the message and branch on
    the exception type.
    """

    def __init__(
        self,
        engine: LedgerEngine,
        security: Optional[SecuritySettings] = None,
    ):
        self._engine = engine
        self._security = security or get_settings().security
        self._state = AppState()

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def transactions(self) -> list[Transaction]:
        return self._state.transactions

    @asynccontextmanager
    async def _action(self, name: str) -> AsyncIterator[None]:
        self._state.loading = True
        self._state.error = None
        try:
            yield
        except (LedgerError, StorageError, ValueError) as e:
            self._state.error = str(e) or f"{name} failed"
            logger.warning("wallet_action_failed", action=name, error=self._state.error)
            raise
        finally:
            self._state.loading = False

    async def _load_user(self, user: Optional[User]) -> None:
        if user is None:
            self._state.user = None
            self._state.balance = None
            self._state.transactions = []
            return
        self._state.transactions = await self._engine.get_transactions_for_user(user.id)
        self._state.balance = await self._engine.get_balance_for_current_user()
        # Re-read the user so the projection carries the persisted balance
        self._state.user = await self._engine.get_current_user()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> AppState:
        """Load whoever is logged in from storage. Failures land in state.error."""
        self._state.loading = True
        self._state.error = None
        try:
            await self._load_user(await self._engine.get_current_user())
        except (LedgerError, StorageError) as e:
            self._state.error = str(e)
            logger.warning("wallet_initialize_failed", error=str(e))
        finally:
            self._state.initialized = True
            self._state.loading = False
        return self._state

    async def refresh(self) -> AppState:
        """Reload the projection after changes made outside this controller."""
        return await self.initialize()

    # =========================================================================
    # Accounts
    # =========================================================================

    async def signup(
        self,
        name: str,
        identifier: str,
        password: str,
        confirm_password: Optional[str] = None,
    ) -> User:
        async with self._action("Signup"):
            if not name.strip():
                raise WalletValidationError("Please enter your full name.")
            if not identifier.strip():
                raise WalletValidationError("Please enter your phone number or email.")
            if not password.strip():
                raise WalletValidationError("Please enter a password.")
            if len(password) < self._security.min_password_length:
                raise WalletValidationError(
                    f"Password must be at least {self._security.min_password_length} characters."
                )
            if confirm_password is not None and password != confirm_password:
                raise WalletValidationError("Passwords do not match.")

            user = await self._engine.signup(
                name=name.strip(),
                identifier=identifier.strip(),
                password=password,
            )
            await self._load_user(user)
            return user

    async def login(self, identifier: str, password: str) -> User:
        async with self._action("Login"):
            if not identifier.strip():
                raise WalletValidationError("Please enter your phone or email.")
            if not password.strip():
                raise WalletValidationError("Please enter your password.")

            user = await self._engine.login(identifier=identifier.strip(), password=password)
            await self._load_user(user)
            return user

    async def logout(self) -> None:
        async with self._action("Logout"):
            await self._engine.logout()
            self._state = AppState(initialized=True)

    # =========================================================================
    # Money movements
    # =========================================================================

    async def _record(self, created: Transaction) -> Transaction:
        self._state.transactions = [created, *self._state.transactions]
        self._state.balance = await self._engine.get_balance_for_current_user()
        if self._state.user is not None:
            self._state.user = self._state.user.with_balance(self._state.balance)
        return created

    async def top_up(
        self,
        amount: Amount,
        fee: Optional[Amount] = None,
        note: Optional[str] = None,
    ) -> Transaction:
        """Fund the wallet. Counterparty is always "TopUp"."""
        async with self._action("Top-up"):
            value = _parse_amount(amount)
            created = await self._engine.create_transaction_for_current_user(
                TransactionType.TOPUP,
                amount=value,
                counterparty="TopUp",
                fee=fee,
                note=note or "Top up",
            )
            return await self._record(created)

    async def send(
        self,
        amount: Amount,
        counterparty: str,
        fee: Optional[Amount] = None,
        note: Optional[str] = None,
    ) -> Transaction:
        """Send money, refusing anything the displayed balance cannot cover."""
        async with self._action("Send"):
            value = _parse_amount(amount)
            if not counterparty or not counterparty.strip():
                raise WalletValidationError("Please enter a recipient.")

            quoted = self._engine.quote(TransactionType.SEND, value, fee)
            balance = self._state.balance
            if balance is not None and quoted.total > balance:
                raise WalletValidationError("Insufficient wallet balance.")

            created = await self._engine.create_transaction_for_current_user(
                TransactionType.SEND,
                amount=value,
                counterparty=counterparty.strip(),
                fee=quoted.fee,
                note=note,
            )
            return await self._record(created)


def create_wallet_components(
    settings: Optional[Settings] = None,
    in_memory: bool = False,
) -> tuple[LedgerEngine, WalletController, AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use; defaults to get_settings().
        in_memory: Use throwaway in-memory stores instead of local files.

    Returns:
        (engine, controller, audit_logger)
    """
    settings = settings or get_settings()
    app = settings.app
    logging.basicConfig(level="DEBUG" if app.debug_mode else app.log_level)

    if in_memory:
        kvs = InMemoryKeyValueStore()
        secrets = InMemorySecretStore()
    else:
        storage = settings.storage
        kvs = JsonFileKeyValueStore(storage.data_dir)
        secrets = FileSecretStore(storage.secrets_dir)

    audit_logger = AuditLogger(KeyValueAuditStorage(kvs))
    security = settings.security
    engine = LedgerEngine(
        kvs=kvs,
        secrets=secrets,
        audit_logger=audit_logger,
        settings=settings.ledger,
        security=security,
    )
    controller = WalletController(engine, security=security)
    return engine, controller, audit_logger
