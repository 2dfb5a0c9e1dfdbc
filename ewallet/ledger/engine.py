"""
Ledger Engine

The only component allowed to write users, balances, sessions and
transaction logs. Everything else reads through it.

Operations:
1. Accounts   - signup, login, logout, get_current_user
2. Queries    - get_transactions_for_user, get_balance_for_current_user
3. Movements  - create_transaction_for_current_user / create_transaction

GUARANTEES:
- One user per identifier (exact, case-sensitive match)
- A user's balance equals the fold of its transactions' net effects
- Transaction logs are append-only and listed newest first
- No retries, no silent recovery: typed errors go straight to the caller

KNOWN LIMITATION: appending the transaction and updating the balance are
two separate writes. If the second write fails, the transaction is in the
log but its effect is missing from the balance. The StorageError is
propagated unchanged and an audit event is recorded.

Within one process, the read-modify-write of a transaction is serialized
per user, so overlapping calls for the same user cannot lose an update.
"""

import asyncio
from decimal import Decimal
from typing import Optional, Union

import structlog

from ewallet.audit import AuditLogger
from ewallet.config import LedgerSettings, SecuritySettings, get_settings
from ewallet.ledger.errors import (
    DuplicateIdentifier,
    InsufficientBalance,
    InvalidCredentials,
    InvalidTransactionRequest,
    NoActiveSession,
    SessionIntegrityError,
    UserNotFound,
)
from ewallet.ledger.fees import FeeQuote, apply_to_balance, compute_fee, compute_total
from ewallet.ledger.fees import quote as quote_fee
from ewallet.ledger.keys import USERS_KEY, secret_key, transactions_key
from ewallet.ledger.passwords import hash_password, verify_password
from ewallet.ledger.requests import build_transaction_request
from ewallet.ledger.session import SessionContext
from ewallet.models.transaction import (
    Transaction,
    TransactionRequest,
    TransactionStatus,
    TransactionType,
)
from ewallet.models.user import User
from ewallet.services.clock import Clock, IdGenerator, SystemClock, UuidGenerator
from ewallet.services.storage import (
    KeyValueStoreInterface,
    SecretStoreInterface,
    StorageError,
)


logger = structlog.get_logger("ewallet.ledger")


class LedgerEngine:
    """
    Local ledger for a single device.

    All collaborators are injected; only the key-value store and secret
    store are required.
    """

    def __init__(
        self,
        kvs: KeyValueStoreInterface,
        secrets: SecretStoreInterface,
        id_generator: Optional[IdGenerator] = None,
        clock: Optional[Clock] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        security: Optional[SecuritySettings] = None,
        session: Optional[SessionContext] = None,
    ):
        self._kvs = kvs
        self._secrets = secrets
        self._ids = id_generator or UuidGenerator()
        self._clock = clock or SystemClock()
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().ledger
        self._security = security or get_settings().security
        self.session = session or SessionContext(kvs)

        # The registry is one document shared by every user
        self._registry_lock = asyncio.Lock()
        self._user_locks: dict[str, asyncio.Lock] = {}

    @property
    def settings(self) -> LedgerSettings:
        return self._settings

    # =========================================================================
    # Persistence helpers
    # =========================================================================

    async def _load_users(self) -> list[User]:
        raw = await self._kvs.get(USERS_KEY) or []
        return [User.model_validate(item) for item in raw]

    async def _save_users(self, users: list[User]) -> None:
        await self._kvs.set(USERS_KEY, [u.to_storage_dict() for u in users])

    async def _load_transactions(self, user_id: str) -> list[Transaction]:
        raw = await self._kvs.get(transactions_key(user_id)) or []
        return [Transaction.model_validate(item) for item in raw]

    async def _save_transactions(self, user_id: str, transactions: list[Transaction]) -> None:
        await self._kvs.set(
            transactions_key(user_id),
            [t.to_storage_dict() for t in transactions],
        )

    async def _find_user(self, user_id: str) -> Optional[User]:
        for user in await self._load_users():
            if user.id == user_id:
                return user
        return None

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        return self._user_locks.setdefault(user_id, asyncio.Lock())

    async def _storage_failed(
        self,
        operation: str,
        error: StorageError,
        user_id: Optional[str] = None,
    ) -> None:
        logger.error("ledger_storage_failed", operation=operation, user_id=user_id, error=str(error))
        if self._audit_logger:
            await self._audit_logger.log_storage_failed(
                operation=operation,
                error_message=str(error),
                user_id=user_id,
            )

    # =========================================================================
    # Accounts
    # =========================================================================

    async def signup(self, name: str, identifier: str, password: str) -> User:
        """
        Register a new user and make it the current session.

        The password is accepted as given; length and confirmation rules
        belong to the caller.

        Raises:
            DuplicateIdentifier: identifier already registered
            StorageError: a store write failed
        """
        password_hash = await asyncio.to_thread(
            hash_password, password, self._security.bcrypt_rounds
        )

        user: Optional[User] = None
        try:
            async with self._registry_lock:
                users = await self._load_users()
                if any(u.identifier == identifier for u in users):
                    if self._audit_logger:
                        await self._audit_logger.log_signup_rejected(
                            identifier=identifier,
                            reason="duplicate_identifier",
                        )
                    raise DuplicateIdentifier(identifier)

                user = User(
                    id=self._ids.next(),
                    name=name,
                    identifier=identifier,
                    balance=Decimal("0.00"),
                    created_at=self._clock.now(),
                )
                users.append(user)
                await self._save_users(users)

            await self._secrets.set(secret_key(user.id), password_hash)
            await self.session.start(user.id)
            await self._save_transactions(user.id, [])
        except StorageError as e:
            await self._storage_failed("signup", e, user.id if user else None)
            raise

        logger.info("user_signed_up", user_id=user.id)
        if self._audit_logger:
            await self._audit_logger.log_user_signed_up(user_id=user.id, identifier=identifier)
        return user

    async def login(self, identifier: str, password: str) -> User:
        """
        Authenticate by identifier and password and start a session.

        The session is left untouched on failure.

        Raises:
            UserNotFound: no user with that identifier
            InvalidCredentials: no stored secret, or the password does not match
        """
        users = await self._load_users()
        user = next((u for u in users if u.identifier == identifier), None)
        if user is None:
            if self._audit_logger:
                await self._audit_logger.log_login_failed(
                    identifier=identifier,
                    reason="unknown_identifier",
                )
            raise UserNotFound(identifier)

        stored = await self._secrets.get(secret_key(user.id))
        matches = stored is not None and await asyncio.to_thread(
            verify_password, password, stored
        )
        if not matches:
            if self._audit_logger:
                await self._audit_logger.log_login_failed(
                    identifier=identifier,
                    reason="missing_secret" if stored is None else "password_mismatch",
                    user_id=user.id,
                )
            raise InvalidCredentials()

        await self.session.start(user.id)
        logger.info("user_logged_in", user_id=user.id)
        if self._audit_logger:
            await self._audit_logger.log_login_succeeded(user_id=user.id)
        return user

    async def logout(self) -> None:
        """End the current session. Safe to call without one."""
        user_id = await self.session.current_user_id()
        await self.session.end()
        if self._audit_logger:
            await self._audit_logger.log_logged_out(user_id=user_id)

    async def get_current_user(self) -> Optional[User]:
        """
        Return the user the session points at, or None without a session.

        Raises:
            SessionIntegrityError: the session names an unregistered user
        """
        user_id = await self.session.current_user_id()
        if user_id is None:
            return None
        user = await self._find_user(user_id)
        if user is None:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="dangling_session",
                    error_message=f"Session refers to unknown user {user_id}",
                )
            raise SessionIntegrityError(user_id)
        return user

    async def _require_current_user_id(self) -> str:
        user_id = await self.session.current_user_id()
        if user_id is None:
            raise NoActiveSession()
        return user_id

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_transactions_for_user(self, user_id: str) -> list[Transaction]:
        """
        All transactions owned by a user, newest first.

        Equal timestamps are ordered by insertion, latest first.
        """
        transactions = await self._load_transactions(user_id)
        return sorted(
            transactions,
            key=lambda t: (t.created_at, t.sequence),
            reverse=True,
        )

    async def get_balance_for_current_user(self) -> Decimal:
        """Current user's balance, or 0 when nobody is logged in."""
        user = await self.get_current_user()
        if user is None:
            return Decimal("0")
        return user.balance

    def quote(
        self,
        type: Union[TransactionType, str],
        amount: Union[Decimal, int, float, str],
        fee: Optional[Union[Decimal, int, float, str]] = None,
    ) -> FeeQuote:
        """Preview the fee and total for a transaction using this ledger's schedule."""
        return quote_fee(
            TransactionType(type),
            Decimal(str(amount)),
            min_fee=self._settings.min_fee,
            fee_rate=self._settings.fee_rate,
            fee=None if fee is None else Decimal(str(fee)),
        )

    # =========================================================================
    # Movements
    # =========================================================================

    async def create_transaction_for_current_user(
        self,
        type: Union[TransactionType, str],
        *,
        amount: Union[Decimal, int, float, str],
        counterparty: Optional[str] = None,
        fee: Optional[Union[Decimal, int, float, str]] = None,
        note: Optional[str] = None,
    ) -> Transaction:
        """
        Record a transaction for the current user and update their balance.

        Raises:
            NoActiveSession: nobody is logged in (nothing is written)
            InvalidTransactionRequest: arguments do not form a valid request
            InsufficientBalance: overdraft is disabled and a send would overdraw
            StorageError: a store write failed
        """
        user_id = await self._require_current_user_id()
        try:
            request = build_transaction_request(
                type=type,
                amount=amount,
                counterparty=counterparty,
                fee=fee,
                note=note,
            )
        except InvalidTransactionRequest as e:
            if self._audit_logger:
                await self._audit_logger.log_transaction_rejected(
                    reason="invalid_request",
                    user_id=user_id,
                    details={"error": str(e)},
                )
            raise
        return await self._apply(user_id, request)

    async def create_transaction(self, request: TransactionRequest) -> Transaction:
        """Typed entry point: record an already-validated request."""
        user_id = await self._require_current_user_id()
        return await self._apply(user_id, request)

    async def _apply(self, user_id: str, request: TransactionRequest) -> Transaction:
        transaction_type = request.transaction_type

        async with self._lock_for(user_id):
            user = await self._find_user(user_id)
            if user is None:
                raise SessionIntegrityError(user_id)

            fee = request.fee
            if fee is None:
                fee = compute_fee(request.amount, self._settings.min_fee, self._settings.fee_rate)
            total = compute_total(transaction_type, request.amount, fee)
            new_balance = apply_to_balance(user.balance, transaction_type, request.amount, fee)

            if transaction_type.is_debit and not self._settings.allow_overdraft and new_balance < 0:
                if self._audit_logger:
                    await self._audit_logger.log_transaction_rejected(
                        reason="insufficient_balance",
                        user_id=user_id,
                        details={"balance": str(user.balance), "required": str(total)},
                    )
                raise InsufficientBalance(balance=user.balance, required=total)

            try:
                transactions = await self._load_transactions(user_id)
                sequence = max((t.sequence for t in transactions), default=0) + 1
                transaction = Transaction(
                    id=self._ids.next(),
                    user_id=user_id,
                    type=transaction_type,
                    counterparty=request.counterparty,
                    amount=request.amount,
                    fee=fee,
                    total=total,
                    note=request.note,
                    status=TransactionStatus.COMPLETED,
                    created_at=self._clock.now(),
                    sequence=sequence,
                )
                # Newest first, so the stored order is already the display order
                transactions.insert(0, transaction)
                await self._save_transactions(user_id, transactions)

                async with self._registry_lock:
                    users = await self._load_users()
                    for index, candidate in enumerate(users):
                        if candidate.id == user_id:
                            users[index] = candidate.with_balance(new_balance)
                            break
                    await self._save_users(users)
            except StorageError as e:
                await self._storage_failed("create_transaction", e, user_id)
                raise

        logger.info(
            "transaction_created",
            user_id=user_id,
            transaction_id=transaction.id,
            type=transaction_type.value,
        )
        if self._audit_logger:
            await self._audit_logger.log_transaction_created(
                user_id=user_id,
                transaction_id=transaction.id,
                transaction_type=transaction_type.value,
                amount=str(transaction.amount),
                fee=str(transaction.fee),
                balance=str(new_balance),
            )
        return transaction
