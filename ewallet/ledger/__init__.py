"""Ledger package: accounts, sessions, fees and the transaction engine."""

from ewallet.ledger.engine import LedgerEngine
from ewallet.ledger.errors import (
    AuthenticationError,
    DuplicateIdentifier,
    InsufficientBalance,
    InvalidCredentials,
    InvalidTransactionRequest,
    LedgerError,
    NoActiveSession,
    SessionIntegrityError,
    UserNotFound,
)
from ewallet.ledger.fees import (
    FeeQuote,
    apply_to_balance,
    compute_fee,
    compute_total,
    net_effect,
    quote,
    to_money,
)
from ewallet.ledger.keys import (
    CURRENT_USER_KEY,
    SECRET_KEY_PREFIX,
    TX_KEY_PREFIX,
    USERS_KEY,
    secret_key,
    transactions_key,
)
from ewallet.ledger.passwords import hash_password, verify_password
from ewallet.ledger.requests import build_transaction_request
from ewallet.ledger.session import SessionContext

__all__ = [
    # Engine
    "LedgerEngine",
    "SessionContext",
    "build_transaction_request",
    # Errors
    "AuthenticationError",
    "DuplicateIdentifier",
    "InsufficientBalance",
    "InvalidCredentials",
    "InvalidTransactionRequest",
    "LedgerError",
    "NoActiveSession",
    "SessionIntegrityError",
    "UserNotFound",
    # Fees
    "FeeQuote",
    "apply_to_balance",
    "compute_fee",
    "compute_total",
    "net_effect",
    "quote",
    "to_money",
    # Keys
    "CURRENT_USER_KEY",
    "SECRET_KEY_PREFIX",
    "TX_KEY_PREFIX",
    "USERS_KEY",
    "secret_key",
    "transactions_key",
    # Passwords
    "hash_password",
    "verify_password",
]
