"""
Ledger Errors

Every failure the ledger can report is a typed exception rooted at
LedgerError, so callers can catch the whole family in one place.

Storage failures are NOT part of this family. A StorageError from the
key-value or secret store reaches the caller unchanged.
"""

from decimal import Decimal


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class DuplicateIdentifier(LedgerError):
    """Signup with an identifier that is already registered."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__("A user with that identifier already exists.")


class AuthenticationError(LedgerError):
    """
    Login failed.

    UI layers that do not want to reveal which identifiers exist can
    catch this and show one message for both subclasses.
    """
    pass


class UserNotFound(AuthenticationError):
    """No user is registered under the identifier."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__("No user found with that identifier.")


class InvalidCredentials(AuthenticationError):
    """The password does not match the stored secret, or no secret exists."""

    def __init__(self):
        super().__init__("Incorrect password.")


class NoActiveSession(LedgerError):
    """An operation needing a logged-in user was called without one."""

    def __init__(self):
        super().__init__("No logged-in user.")


class InvalidTransactionRequest(LedgerError):
    """A transaction request is malformed (bad type, negative amount, missing recipient)."""
    pass


class InsufficientBalance(LedgerError):
    """A send would overdraw the wallet while overdraft is disabled."""

    def __init__(self, balance: Decimal, required: Decimal):
        self.balance = balance
        self.required = required
        super().__init__(
            f"Insufficient balance: {balance} available, {required} required"
        )


class SessionIntegrityError(LedgerError):
    """The session points at a user id that is not in the registry."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Session refers to unknown user {user_id!r}")
