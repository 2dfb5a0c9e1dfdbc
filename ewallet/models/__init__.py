"""
Data Models Package

This package contains all Pydantic models used by the e-wallet ledger.
All data persisted by the ledger must conform to these schemas.
"""

from ewallet.models.user import User
from ewallet.models.transaction import (
    ReceiveRequest,
    RefundRequest,
    SendRequest,
    TopUpRequest,
    Transaction,
    TransactionRequest,
    TransactionStatus,
    TransactionType,
)
from ewallet.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Account models
    "User",
    # Ledger models
    "ReceiveRequest",
    "RefundRequest",
    "SendRequest",
    "TopUpRequest",
    "Transaction",
    "TransactionRequest",
    "TransactionStatus",
    "TransactionType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
