"""
Audit Logger

DESIGN DECISION: Every significant ledger action is logged.
This provides:
1. Traceability of each balance change
2. Debugging capability when storage misbehaves
3. A record of failed logins

The audit logger:
- Is async like the storage it writes to
- Gracefully handles failures (a broken audit store never fails a transfer)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from ewallet.models.audit import AuditEvent, AuditEventBuilder
from ewallet.services.storage import AuditStorageInterface, StorageError


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Records ledger events.

    Every event goes to the structured log. When an audit store is
    attached, the event is also appended to the persisted trail.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        self._storage = storage
        self._logger = structlog.get_logger("ewallet.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Emit one event and persist it if a store is attached.

        Returns False only when the store rejected the write.
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except StorageError as e:
                # The ledger call that produced the event still succeeds
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_user_signed_up(
        self,
        user_id: str,
        identifier: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log account creation."""
        await self.log(AuditEventBuilder.user_signed_up(
            user_id=user_id,
            identifier=identifier,
            correlation_id=correlation_id,
        ))

    async def log_signup_rejected(
        self,
        identifier: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a refused signup."""
        await self.log(AuditEventBuilder.signup_rejected(
            identifier=identifier,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_login_succeeded(
        self,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.login_succeeded(
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_login_failed(
        self,
        identifier: str,
        reason: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.login_failed(
            identifier=identifier,
            reason=reason,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_logged_out(
        self,
        user_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.logged_out(
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_transaction_created(
        self,
        user_id: str,
        transaction_id: str,
        transaction_type: str,
        amount: str,
        fee: str,
        balance: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a completed ledger write."""
        await self.log(AuditEventBuilder.transaction_created(
            user_id=user_id,
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            fee=fee,
            balance=balance,
            correlation_id=correlation_id,
        ))

    async def log_transaction_rejected(
        self,
        reason: str,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_rejected(
            reason=reason,
            user_id=user_id,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_storage_failed(
        self,
        operation: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a storage failure that is about to propagate to the caller."""
        await self.log(AuditEventBuilder.storage_failed(
            operation=operation,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    New id tying together the events of one user action.

    Use this at the start of a user action (e.g., a send) and pass
    it through all subsequent operations.
    """
    return uuid4()
