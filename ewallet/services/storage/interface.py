"""
Abstract Storage Interface

DESIGN DECISION: The ledger never touches a file or a database directly.
It talks to three small interfaces:
1. A key-value store for JSON documents (users, sessions, transaction logs)
2. A secret store for credentials, kept apart from the key-value data
3. An audit store for the append-only audit trail

This allows us to:
1. Swap local JSON files for SQLite or a platform store later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from how bytes reach the disk

The interface is intentionally tiny - get, set, delete.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ewallet.models.audit import AuditEvent


class KeyValueStoreInterface(ABC):
    """
    Durable store of JSON-serializable values addressed by string keys.

    A value read back is a fresh copy; mutating it does not change the
    stored document until it is written with `set`.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Read the value stored under a key.

        Returns:
            The decoded JSON value, or None if the key is absent

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """
        Store a JSON-serializable value under a key, replacing any old value.

        A failed write must leave the previous value in place.

        Raises:
            SerializationError: If the value cannot be encoded as JSON
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""
        pass


class SecretStoreInterface(ABC):
    """
    Store for one protected string per key.

    Kept separate from KeyValueStoreInterface so that secrets can be
    placed on a different medium, protected and wiped independently.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the secret under a key, or None if none is stored."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """
        Store a secret.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a secret. Removing an absent secret is not an error."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class SerializationError(StorageError):
    """A value could not be encoded to, or decoded from, JSON."""
    pass
