"""Services package."""

from ewallet.services.clock import (
    Clock,
    IdGenerator,
    SystemClock,
    UuidGenerator,
)
from ewallet.services.storage import (
    AUDIT_LOG_KEY,
    AuditStorageInterface,
    FileSecretStore,
    InMemoryKeyValueStore,
    InMemorySecretStore,
    JsonFileKeyValueStore,
    KeyValueAuditStorage,
    KeyValueStoreInterface,
    SecretStoreInterface,
    SerializationError,
    StorageError,
)

__all__ = [
    # Identity and time
    "Clock",
    "IdGenerator",
    "SystemClock",
    "UuidGenerator",
    # Storage services
    "AUDIT_LOG_KEY",
    "AuditStorageInterface",
    "FileSecretStore",
    "InMemoryKeyValueStore",
    "InMemorySecretStore",
    "JsonFileKeyValueStore",
    "KeyValueAuditStorage",
    "KeyValueStoreInterface",
    "SecretStoreInterface",
    "SerializationError",
    "StorageError",
]
