"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Local JSON files are the on-device backend; in-memory stores back the tests.
"""

from ewallet.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStoreInterface,
    SecretStoreInterface,
    SerializationError,
    StorageError,
)
from ewallet.services.storage.local import (
    FileSecretStore,
    JsonFileKeyValueStore,
)
from ewallet.services.storage.memory import (
    InMemoryKeyValueStore,
    InMemorySecretStore,
)
from ewallet.services.storage.audit import (
    AUDIT_LOG_KEY,
    KeyValueAuditStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStoreInterface",
    "SecretStoreInterface",
    # Exceptions
    "SerializationError",
    "StorageError",
    # Local implementation
    "FileSecretStore",
    "JsonFileKeyValueStore",
    # In-memory implementation
    "InMemoryKeyValueStore",
    "InMemorySecretStore",
    # Audit trail
    "AUDIT_LOG_KEY",
    "KeyValueAuditStorage",
]
