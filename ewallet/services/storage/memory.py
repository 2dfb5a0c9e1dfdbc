"""
In-Memory Storage Implementation

Used by tests and by throwaway sessions. Values are round-tripped
through JSON on every write and read, so this store accepts and
rejects exactly what the file store does, and callers can never
mutate stored data through a returned reference.

`fail_on` lets a test make a chosen operation fail:

    kvs.fail_on = lambda op, key: op == "set" and key == USERS_KEY
"""

import json
from typing import Any, Callable, Optional

from ewallet.services.storage.interface import (
    KeyValueStoreInterface,
    SecretStoreInterface,
    SerializationError,
    StorageError,
)


FailurePredicate = Callable[[str, str], bool]


class InMemoryKeyValueStore(KeyValueStoreInterface):
    """Dict-backed key-value store holding encoded JSON documents."""

    def __init__(self, fail_on: Optional[FailurePredicate] = None):
        self._data: dict[str, str] = {}
        self.fail_on = fail_on

    def _check(self, operation: str, key: str) -> None:
        if self.fail_on is not None and self.fail_on(operation, key):
            raise StorageError(f"Simulated {operation} failure for key {key!r}")

    async def get(self, key: str) -> Optional[Any]:
        self._check("get", key)
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._check("set", key)
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Value for key {key!r} is not JSON-serializable: {e}") from e

    async def delete(self, key: str) -> None:
        self._check("delete", key)
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class InMemorySecretStore(SecretStoreInterface):
    """Dict-backed secret store."""

    def __init__(self, fail_on: Optional[FailurePredicate] = None):
        self._secrets: dict[str, str] = {}
        self.fail_on = fail_on

    def _check(self, operation: str, key: str) -> None:
        if self.fail_on is not None and self.fail_on(operation, key):
            raise StorageError(f"Simulated {operation} failure for secret {key!r}")

    async def get(self, key: str) -> Optional[str]:
        self._check("get", key)
        return self._secrets.get(key)

    async def set(self, key: str, value: str) -> None:
        self._check("set", key)
        if not isinstance(value, str):
            raise SerializationError(f"Secret for {key!r} must be a string")
        self._secrets[key] = value

    async def delete(self, key: str) -> None:
        self._check("delete", key)
        self._secrets.pop(key, None)
