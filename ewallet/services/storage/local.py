"""
Local File Storage Implementation

DESIGN DECISION: On-device storage is a directory of JSON documents,
one file per key, because:
1. The data is small (one person's wallet)
2. No database setup required
3. Files can be inspected by hand when debugging

TRADEOFFS:
- No multi-key transactions (the ledger documents this risk)
- Whole-document rewrites on every update (fine at wallet scale)

Every write goes to a temporary file first and is moved into place
with os.replace, so a failed write never leaves a half-written document.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

from ewallet.services.storage.interface import (
    KeyValueStoreInterface,
    SecretStoreInterface,
    SerializationError,
    StorageError,
)


def _key_to_filename(key: str, suffix: str) -> str:
    """Map an arbitrary key to a safe, reversible file name."""
    if not key:
        raise StorageError("Storage key must not be empty")
    return quote(key, safe="") + suffix


def _atomic_write(path: Path, data: str, mode: int = 0o644) -> None:
    """Write text to path via a temp file in the same directory."""
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
    try:
        os.chmod(tmp_path, mode)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class JsonFileKeyValueStore(KeyValueStoreInterface):
    """
    Key-value store backed by one JSON file per key.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory {self.directory}: {e}") from e

    def _path(self, key: str) -> Path:
        return self.directory / _key_to_filename(key, ".json")

    async def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise SerializationError(f"Corrupt document for key {key!r}: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read key {key!r}: {e}") from e

    async def set(self, key: str, value: Any) -> None:
        try:
            data = json.dumps(value, indent=2)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Value for key {key!r} is not JSON-serializable: {e}") from e
        try:
            _atomic_write(self._path(key), data)
        except OSError as e:
            raise StorageError(f"Failed to write key {key!r}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete key {key!r}: {e}") from e


class FileSecretStore(SecretStoreInterface):
    """
    Secret store backed by owner-only files in a dedicated directory.

    The directory is created with mode 0700 and every secret file with
    mode 0600. Wiping the directory removes every credential without
    touching ledger data.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True, mode=0o700)
        except OSError as e:
            raise StorageError(f"Cannot create secrets directory {self.directory}: {e}") from e

    def _path(self, key: str) -> Path:
        return self.directory / _key_to_filename(key, ".secret")

    async def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read secret {key!r}: {e}") from e

    async def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise SerializationError(f"Secret for {key!r} must be a string")
        try:
            _atomic_write(self._path(key), value, mode=0o600)
        except OSError as e:
            raise StorageError(f"Failed to write secret {key!r}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete secret {key!r}: {e}") from e
