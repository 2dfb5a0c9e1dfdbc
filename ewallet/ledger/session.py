"""
Session Context

Owns the pointer to the currently authenticated user. The pointer is
persisted in the key-value store so a session survives an app restart,
under DEMO_CURRENT_USER_ID.

Lifecycle: started on signup or login, ended on logout.
"""

from typing import Optional

from ewallet.ledger.keys import CURRENT_USER_KEY
from ewallet.services.storage import KeyValueStoreInterface


class SessionContext:
    """Persisted "current user id" for one device."""

    def __init__(self, kvs: KeyValueStoreInterface, key: str = CURRENT_USER_KEY):
        self._kvs = kvs
        self._key = key

    async def start(self, user_id: str) -> None:
        await self._kvs.set(self._key, user_id)

    async def end(self) -> None:
        """Clear the pointer. Ending a session that never started is fine."""
        await self._kvs.delete(self._key)

    async def current_user_id(self) -> Optional[str]:
        value = await self._kvs.get(self._key)
        if isinstance(value, str) and value:
            return value
        return None

    async def is_active(self) -> bool:
        return await self.current_user_id() is not None
