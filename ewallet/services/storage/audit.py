"""
Key-Value Audit Storage

Keeps the audit trail as a single JSON list inside the key-value store,
oldest event first. Suitable for a single device; the list is rewritten
on each append.
"""

from ewallet.models.audit import AuditEvent
from ewallet.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStoreInterface,
)


AUDIT_LOG_KEY = "DEMO_AUDIT_LOG_V1"


class KeyValueAuditStorage(AuditStorageInterface):
    """Audit storage on top of any KeyValueStoreInterface."""

    def __init__(
        self,
        kvs: KeyValueStoreInterface,
        key: str = AUDIT_LOG_KEY,
        max_events: int = 5000,
    ):
        self._kvs = kvs
        self._key = key
        self._max_events = max_events

    async def _load(self) -> list[AuditEvent]:
        raw = await self._kvs.get(self._key) or []
        events = []
        for item in raw:
            try:
                events.append(AuditEvent.model_validate(item))
            except ValueError:
                # Skip malformed rows rather than losing the whole trail
                continue
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event, dropping the oldest beyond max_events."""
        raw = await self._kvs.get(self._key) or []
        raw.append(event.model_dump(mode="json"))
        if len(raw) > self._max_events:
            raw = raw[-self._max_events:]
        await self._kvs.set(self._key, raw)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity, oldest first."""
        events = await self._load()
        matching = [
            e for e in events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        matching.sort(key=lambda e: e.timestamp)
        return matching

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events, newest first."""
        events = await self._load()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
