from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.models import Identity, SessionRecord
from .base import SnapshotCallback

__all__ = ["InMemoryHistoryStore"]

logger = logging.getLogger(__name__)


class InMemoryHistoryStore:
    """Append-only per-identity history with push subscriptions.

    Subscribers receive the whole ordered snapshot immediately on subscribe
    and again after every write for their identity.
    """

    def __init__(self) -> None:
        self._records: dict[str, list[SessionRecord]] = {}
        self._subscribers: dict[str, list[SnapshotCallback]] = {}

    def snapshot(self, identity: Identity) -> tuple[SessionRecord, ...]:
        records = self._records.get(identity.uid, [])
        return tuple(sorted(records, key=lambda record: record.timestamp))

    async def write(self, identity: Identity, record: SessionRecord) -> None:
        self._records.setdefault(identity.uid, []).append(record)
        logger.debug("history record stored", extra={"uid": identity.uid, "record_id": record.id})
        self._publish(identity)

    def subscribe(self, identity: Identity, on_snapshot: SnapshotCallback) -> Callable[[], None]:
        subscribers = self._subscribers.setdefault(identity.uid, [])
        subscribers.append(on_snapshot)
        on_snapshot(self.snapshot(identity))

        def unsubscribe() -> None:
            if on_snapshot in subscribers:
                subscribers.remove(on_snapshot)

        return unsubscribe

    def subscriber_count(self, identity: Identity) -> int:
        return len(self._subscribers.get(identity.uid, []))

    def _publish(self, identity: Identity) -> None:
        snapshot = self.snapshot(identity)
        for callback in list(self._subscribers.get(identity.uid, [])):
            callback(snapshot)
