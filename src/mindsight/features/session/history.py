"""Read-only projection of the store-owned session history.

Store pushes are posted as ``SnapshotEvent`` messages on an ``asyncio.Queue``
and applied by a consumer task, so the store's callback never touches the
projection directly.  Each subscription carries an id; events from a
subscription that has since been torn down are dropped.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ...clients.base import HistoryStore, Unsubscribe
from ...core.models import Identity, SessionRecord

__all__ = ["HistoryProjection", "SnapshotEvent"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotEvent:
    subscription: int
    records: tuple[SessionRecord, ...]


class HistoryProjection:
    def __init__(self, store: HistoryStore, *, on_change: Callable[[], None] | None = None) -> None:
        self._store = store
        self._on_change = on_change
        self._records: tuple[SessionRecord, ...] = ()
        self._identity: Identity | None = None
        self._subscription = 0
        self._unsubscribe: Unsubscribe | None = None
        self._queue: asyncio.Queue[SnapshotEvent] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None

    @property
    def records(self) -> tuple[SessionRecord, ...]:
        return self._records

    @property
    def identity(self) -> Identity | None:
        return self._identity

    def attach(self, identity: Identity) -> None:
        """Subscribe to *identity*'s history.  Must run on the event loop."""

        self.detach()
        self._subscription += 1
        self._identity = identity
        self._ensure_consumer()
        subscription = self._subscription

        def _post(records: Sequence[SessionRecord]) -> None:
            self._queue.put_nowait(SnapshotEvent(subscription, tuple(records)))

        self._unsubscribe = self._store.subscribe(identity, _post)
        logger.debug("history subscription opened", extra={"uid": identity.uid, "subscription": subscription})

    def detach(self) -> None:
        """Tear down the subscription and clear the projection synchronously."""

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.debug("history subscription closed", extra={"subscription": self._subscription})
        self._subscription += 1
        self._identity = None
        if self._records:
            self._records = ()
            self._changed()

    async def settle(self) -> None:
        """Wait until every posted snapshot has been applied or dropped."""

        await self._queue.join()

    async def aclose(self) -> None:
        self.detach()
        consumer, self._consumer = self._consumer, None
        if consumer is not None:
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer

    def _ensure_consumer(self) -> None:
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.get_running_loop().create_task(
                self._consume(), name="mindsight-history-projection"
            )

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self._apply(event)
            finally:
                self._queue.task_done()

    def _apply(self, event: SnapshotEvent) -> None:
        if event.subscription != self._subscription:
            logger.debug(
                "dropping snapshot from closed subscription",
                extra={"subscription": event.subscription, "current": self._subscription},
            )
            return
        self._records = event.records
        self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
