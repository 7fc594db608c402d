"""
Broadcast Channel
==================

Fans snapshots out to any number of subscribers.

Each subscriber receives the current snapshot as soon as it subscribes,
then every snapshot the source publishes afterwards, interleaved with a
keep-alive message every ``keepalive_seconds``.

Example:
    async with SnapshotBroadcaster(watcher) as broadcaster:
        subscription = await broadcaster.subscribe()
        async for message in subscription:
            if message.kind == MessageKind.SNAPSHOT:
                print(message.snapshot.project.name)
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from teamwatch.constants import KEEPALIVE_SECONDS, SUBSCRIBER_QUEUE_SIZE
from teamwatch.exceptions import WatcherError
from teamwatch.models import Snapshot
from teamwatch.services.demo import StaticSnapshotSource
from teamwatch.services.watcher import SnapshotWatcher

logger = logging.getLogger(__name__)

SnapshotSource = Union[SnapshotWatcher, StaticSnapshotSource]


class MessageKind(str, Enum):
    SNAPSHOT = "snapshot"
    KEEPALIVE = "keepalive"


@dataclass(frozen=True)
class BroadcastMessage:
    kind: MessageKind
    snapshot: Optional[Snapshot] = None


KEEPALIVE = BroadcastMessage(kind=MessageKind.KEEPALIVE)


class Subscription:
    """
    One subscriber's message stream.

    Iterate with ``async for``; iteration ends once the subscription is
    closed, either by ``close()`` or by the broadcaster stopping.

    At most ``maxsize`` messages wait in the queue. A subscriber that falls
    behind loses its oldest pending messages, never the newest snapshot.
    """

    def __init__(
        self,
        broadcaster: "SnapshotBroadcaster",
        maxsize: int = SUBSCRIBER_QUEUE_SIZE,
    ) -> None:
        self._broadcaster = broadcaster
        self._queue: "asyncio.Queue[Optional[BroadcastMessage]]" = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _put(self, message: Optional[BroadcastMessage]) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            logger.debug("Subscriber queue full; dropped oldest message (%d total)", self.dropped)
        self._queue.put_nowait(message)

    def deliver(self, message: BroadcastMessage) -> None:
        if not self._closed:
            self._put(message)

    def _finish(self) -> None:
        if not self._closed:
            self._closed = True
            self._put(None)

    def close(self) -> None:
        """Unsubscribe; pending messages are discarded."""
        self._broadcaster.unsubscribe(self)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> BroadcastMessage:
        message = await self._queue.get()
        if message is None:
            raise StopAsyncIteration
        return message

    async def get(self, timeout: Optional[float] = None) -> Optional[BroadcastMessage]:
        """
        Next message, or ``None`` once closed.

        Raises:
            asyncio.TimeoutError: If ``timeout`` elapses first.
        """
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)


class SnapshotBroadcaster:
    """
    Explicit publish/subscribe broker in front of a snapshot source.

    The source is started lazily by the first ``subscribe()`` (or by an
    explicit ``start()``) and stopped by ``stop()``. Publishing iterates a
    copy of the subscriber list, so subscribers may come and go while a
    snapshot is being delivered.
    """

    def __init__(
        self,
        source: SnapshotSource,
        keepalive_seconds: float = KEEPALIVE_SECONDS,
        queue_size: int = SUBSCRIBER_QUEUE_SIZE,
    ) -> None:
        self.source = source
        self.keepalive_seconds = keepalive_seconds
        self.queue_size = queue_size
        self._subscriptions: List[Subscription] = []
        self._keepalive_task: Optional[asyncio.Task[None]] = None
        self._started = False
        self._start_lock: Optional[asyncio.Lock] = None

    @property
    def started(self) -> bool:
        return self._started

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def start(self) -> None:
        """Start the source and the keep-alive task. Idempotent."""
        if self._start_lock is None:
            self._start_lock = asyncio.Lock()
        async with self._start_lock:
            if self._started:
                return
            self.source.add_listener(self.publish)
            self.source.add_error_listener(self._on_source_error)
            if self.source.last_snapshot is None:
                await self.source.get_initial_snapshot()
            self.source.start()
            self._keepalive_task = asyncio.create_task(self._keepalive_loop())
            self._started = True
            logger.info("Broadcaster started (keepalive=%.1fs)", self.keepalive_seconds)

    async def stop(self) -> None:
        """Stop the source and end every open subscription."""
        if not self._started:
            return
        self._started = False

        task, self._keepalive_task = self._keepalive_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self.source.remove_listener(self.publish)
        self.source.remove_error_listener(self._on_source_error)
        await self.source.stop()

        for subscription in list(self._subscriptions):
            self.unsubscribe(subscription)
        logger.info("Broadcaster stopped")

    async def __aenter__(self) -> "SnapshotBroadcaster":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def current_snapshot(self) -> Snapshot:
        """Freshly assembled snapshot; what subscribers last received is unaffected."""
        return await self.source.assemble()

    async def subscribe(self) -> Subscription:
        """
        Register a subscriber.

        The returned subscription already holds the current snapshot; later
        snapshots and keep-alives follow in order.
        """
        await self.start()
        published_before = self.source.last_snapshot
        snapshot = await self.current_snapshot()
        # a pass may have published while we were assembling; prefer the newer one
        latest = self.source.last_snapshot
        if latest is not None and latest is not published_before:
            snapshot = latest
        subscription = Subscription(self, maxsize=self.queue_size)
        subscription.deliver(BroadcastMessage(kind=MessageKind.SNAPSHOT, snapshot=snapshot))
        self._subscriptions.append(subscription)
        logger.debug("Subscriber added (%d total)", len(self._subscriptions))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove exactly this registration; unknown subscriptions are ignored."""
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass
        subscription._finish()
        logger.debug("Subscriber removed (%d total)", len(self._subscriptions))

    def publish(self, snapshot: Snapshot) -> None:
        message = BroadcastMessage(kind=MessageKind.SNAPSHOT, snapshot=snapshot)
        for subscription in list(self._subscriptions):
            subscription.deliver(message)

    def _on_source_error(self, error: WatcherError) -> None:
        logger.warning("Snapshot source error: %s", error.to_dict())

    async def _keepalive_loop(self) -> None:
        while True:
            await asyncio.sleep(self.keepalive_seconds)
            for subscription in list(self._subscriptions):
                subscription.deliver(KEEPALIVE)
