"""In-process change feed for the remote backend.

Every ``RemoteBookStorage`` bound to the same ``RemoteBackend`` publishes
its committed writes here, so all open clients of a user hear about
changes made by any of them. Delivery is scoped to the owner of the
changed row and follows publish order.
"""

import asyncio
import logging
from collections import defaultdict

from bookshelf.models import ChangeEvent
from bookshelf.storage.base import ChangeCallback, Unsubscribe

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """Cancellable stream of change events for one owner.

    Iterate with ``async for``. After ``unsubscribe()`` no further events
    are delivered and iteration stops. The buffer is bounded; when it
    overflows the oldest pending event is dropped.
    """

    def __init__(self, feed: "ChangeFeed", owner_id: str, maxsize: int) -> None:
        self._feed = feed
        self._owner_id = owner_id
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._queue.qsize()

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed._detach(self)
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def _deliver(self, event: ChangeEvent) -> None:
        if self._closed:
            return
        if self._queue.full():
            dropped = self._queue.get_nowait()
            logger.warning(
                "Change feed buffer full for %s; dropped %s event",
                self._owner_id,
                dropped.event_type,
            )
        self._queue.put_nowait(event)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class ChangeFeed:
    """Broadcast hub for row changes, keyed by owner.

    Args:
        queue_size: Buffer size of each ``Subscription``.
    """

    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._callbacks: dict[str, list[ChangeCallback]] = defaultdict(list)
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)

    def listen(self, owner_id: str, callback: ChangeCallback) -> Unsubscribe:
        """Invoke ``callback`` synchronously for each change to ``owner_id``'s rows.

        Returns:
            A function that removes the callback. Calling it twice is harmless.
        """
        self._callbacks[owner_id].append(callback)

        def unsubscribe() -> None:
            callbacks = self._callbacks.get(owner_id, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def open(self, owner_id: str) -> Subscription:
        """Open an async-iterable subscription to ``owner_id``'s rows."""
        subscription = Subscription(self, owner_id, self._queue_size)
        self._subscriptions[owner_id].append(subscription)
        return subscription

    def publish(self, event: ChangeEvent) -> None:
        """Deliver ``event`` to every listener of its owner, in registration order."""
        for callback in list(self._callbacks.get(event.owner_id, [])):
            try:
                callback(event)
            except Exception:
                logger.exception("Change feed callback failed for %s event", event.event_type)
        for subscription in list(self._subscriptions.get(event.owner_id, [])):
            subscription._deliver(event)

    def listener_count(self, owner_id: str) -> int:
        return len(self._callbacks.get(owner_id, [])) + len(self._subscriptions.get(owner_id, []))

    def _detach(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.owner_id, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
