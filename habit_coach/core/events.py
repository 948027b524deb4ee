import asyncio
import logging

logger = logging.getLogger(__name__)


class ChangeFeed:
    """Fan-out of "something changed" signals to live observers.

    Each subscriber owns a queue of size one; a pending signal already means
    "re-read", so extra signals are dropped instead of queued.
    """

    def __init__(self):
        self._subscribers: set[asyncio.Queue] = set()

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def publish(self) -> None:
        for queue in self._subscribers:
            if queue.full():
                continue
            queue.put_nowait(None)
        logger.debug("Change published to %d observers", len(self._subscribers))

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


habit_changes = ChangeFeed()
