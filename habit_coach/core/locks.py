import asyncio
from contextlib import asynccontextmanager


class KeyedLocks:
    """One asyncio.Lock per key, alive only while someone holds or awaits it.

    Lock objects are bound to the running loop when contended, so a registry
    must not outlive the event loop it is used on.
    """

    def __init__(self):
        # key -> (lock, holders + waiters)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def hold(self, key: str):
        lock, users = self._locks.get(key, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[key] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[key]
            if users == 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)

    def __len__(self) -> int:
        return len(self._locks)


# shared by the HTTP API and the scheduler
insight_locks = KeyedLocks()
