"""Tree-wide mutual exclusion for structural reads and writes.

Every read-modify-write of a node's children goes through one TreeLock, so
"fetch children, reconcile, replace the child list" looks atomic to any
other expansion running on the same event loop.
"""

import asyncio


class LockNotHeldError(RuntimeError):
    """Raised when a TreeLock is released without being held."""


class TreeLock:
    """Coarse async lock guarding the shared NodeData tree.

    Acquirers suspend instead of blocking the loop. Use it as an async
    context manager so the release happens on every exit path::

        async with tree_lock:
            ...
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self.acquisitions = 0

    async def acquire(self) -> bool:
        await self._lock.acquire()
        self.acquisitions += 1
        return True

    def release(self) -> None:
        """Release the lock.

        Raises:
            LockNotHeldError: If the lock is not currently held
        """
        if not self._lock.locked():
            raise LockNotHeldError("TreeLock released without being acquired")
        self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.release()

    def __repr__(self) -> str:
        state = "locked" if self.locked() else "unlocked"
        return f"TreeLock({state}, acquisitions={self.acquisitions})"
