"""Debounced, ancestry-aware refresh scheduling.

Refresh requests arrive in bursts (file watchers, manual triggers). The
RefreshScheduler folds them into as few "tree changed" notifications as
possible without ever narrowing a broader pending refresh or dropping a
request: a narrower request is absorbed by a pending ancestor, and a
request for a disjoint subtree flushes the pending one first.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


class _Sentinel:
    def __init__(self, name: str):
        self._name = name

    def __repr__(self) -> str:
        return self._name


# The whole tree
ROOT = _Sentinel("ROOT")
# Nothing pending
NO_NODE = _Sentinel("NO_NODE")


class Debouncer:
    """Trailing-edge debounce on the asyncio event loop.

    Each call restarts the timer; when it expires the function runs once
    with the arguments of the latest call.
    """

    def __init__(self, func: Callable[..., Any], wait: float,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self._func = func
        self.wait = wait
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._args: tuple = ()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args) -> None:
        self._args = args
        if self._handle is not None:
            self._handle.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.wait, self._fire)

    def flush(self) -> bool:
        """Run the pending call now.

        Returns:
            True if a call was pending and has run
        """
        if self._handle is None:
            return False
        self._handle.cancel()
        self._fire()
        return True

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._args = ()

    def _fire(self) -> None:
        args = self._args
        self._handle = None
        self._args = ()
        self._func(*args)


class TreeChangedEvent:
    """Observer registry for "tree changed" notifications.

    The target passed to subscribers is a node, or ROOT for the whole tree.
    """

    def __init__(self):
        self._subscribers: List[Callable[[Any], None]] = []

    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Register a callback.

        Returns:
            Callable that unsubscribes it again
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def fire(self, target: Any) -> None:
        for callback in list(self._subscribers):
            try:
                callback(target)
            except Exception:
                logger.exception("Tree changed subscriber failed for %r", target)

    def __len__(self) -> int:
        return len(self._subscribers)


class RefreshScheduler:
    """Coalesce refresh requests into debounced notifications.

    ``pending`` is NO_NODE when idle, ROOT when the whole tree is queued,
    or the node whose subtree is queued.
    """

    def __init__(self, on_fire: Callable[[Any], None], delay: float,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Args:
            on_fire: Called with the target when a notification fires
            delay: Debounce window in seconds
            loop: Event loop for the timer (defaults to the running loop)
        """
        self._on_fire = on_fire
        self._loop = loop
        self._trigger: Optional[Debouncer] = None
        # Idle at start, so a first element refresh stays scoped to that element
        self.pending: Any = NO_NODE
        self.set_delay(delay)

    @property
    def delay(self) -> float:
        return self._trigger.wait

    def set_delay(self, delay: float) -> None:
        """Rebuild the debouncer with a new delay.

        A refresh queued under the old delay is flushed, not dropped.
        """
        if self._trigger is not None:
            self._trigger.flush()
        self._trigger = Debouncer(self.do_refresh, delay, self._loop)

    def refresh(self, immediate: bool = False, element: Optional[Any] = None) -> None:
        """Request a refresh of ``element``'s subtree (None = whole tree).

        Args:
            immediate: Fire now instead of waiting out the delay
            element: Node to refresh
        """
        pending = self.pending
        if element is None or pending is ROOT:
            self._trigger(ROOT)
            self.pending = ROOT
        elif pending is NO_NODE or element.is_itself_or_ancestor_of(pending):
            self._trigger(element)
            self.pending = element
        elif pending.is_itself_or_ancestor_of(element):
            # Already covered by the broader pending refresh
            self._trigger(pending)
        else:
            logger.debug("Disjoint refresh of %r; flushing pending %r", element, pending)
            self._trigger.flush()
            self._trigger(element)
            self.pending = element

        if immediate:
            self._trigger.flush()

    def flush(self) -> bool:
        return self._trigger.flush()

    def cancel(self) -> None:
        self._trigger.cancel()
        self.pending = NO_NODE

    def do_refresh(self, target: Any) -> None:
        try:
            self._on_fire(target)
        finally:
            self.pending = NO_NODE
