"""Single-slot completion signals bridging engine events to awaiting callers."""

import asyncio
import threading
from typing import Any, Optional

import logging
logger = logging.getLogger(__name__)


class CompletionSignal:
    """
    One-shot completion slot fed by events from any thread.

    Only one waiter is outstanding per signal: arming again releases the
    previous waiter with None. An event that arrives while nothing is armed
    is dropped, so late events never complete a future waiter.
    """

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._future: Optional[asyncio.Future] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def armed(self) -> bool:
        with self._lock:
            return self._future is not None and not self._future.done()

    def arm(self) -> asyncio.Future:
        """Create the waiter future on the running loop. Call from the loop thread."""
        loop = asyncio.get_running_loop()
        fut = loop.create_future()
        with self._lock:
            previous, previous_loop = self._future, self._loop
            self._future, self._loop = fut, loop
        if previous is not None and previous_loop is loop and not previous.done():
            previous.set_result(None)
        return fut

    def disarm(self, fut: Optional[asyncio.Future] = None) -> None:
        """Drop the armed waiter (only if it is still fut, when given)."""
        with self._lock:
            if fut is None or self._future is fut:
                self._future, self._loop = None, None

    def fire(self, value: Any = None) -> bool:
        """
        Complete the armed waiter with value. Safe to call from any thread.

        Returns:
            bool: False when no waiter was armed and the event was dropped
        """
        with self._lock:
            fut, loop = self._future, self._loop
            self._future, self._loop = None, None
        if fut is None or loop is None:
            logger.debug("Signal %s fired with no waiter; ignored", self.name)
            return False
        try:
            loop.call_soon_threadsafe(_resolve, fut, value)
        except RuntimeError:
            # Loop already closed.
            return False
        return True


def _resolve(fut: asyncio.Future, value: Any) -> None:
    if not fut.done():
        fut.set_result(value)


async def wait_any(futures, timeout: float) -> Optional[asyncio.Future]:
    """
    Wait until the first of futures completes or timeout elapses.

    Returns:
        The completed future, or None on timeout. Timeouts are not errors.
    """
    done, _ = await asyncio.wait(set(futures), timeout=max(timeout, 0.0), return_when=asyncio.FIRST_COMPLETED)
    for fut in futures:
        if fut in done:
            return fut
    return None


__all__ = ["CompletionSignal", "wait_any"]
