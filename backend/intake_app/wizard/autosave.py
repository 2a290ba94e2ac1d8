"""
Debounced autosave.

Each call to ``schedule`` replaces whatever was waiting, so a burst of
edits results in a single save carrying the last state. Saves never
overlap: one that comes due while the previous is still running waits
for it.

A value whose save failed stays unsaved. It is not retried on its own,
but the next ``flush`` sends it again.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Runs ``action(value)`` once the quiet period has passed without a newer value.

    Attributes:
        delay: Quiet period in seconds
        action: Coroutine function called with the latest value
        on_error: Called with the exception when an action fails
    """

    def __init__(
        self,
        delay: float,
        action: Callable[[Any], Awaitable[None]],
        on_error: Optional[Callable[[Exception], None]] = None
    ):
        self.delay = delay
        self.action = action
        self.on_error = on_error
        self._pending: Optional[asyncio.Task] = None
        self._value: Any = None
        self._dirty = False
        self._lock = asyncio.Lock()

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    @property
    def dirty(self) -> bool:
        """True while the latest value has not been saved successfully."""
        return self._dirty

    @property
    def busy(self) -> bool:
        return self.pending or self._dirty or self._lock.locked()

    def schedule(self, value: Any) -> None:
        """Queue ``value`` for saving, cancelling any save still waiting."""
        self.cancel()
        self._value = value
        self._dirty = True
        self._pending = asyncio.get_running_loop().create_task(self._run_later())

    def cancel(self) -> None:
        """
        Drop the waiting save and forget the unsaved value.

        A save already running is not interrupted.
        """
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        self._dirty = False

    async def flush(self) -> None:
        """Save the latest value now if it is unsaved, and wait until no save is running."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        await self._run()

    async def _run_later(self) -> None:
        await asyncio.sleep(self.delay)
        # Once due, newer edits schedule a fresh save instead of cancelling this one
        self._pending = None
        await self._run()

    async def _run(self) -> None:
        async with self._lock:
            if not self._dirty:
                return
            value = self._value
            try:
                await self.action(value)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Autosave failed: {e}")
                if self.on_error:
                    self.on_error(e)
                return
            # A newer value scheduled during the save is still unsaved
            if self._value is value:
                self._dirty = False
