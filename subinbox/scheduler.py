"""Fixed-interval polling with a busy guard."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

RefreshAction = Callable[[], Awaitable[None]]


class PollingScheduler:
    """Call ``refresh_action`` every ``interval`` seconds while enabled.

    At most one refresh is in flight: a tick that lands while the previous
    call is still running is skipped, not queued. Errors raised by the action
    are kept in ``last_error`` and do not stop the schedule.

    Must be created inside a running event loop.
    """

    def __init__(
        self,
        refresh_action: RefreshAction,
        interval: float = 5.0,
        enabled: bool = True,
        immediate: bool = True,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._refresh_action = refresh_action
        self.interval = interval
        self.immediate = immediate
        self._loop = asyncio.get_running_loop()
        self._active = False
        self._refreshing = False
        self._generation = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self.last_error: Optional[BaseException] = None
        self.invocation_count = 0
        if enabled:
            self.enable()

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    def enable(self) -> None:
        if self._active:
            return
        self._active = True
        self._generation += 1
        logger.debug("Polling enabled every %.2fs", self.interval)
        if self.immediate:
            self._start_background()
        self._schedule_tick(self._generation)

    def disable(self) -> None:
        if not self._active:
            return
        self._active = False
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        logger.debug("Polling disabled")

    def toggle(self) -> None:
        if self._active:
            self.disable()
        else:
            self.enable()

    async def refresh(self) -> None:
        """Run the action now unless a refresh is already in flight."""
        if not self._begin():
            return
        await self._execute()

    def close(self) -> None:
        """Disable and cancel the in-flight refresh, if any."""
        self.disable()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        # a task cancelled before its first step never reaches _execute's finally
        self._refreshing = False

    def _schedule_tick(self, generation: int) -> None:
        self._timer = self._loop.call_later(self.interval, self._tick, generation)

    def _tick(self, generation: int) -> None:
        if generation != self._generation or not self._active:
            return
        self._start_background()
        self._schedule_tick(generation)

    def _start_background(self) -> None:
        if not self._begin():
            logger.debug("Refresh still running; skipping tick")
            return
        self._task = self._loop.create_task(self._execute())

    def _begin(self) -> bool:
        if self._refreshing:
            return False
        self._refreshing = True
        self.last_error = None
        self.invocation_count += 1
        return True

    async def _execute(self) -> None:
        try:
            await self._refresh_action()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.last_error = exc
            logger.error("Auto refresh failed: %s", exc)
        finally:
            self._refreshing = False
