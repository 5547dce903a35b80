# musickeys
# Copyright (C) 2026 musickeys contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Named recurring timers on the asyncio loop.

At most one timer per name: scheduling a name that is already active does
nothing, so repeated lifecycle events never stack timers.  A callback that
raises is logged and the timer keeps firing.

Key timers follow a naming convention — ``<uid>`` for the full refresh and
``<uid>_progress`` for the lightweight progress refresh — so a key's timers
can be torn down together with ``cancel_for_key``.

Usage:
    scheduler = IntervalScheduler()
    scheduler.schedule("abc", refresh, 3000)
    scheduler.cancel_for_key("abc")
"""

import asyncio
import logging
from typing import Awaitable, Callable

log = logging.getLogger(__name__)

PROGRESS_SUFFIX = "_progress"


def progress_timer_name(uid: str) -> str:
    return f"{uid}{PROGRESS_SUFFIX}"


class IntervalScheduler:

    def __init__(self):
        self._timers: dict[str, asyncio.Task] = {}

    def __contains__(self, name: str) -> bool:
        return self.is_active(name)

    def __len__(self) -> int:
        return len(self._timers)

    def is_active(self, name: str) -> bool:
        return name in self._timers

    def active_names(self) -> list[str]:
        return sorted(self._timers)

    def schedule(self, name: str, callback: Callable[[], Awaitable[None]],
                 interval_ms: int) -> None:
        """Start calling *callback* every *interval_ms* (first call after one interval).

        No-op when *name* is already active — cancel first to change the
        interval or callback.  Must be called from inside the running loop.
        """
        if name in self._timers:
            log.debug("Timer %s already active, ignoring schedule", name)
            return
        task = asyncio.get_running_loop().create_task(
            self._run(name, callback, interval_ms / 1000))
        self._timers[name] = task
        log.debug("Timer %s scheduled every %d ms", name, interval_ms)

    async def _run(self, name: str, callback, interval: float):
        loop = asyncio.get_running_loop()
        next_fire = loop.time() + interval
        while True:
            await asyncio.sleep(max(0.0, next_fire - loop.time()))
            next_fire = loop.time() + interval
            try:
                await callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error("Error in interval callback %s: %s", name, e, exc_info=True)

    def cancel(self, name: str) -> None:
        task = self._timers.pop(name, None)
        if task is None:
            return
        task.cancel()
        log.debug("Timer %s cancelled", name)

    def cancel_for_key(self, uid: str) -> None:
        self.cancel(uid)
        self.cancel(progress_timer_name(uid))

    def cancel_all(self) -> None:
        if self._timers:
            log.info("Clearing all update intervals (%d)", len(self._timers))
        for name in list(self._timers):
            self.cancel(name)
