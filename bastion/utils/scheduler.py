"""
Bastion - Task Scheduler
========================

Keyed one-shot timers.

DESIGN:
    Each timer is an asyncio task registered under a key such as
    ("emergency", guild_id). Scheduling a key that already has a timer
    replaces it, so one guild never has two auto-restore timers running.
    Callbacks must re-read the authoritative state before acting: a timer
    only says "it is time to check", never "the state is still X".

Author: حَـــــنَّـــــا
"""

import asyncio
from typing import Awaitable, Callable, Dict, Hashable

from bastion.core.logger import logger
from bastion.utils.async_utils import create_safe_task


class TaskScheduler:
    """Owns every pending timer so they can be cancelled together on shutdown."""

    def __init__(self) -> None:
        self._tasks: Dict[Hashable, asyncio.Task] = {}

    def schedule(
        self,
        key: Hashable,
        delay: float,
        callback: Callable[[], Awaitable[None]],
        name: str = "Scheduled Task",
    ) -> asyncio.Task:
        """
        Run callback after delay seconds, replacing any timer under key.

        Args:
            key: Identity of the timer.
            delay: Seconds to wait.
            callback: Zero-argument coroutine function.
            name: Name for logging.

        Returns:
            The scheduled task.
        """
        self.cancel(key)

        async def runner() -> None:
            await asyncio.sleep(delay)
            if self._tasks.get(key) is task:
                del self._tasks[key]
            await callback()

        task = create_safe_task(runner(), name)
        self._tasks[key] = task

        logger.debug("Timer Scheduled", [
            ("Key", str(key)),
            ("Delay", f"{delay:.0f}s"),
        ])
        return task

    def cancel(self, key: Hashable) -> bool:
        """Cancel the timer under key. Returns True if one was pending."""
        task = self._tasks.pop(key, None)
        if task is None:
            return False
        task.cancel()
        return True

    def is_scheduled(self, key: Hashable) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    async def close(self) -> None:
        """Cancel every pending timer and wait for them to finish."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Timers Cancelled", [("Count", str(len(tasks)))])


__all__ = ["TaskScheduler"]
