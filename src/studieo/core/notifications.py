"""
Notification Dispatcher

Fire-and-forget delivery of workflow emails. Each send runs as its own
asyncio task inside an error boundary, so a failing recipient is logged
and never affects other recipients or the state transition that
triggered it.

Usage:
    from studieo.core.notifications import dispatcher

    dispatcher.dispatch("team_invite", send_team_invite(...))
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Schedules notification coroutines and keeps them alive until done."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of sends still in flight."""
        return len(self._tasks)

    def dispatch(self, event: str, send: Coroutine[Any, Any, bool]) -> asyncio.Task:
        """
        Schedule a single send.

        Args:
            event: Event name used in log messages (e.g. "application_accepted")
            send: Coroutine returning True on success

        Returns:
            The scheduled task (callers normally ignore it)
        """
        task = asyncio.create_task(self._deliver(event, send), name=f"notify:{event}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, event: str, send: Coroutine[Any, Any, bool]) -> None:
        try:
            sent = await send
            if sent is False:
                logger.error(f"Notification '{event}' was not delivered")
        except Exception as e:
            logger.error(f"Notification '{event}' failed: {e}", exc_info=True)

    async def drain(self, timeout: float | None = None) -> None:
        """
        Wait for in-flight sends to finish.

        Called on shutdown so queued emails are not dropped. Sends still
        running after ``timeout`` seconds are cancelled.
        """
        if not self._tasks:
            return

        tasks = list(self._tasks)
        logger.info(f"Waiting for {len(tasks)} notification(s) to finish...")
        _, still_running = await asyncio.wait(tasks, timeout=timeout)

        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning(f"Cancelled {len(still_running)} notification(s) still running")


# Global dispatcher instance
dispatcher = NotificationDispatcher()
