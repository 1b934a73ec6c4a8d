"""
Async utility functions for the Voice Control Assistant.

This module provides helpers for tracking background asyncio tasks and
cancelling them cleanly when a session or the application shuts down.
"""

import asyncio
from typing import Coroutine, Optional, Set

from voice_control.config.logging_config import get_logger

logger = get_logger(__name__)


class TaskManager:
    """
    Manager for tracking and cleaning up async tasks.

    Finished tasks remove themselves; exceptions raised by a task are
    logged when it completes rather than being lost.
    """

    def __init__(self, name: str = "default"):
        """
        Initialize the task manager.

        Args:
            name: Name for this task manager (for logging)
        """
        self.name = name
        self.tasks: Set[asyncio.Task] = set()
        logger.debug(f"TaskManager '{name}' initialized")

    def create_task(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        """
        Create and track a new asyncio task.

        Args:
            coro: Coroutine to run as a task
            name: Optional name for the task

        Returns:
            asyncio.Task: The created task
        """
        task = asyncio.create_task(coro, name=name)
        task.add_done_callback(self._task_done_callback)
        self.tasks.add(task)
        logger.debug(f"Task {name or id(task)} created")

        return task

    def _task_done_callback(self, task: asyncio.Task) -> None:
        self.tasks.discard(task)

        if not task.cancelled():
            exception = task.exception()
            if exception:
                logger.error(f"Task {task.get_name()} raised an exception: {exception}")

    async def cancel_all(self, wait: bool = True, timeout: Optional[float] = 5.0) -> None:
        """
        Cancel all tracked tasks.

        The calling task is never cancelled, so a tracked task may shut
        down its own manager.

        Args:
            wait: Whether to wait for tasks to complete
            timeout: Timeout in seconds if waiting, or None for no timeout
        """
        current = asyncio.current_task()
        pending = [task for task in self.tasks if task is not current and not task.done()]
        if not pending:
            return

        for task in pending:
            logger.debug(f"Cancelling task {task.get_name()}")
            task.cancel()

        if wait:
            done, still_pending = await asyncio.wait(pending, timeout=timeout)
            if still_pending:
                names = [t.get_name() for t in still_pending]
                logger.warning(f"Some tasks didn't complete within timeout: {names}")
