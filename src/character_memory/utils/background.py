"""
Registry for fire-and-forget background tasks.

Keeps a strong reference to every spawned task until it finishes so the
event loop cannot garbage-collect it mid-flight, logs failures instead of
letting them surface as "Task exception was never retrieved", and lets
shutdown code drain or cancel whatever is still pending.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundTaskRegistry:
    """Tracks detached asyncio tasks spawned on behalf of a service."""

    def __init__(self, name: str = "background"):
        self._name = name
        self._tasks: set[asyncio.Task] = set()
        self._stats = {"spawned": 0, "completed": 0, "failed": 0, "cancelled": 0}

    @property
    def pending(self) -> int:
        """Number of tasks that have not finished yet."""
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task | None:
        """Schedule ``coro`` without awaiting it.

        Returns the task, or None when no event loop is running (the
        coroutine is closed and skipped).
        """
        try:
            task = asyncio.get_running_loop().create_task(coro, name=name)
        except RuntimeError:
            coro.close()
            logger.debug(f"No running event loop, skipped {self._name} task {name or ''}".rstrip())
            return None

        self._tasks.add(task)
        self._stats["spawned"] += 1
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self._stats["cancelled"] += 1
            return
        exc = task.exception()
        if exc is not None:
            self._stats["failed"] += 1
            logger.warning(f"{self._name} task {task.get_name()} failed (non-fatal): {exc}")
        else:
            self._stats["completed"] += 1

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for all pending tasks to finish (failures are already logged)."""
        if not self._tasks:
            return
        done, not_done = await asyncio.wait(set(self._tasks), timeout=timeout)
        if not_done:
            logger.warning(f"{len(not_done)} {self._name} task(s) still pending after {timeout}s")

    async def cancel_all(self) -> None:
        """Cancel pending tasks and wait for them to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def get_stats(self) -> dict[str, Any]:
        return {"name": self._name, "pending": self.pending, **self._stats}
