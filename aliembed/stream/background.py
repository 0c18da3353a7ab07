# aliembed/stream/background.py
"""Registry of detached tasks that must outlive the response that spawned them."""
from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, Optional, Set

from aliembed.logger import logger


class BackgroundTasks:
    """Keeps strong references to fire-and-forget tasks and drains them on shutdown."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: Optional[str] = None) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed: %r", task.get_name(), exc)

    def __len__(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for pending tasks up to *timeout* seconds, then cancel the rest."""
        if not self._tasks:
            return
        pending_before = list(self._tasks)
        _, pending = await asyncio.wait(pending_before, timeout=timeout)
        if pending:
            logger.warning("Cancelling %d background task(s) still running at shutdown", len(pending))
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending_before, return_exceptions=True)
