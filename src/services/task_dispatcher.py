"""
Background task dispatcher.

Runs work that must not delay an HTTP acknowledgment. Each task is kept
referenced until it finishes and its failures are logged here, so nothing
escapes to the event loop's unhandled-exception handler.
"""
import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class TaskDispatcher:
    """Fire-and-forget scheduler with per-task failure containment."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(self._run(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro: Coroutine[Any, Any, Any], name: Optional[str]) -> Any:
        try:
            return await coro
        except asyncio.CancelledError:
            logger.warning(f"Background task cancelled: {name}")
            raise
        except Exception as e:
            logger.error(f"Background task {name} failed: {e}", exc_info=True)
            return None

    async def wait_idle(self, timeout: Optional[float] = None) -> None:
        """Wait for every in-flight task, including ones submitted meanwhile."""
        while self._tasks:
            done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
            if pending:
                logger.warning(f"{len(pending)} background task(s) still running after {timeout}s")
                return

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Drain in-flight tasks, cancelling whatever is left after `timeout`."""
        await self.wait_idle(timeout=timeout)
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
