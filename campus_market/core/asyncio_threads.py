import asyncio
import logging
from typing import Any, Coroutine, Set

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Fire-and-forget scheduling for side effects that must not block a response.

    The event loop only keeps weak references to tasks, so live tasks are held
    here until they finish.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None):
        try:
            task = asyncio.create_task(coro, name=name)
        except RuntimeError:
            # no running loop
            coro.close()
            logger.warning(f"Background task {name or coro!r} dropped: no running loop")
            return None

        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Background task {task.get_name()} failed: {exc}", exc_info=exc
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float = 5.0):
        if not self._tasks:
            return
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} background task(s) on shutdown")


background = BackgroundTasks()


def spawn_background(coro: Coroutine[Any, Any, Any], name: str | None = None):
    return background.spawn(coro, name=name)
