"""Server side of the event stream, decoupled from the HTTP reader."""

import asyncio
import logging
from typing import AsyncIterator, Optional

from cnpj_pull.models.events import encode_frame

logger = logging.getLogger(__name__)

_END = object()

# Runs still working after their reader left
_background_runs: set[asyncio.Task] = set()


class DetachedStream:
    """Pump a run's events from a background task into a queue.

    The HTTP response reads frames from the queue. If the reader goes
    away the run keeps going to completion (so its cache writes land);
    its remaining events are dropped.
    """

    def __init__(self, events: AsyncIterator):
        self._events = events
        self._queue: asyncio.Queue = asyncio.Queue()
        self._detached = False
        self.task: Optional[asyncio.Task] = None

    @property
    def detached(self) -> bool:
        return self._detached

    def start(self) -> asyncio.Task:
        if self.task is None:
            self.task = asyncio.create_task(self._pump())
            _background_runs.add(self.task)
            self.task.add_done_callback(_background_runs.discard)
        return self.task

    def detach(self) -> None:
        if not self._detached and self.task is not None and not self.task.done():
            logger.info("Stream reader disconnected; run continues in background")
        self._detached = True

    async def frames(self) -> AsyncIterator[str]:
        """Encoded frames in processing order, ending after the terminal event."""
        self.start()
        try:
            while True:
                event = await self._queue.get()
                if event is _END:
                    return
                yield encode_frame(event)
        finally:
            self.detach()

    async def _pump(self) -> None:
        try:
            async for event in self._events:
                if not self._detached:
                    self._queue.put_nowait(event)
        except Exception as e:
            logger.exception(f"Background run failed: {e}")
        finally:
            self._queue.put_nowait(_END)


async def wait_for_background_runs() -> None:
    """Await runs whose readers disconnected."""
    if _background_runs:
        await asyncio.gather(*list(_background_runs), return_exceptions=True)
