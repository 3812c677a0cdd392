"""Admission control for concurrent image jobs."""

import asyncio
from typing import Any, Coroutine, Optional, Set


class BoundedScheduler:
    """
    Keeps at most ``limit`` jobs in flight.

    ``submit`` suspends the caller while the in-flight set is full and
    admits the new job as soon as any outstanding job finishes (not FIFO).
    Completion order is not guaranteed. All bookkeeping happens on the
    event loop thread.
    """

    def __init__(self, limit: int = 20):
        if limit < 1:
            raise ValueError(f"Concurrency limit must be at least 1, got {limit}")
        self.limit = limit
        self.peak = 0
        self.submitted = 0
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def submit(
        self, job: Coroutine[Any, Any, Any], name: Optional[str] = None
    ) -> asyncio.Task:
        """Start ``job`` once a slot is free and return its task."""
        while len(self._in_flight) >= self.limit:
            done, _ = await asyncio.wait(
                self._in_flight, return_when=asyncio.FIRST_COMPLETED
            )
            self._in_flight.difference_update(done)

        task = asyncio.create_task(job, name=name)
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        self.submitted += 1
        self.peak = max(self.peak, len(self._in_flight))
        return task

    async def drain(self) -> None:
        """Wait until every submitted job has finished, successfully or not."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)
