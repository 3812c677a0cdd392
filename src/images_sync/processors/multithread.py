"""Multithreaded worker - transcodes each job on a thread pool."""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import AsyncIterator

from ..core.models import TranscodeJob, TranscodeResult
from .common import transcode_job

_DONE = object()


class ThreadTranscodeWorker:
    """
    Runs ``transcode_job`` on a thread pool and streams results to the loop.

    Pillow releases the GIL while resampling and encoding, so threads give
    real parallelism for the codec work without pickling image bytes.
    """

    def __init__(self, max_workers: int = 20):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="transcode"
        )

    async def stream(self, job: TranscodeJob) -> AsyncIterator[TranscodeResult]:
        loop = asyncio.get_running_loop()
        results: asyncio.Queue = asyncio.Queue()

        def emit(result: TranscodeResult) -> None:
            loop.call_soon_threadsafe(results.put_nowait, result)

        future = loop.run_in_executor(self._executor, transcode_job, job, emit)
        # Emitted results are queued on the loop before the future resolves.
        future.add_done_callback(lambda _: results.put_nowait(_DONE))

        while True:
            item = await results.get()
            if item is _DONE:
                break
            yield item

        await future

    def close(self) -> None:
        self._executor.shutdown(wait=True)
