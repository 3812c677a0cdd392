"""Multiprocess worker - transcodes each job in a separate process."""

import asyncio
import multiprocessing
import queue
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from typing import Any, AsyncIterator

from ..core.exceptions import TranscodeError
from ..core.logging_config import configure_multiprocessing_logging, get_logger
from ..core.models import TranscodeJob, TranscodeResult
from .common import transcode_job


def transcode_job_worker(job: TranscodeJob, results_queue: Any) -> int:
    """
    Entry point executed inside a pool process.

    Every result is put on ``results_queue`` as soon as it is encoded,
    followed by ``None`` once the whole matrix has been emitted.
    """
    configure_multiprocessing_logging()
    count = transcode_job(job, results_queue.put)
    results_queue.put(None)
    return count


class ProcessTranscodeWorker:
    """
    Runs ``transcode_job`` in a process pool.

    Results travel back through a ``multiprocessing.Manager`` queue so they
    can be uploaded before the job finishes. A pool process that dies fails
    its job with ``TranscodeError`` and the pool is rebuilt for later jobs.
    """

    def __init__(self, max_workers: int = 20, poll_interval: float = 0.1):
        self.max_workers = max_workers
        self.poll_interval = poll_interval
        self._logger = get_logger("images-sync")
        self._manager = multiprocessing.Manager()
        self._executor = ProcessPoolExecutor(max_workers=max_workers)
        # Blocking queue reads happen here, off the event loop.
        self._readers = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="transcode-reader"
        )

    def _rebuild_pool(self, broken: ProcessPoolExecutor) -> None:
        if self._executor is broken:
            self._logger.warning("Transcode process pool broke, starting a new one")
            broken.shutdown(wait=False, cancel_futures=True)
            self._executor = ProcessPoolExecutor(max_workers=self.max_workers)

    async def stream(self, job: TranscodeJob) -> AsyncIterator[TranscodeResult]:
        loop = asyncio.get_running_loop()
        results_queue = self._manager.Queue()
        executor = self._executor
        future = loop.run_in_executor(executor, transcode_job_worker, job, results_queue)

        while True:
            try:
                item = await loop.run_in_executor(
                    self._readers, results_queue.get, True, self.poll_interval
                )
            except queue.Empty:
                if future.done() and future.exception() is not None:
                    break
                continue
            if item is None:
                break
            yield item

        try:
            await future
        except BrokenProcessPool as e:
            self._rebuild_pool(executor)
            raise TranscodeError(
                f"Worker for {job.image.relative_path} terminated abnormally"
            ) from e

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self._readers.shutdown(wait=True)
        self._manager.shutdown()
