"""Transcode workers and the scheduler that bounds them."""

from .multiprocess import ProcessTranscodeWorker
from .multithread import ThreadTranscodeWorker
from .scheduler import BoundedScheduler

__all__ = [
    "BoundedScheduler",
    "ProcessTranscodeWorker",
    "ThreadTranscodeWorker",
]
