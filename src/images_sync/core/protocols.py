"""Protocol definitions for dependency injection and testability."""

from typing import Any, AsyncIterator, Dict, Protocol

from .models import TranscodeJob, TranscodeResult


class S3ClientProtocol(Protocol):
    """Protocol for the async (aioboto3) S3 client operations we use."""

    async def put_object(
        self, Bucket: str, Key: str, Body: bytes, ContentType: str
    ) -> Dict[str, Any]:
        """Put object to S3."""
        ...

    def get_paginator(self, operation_name: str) -> Any:
        """Get paginator for S3 operations."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        ...

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        ...

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        ...

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        ...


class TranscodeWorker(Protocol):
    """Runs one job in an isolated worker and streams its results back."""

    def stream(self, job: TranscodeJob) -> AsyncIterator[TranscodeResult]:
        """Yield one result per variant as each finishes; raise on failure."""
        ...

    def close(self) -> None:
        """Release worker threads or processes."""
        ...
