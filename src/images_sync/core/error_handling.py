# src/images_sync/core/error_handling.py

import asyncio
import functools
import inspect
import logging
from typing import Any, Dict, List, Optional, Type

from botocore.exceptions import ClientError as BotocoreClientError

from .exceptions import ImagesSyncError, S3Error

RETRYABLE_S3_ERROR_CODES = (
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "SlowDown",
)


def _error_code(exc: BaseException) -> Optional[str]:
    if isinstance(exc, BotocoreClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


def is_retryable(exc: BaseException) -> bool:
    """True when an S3Error was caused by a throttling response."""
    cause = exc.__cause__ if isinstance(exc, S3Error) else exc
    return cause is not None and _error_code(cause) in RETRYABLE_S3_ERROR_CODES


def translate_errors(error_cls: Type[ImagesSyncError]):
    """
    Decorator converting unexpected exceptions into ``error_cls``.

    Pipeline errors pass through untouched; anything else (botocore client
    errors, Pillow decode errors, OSError...) is logged and re-raised as
    ``error_cls`` with the original exception chained. Works for plain and
    ``async def`` functions.
    """

    def decorator(func):
        logger = logging.getLogger(func.__module__ + "." + func.__name__)

        def _convert(exc: Exception) -> ImagesSyncError:
            logger.error(f"Error in '{func.__name__}': {exc}", exc_info=True)
            return error_cls(f"{func.__name__} failed: {exc}")

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except ImagesSyncError:
                    raise
                except Exception as e:
                    raise _convert(e) from e

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ImagesSyncError:
                raise
            except Exception as e:
                raise _convert(e) from e

        return wrapper

    return decorator


def retry_s3_operation(
    max_attempts: Any = 3, initial_delay: float = 1.0, backoff_factor: float = 2.0
):
    """
    Decorator to retry throttled async S3 operations with exponential backoff.

    ``max_attempts`` may be an int or the name of an attribute on the bound
    instance (``self``) holding the limit. Only errors whose botocore cause
    carries a throttling code are retried; everything else propagates at once.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__ + "." + func.__name__)
            limit = max_attempts
            if isinstance(limit, str):
                limit = getattr(args[0], limit)
            attempts = 0
            delay = initial_delay
            while True:
                try:
                    return await func(*args, **kwargs)
                except S3Error as e:
                    attempts += 1
                    if not is_retryable(e):
                        raise
                    if attempts >= limit:
                        logger.error(
                            f"S3 operation '{func.__name__}' failed after {limit} attempts. Error: {e}"
                        )
                        raise
                    logger.info(
                        f"S3 operation '{func.__name__}' throttled. Attempt {attempts}/{limit}. "
                        f"Retrying in {delay:.2f}s."
                    )
                    await asyncio.sleep(delay)
                    delay *= backoff_factor

        return wrapper

    return decorator


class BatchOperationContextManager:
    """
    Context manager for batch operations to collect and summarize errors.
    """

    def __init__(self, operation_name: str = "Batch Operation"):
        self.operation_name = operation_name
        self.errors: List[Dict[str, str]] = []
        self.logger = logging.getLogger(
            self.__class__.__module__ + "." + self.__class__.__name__
        )

    def __enter__(self):
        self.logger.info(f"Starting {self.operation_name}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.logger.error(
                f"{self.operation_name} failed due to an unhandled exception: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb),
            )
        elif self.errors:
            self.logger.warning(
                f"{self.operation_name} completed with {len(self.errors)} error(s)."
            )
            for i, error_detail in enumerate(self.errors):
                self.logger.error(
                    f"  Error {i + 1}/{len(self.errors)} for item "
                    f"'{error_detail['item']}': {error_detail['error']}"
                )
        else:
            self.logger.info(f"{self.operation_name} completed successfully.")
        return False

    def add_error(self, error_message: str, item_identifier: str = "Unknown item"):
        """
        Report an error for a specific item within the 'with' block.

        Args:
            error_message: The error message or exception string.
            item_identifier: A string identifying the item that failed.
        """
        self.errors.append({"item": item_identifier, "error": str(error_message)})
        self.logger.debug(
            f"Error added for item '{item_identifier}' in {self.operation_name}: {error_message}"
        )
