"""Structured job logging and per-job metrics for sync runs."""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .logging_config import setup_logger


@dataclass
class LogContext:
    """Context carried through the log lines of one image job."""

    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    operation: str = ""
    component: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_image(
        cls, source: str, operation: str = "process_image", **metadata: Any
    ) -> "LogContext":
        """Context for one image, keyed by its relative path and start time."""
        return cls(
            correlation_id=f"img_{source}_{int(time.time() * 1000)}",
            operation=operation,
            component="sync_orchestrator",
            metadata={"source": source, **metadata},
        )

    def with_metadata(self, **kwargs: Any) -> "LogContext":
        return LogContext(
            correlation_id=self.correlation_id,
            operation=self.operation,
            component=self.component,
            metadata={**self.metadata, **kwargs},
        )

    def render(self, message: str, **extra: Any) -> str:
        """``[operation] [correlation id] message (key=value, ...)``"""
        rendered = f"[{self.correlation_id}] {message}"
        if self.operation:
            rendered = f"[{self.operation}] {rendered}"
        return _with_fields(rendered, {**self.metadata, **extra})


def _with_fields(message: str, fields: Dict[str, Any]) -> str:
    if not fields:
        return message
    return f"{message} ({', '.join(f'{k}={v}' for k, v in fields.items())})"


class StructuredLogger:
    """LoggerProtocol implementation that renders a LogContext into each line."""

    def __init__(self, name: str = "images-sync", level: Optional[str] = None):
        self._logger = setup_logger(name, level=level)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def log(
        self, level: int, message: str, context: Optional[LogContext] = None, **kwargs: Any
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if context is not None:
            message = context.render(message, **kwargs)
        else:
            message = _with_fields(message, kwargs)
        self._logger.log(level, message)

    def debug(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self.log(logging.DEBUG, message, context, **kwargs)

    def info(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self.log(logging.INFO, message, context, **kwargs)

    def warning(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self.log(logging.WARNING, message, context, **kwargs)

    def error(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self.log(logging.ERROR, message, context, **kwargs)


@dataclass
class JobMetrics:
    """Timing and output volume of one image job."""

    source: str
    start_time: float
    end_time: float
    success: bool
    error_message: Optional[str] = None
    variants_uploaded: int = 0
    bytes_uploaded: int = 0

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class MetricsCollector:
    """Collects JobMetrics for a run."""

    def __init__(self):
        self._metrics: List[JobMetrics] = []

    def record(self, metric: JobMetrics) -> None:
        self._metrics.append(metric)

    def get_metrics(self, success: Optional[bool] = None) -> List[JobMetrics]:
        """Recorded metrics, optionally only the successful or failed jobs."""
        if success is None:
            return self._metrics.copy()
        return [m for m in self._metrics if m.success is success]

    def get_summary(self) -> Dict[str, Any]:
        """
        Aggregate the recorded jobs.

        Returns:
            Empty dict when nothing was recorded, otherwise job counts,
            success rate, average/max job duration (seconds) and the number
            of variants and bytes uploaded.
        """
        if not self._metrics:
            return {}

        durations = [m.duration for m in self._metrics]
        failed = self.get_metrics(success=False)

        return {
            "total_jobs": len(self._metrics),
            "failed_jobs": len(failed),
            "success_rate": (len(self._metrics) - len(failed)) / len(self._metrics),
            "avg_duration": sum(durations) / len(durations),
            "max_duration": max(durations),
            "variants_uploaded": sum(m.variants_uploaded for m in self._metrics),
            "bytes_uploaded": sum(m.bytes_uploaded for m in self._metrics),
        }

    def clear(self) -> None:
        self._metrics.clear()
