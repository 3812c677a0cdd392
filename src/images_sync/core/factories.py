"""Factory classes for creating configured service instances."""

from typing import Any, Dict, Optional

import aioboto3
from botocore.config import Config

from ..processors.multiprocess import ProcessTranscodeWorker
from ..processors.multithread import ThreadTranscodeWorker
from .models import SyncConfig
from .observability import MetricsCollector, StructuredLogger
from .protocols import LoggerProtocol, S3ClientProtocol, TranscodeWorker
from .services import SyncOrchestrator


class S3ClientFactory:
    """Factory for aioboto3 S3 sessions and client settings."""

    @staticmethod
    def create_session() -> aioboto3.Session:
        return aioboto3.Session()

    @staticmethod
    def client_kwargs(config: SyncConfig) -> Dict[str, Any]:
        """Keyword arguments for ``session.client("s3", ...)``."""
        kwargs: Dict[str, Any] = {
            "endpoint_url": config.endpoint_url,
            "region_name": config.region,
            "aws_access_key_id": config.access_key,
            "aws_secret_access_key": config.secret_key,
        }
        kwargs = {k: v for k, v in kwargs.items() if v}
        if config.endpoint_url:
            # S3-compatible stores (MinIO, R2, ...) want path-style addressing.
            kwargs["config"] = Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
                max_pool_connections=max(10, config.concurrency * 2),
            )
        else:
            kwargs["config"] = Config(max_pool_connections=max(10, config.concurrency * 2))
        return kwargs


class WorkerFactory:
    """Factory for the isolated transcode workers."""

    @staticmethod
    def create_worker(kind: str, max_workers: int) -> TranscodeWorker:
        if kind == "thread":
            return ThreadTranscodeWorker(max_workers=max_workers)
        if kind == "process":
            return ProcessTranscodeWorker(max_workers=max_workers)
        raise ValueError(f"Unknown worker type: {kind}")


class SyncPipelineFactory:
    """Factory for creating the complete sync pipeline."""

    @staticmethod
    def create_pipeline(
        s3_client: S3ClientProtocol,
        config: SyncConfig,
        logger: Optional[LoggerProtocol] = None,
        worker: Optional[TranscodeWorker] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ) -> SyncOrchestrator:
        """Create a fully configured orchestrator for ``config``."""
        if logger is None:
            logger = StructuredLogger("images-sync", level="DEBUG" if config.debug else None)

        if worker is None:
            worker = WorkerFactory.create_worker(config.worker, config.concurrency)

        if metrics_collector is None:
            metrics_collector = MetricsCollector()

        return SyncOrchestrator(
            s3_client=s3_client,
            worker=worker,
            logger=logger,
            metrics_collector=metrics_collector,
        )
