"""Service implementations for the images sync pipeline."""

import asyncio
import os
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, List, Mapping, Optional

from .error_handling import (
    BatchOperationContextManager,
    retry_s3_operation,
    translate_errors,
)
from .exceptions import (
    FingerprintError,
    LocalTreeError,
    StoreUnavailable,
    StoreWriteError,
)
from .image_utils import (
    content_type_for,
    file_md5,
    is_supported_image,
    normalize_key,
    pillow_format,
    resolve_variant_specs,
    variants_for_source,
)
from .models import (
    ImageStatus,
    LocalImageFile,
    SyncConfig,
    SyncReport,
    TranscodeJob,
    TranscodeResult,
)
from .observability import JobMetrics, LogContext, MetricsCollector
from .protocols import LoggerProtocol, S3ClientProtocol, TranscodeWorker
from ..processors.scheduler import BoundedScheduler


class RemoteInventoryFetcher:
    """Lists a bucket into a read-only key -> fingerprint mapping."""

    def __init__(self, s3_client: S3ClientProtocol, logger: LoggerProtocol):
        self._s3_client = s3_client
        self._logger = logger

    @translate_errors(StoreUnavailable)
    async def fetch(self, bucket: str) -> Mapping[str, str]:
        """
        Fetch every object key in ``bucket`` with its ETag, quotes stripped.

        Raises:
            StoreUnavailable: If any listing call fails
        """
        self._logger.debug(f"Listing s3://{bucket}")
        inventory = {}
        paginator = self._s3_client.get_paginator("list_objects_v2")
        async for page in paginator.paginate(Bucket=bucket):
            for obj in page.get("Contents", []):
                inventory[obj["Key"]] = obj.get("ETag", "").strip('"').lower()

        self._logger.info(f"Found {len(inventory)} objects in s3://{bucket}")
        return MappingProxyType(inventory)


class LocalTreeWalker:
    """Recursively enumerates regular files under the local image root."""

    def __init__(self, root: Path, logger: LoggerProtocol):
        self.root = Path(root)
        self.unreadable: List[str] = []
        self._logger = logger

    def walk(self) -> Iterator[LocalImageFile]:
        """
        Lazily yield every non-hidden regular file below the root.

        Raises:
            LocalTreeError: If the root itself cannot be listed
        """
        try:
            with os.scandir(self.root) as it:
                entries = list(it)
        except OSError as e:
            raise LocalTreeError(f"Cannot list image root {self.root}: {e}") from e

        yield from self._walk_entries(entries, "")

    def _walk_entries(
        self, entries: List[os.DirEntry], prefix: str
    ) -> Iterator[LocalImageFile]:
        for entry in sorted(entries, key=lambda e: e.name):
            if entry.name.startswith("."):
                continue
            relative_path = f"{prefix}{entry.name}"

            if entry.is_symlink() and entry.is_dir():
                self._logger.debug(f"Not following directory symlink {relative_path}")
            elif entry.is_dir(follow_symlinks=False):
                try:
                    with os.scandir(entry.path) as it:
                        children = list(it)
                except OSError as e:
                    self.unreadable.append(relative_path)
                    self._logger.warning(f"Skipping unreadable directory {relative_path}: {e}")
                    continue
                yield from self._walk_entries(children, relative_path + "/")
            elif entry.is_file():
                yield LocalImageFile(
                    relative_path=relative_path, absolute_path=Path(entry.path)
                )


class ChangeKind(str, Enum):
    """Why a local file is, or is not, processed."""

    UNSUPPORTED = "unsupported format"
    UNCHANGED = "unchanged"
    NEW = "new"
    CHANGED = "changed"


@dataclass(frozen=True)
class Classification:
    kind: ChangeKind
    fingerprint: str = ""

    @property
    def needs_processing(self) -> bool:
        return self.kind in (ChangeKind.NEW, ChangeKind.CHANGED)


class ChangeDetector:
    """Compares local fingerprints against the originals-bucket inventory."""

    def __init__(self, inventory: Mapping[str, str], logger: LoggerProtocol):
        self._inventory = inventory
        self._logger = logger

    async def fingerprint(self, image: LocalImageFile) -> str:
        """MD5 of the file, hashed in a thread so the loop keeps running."""
        try:
            return await asyncio.to_thread(file_md5, image.absolute_path)
        except OSError as e:
            raise FingerprintError(f"Cannot read {image.relative_path}: {e}") from e

    async def classify(self, image: LocalImageFile) -> Classification:
        if not is_supported_image(image.relative_path):
            self._logger.debug(f"[{image.relative_path}] Unsupported format, skipping")
            return Classification(ChangeKind.UNSUPPORTED)

        local = await self.fingerprint(image)
        remote = self._inventory.get(normalize_key(image.relative_path))

        if remote is None:
            return Classification(ChangeKind.NEW, local)
        if remote == local:
            self._logger.debug(f"[{image.relative_path}] Fingerprint matches, skipping")
            return Classification(ChangeKind.UNCHANGED, local)
        return Classification(ChangeKind.CHANGED, local)


class Uploader:
    """Writes derivatives to the processed bucket and originals to theirs."""

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        originals_bucket: str,
        processed_bucket: str,
        logger: LoggerProtocol,
        upload_attempts: int = 3,
        dry_run: bool = False,
    ):
        self._s3_client = s3_client
        self.originals_bucket = originals_bucket
        self.processed_bucket = processed_bucket
        self.upload_attempts = upload_attempts
        self.dry_run = dry_run
        self._logger = logger

    @retry_s3_operation(max_attempts="upload_attempts")
    @translate_errors(StoreWriteError)
    async def upload_variant(self, result: TranscodeResult) -> None:
        if self.dry_run:
            self._logger.info(f"[DRY RUN] Would upload {result.output_key}")
            return
        self._logger.debug(f"Preparing to upload {result.output_key}")
        await self._s3_client.put_object(
            Bucket=self.processed_bucket,
            Key=result.output_key,
            Body=result.data,
            ContentType=result.content_type,
        )
        self._logger.debug(f"Uploaded {result.output_key}")

    @retry_s3_operation(max_attempts="upload_attempts")
    @translate_errors(StoreWriteError)
    async def upload_original(self, image: LocalImageFile) -> None:
        key = normalize_key(image.relative_path)
        if self.dry_run:
            self._logger.info(f"[DRY RUN] Would mark {key} complete")
            return
        body = await asyncio.to_thread(image.absolute_path.read_bytes)
        fmt = pillow_format(image.absolute_path.suffix) or ""
        await self._s3_client.put_object(
            Bucket=self.originals_bucket,
            Key=key,
            Body=body,
            ContentType=content_type_for(fmt),
        )
        self._logger.info(f'Marked "{key}" complete')


class SyncOrchestrator:
    """Main coordinator: diff, schedule, transcode, upload, report."""

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        worker: TranscodeWorker,
        logger: LoggerProtocol,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._s3_client = s3_client
        self._worker = worker
        self._logger = logger
        self.metrics_collector = metrics_collector
        self.scheduler: Optional[BoundedScheduler] = None

    async def run(self, config: SyncConfig) -> SyncReport:
        """
        Sync the local image root with the configured buckets.

        Raises:
            ConfigurationError: If the variant matrix names an unwritable format
            StoreUnavailable: If the originals bucket cannot be listed
            LocalTreeError: If the image root cannot be listed
        """
        start_time = time.time()
        variants = tuple(resolve_variant_specs(config.matrix))
        report = SyncReport()

        inventory = await RemoteInventoryFetcher(self._s3_client, self._logger).fetch(
            config.originals_bucket
        )
        detector = ChangeDetector(inventory, self._logger)
        walker = LocalTreeWalker(config.image_root, self._logger)
        uploader = Uploader(
            self._s3_client,
            config.originals_bucket,
            config.processed_bucket,
            self._logger,
            upload_attempts=config.upload_attempts,
            dry_run=config.dry_run,
        )
        self.scheduler = BoundedScheduler(config.concurrency)

        with BatchOperationContextManager(operation_name="Image sync") as batch:
            try:
                for image in walker.walk():
                    try:
                        classification = await detector.classify(image)
                    except FingerprintError as e:
                        self._logger.error(str(e))
                        report.record(image.relative_path, ImageStatus.FAILED, str(e))
                        continue

                    if not classification.needs_processing:
                        report.record(
                            image.relative_path,
                            ImageStatus.SKIPPED,
                            classification.kind.value,
                        )
                        continue

                    job_variants, dropped = variants_for_source(image.relative_path, variants)
                    if dropped:
                        self._logger.debug(
                            f"[{image.relative_path}] Skipping {len(dropped)} variants that "
                            f"share a key with an earlier format"
                        )
                    job = TranscodeJob(
                        image=image,
                        variants=job_variants,
                        fingerprint=classification.fingerprint,
                    )
                    self._logger.info(
                        f"Adding {image.relative_path} ({classification.kind.value}) to the queue; "
                        f"queue size: {self.scheduler.in_flight}"
                    )
                    await self.scheduler.submit(
                        self._run_job(job, uploader, report),
                        name=image.relative_path,
                    )
            finally:
                await self.scheduler.drain()

            for relative_path in walker.unreadable:
                self._logger.warning(f"Directory {relative_path} was not read")
            for failure in report.failures():
                batch.add_error(failure.reason, failure.path)

        report.processing_time = time.time() - start_time
        return report

    async def _run_job(
        self, job: TranscodeJob, uploader: Uploader, report: SyncReport
    ) -> None:
        """Transcode one image, upload each variant, then its original."""
        source = job.image.relative_path
        context = LogContext.for_image(source, variants=len(job.variants))
        start_time = time.time()
        uploads: List[asyncio.Task] = []
        sizes: List[int] = []
        error: Optional[str] = None

        try:
            async for result in self._worker.stream(job):
                uploads.append(asyncio.create_task(uploader.upload_variant(result)))
                sizes.append(len(result.data))
        except Exception as e:
            error = f"transcode failed: {e}"
            self._logger.error("Transcode failed", context.with_metadata(error=str(e)))

        outcomes = await asyncio.gather(*uploads, return_exceptions=True)
        upload_errors = [o for o in outcomes if isinstance(o, BaseException)]

        if error is None and upload_errors:
            error = f"variant upload failed: {upload_errors[0]}"
        if error is None and len(uploads) != len(job.variants):
            error = f"worker produced {len(uploads)} of {len(job.variants)} variants"

        if error is None:
            try:
                await uploader.upload_original(job.image)
            except StoreWriteError as e:
                error = f"original upload failed: {e}"

        end_time = time.time()
        if error is None:
            report.record(source, ImageStatus.PROCESSED)
            self._logger.info(
                "Successfully processed image",
                context,
                processing_time_ms=(end_time - start_time) * 1000,
            )
        else:
            report.record(source, ImageStatus.FAILED, error)
            self._logger.error("Image processing failed", context.with_metadata(error=error))

        if self.metrics_collector is not None:
            uploaded = [size for size, o in zip(sizes, outcomes) if not isinstance(o, BaseException)]
            self.metrics_collector.record(
                JobMetrics(
                    source=source,
                    start_time=start_time,
                    end_time=end_time,
                    success=error is None,
                    error_message=error,
                    variants_uploaded=len(uploaded),
                    bytes_uploaded=sum(uploaded),
                )
            )

    def close(self) -> None:
        self._worker.close()
