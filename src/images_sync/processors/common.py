"""Functions shared by the worker implementations and the sync runner."""

from typing import Any, Callable, Dict, Optional

from PIL import Image

from ..core.error_handling import translate_errors
from ..core.exceptions import TranscodeError
from ..core.image_utils import calculate_variant_key, encode_variant, resize_variant
from ..core.logging_config import get_logger
from ..core.models import SyncConfig, SyncReport, TranscodeJob, TranscodeResult


@translate_errors(TranscodeError)
def transcode_job(
    job: TranscodeJob, emit: Callable[[TranscodeResult], None]
) -> int:
    """
    Produce every variant of one image, emitting each result as it is encoded.

    The source is opened and decoded once; each variant is resized from that
    decoded image. Runs inside a worker thread or process.

    Args:
        job: The image and its variant specs
        emit: Called once per finished variant

    Returns:
        Number of results emitted

    Raises:
        TranscodeError: If the source cannot be decoded or any variant fails
    """
    logger = get_logger("images-sync.worker")
    source = job.image.relative_path

    with Image.open(job.image.absolute_path) as image:
        image.load()
        source_format = image.format
        logger.debug(f"[{source}] Loaded image: {image.size[0]}x{image.size[1]} {source_format}")

        for spec in job.variants:
            output_key = calculate_variant_key(source, spec)
            logger.debug(f"[{source}] Starting to process {output_key}")
            resized = resize_variant(image, spec)
            data, content_type = encode_variant(resized, spec, source_format)
            emit(
                TranscodeResult(
                    source_path=source,
                    variant_name=spec.name,
                    output_key=output_key,
                    content_type=content_type,
                    data=data,
                )
            )
            logger.debug(f"[{source}] Finished processing {output_key} ({len(data)} bytes)")

    return len(job.variants)


def log_configuration(config: SyncConfig, variant_count: int):
    """Log sync configuration."""
    logger = get_logger("images-sync")
    matrix = config.matrix
    logger.info("=" * 80)
    logger.info("IMAGES SYNC")
    logger.info("=" * 80)
    logger.info("CONFIGURATION:")
    logger.info(f"  Image root:    {config.image_root}")
    logger.info(f"  Originals:     s3://{config.originals_bucket}")
    logger.info(f"  Processed:     s3://{config.processed_bucket}")
    if config.endpoint_url:
        logger.info(f"  Endpoint:      {config.endpoint_url}")
    logger.info("")
    logger.info("PROCESSING OPTIONS:")
    logger.info(f"  Sizes:         {', '.join(f'{k}={v}' for k, v in matrix.sizes.items())}")
    logger.info(f"  Variations:    {', '.join(f'{k}={v}' for k, v in matrix.variations.items())}")
    logger.info(f"  Formats:       {', '.join(matrix.formats)}")
    logger.info(f"  Variants/image: {variant_count}")
    logger.info(f"  Worker:        {config.worker} (concurrency {config.concurrency})")
    if config.dry_run:
        logger.info("  Mode:          DRY RUN (no uploads)")
    logger.info("=" * 80)


def log_final_statistics(report: SyncReport, metrics: Optional[Dict[str, Any]] = None):
    """Log the final per-run summary, listing every failed image."""
    logger = get_logger("images-sync")
    total_time = report.processing_time
    total_items = len(report.outcomes)
    overall_rate = total_items / total_time if total_time > 0 else 0

    logger.info("=" * 80)
    logger.info("SYNC COMPLETED")
    logger.info("=" * 80)
    logger.info(f"Total execution time: {total_time:.1f}s")
    logger.info(f"Overall rate: {overall_rate:.1f} images/sec")
    logger.info(f"Processed: {report.processed_count}")
    logger.info(f"Skipped:   {report.skipped_count}")
    logger.info(f"Failed:    {report.failed_count}")
    if metrics:
        logger.info(
            f"Variants uploaded: {metrics['variants_uploaded']} "
            f"({metrics['bytes_uploaded'] / 1024 / 1024:.1f} MB)"
        )
        logger.info(f"Average job time: {metrics['avg_duration']:.2f}s")
    for failure in report.failures():
        logger.error(f"  FAILED {failure.path}: {failure.reason}")
    logger.info("=" * 80)
