#!/usr/bin/env python3
"""
Local image tree -> S3 sync

Lists the originals bucket -> hashes local images -> transcodes new/changed
images into every configured size/format -> uploads derivatives to the
processed bucket -> uploads the original once all derivatives succeeded.
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .core import (
    ConfigurationError,
    SyncConfig,
    SyncReport,
    VariantMatrixConfig,
    get_logger,
    resolve_variant_specs,
)
from .core.exceptions import FATAL_ERRORS
from .core.factories import S3ClientFactory, SyncPipelineFactory
from .core.logging_config import set_debug_logging
from .processors.common import log_configuration, log_final_statistics

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2


def add_sync_arguments(parser: argparse.ArgumentParser) -> None:
    """Register the sync options on ``parser``; defaults come from the environment."""
    parser.add_argument(
        "--image-root",
        default=os.getenv("IMAGE_ROOT", "./data/images"),
        help="Local directory holding the source images (default: ./data/images)",
    )
    parser.add_argument(
        "--originals-bucket",
        default=os.getenv("ORIGINALS_BUCKET"),
        help="Bucket holding untouched originals (env: ORIGINALS_BUCKET)",
    )
    parser.add_argument(
        "--processed-bucket",
        default=os.getenv("PROCESSED_BUCKET"),
        help="Bucket receiving resized derivatives (env: PROCESSED_BUCKET)",
    )
    parser.add_argument(
        "--sizes-config",
        default=None,
        help="JSON document with 'sizes', 'variations' and 'formats' sections",
    )
    parser.add_argument(
        "--concurrency", type=int, default=20, help="Images transcoded at once (default: 20)"
    )
    parser.add_argument(
        "--worker",
        default="thread",
        choices=["thread", "process"],
        help="Isolated worker type used for transcoding (default: thread)",
    )
    parser.add_argument(
        "--endpoint-url",
        default=os.getenv("S3_ENDPOINT"),
        help="S3-compatible endpoint (env: S3_ENDPOINT)",
    )
    parser.add_argument(
        "--region", default=os.getenv("S3_REGION"), help="S3 region (env: S3_REGION)"
    )
    parser.add_argument(
        "--upload-attempts",
        type=int,
        default=3,
        help="Attempts per upload when the store throttles (default: 3)",
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Transcode but do not upload anything"
    )
    parser.add_argument("--report", default=None, help="Write a JSON report to this path")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sync a local image tree and its resized variants to S3"
    )
    add_sync_arguments(parser)
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> SyncConfig:
    """
    Build a SyncConfig from parsed arguments.

    Raises:
        ConfigurationError: On missing buckets or an invalid matrix document
    """
    if not args.originals_bucket or not args.processed_bucket:
        raise ConfigurationError(
            "Both --originals-bucket and --processed-bucket (or ORIGINALS_BUCKET "
            "and PROCESSED_BUCKET) are required"
        )

    try:
        matrix = (
            VariantMatrixConfig.from_file(Path(args.sizes_config))
            if args.sizes_config
            else VariantMatrixConfig()
        )
        return SyncConfig(
            originals_bucket=args.originals_bucket,
            processed_bucket=args.processed_bucket,
            image_root=Path(args.image_root),
            matrix=matrix,
            concurrency=args.concurrency,
            worker=args.worker,
            endpoint_url=args.endpoint_url,
            region=args.region,
            access_key=os.getenv("S3_ACCESS_KEY"),
            secret_key=os.getenv("S3_SECRET_KEY"),
            upload_attempts=args.upload_attempts,
            dry_run=args.dry_run,
            report_path=Path(args.report) if args.report else None,
            debug=args.debug,
        )
    except (OSError, ValueError, ValidationError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


async def run_sync(config: SyncConfig) -> SyncReport:
    """Open an S3 client, run the pipeline and log/write the report."""
    log_configuration(config, len(resolve_variant_specs(config.matrix)))

    session = S3ClientFactory.create_session()
    async with session.client("s3", **S3ClientFactory.client_kwargs(config)) as s3_client:
        orchestrator = SyncPipelineFactory.create_pipeline(s3_client, config)
        try:
            report = await orchestrator.run(config)
        finally:
            orchestrator.close()

    log_final_statistics(report, orchestrator.metrics_collector.get_summary())
    if config.report_path:
        report.write_json(config.report_path)
    return report


def execute(args: argparse.Namespace) -> int:
    """Run a sync for parsed arguments and map the outcome to an exit code."""
    logger = get_logger("images-sync")
    try:
        config = config_from_args(args)
        set_debug_logging(config.debug)
        report = asyncio.run(run_sync(config))
    except KeyboardInterrupt:
        logger.warning("Sync interrupted by user.")
        return EXIT_FATAL
    except FATAL_ERRORS as e:
        logger.error(f"Sync aborted: {e}")
        return EXIT_FATAL

    return EXIT_PARTIAL_FAILURE if report.failed_count else EXIT_OK


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m images_sync.sync_images``."""
    sys.exit(execute(parse_args(argv)))


if __name__ == "__main__":
    main()
