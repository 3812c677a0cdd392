"""Testing utilities and fakes for the images sync pipeline."""

from .fakes import (
    FakeS3Client,
    FakeLogger,
    FakeTranscodeWorker,
    S3Object,
    S3Bucket,
    build_image_tree,
    create_test_image,
    setup_test_s3_environment,
)

__all__ = [
    "FakeS3Client",
    "FakeLogger",
    "FakeTranscodeWorker",
    "S3Object",
    "S3Bucket",
    "build_image_tree",
    "create_test_image",
    "setup_test_s3_environment",
]
