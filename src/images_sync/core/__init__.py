"""Core utilities and shared components for the images sync pipeline."""

from .image_utils import (
    calculate_variant_key,
    compute_target_size,
    encode_variant,
    file_md5,
    is_supported_image,
    normalize_key,
    resize_variant,
    resolve_variant_specs,
)
from .logging_config import (
    configure_multiprocessing_logging,
    get_logger,
    setup_logger,
)
from .exceptions import (
    ImagesSyncError,
    ConfigurationError,
    S3Error,
    StoreUnavailable,
    StoreWriteError,
    LocalTreeError,
    FingerprintError,
    TranscodeError,
)
from .models import (
    ORIGINAL_FORMAT,
    ImageOutcome,
    ImageStatus,
    ImageVariantSpec,
    LocalImageFile,
    SyncConfig,
    SyncReport,
    TranscodeJob,
    TranscodeResult,
    VariantMatrixConfig,
)

__all__ = [
    "ORIGINAL_FORMAT",
    "SyncConfig",
    "VariantMatrixConfig",
    "ImageVariantSpec",
    "LocalImageFile",
    "TranscodeJob",
    "TranscodeResult",
    "ImageStatus",
    "ImageOutcome",
    "SyncReport",
    "calculate_variant_key",
    "compute_target_size",
    "encode_variant",
    "file_md5",
    "is_supported_image",
    "normalize_key",
    "resize_variant",
    "resolve_variant_specs",
    "setup_logger",
    "get_logger",
    "configure_multiprocessing_logging",
    "ImagesSyncError",
    "ConfigurationError",
    "S3Error",
    "StoreUnavailable",
    "StoreWriteError",
    "LocalTreeError",
    "FingerprintError",
    "TranscodeError",
]
