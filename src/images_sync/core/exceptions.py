"""Custom exceptions for the images sync pipeline."""


class ImagesSyncError(Exception):
    """Base exception for all images sync errors."""


class ConfigurationError(ImagesSyncError):
    """Error raised for an invalid size/variation/format configuration."""


class S3Error(ImagesSyncError):
    """Error raised for object store failures."""


class StoreUnavailable(S3Error):
    """The remote inventory could not be listed. Fatal for the run."""


class StoreWriteError(S3Error):
    """The object store rejected an upload."""


class LocalTreeError(ImagesSyncError):
    """The local image root could not be enumerated. Fatal for the run."""


class FingerprintError(ImagesSyncError):
    """A local file could not be read to compute its fingerprint."""


class TranscodeError(ImagesSyncError):
    """A worker failed to produce every variant of an image."""


FATAL_ERRORS = (StoreUnavailable, LocalTreeError, ConfigurationError)
