"""Sync a local image tree and its resized variants to an S3-compatible store."""

__version__ = "0.1.0"
