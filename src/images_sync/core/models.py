"""Shared data models for the images sync pipeline."""

import json
from enum import Enum
from pathlib import Path
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

ORIGINAL_FORMAT = "[original]"

DEFAULT_SIZES: Dict[str, int] = {
    "xsmall": 300,
    "small": 600,
    "medium": 768,
    "large": 1026,
    "xlarge": 1500,
}
DEFAULT_VARIATIONS: Dict[str, Optional[float]] = {
    "original": None,
    "square": 1.0,
    "standard": 1.5,
}
DEFAULT_FORMATS: List[str] = [ORIGINAL_FORMAT, "webp", "avif"]


class VariantMatrixConfig(BaseModel):
    """Named width buckets x aspect variations x output formats."""

    sizes: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_SIZES))
    variations: Dict[str, Optional[float]] = Field(
        default_factory=lambda: dict(DEFAULT_VARIATIONS)
    )
    formats: List[str] = Field(default_factory=lambda: list(DEFAULT_FORMATS))

    @field_validator("sizes")
    @classmethod
    def _positive_widths(cls, sizes: Dict[str, int]) -> Dict[str, int]:
        if not sizes:
            raise ValueError("at least one width bucket is required")
        for name, width in sizes.items():
            if width <= 0:
                raise ValueError(f"width bucket '{name}' must be positive, got {width}")
        return sizes

    @field_validator("variations")
    @classmethod
    def _positive_ratios(
        cls, variations: Dict[str, Optional[float]]
    ) -> Dict[str, Optional[float]]:
        if not variations:
            raise ValueError("at least one aspect variation is required")
        for name, ratio in variations.items():
            if ratio is not None and ratio <= 0:
                raise ValueError(f"variation '{name}' must have a positive ratio, got {ratio}")
        return variations

    @field_validator("formats")
    @classmethod
    def _normalize_formats(cls, formats: List[str]) -> List[str]:
        if not formats:
            raise ValueError("at least one output format is required")
        return [f if f == ORIGINAL_FORMAT else f.lower().lstrip(".") for f in formats]

    @classmethod
    def from_file(cls, path: Path) -> "VariantMatrixConfig":
        """Load a matrix from a JSON document with sizes/variations/formats."""
        with open(path, "r", encoding="utf-8") as handle:
            return cls.model_validate(json.load(handle))


class SyncConfig(BaseModel):
    """Configuration for a sync run."""

    originals_bucket: str
    processed_bucket: str
    image_root: Path
    matrix: VariantMatrixConfig = Field(default_factory=VariantMatrixConfig)
    concurrency: int = Field(default=20, ge=1)
    worker: Literal["thread", "process"] = "thread"
    endpoint_url: Optional[str] = None
    region: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    upload_attempts: int = Field(default=3, ge=1)
    dry_run: bool = False
    report_path: Optional[Path] = None
    debug: bool = False


class ImageVariantSpec(BaseModel):
    """One (width bucket, aspect variation, format) combination."""

    model_config = ConfigDict(frozen=True)

    name: str
    width: int
    height_ratio: Optional[float] = None
    format: str

    @property
    def height(self) -> Optional[int]:
        """Target height, or None to preserve the source aspect ratio."""
        if self.height_ratio is None:
            return None
        return max(1, round(self.width / self.height_ratio))

    @property
    def is_original_format(self) -> bool:
        return self.format == ORIGINAL_FORMAT


class LocalImageFile(BaseModel):
    """An image discovered under the local image root."""

    model_config = ConfigDict(frozen=True)

    relative_path: str
    absolute_path: Path


class TranscodeJob(BaseModel):
    """All variants to produce for one local image."""

    model_config = ConfigDict(frozen=True)

    image: LocalImageFile
    variants: Tuple[ImageVariantSpec, ...]
    fingerprint: str = ""


class TranscodeResult(BaseModel):
    """One encoded derivative, streamed back from a worker."""

    source_path: str
    variant_name: str
    output_key: str
    content_type: str = "application/octet-stream"
    data: bytes


class ImageStatus(str, Enum):
    """Final state of one image in a run."""

    SKIPPED = "skipped"
    PROCESSED = "processed"
    FAILED = "failed"


class ImageOutcome(BaseModel):
    """Per-image entry in the sync report."""

    path: str
    status: ImageStatus
    reason: str = ""


class SyncReport(BaseModel):
    """Aggregated outcome of a sync run."""

    outcomes: List[ImageOutcome] = Field(default_factory=list)
    processing_time: float = 0.0

    def record(self, path: str, status: ImageStatus, reason: str = "") -> None:
        self.outcomes.append(ImageOutcome(path=path, status=status, reason=reason))

    def count(self, status: ImageStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def processed_count(self) -> int:
        return self.count(ImageStatus.PROCESSED)

    @property
    def skipped_count(self) -> int:
        return self.count(ImageStatus.SKIPPED)

    @property
    def failed_count(self) -> int:
        return self.count(ImageStatus.FAILED)

    def failures(self) -> List[ImageOutcome]:
        return [o for o in self.outcomes if o.status == ImageStatus.FAILED]

    def outcome_for(self, path: str) -> Optional[ImageOutcome]:
        for outcome in self.outcomes:
            if outcome.path == path:
                return outcome
        return None

    def summary(self) -> Dict[str, int]:
        return {
            "total_items": len(self.outcomes),
            "processed_count": self.processed_count,
            "skipped_count": self.skipped_count,
            "error_count": self.failed_count,
        }

    def write_json(self, path: Path) -> None:
        """Write the summary and per-image outcomes to a JSON file."""
        payload = {
            "summary": self.summary(),
            "processing_time": self.processing_time,
            "outcomes": [o.model_dump(mode="json") for o in self.outcomes],
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
