"""Image and key utilities for the images sync pipeline."""

import hashlib
import io
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Sequence, Tuple, Union

from PIL import Image, ImageOps

from .exceptions import ConfigurationError
from .models import ORIGINAL_FORMAT, ImageVariantSpec, VariantMatrixConfig

CHUNK_SIZE = 64 * 1024

# Encoder options per Pillow format name.
FORMAT_OPTIONS: Dict[str, Dict[str, Union[int, bool]]] = {
    "WEBP": {"quality": 30},
    "AVIF": {"quality": 30, "speed": 2},
}
ORIGINAL_FORMAT_OPTIONS: Dict[str, Dict[str, Union[int, bool]]] = {
    "JPEG": {"progressive": True, "optimize": True, "quality": 85},
    "PNG": {"optimize": True},
    "GIF": {"interlace": True},
}


def pillow_format(extension: str) -> Optional[str]:
    """Map a file extension (with or without the dot) to a Pillow format name."""
    ext = extension.lower()
    if not ext.startswith("."):
        ext = "." + ext
    return Image.registered_extensions().get(ext)


def is_supported_image(path: Union[str, Path]) -> bool:
    """True when Pillow can decode files with this extension."""
    suffix = Path(path).suffix
    fmt = pillow_format(suffix) if suffix else None
    return fmt is not None and fmt in Image.OPEN


def content_type_for(fmt: str) -> str:
    return Image.MIME.get(fmt, "application/octet-stream")


def resolve_variant_specs(config: VariantMatrixConfig) -> List[ImageVariantSpec]:
    """
    Expand a size/variation/format matrix into a flat list of variant specs.

    Ordering is sizes, then variations, then formats, each in declaration
    order, so the same configuration always yields the same list.

    Raises:
        ConfigurationError: If a format is neither the pass-through sentinel
            nor something Pillow can write.
    """
    for fmt in config.formats:
        if fmt == ORIGINAL_FORMAT:
            continue
        pil_fmt = pillow_format(fmt)
        if pil_fmt is None or pil_fmt not in Image.SAVE:
            raise ConfigurationError(f"Output format '{fmt}' is not supported by Pillow")

    return [
        ImageVariantSpec(
            name=f"{label}-{variation}",
            width=width,
            height_ratio=ratio,
            format=fmt,
        )
        for label, width in config.sizes.items()
        for variation, ratio in config.variations.items()
        for fmt in config.formats
    ]


def normalize_key(relative_path: str) -> str:
    """Object key for a relative path: POSIX separators, no leading slash."""
    return relative_path.replace("\\", "/").lstrip("/")


def calculate_variant_key(relative_path: str, spec: ImageVariantSpec) -> str:
    """
    Processed-bucket key for one variant of an image.

    ``photos/a.jpg`` with variant ``small-square`` in ``webp`` becomes
    ``photos/a-small-square.webp``; the pass-through format keeps the
    source extension.
    """
    path = PurePosixPath(normalize_key(relative_path))
    ext = path.suffix[1:] if spec.is_original_format else spec.format
    filename = f"{path.stem}-{spec.name}.{ext}"
    parent = path.parent.as_posix()
    if parent in ("", "."):
        return filename
    return f"{parent}/{filename}"


def variants_for_source(
    relative_path: str, specs: Sequence[ImageVariantSpec]
) -> Tuple[Tuple[ImageVariantSpec, ...], List[ImageVariantSpec]]:
    """
    Split ``specs`` into the variants to produce for one source and the dropped ones.

    A variant whose key was already claimed by an earlier one is dropped, so
    ``a.webp`` under ``[original]`` and ``webp`` uploads one ``a-small-square.webp``
    made by whichever format comes first in the matrix.
    """
    kept: List[ImageVariantSpec] = []
    dropped: List[ImageVariantSpec] = []
    seen = set()
    for spec in specs:
        key = calculate_variant_key(relative_path, spec)
        if key in seen:
            dropped.append(spec)
        else:
            seen.add(key)
            kept.append(spec)
    return tuple(kept), dropped


def compute_target_size(
    source_size: Tuple[int, int], width: int, height: Optional[int]
) -> Tuple[int, int]:
    """
    Output dimensions for a resize that never enlarges the source.

    With no height the source aspect ratio is kept. With a height the source
    is cropped to the target aspect ratio first (cover); if that crop is
    already smaller than the target it is used as-is.
    """
    src_w, src_h = source_size
    if height is None:
        if src_w <= width:
            return src_w, src_h
        return width, max(1, round(src_h * width / src_w))

    target_aspect = width / height
    if src_w / src_h > target_aspect:
        crop_w, crop_h = max(1, round(src_h * target_aspect)), src_h
    else:
        crop_w, crop_h = src_w, max(1, round(src_w / target_aspect))

    if crop_w <= width:
        return crop_w, crop_h
    return width, height


def resize_variant(image: Image.Image, spec: ImageVariantSpec) -> Image.Image:
    """Resize (and crop, for fixed ratios) an opened image for one variant."""
    size = compute_target_size(image.size, spec.width, spec.height)
    if spec.height is None:
        if size == image.size:
            return image.copy()
        return image.resize(size, Image.Resampling.LANCZOS)
    return ImageOps.fit(image, size, method=Image.Resampling.LANCZOS)


def encode_variant(
    image: Image.Image, spec: ImageVariantSpec, source_format: str
) -> Tuple[bytes, str]:
    """
    Encode a resized image in the variant's format.

    Returns:
        Tuple of (encoded bytes, content type)
    """
    if spec.is_original_format:
        fmt = source_format
        options = ORIGINAL_FORMAT_OPTIONS.get(fmt, {})
    else:
        fmt = pillow_format(spec.format) or spec.format.upper()
        options = FORMAT_OPTIONS.get(fmt, {})
        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGBA" if image.has_transparency_data else "RGB")

    if fmt == "JPEG" and image.mode not in ("RGB", "L", "CMYK"):
        image = image.convert("RGB")

    output = io.BytesIO()
    image.save(output, format=fmt, **options)
    return output.getvalue(), content_type_for(fmt)


def file_md5(path: Union[str, Path], chunk_size: int = CHUNK_SIZE) -> str:
    """MD5 hex digest of a file, read incrementally."""
    digest = hashlib.md5()
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()
