"""Tests for image_utils.py utility functions."""

import hashlib
import io

import pytest
from PIL import Image, features

from images_sync.core.exceptions import ConfigurationError
from images_sync.core.image_utils import (
    calculate_variant_key,
    compute_target_size,
    content_type_for,
    encode_variant,
    file_md5,
    is_supported_image,
    normalize_key,
    pillow_format,
    resize_variant,
    resolve_variant_specs,
    variants_for_source,
)
from images_sync.core.models import ORIGINAL_FORMAT, ImageVariantSpec, VariantMatrixConfig
from images_sync.testing.fakes import create_test_image

requires_avif = pytest.mark.skipif(
    not features.check("avif"), reason="Pillow built without AVIF support"
)


def _spec(name="small-square", width=100, ratio=1.0, fmt="webp"):
    return ImageVariantSpec(name=name, width=width, height_ratio=ratio, format=fmt)


class TestFormatLookup:
    """Tests for extension and content type helpers."""

    @pytest.mark.parametrize(
        "ext,expected",
        [(".jpg", "JPEG"), ("jpeg", "JPEG"), (".PNG", "PNG"), ("webp", "WEBP"), (".txt", None)],
    )
    def test_pillow_format(self, ext, expected):
        assert pillow_format(ext) == expected

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("a.jpg", True),
            ("dir/b.PNG", True),
            ("c.gif", True),
            ("notes.txt", False),
            ("README", False),
            ("archive.tar.gz", False),
        ],
    )
    def test_is_supported_image(self, path, expected):
        assert is_supported_image(path) is expected

    def test_content_type_for(self):
        assert content_type_for("JPEG") == "image/jpeg"
        assert content_type_for("PNG") == "image/png"
        assert content_type_for("WEBP") == "image/webp"
        assert content_type_for("NOPE") == "application/octet-stream"


class TestResolveVariantSpecs:
    """Tests for resolve_variant_specs."""

    def test_order_is_sizes_then_variations_then_formats(self):
        matrix = VariantMatrixConfig(
            sizes={"small": 100, "large": 200},
            variations={"square": 1, "original": None},
            formats=["webp", ORIGINAL_FORMAT],
        )

        specs = resolve_variant_specs(matrix)

        assert [(s.name, s.format) for s in specs] == [
            ("small-square", "webp"),
            ("small-square", ORIGINAL_FORMAT),
            ("small-original", "webp"),
            ("small-original", ORIGINAL_FORMAT),
            ("large-square", "webp"),
            ("large-square", ORIGINAL_FORMAT),
            ("large-original", "webp"),
            ("large-original", ORIGINAL_FORMAT),
        ]
        assert specs[0].width == 100
        assert specs[0].height == 100
        assert specs[2].height is None

    def test_deterministic(self):
        matrix = VariantMatrixConfig(formats=["webp", ORIGINAL_FORMAT])
        assert resolve_variant_specs(matrix) == resolve_variant_specs(matrix)

    @requires_avif
    def test_default_matrix_count(self):
        """Test the default matrix yields 5 x 3 x 3 variants per image."""
        assert len(resolve_variant_specs(VariantMatrixConfig())) == 45

    @pytest.mark.parametrize("fmt", ["doc", "txt"])
    def test_unwritable_format_rejected(self, fmt):
        with pytest.raises(ConfigurationError, match=fmt):
            resolve_variant_specs(VariantMatrixConfig(formats=["webp", fmt]))


class TestVariantKeys:
    """Tests for key derivation."""

    def test_normalize_key(self):
        assert normalize_key("/photos/a.jpg") == "photos/a.jpg"
        assert normalize_key("photos\\2024\\a.jpg") == "photos/2024/a.jpg"
        assert normalize_key("a.jpg") == "a.jpg"

    def test_root_level_key_has_no_leading_slash(self):
        assert calculate_variant_key("a.jpg", _spec()) == "a-small-square.webp"

    def test_nested_key_keeps_directories(self):
        key = calculate_variant_key("photos/2024/a.jpg", _spec(fmt="avif"))
        assert key == "photos/2024/a-small-square.avif"

    def test_original_format_keeps_source_extension(self):
        key = calculate_variant_key("photos/b.PNG", _spec(name="large-original", fmt=ORIGINAL_FORMAT))
        assert key == "photos/b-large-original.PNG"

    def test_dots_in_stem(self):
        assert calculate_variant_key("my.photo.jpg", _spec()) == "my.photo-small-square.webp"


class TestVariantsForSource:
    """Tests for per-source variant selection."""

    def test_webp_source_drops_colliding_webp_variant(self):
        matrix = VariantMatrixConfig(
            sizes={"small": 100},
            variations={"square": 1, "original": None},
            formats=[ORIGINAL_FORMAT, "webp"],
        )
        specs = resolve_variant_specs(matrix)

        kept, dropped = variants_for_source("photos/a.webp", specs)

        keys = [calculate_variant_key("photos/a.webp", spec) for spec in kept]
        assert keys == ["photos/a-small-square.webp", "photos/a-small-original.webp"]
        assert all(spec.is_original_format for spec in kept)
        assert [(s.name, s.format) for s in dropped] == [
            ("small-square", "webp"),
            ("small-original", "webp"),
        ]

    @requires_avif
    def test_default_matrix_keys_are_unique_for_webp_source(self):
        specs = resolve_variant_specs(VariantMatrixConfig())

        kept, dropped = variants_for_source("a.webp", specs)

        keys = [calculate_variant_key("a.webp", spec) for spec in kept]
        assert len(keys) == len(set(keys)) == 30
        assert len(dropped) == 15

    @requires_avif
    def test_other_sources_keep_every_variant(self):
        specs = resolve_variant_specs(VariantMatrixConfig())

        kept, dropped = variants_for_source("photos/a.jpg", specs)

        assert kept == tuple(specs)
        assert dropped == []

    def test_differently_cased_extension_is_a_separate_key(self):
        specs = [_spec(fmt=ORIGINAL_FORMAT), _spec(fmt="webp")]

        kept, dropped = variants_for_source("a.WEBP", specs)

        assert len(kept) == 2
        assert dropped == []


class TestComputeTargetSize:
    """Tests for compute_target_size."""

    @pytest.mark.parametrize(
        "source,width,height,expected",
        [
            ((3000, 2000), 300, None, (300, 200)),
            ((200, 100), 300, None, (200, 100)),
            ((3000, 2000), 600, 600, (600, 600)),
            ((3000, 2000), 600, 400, (600, 400)),
            ((2000, 3000), 600, 400, (600, 400)),
            ((400, 200), 300, 300, (200, 200)),
        ],
    )
    def test_target_sizes(self, source, width, height, expected):
        assert compute_target_size(source, width, height) == expected

    def test_never_enlarges(self):
        """A 300px source in a 1500px bucket stays 300px wide."""
        assert compute_target_size((300, 300), 1500, None) == (300, 300)
        assert compute_target_size((300, 300), 1500, 1500) == (300, 300)
        assert compute_target_size((300, 200), 1500, 1000) == (300, 200)


class TestResizeAndEncode:
    """Tests for resize_variant and encode_variant."""

    def _open(self, width, height, fmt="JPEG"):
        image = Image.open(io.BytesIO(create_test_image(width, height, format=fmt)))
        image.load()
        return image

    def test_resize_keeps_aspect_without_ratio(self):
        image = self._open(400, 200)
        resized = resize_variant(image, _spec(width=100, ratio=None))
        assert resized.size == (100, 50)

    def test_resize_crops_to_ratio(self):
        image = self._open(400, 200)
        resized = resize_variant(image, _spec(width=100, ratio=1.0))
        assert resized.size == (100, 100)

    def test_resize_never_enlarges(self):
        image = self._open(300, 300)
        resized = resize_variant(image, _spec(width=1500, ratio=None))
        assert resized.size == (300, 300)

    def test_encode_webp(self):
        image = self._open(60, 40)
        data, content_type = encode_variant(image, _spec(fmt="webp"), "JPEG")

        assert content_type == "image/webp"
        with Image.open(io.BytesIO(data)) as decoded:
            assert decoded.format == "WEBP"
            assert decoded.size == (60, 40)

    def test_encode_original_format_keeps_source_format(self):
        image = self._open(60, 40, fmt="PNG")
        data, content_type = encode_variant(image, _spec(fmt=ORIGINAL_FORMAT), "PNG")

        assert content_type == "image/png"
        with Image.open(io.BytesIO(data)) as decoded:
            assert decoded.format == "PNG"

    def test_encode_palette_image_to_webp(self):
        image = self._open(40, 40, fmt="PNG").convert("P")
        data, _ = encode_variant(image, _spec(fmt="webp"), "PNG")
        with Image.open(io.BytesIO(data)) as decoded:
            assert decoded.mode in ("RGB", "RGBA")

    def test_encode_rgba_as_original_jpeg(self):
        image = Image.new("RGBA", (20, 20), (255, 0, 0, 128))
        data, content_type = encode_variant(image, _spec(fmt=ORIGINAL_FORMAT), "JPEG")
        assert content_type == "image/jpeg"
        with Image.open(io.BytesIO(data)) as decoded:
            assert decoded.mode == "RGB"

    @requires_avif
    def test_encode_avif(self):
        image = self._open(60, 40)
        data, content_type = encode_variant(image, _spec(fmt="avif"), "JPEG")
        assert content_type == "image/avif"
        assert len(data) > 0


class TestFileMd5:
    """Tests for file_md5."""

    def test_matches_hashlib(self, tmp_path):
        body = create_test_image(120, 80)
        path = tmp_path / "a.jpg"
        path.write_bytes(body)

        assert file_md5(path) == hashlib.md5(body).hexdigest()

    def test_small_chunks(self, tmp_path):
        body = b"x" * 10_000
        path = tmp_path / "blob.bin"
        path.write_bytes(body)

        assert file_md5(path, chunk_size=7) == hashlib.md5(body).hexdigest()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.jpg"
        path.write_bytes(b"")
        assert file_md5(path) == hashlib.md5(b"").hexdigest()

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(OSError):
            file_md5(tmp_path / "missing.jpg")
