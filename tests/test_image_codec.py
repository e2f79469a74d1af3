"""
Unit tests for image_codec module.

Tests decoding, encoding and upload MIME classification.
"""

import pytest
from PIL import Image

from conftest import make_png, open_png

from CS_Libs.EditingLib.image_codec import decode_image, encode_png, fit_within, validate_mime
from CS_Libs.errors import ApplyFailed, DecodeError, UnsupportedMediaType


class TestDecodeImage:
    """Tests for decode_image."""

    def test_decodes_to_rgba(self):
        """Should return a loaded RGBA image."""
        image = decode_image(make_png((12, 8)))
        assert image.mode == "RGBA"
        assert image.size == (12, 8)

    def test_converts_pil_images(self):
        """Should accept an Image and convert it to RGBA."""
        image = decode_image(Image.new("RGB", (3, 3), (1, 2, 3)))
        assert image.getpixel((0, 0)) == (1, 2, 3, 255)

    @pytest.mark.parametrize("data", [b"", b"not an image", bytearray(b"plain text")])
    def test_bad_bytes(self, data):
        """Should raise DecodeError for empty or foreign data."""
        with pytest.raises(DecodeError):
            decode_image(data, "overlay")

    def test_oversized_image(self, monkeypatch):
        """Should raise DecodeError when an image exceeds Pillow's pixel limit."""
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        with pytest.raises(DecodeError, match="source image"):
            decode_image(make_png((800, 600)), "source image")


class TestEncodePng:
    """Tests for encode_png."""

    def test_round_trips_pixels(self):
        """Should encode pixels losslessly."""
        data = encode_png(Image.new("RGBA", (4, 4), (9, 8, 7, 6)))
        assert open_png(data).getpixel((1, 1)) == (9, 8, 7, 6)

    def test_empty_image(self):
        """Should refuse a zero-area image."""
        with pytest.raises(ApplyFailed):
            encode_png(Image.new("RGBA", (0, 5)))


class TestValidateMime:
    """Tests for validate_mime and fit_within."""

    @pytest.mark.parametrize("mime,kind", [
        ("image/png", "image"),
        ("IMAGE/JPEG", "image"),
        ("video/mp4", "video"),
        ("video/quicktime", "video"),
    ])
    def test_supported(self, mime, kind):
        """Should classify images and whitelisted videos."""
        assert validate_mime(mime) == kind

    @pytest.mark.parametrize("mime", ["", "image/", "text/plain", "video/x-flv"])
    def test_unsupported(self, mime):
        """Should reject everything else."""
        with pytest.raises(UnsupportedMediaType):
            validate_mime(mime)

    def test_fit_within_never_upscales(self):
        """Should shrink large sizes and leave small ones alone."""
        assert fit_within(1600, 1000, 800, 500) == (800, 500)
        assert fit_within(100, 50, 800, 500) == (100, 50)
