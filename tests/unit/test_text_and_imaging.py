"""Unit tests for text cleanup and image conversion helpers."""

import numpy as np
import pytest
from PIL import Image

from copyhelper.imaging import decode_image_bytes, image_size, is_empty, to_bgr, to_pil, to_rgb_image
from copyhelper.text_cleaning import normalize_whitespace, sanitize_text, truncate_snippet


class TestSanitizeText:
    """Tests for text sanitization."""

    def test_removes_control_characters(self):
        """Control characters except whitespace should be removed."""
        assert sanitize_text("Hello\x00\x01\x02World") == "HelloWorld"

    def test_preserves_whitespace(self):
        text = "Hello\tWorld\nNew\rLine"
        assert sanitize_text(text) == text

    def test_none_returns_empty(self):
        assert sanitize_text(None) == ""


class TestNormalizeWhitespace:
    def test_multiple_spaces_collapsed(self):
        assert normalize_whitespace("Hello     World") == "Hello World"

    def test_multiple_newlines_collapsed(self):
        assert normalize_whitespace("Hello\n\n\n\n\nWorld") == "Hello\n\nWorld"

    def test_strips_ends(self):
        assert normalize_whitespace("  text  ") == "text"


class TestTruncateSnippet:
    def test_long_text_gets_ellipsis(self):
        assert truncate_snippet("a" * 200) == "a" * 180 + "..."

    def test_exact_limit_is_untouched(self):
        assert truncate_snippet("a" * 180) == "a" * 180


class TestImaging:
    def test_pil_rgb_becomes_bgr(self):
        bgr = to_bgr(Image.new("RGB", (2, 2), (255, 0, 0)))
        assert bgr.shape == (2, 2, 3)
        assert bgr[0, 0].tolist() == [0, 0, 255]

    def test_bgra_array_drops_alpha(self):
        bgra = np.zeros((3, 3, 4), np.uint8)
        assert to_bgr(bgra).shape == (3, 3, 3)

    def test_gray_array_to_pil(self):
        assert to_pil(np.zeros((4, 5), np.uint8)).mode == "L"

    def test_to_rgb_image_converts_palette(self):
        assert to_rgb_image(Image.new("P", (4, 4))).mode == "RGB"

    def test_sizes_and_emptiness(self):
        assert image_size(np.zeros((4, 5, 3), np.uint8)) == (5, 4)
        assert is_empty(np.zeros((0, 5, 3), np.uint8))
        assert not is_empty(Image.new("RGB", (1, 1)))

    def test_decode_image_bytes(self, png_bytes):
        assert decode_image_bytes(png_bytes(7, 9)).size == (7, 9)

    @pytest.mark.parametrize("data", [b"", b"not an image"])
    def test_decode_rejects_garbage(self, data):
        with pytest.raises(ValueError):
            decode_image_bytes(data)
