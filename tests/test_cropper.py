"""
tests/test_cropper.py - Unit tests for ghostlens.utils.cropper

Covers:
  - Cropping the exact pixels of a mapped CropRect
  - Accepted raster sources (capture, bytes, data URI)
  - DecodeError on unreadable input
  - EmptyRegion when the rectangle falls outside the raster
"""

import io
import unittest

from PIL import Image

from ghostlens.utils.cropper import crop_capture, decode_raster
from ghostlens.utils.errors import DecodeError, EmptyRegion
from ghostlens.utils.geometry import CropRect, ScreenCapture, to_data_uri


def make_png(width=40, height=30, mode="RGB"):
    """Image whose pixel (x, y) encodes its own coordinates."""
    img = Image.new(mode, (width, height))
    pixels = img.load()
    for x in range(width):
        for y in range(height):
            pixels[x, y] = (x, y, 7) if mode == "RGB" else (x, y, 7, 255)
    buffer = io.BytesIO()
    img.save(buffer, "PNG")
    return buffer.getvalue()


class TestCropCapture(unittest.TestCase):

    def setUp(self):
        self.png = make_png()
        self.capture = ScreenCapture(self.png, logical_width=20, logical_height=15, device_scale_factor=2)

    def _decode(self, cropped):
        return Image.open(io.BytesIO(cropped.png_bytes))

    def test_crops_exact_region(self):
        cropped = crop_capture(self.capture, CropRect(5, 6, 10, 8))
        self.assertEqual((cropped.width, cropped.height), (10, 8))

        img = self._decode(cropped)
        self.assertEqual(img.size, (10, 8))
        self.assertEqual(img.getpixel((0, 0))[:2], (5, 6))
        self.assertEqual(img.getpixel((9, 7))[:2], (14, 13))

    def test_accepts_bytes_and_data_uri(self):
        crop = CropRect(0, 0, 4, 4)
        from_bytes = crop_capture(self.png, crop)
        from_uri = crop_capture(to_data_uri(self.png), crop)
        self.assertEqual(from_bytes.png_bytes, from_uri.png_bytes)

    def test_clamps_to_decoded_size(self):
        cropped = crop_capture(self.capture, CropRect(35, 25, 20, 20))
        self.assertEqual((cropped.width, cropped.height), (5, 5))

    def test_rgba_preserved(self):
        cropped = crop_capture(make_png(mode="RGBA"), CropRect(1, 1, 3, 3))
        self.assertEqual(self._decode(cropped).mode, "RGBA")

    def test_palette_converted_to_rgb(self):
        img = Image.new("P", (10, 10))
        buffer = io.BytesIO()
        img.save(buffer, "PNG")
        cropped = crop_capture(buffer.getvalue(), CropRect(0, 0, 5, 5))
        self.assertEqual(self._decode(cropped).mode, "RGB")

    def test_outside_raster_is_empty_region(self):
        with self.assertRaises(EmptyRegion) as ctx:
            crop_capture(self.capture, CropRect(40, 0, 1, 1))
        self.assertEqual(ctx.exception.reason, "empty_region")

    def test_negative_origin_is_empty_region(self):
        with self.assertRaises(EmptyRegion):
            crop_capture(self.capture, CropRect(-1, 0, 5, 5))


class TestDecodeRaster(unittest.TestCase):

    def test_garbage_bytes(self):
        with self.assertRaises(DecodeError) as ctx:
            decode_raster(b"definitely not a png")
        self.assertEqual(ctx.exception.reason, "decode_error")

    def test_empty_bytes(self):
        with self.assertRaises(DecodeError):
            decode_raster(b"")

    def test_truncated_png(self):
        with self.assertRaises(DecodeError):
            decode_raster(make_png()[:-20])

    def test_non_data_uri_string(self):
        with self.assertRaises(DecodeError):
            decode_raster("/tmp/screen.png")

    def test_bad_base64(self):
        with self.assertRaises(DecodeError):
            decode_raster("data:image/png;base64,@@@")

    def test_not_base64_uri(self):
        with self.assertRaises(DecodeError):
            decode_raster("data:text/plain,hello")

    def test_decodes_valid_png(self):
        img = decode_raster(make_png(12, 9))
        self.assertEqual(img.size, (12, 9))


if __name__ == "__main__":
    unittest.main()
