"""
Cropping of the frozen screen capture for GhostLens.

Decodes the full-screen raster with Pillow, cuts out the mapped CropRect and
re-encodes the region as PNG for the vision query.
"""

import base64
import binascii
import io
import logging
from typing import Union

from PIL import Image, UnidentifiedImageError

from ghostlens.utils.errors import DecodeError, EmptyRegion
from ghostlens.utils.geometry import CropRect, CroppedImage, ScreenCapture

logger = logging.getLogger(__name__)

RasterSource = Union[ScreenCapture, bytes, str]


def _raster_bytes(source: RasterSource) -> bytes:
    """Extract raw encoded bytes from a capture, bytes, or data URI."""
    if isinstance(source, ScreenCapture):
        return source.encoded_image
    if isinstance(source, bytes):
        return source
    if isinstance(source, str):
        if not source.startswith("data:"):
            raise DecodeError("expected a data URI")
        header, _, payload = source.partition(",")
        if not header.endswith(";base64"):
            raise DecodeError("data URI is not base64 encoded")
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"invalid base64 payload: {e}")
    raise DecodeError(f"unsupported raster type {type(source).__name__}")


def decode_raster(source: RasterSource) -> Image.Image:
    """
    Decode a captured raster into an addressable Pillow image.

    Raises:
        DecodeError: if the bytes are not a readable image
    """
    data = _raster_bytes(source)
    if not data:
        raise DecodeError("raster is empty")

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise DecodeError(str(e))

    logger.debug(f"Decoded raster: {image.width}x{image.height} ({image.mode})")
    return image


def crop_image(image: Image.Image, crop: CropRect) -> CroppedImage:
    """
    Copy `crop` out of a decoded image and re-encode it as PNG.

    The rectangle is clamped once more against the decoded size, since the
    raster can be a pixel short of logical size times scale.

    Raises:
        EmptyRegion: if either dimension is zero after clamping
    """
    width = min(crop.width, image.width - crop.x)
    height = min(crop.height, image.height - crop.y)

    if crop.x < 0 or crop.y < 0 or width <= 0 or height <= 0:
        raise EmptyRegion(
            f"{crop.width}x{crop.height} at ({crop.x}, {crop.y}) "
            f"in {image.width}x{image.height} raster"
        )

    region = image.crop((crop.x, crop.y, crop.x + width, crop.y + height))
    if region.mode not in ("RGB", "RGBA"):
        region = region.convert("RGB")

    buffer = io.BytesIO()
    region.save(buffer, "PNG", optimize=False)
    png_bytes = buffer.getvalue()

    logger.info(f"Cropped region {width}x{height} at ({crop.x}, {crop.y}) ({len(png_bytes)} bytes)")
    return CroppedImage(png_bytes=png_bytes, width=width, height=height)


def crop_capture(source: RasterSource, crop: CropRect) -> CroppedImage:
    """Decode `source` and return the cropped region (DecodeError / EmptyRegion)."""
    return crop_image(decode_raster(source), crop)
