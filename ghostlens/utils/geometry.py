"""
Geometry types and the selection-to-crop coordinate mapper for GhostLens.

The overlay is drawn in logical (Qt) pixels while X11 hands back the screen
in physical pixels. Everything the user drags is therefore logical and has to
be scaled by the device pixel ratio before it can address the captured raster.
"""

import base64
import logging
import math
from dataclasses import dataclass
from typing import NamedTuple

logger = logging.getLogger(__name__)

# Inset between the overlay edge and its active selection area (logical px)
OVERLAY_MARGIN_PX = 12


class WindowBounds(NamedTuple):
    """Host overlay window geometry in logical screen coordinates."""
    x: float
    y: float
    width: float
    height: float


class SelectionRect(NamedTuple):
    """Selection in overlay-local logical pixels, relative to the inset origin."""
    x: float
    y: float
    width: float
    height: float


class CropRect(NamedTuple):
    """Crop rectangle in physical pixels of the captured raster."""
    x: int
    y: int
    width: int
    height: int

    @property
    def box(self):
        """Pillow-style (left, upper, right, lower) box."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)


def to_data_uri(png_bytes: bytes, mime_type: str = "image/png") -> str:
    encoded = base64.b64encode(png_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


@dataclass(frozen=True)
class ScreenCapture:
    """Immutable full-screen snapshot taken once per visual-ask session.

    Attributes:
        encoded_image: PNG bytes of the full-screen raster
        logical_width: Screen width in logical pixels
        logical_height: Screen height in logical pixels
        device_scale_factor: Physical pixels per logical pixel
        origin_x: Logical x of the captured screen's top-left corner
        origin_y: Logical y of the captured screen's top-left corner
    """

    encoded_image: bytes
    logical_width: float
    logical_height: float
    device_scale_factor: float = 1.0
    origin_x: float = 0
    origin_y: float = 0

    @property
    def pixel_width(self) -> int:
        return math.floor(self.logical_width * self.device_scale_factor)

    @property
    def pixel_height(self) -> int:
        return math.floor(self.logical_height * self.device_scale_factor)

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.encoded_image)


@dataclass(frozen=True)
class CroppedImage:
    """The cropped region, re-encoded and ready to attach to a query."""

    png_bytes: bytes
    width: int
    height: int

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.png_bytes)


def map_selection_to_crop(
    bounds: WindowBounds,
    selection: SelectionRect,
    scale: float,
    capture_width: int,
    capture_height: int,
    margin: float = OVERLAY_MARGIN_PX,
    origin_x: float = 0,
    origin_y: float = 0,
) -> CropRect:
    """
    Map an overlay-local selection onto the physical pixels of a capture.

    Args:
        bounds: Overlay window bounds (logical)
        selection: Selection relative to the overlay's inset origin (logical)
        scale: Device scale factor of the captured display
        capture_width: Raster width in physical pixels
        capture_height: Raster height in physical pixels
        margin: Overlay inset in logical pixels
        origin_x: Logical x of the captured screen origin
        origin_y: Logical y of the captured screen origin

    Returns:
        CropRect clamped so it never reads past the raster's right/bottom edge
    """
    abs_x = max(0, math.floor(bounds.x + margin + selection.x - origin_x))
    abs_y = max(0, math.floor(bounds.y + margin + selection.y - origin_y))
    abs_w = max(1, math.floor(selection.width))
    abs_h = max(1, math.floor(selection.height))

    crop_x = math.floor(abs_x * scale)
    crop_y = math.floor(abs_y * scale)
    crop_w = math.floor(abs_w * scale)
    crop_h = math.floor(abs_h * scale)

    crop_w = max(1, min(crop_w, capture_width - crop_x))
    crop_h = max(1, min(crop_h, capture_height - crop_y))

    crop = CropRect(crop_x, crop_y, crop_w, crop_h)
    logger.debug(
        f"Mapped selection {selection} in window {bounds} "
        f"(margin={margin}, scale={scale}) -> crop {crop}"
    )
    return crop


def map_capture(
    bounds: WindowBounds,
    selection: SelectionRect,
    capture: ScreenCapture,
    margin: float = OVERLAY_MARGIN_PX,
) -> CropRect:
    """Map a selection using the size, scale and origin recorded in a capture."""
    return map_selection_to_crop(
        bounds,
        selection,
        capture.device_scale_factor,
        capture.pixel_width,
        capture.pixel_height,
        margin=margin,
        origin_x=capture.origin_x,
        origin_y=capture.origin_y,
    )
