"""
X11 screen capture for GhostLens.

This module handles the capture half of a visual-ask session:
- Screen geometry (RandR multi-monitor, root window fallback)
- Full-screen grab of the root window into a Pillow image
- PNG encoding into an immutable ScreenCapture snapshot
- The desktop BoundsResolver consumed by the session controller
"""

import asyncio
import io
import logging
import threading
from typing import Optional, Tuple

from Xlib import display, X
from Xlib.error import DisplayError, XError
from Xlib.ext import randr
from PIL import Image

from ghostlens.utils.errors import CaptureUnavailable
from ghostlens.utils.geometry import ScreenCapture, WindowBounds

# Set up logging
logger = logging.getLogger(__name__)


class X11ScreenSource:
    """Grabs the X11 root window and produces ScreenCapture snapshots.

    A new Display connection is opened per capture so the source can be
    driven from a worker thread without sharing Xlib state.
    """

    def __init__(self, device_scale_factor: float = 1.0, display_name: Optional[str] = None):
        self.device_scale_factor = device_scale_factor if device_scale_factor > 0 else 1.0
        self.display_name = display_name

    def _open_display(self) -> display.Display:
        try:
            return display.Display(self.display_name)
        except DisplayError as e:
            raise CaptureUnavailable(f"cannot open X display: {e}")

    def get_screen_geometry(self, disp: Optional[display.Display] = None) -> Tuple[int, int, int, int]:
        """
        Get the full screen geometry including all monitors.

        Returns:
            Tuple of (x, y, width, height) in physical pixels
        """
        own_display = disp is None
        if own_display:
            disp = self._open_display()
        root = disp.screen().root

        try:
            try:
                # Try to use RandR extension for multi-monitor support
                screen_resources = randr.get_screen_resources(root)

                min_x = min_y = 0
                max_x = max_y = 0

                for output in screen_resources.outputs:
                    output_info = randr.get_output_info(root, output, screen_resources.config_timestamp)
                    if output_info.connection == randr.Connected and output_info.crtc:
                        crtc_info = randr.get_crtc_info(root, output_info.crtc, screen_resources.config_timestamp)

                        min_x = min(min_x, crtc_info.x)
                        min_y = min(min_y, crtc_info.y)
                        max_x = max(max_x, crtc_info.x + crtc_info.width)
                        max_y = max(max_y, crtc_info.y + crtc_info.height)

                if max_x > 0 and max_y > 0:
                    return (min_x, min_y, max_x - min_x, max_y - min_y)

            except Exception as e:
                logger.warning(f"RandR extension failed, falling back to root window geometry: {e}")

            # Fallback to root window geometry
            geometry = root.get_geometry()
            return (0, 0, geometry.width, geometry.height)
        finally:
            if own_display:
                disp.close()

    def grab_full_screen(self) -> Tuple[Image.Image, Tuple[int, int]]:
        """
        Grab the whole screen as a Pillow image in physical pixels.

        Returns:
            (image, (x, y)) where (x, y) is the grabbed area's top-left corner

        Raises:
            CaptureUnavailable: display missing, grab refused, or unsupported depth
        """
        disp = self._open_display()
        try:
            x, y, width, height = self.get_screen_geometry(disp)
            if width <= 0 or height <= 0:
                raise CaptureUnavailable(f"screen reports size {width}x{height}")

            root = disp.screen().root
            try:
                raw_image = root.get_image(x, y, width, height, X.ZPixmap, 0xffffffff)
            except XError as e:
                raise CaptureUnavailable(f"X server refused the grab: {e}")

            if raw_image.depth == 24:
                return Image.frombytes("RGB", (width, height), raw_image.data, "raw", "BGRX"), (x, y)
            elif raw_image.depth == 32:
                return Image.frombytes("RGBA", (width, height), raw_image.data, "raw", "BGRA"), (x, y)

            raise CaptureUnavailable(f"unsupported color depth {raw_image.depth}")
        finally:
            disp.close()

    def capture_full_screen(self) -> ScreenCapture:
        """
        Capture the screen and encode it into an immutable snapshot.

        Returns:
            ScreenCapture with logical size = physical size / scale
        """
        image, (origin_x, origin_y) = self.grab_full_screen()

        buffer = io.BytesIO()
        # Speed over size: the raster only lives until the crop is done
        image.save(buffer, "PNG", optimize=False, compress_level=1)

        scale = self.device_scale_factor
        capture = ScreenCapture(
            encoded_image=buffer.getvalue(),
            logical_width=image.width / scale,
            logical_height=image.height / scale,
            device_scale_factor=scale,
            origin_x=origin_x / scale,
            origin_y=origin_y / scale,
        )
        logger.info(
            f"Full screen captured: {image.width}x{image.height} px "
            f"(scale {scale}, {len(capture.encoded_image)} bytes)"
        )
        return capture


class DesktopBoundsResolver:
    """BoundsResolver backed by the live overlay and an X11 screen source.

    The overlay records its own logical geometry via `track_window` when it
    is shown; the capture is run in the default executor so the event loop
    stays free while X11 copies the framebuffer.
    """

    def __init__(self, screen_source: X11ScreenSource):
        self.screen_source = screen_source
        self._bounds: Optional[WindowBounds] = None
        self._lock = threading.Lock()

    def track_window(self, bounds: WindowBounds) -> None:
        with self._lock:
            self._bounds = bounds
        logger.debug(f"Tracking overlay bounds {bounds}")

    async def get_window_bounds(self) -> WindowBounds:
        with self._lock:
            bounds = self._bounds
        if bounds is None:
            raise CaptureUnavailable("overlay window bounds not available")
        return bounds

    async def capture_full_screen(self) -> ScreenCapture:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.screen_source.capture_full_screen)
