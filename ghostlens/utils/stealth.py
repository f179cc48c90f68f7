"""
Screen-share invisibility for GhostLens windows.

On Windows the window is excluded from capture with
SetWindowDisplayAffinity(WDA_EXCLUDEFROMCAPTURE). X11 has no equivalent, so
there the request is logged and reported as unsupported.
"""

import ctypes
import logging
import sys

logger = logging.getLogger(__name__)

WDA_NONE = 0x00
WDA_EXCLUDEFROMCAPTURE = 0x11


def set_content_protection(window_id: int, enabled: bool) -> bool:
    """
    Hide (or reveal) a native window from screen capture and sharing.

    Args:
        window_id: Native window handle (QWidget.winId())
        enabled: True to exclude the window from capture

    Returns:
        True if the platform applied the setting
    """
    if sys.platform != "win32":
        if enabled:
            logger.warning(f"Content protection not supported on {sys.platform}; window stays capturable")
        return False

    try:
        user32 = ctypes.windll.user32
        affinity = WDA_EXCLUDEFROMCAPTURE if enabled else WDA_NONE
        ok = bool(user32.SetWindowDisplayAffinity(ctypes.c_void_p(int(window_id)), affinity))
        if not ok:
            logger.warning(f"SetWindowDisplayAffinity failed for window {window_id}")
        else:
            logger.info(f"Content protection {'enabled' if enabled else 'disabled'} for window {window_id}")
        return ok
    except (AttributeError, OSError) as e:
        logger.error(f"Error updating content protection: {e}")
        return False
