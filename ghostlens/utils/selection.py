"""
Pointer-driven rectangle selection for the GhostLens overlay.

The tracker is toolkit-agnostic: the Qt overlay feeds it local pointer
coordinates (already shifted by the overlay margin) and reads back a
SelectionRect. Keeping it free of Qt makes the drag logic testable.
"""

import logging
from typing import Optional, Tuple

from ghostlens.utils.geometry import SelectionRect

logger = logging.getLogger(__name__)

# Width and height must both exceed this to count as a selection
MIN_SELECTION_PX = 2


def is_valid_selection(selection: Optional[SelectionRect]) -> bool:
    return (
        selection is not None
        and selection.width > MIN_SELECTION_PX
        and selection.height > MIN_SELECTION_PX
    )


class SelectionTracker:
    """Turns pointer down/move/up into a normalized SelectionRect."""

    def __init__(self, overlay_width: float, overlay_height: float):
        self.overlay_width = max(0, overlay_width)
        self.overlay_height = max(0, overlay_height)
        self.anchor: Optional[Tuple[float, float]] = None
        self.selection: Optional[SelectionRect] = None
        self.pressed: bool = False
        self.frozen: bool = False

    def _clamp(self, x: float, y: float) -> Tuple[float, float]:
        return (
            min(max(x, 0), self.overlay_width),
            min(max(y, 0), self.overlay_height),
        )

    def _contains(self, x: float, y: float) -> bool:
        if self.selection is None:
            return False
        sel = self.selection
        return sel.x <= x <= sel.x + sel.width and sel.y <= y <= sel.y + sel.height

    def pointer_down(self, x: float, y: float) -> None:
        """Start a drag, or keep a released selection when pressed inside it."""
        if self.frozen and self.is_valid and self._contains(x, y):
            # Second click of a double-click confirm lands here
            logger.debug(f"Press inside frozen selection at ({x}, {y}) - keeping it")
            return

        self.anchor = self._clamp(x, y)
        self.selection = None
        self.pressed = True
        self.frozen = False
        logger.debug(f"Selection anchor set at {self.anchor}")

    def pointer_move(self, x: float, y: float) -> Optional[SelectionRect]:
        """Update the rectangle while the button is held."""
        if not self.pressed or self.anchor is None:
            return None

        cur_x, cur_y = self._clamp(x, y)
        anchor_x, anchor_y = self.anchor
        self.selection = SelectionRect(
            min(anchor_x, cur_x),
            min(anchor_y, cur_y),
            abs(cur_x - anchor_x),
            abs(cur_y - anchor_y),
        )
        return self.selection

    def pointer_up(self, x: float, y: float) -> Optional[SelectionRect]:
        """Finish the drag; the last rectangle becomes authoritative."""
        if not self.pressed:
            return self.selection
        self.pointer_move(x, y)
        self.pressed = False
        self.frozen = True
        logger.debug(f"Selection frozen: {self.selection}")
        return self.selection

    @property
    def is_valid(self) -> bool:
        return is_valid_selection(self.selection)

    def reset(self) -> None:
        self.anchor = None
        self.selection = None
        self.pressed = False
        self.frozen = False
