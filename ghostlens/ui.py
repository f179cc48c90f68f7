#!/usr/bin/env python3
"""
GhostLens selection overlay - interactive region picker for visual asks.

This module contains the PyQt6 implementation of the selection overlay.
It provides a full-screen translucent overlay with:
- Dark tint everywhere except the selection
- An inset border marking the active selection area
- Live selection dimensions (logical and physical pixels)
- Esc to cancel, Enter or double-click to confirm

The overlay only produces a SelectionRect. Capturing and cropping are done
by the session controller once the overlay has closed.
"""

import logging
import time
from typing import Optional

from PyQt6.QtWidgets import QApplication, QWidget
from PyQt6.QtCore import (
    Qt,
    QRect,
    QPointF,
    QPropertyAnimation,
    QEasingCurve,
    pyqtSignal,
)
from PyQt6.QtGui import (
    QColor,
    QFont,
    QFontMetrics,
    QKeyEvent,
    QMouseEvent,
    QPainter,
    QPaintEvent,
)

from ghostlens.utils.geometry import OVERLAY_MARGIN_PX, SelectionRect, WindowBounds
from ghostlens.utils.selection import SelectionTracker
from ghostlens.utils.theme import GhostLensColors

logger = logging.getLogger(__name__)


class UIConstants:
    """Configuration constants for the selection overlay.

    These constants control the appearance and behavior of the interactive
    selection overlay and the assistant window.
    """

    # Animation timing (milliseconds)
    FADE_ANIMATION_DURATION_MS = 180  # Overlay fade-in duration
    OVERLAY_OPACITY = 0.45  # Dark tint opacity

    # Delay between overlay close and screen capture, so the tint is gone
    HIDE_SETTLE_MS = 150

    # UI layout (pixels)
    OVERLAY_MARGIN = OVERLAY_MARGIN_PX
    DIMENSIONS_DISPLAY_PADDING = 6  # Padding around dimension text
    DIMENSIONS_DISPLAY_MARGIN = 10  # Margin from selection edge
    HIGHLIGHT_BORDER_WIDTH = 2  # Selection border width

    # Assistant window sizing
    ASSISTANT_MAX_WIDTH = 480
    ASSISTANT_MAX_HEIGHT = 680
    ASSISTANT_WIDTH_RATIO = 0.34
    ASSISTANT_HEIGHT_RATIO = 0.6
    ASSISTANT_MIN_WIDTH = 360
    ASSISTANT_MIN_HEIGHT = 520


class SelectionOverlay(QWidget):
    """Full-screen transparent overlay for picking a screen region."""

    # Emitted with the overlay's logical WindowBounds once it is on screen
    bounds_ready = pyqtSignal(object)
    # Emitted with the frozen SelectionRect on a valid confirm
    selection_confirmed = pyqtSignal(object)
    selection_cancelled = pyqtSignal()

    def __init__(self, device_scale_factor: float = 1.0):
        super().__init__()
        self.device_scale_factor = device_scale_factor
        self.margin = UIConstants.OVERLAY_MARGIN
        self.tracker: Optional[SelectionTracker] = None
        self.fade_animation: Optional[QPropertyAnimation] = None
        self._finished = False

        self.setup_window()
        self.setup_animation()

    def setup_window(self):
        """Configure the overlay window properties."""
        # Make window frameless and always on top
        self.setWindowFlags(
            Qt.WindowType.FramelessWindowHint
            | Qt.WindowType.WindowStaysOnTopHint
            | Qt.WindowType.Tool
        )

        # Set window to be transparent
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WidgetAttribute.WA_DeleteOnClose, True)

        # Accept focus to receive key events
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMouseTracking(True)
        self.setCursor(Qt.CursorShape.CrossCursor)
        self.setWindowTitle("GhostLens Selection Overlay")
        self.setWindowOpacity(0.0)

        logger.debug("Overlay window configured")

    def setup_animation(self):
        """Set up the fade-in animation for the overlay."""
        self.fade_animation = QPropertyAnimation(self, b"windowOpacity")
        self.fade_animation.setDuration(UIConstants.FADE_ANIMATION_DURATION_MS)
        self.fade_animation.setStartValue(0.0)
        self.fade_animation.setEndValue(1.0)
        self.fade_animation.setEasingCurve(QEasingCurve.Type.OutCubic)

    # --- geometry helpers ----------------------------------------------------

    def inner_rect(self) -> QRect:
        """The active selection area, inset by the margin."""
        return self.rect().adjusted(self.margin, self.margin, -self.margin, -self.margin)

    def _local(self, pos: QPointF):
        """Widget position -> selection-local coordinates (origin at the inset)."""
        return pos.x() - self.margin, pos.y() - self.margin

    def _selection_to_widget(self, selection: SelectionRect) -> QRect:
        return QRect(
            int(selection.x + self.margin),
            int(selection.y + self.margin),
            int(selection.width),
            int(selection.height),
        )

    def current_bounds(self) -> WindowBounds:
        geo = self.geometry()
        return WindowBounds(geo.x(), geo.y(), geo.width(), geo.height())

    # --- confirm / cancel ----------------------------------------------------

    def confirm(self):
        """Confirm the selection if it is valid, otherwise cancel."""
        if self._finished or self.tracker is None:
            return
        if not self.tracker.is_valid:
            logger.info(f"Confirm with invalid selection {self.tracker.selection} - cancelling")
            self.cancel()
            return

        selection = self.tracker.selection
        logger.info(
            f"Selection confirmed: {selection.width:.0f}x{selection.height:.0f} "
            f"at ({selection.x:.0f}, {selection.y:.0f})"
        )
        self._finished = True
        self.selection_confirmed.emit(selection)
        self.close()

    def cancel(self):
        if self._finished:
            return
        logger.info("Selection cancelled")
        self._finished = True
        if self.tracker:
            self.tracker.reset()
        self.selection_cancelled.emit()
        self.close()

    # --- events --------------------------------------------------------------

    def keyPressEvent(self, event: QKeyEvent):
        """Handle key press events."""
        if event.key() == Qt.Key.Key_Escape:
            logger.info("Escape key pressed - cancelling selection")
            self.cancel()
        elif event.key() in (Qt.Key.Key_Return, Qt.Key.Key_Enter):
            self.confirm()
        else:
            super().keyPressEvent(event)

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton and self.tracker:
            x, y = self._local(event.position())
            self.tracker.pointer_down(x, y)
            self.update()
        elif event.button() == Qt.MouseButton.RightButton:
            self.cancel()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event: QMouseEvent):
        if self.tracker and self.tracker.pressed:
            move_start = time.perf_counter()
            x, y = self._local(event.position())
            self.tracker.pointer_move(x, y)
            self.update()

            move_time = time.perf_counter() - move_start
            if move_time > 0.016:
                logger.debug(f"[PERF] mouseMoveEvent took {move_time*1000:.1f}ms")
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton and self.tracker:
            x, y = self._local(event.position())
            self.tracker.pointer_up(x, y)
            self.update()
        super().mouseReleaseEvent(event)

    def mouseDoubleClickEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton:
            self.confirm()
            return
        super().mouseDoubleClickEvent(event)

    def showEvent(self, event):
        """Start tracking once the overlay has its final geometry."""
        super().showEvent(event)

        self.setFocus()
        self.activateWindow()
        self.raise_()

        if self.tracker is not None:
            # Re-shown by the window manager; keep the current selection
            return

        inner = self.inner_rect()
        self.tracker = SelectionTracker(inner.width(), inner.height())
        bounds = self.current_bounds()
        logger.info(f"[OVERLAY] shown at {bounds}, selection area {inner.width()}x{inner.height()}")
        self.bounds_ready.emit(bounds)

        if self.fade_animation and self.fade_animation.state() != QPropertyAnimation.State.Running:
            self.fade_animation.start()

    def closeEvent(self, event):
        if not self._finished:
            # Closed by the window manager rather than by the user
            self._finished = True
            self.selection_cancelled.emit()
        if self.fade_animation:
            self.fade_animation.stop()
            self.fade_animation = None
        super().closeEvent(event)

    # --- painting ------------------------------------------------------------

    def _draw_overlay_around_exclusion(self, painter: QPainter, color: QColor, exclusion_rect: QRect):
        """Draw overlay in 4 regions around the exclusion rectangle."""
        screen_rect = self.rect()

        # Top region (above exclusion)
        if exclusion_rect.top() > screen_rect.top():
            painter.fillRect(
                QRect(screen_rect.left(), screen_rect.top(),
                      screen_rect.width(), exclusion_rect.top() - screen_rect.top()),
                color,
            )

        # Bottom region (below exclusion)
        if exclusion_rect.bottom() < screen_rect.bottom():
            painter.fillRect(
                QRect(screen_rect.left(), exclusion_rect.bottom() + 1,
                      screen_rect.width(), screen_rect.bottom() - exclusion_rect.bottom()),
                color,
            )

        # Left and right of the exclusion, between its top and bottom
        band_top = max(screen_rect.top(), exclusion_rect.top())
        band_height = min(screen_rect.bottom(), exclusion_rect.bottom()) - band_top + 1
        if exclusion_rect.left() > screen_rect.left():
            painter.fillRect(
                QRect(screen_rect.left(), band_top,
                      exclusion_rect.left() - screen_rect.left(), band_height),
                color,
            )
        if exclusion_rect.right() < screen_rect.right():
            painter.fillRect(
                QRect(exclusion_rect.right() + 1, band_top,
                      screen_rect.right() - exclusion_rect.right(), band_height),
                color,
            )

    def _draw_inset_border(self, painter: QPainter):
        pen = painter.pen()
        pen.setColor(GhostLensColors.INSET_BORDER)
        pen.setWidth(1)
        pen.setStyle(Qt.PenStyle.DashLine)
        painter.setPen(pen)
        painter.drawRect(self.inner_rect())

    def _draw_selection_border(self, painter: QPainter, selection_rect: QRect):
        pen = painter.pen()
        pen.setColor(GhostLensColors.ACCENT)
        pen.setWidth(UIConstants.HIGHLIGHT_BORDER_WIDTH)
        pen.setStyle(Qt.PenStyle.DashDotLine)
        painter.setPen(pen)
        painter.drawRect(selection_rect)

    def draw_selection_dimensions(self, painter: QPainter, selection_rect: QRect):
        """Draw selection dimensions anchored to bottom-right corner of selection."""
        if selection_rect.isEmpty():
            return

        width = selection_rect.width()
        height = selection_rect.height()
        scale = self.device_scale_factor
        dimensions_text = f"{width} × {height}"
        if scale != 1:
            dimensions_text += f"  ({int(width * scale)} × {int(height * scale)} px)"

        font = QFont("Sans Serif", 11, QFont.Weight.Bold)
        painter.setFont(font)
        font_metrics = QFontMetrics(font)
        text_rect = font_metrics.boundingRect(dimensions_text)

        padding = UIConstants.DIMENSIONS_DISPLAY_PADDING
        text_bg_width = text_rect.width() + (padding * 2)
        text_bg_height = text_rect.height() + (padding * 2)

        bg_x = selection_rect.right() - text_bg_width - UIConstants.DIMENSIONS_DISPLAY_MARGIN
        bg_y = selection_rect.bottom() - text_bg_height - UIConstants.DIMENSIONS_DISPLAY_MARGIN
        # Keep the label readable on tiny selections
        bg_x = max(bg_x, selection_rect.left())
        bg_y = max(bg_y, selection_rect.top())
        bg_rect = QRect(bg_x, bg_y, text_bg_width, text_bg_height)

        painter.fillRect(bg_rect, GhostLensColors.SEMI_TRANSPARENT_BLACK)

        text_pen = painter.pen()
        text_pen.setColor(GhostLensColors.WHITE_TEXT)
        text_pen.setWidth(1)
        text_pen.setStyle(Qt.PenStyle.SolidLine)
        painter.setPen(text_pen)
        painter.drawText(bg_x + padding, bg_y + padding + font_metrics.ascent(), dimensions_text)

    def paintEvent(self, event: QPaintEvent):
        """Paint the tint, inset border, selection and dimensions."""
        painter = QPainter(self)

        overlay_color = QColor(GhostLensColors.DARK_OVERLAY_BLACK)
        overlay_color.setAlpha(int(UIConstants.OVERLAY_OPACITY * 255))

        selection = self.tracker.selection if self.tracker else None
        if selection is not None and selection.width > 0 and selection.height > 0:
            selection_rect = self._selection_to_widget(selection)
            self._draw_overlay_around_exclusion(painter, overlay_color, selection_rect)
            self._draw_inset_border(painter)
            self._draw_selection_border(painter, selection_rect)
            self.draw_selection_dimensions(painter, selection_rect)
        else:
            painter.fillRect(self.rect(), overlay_color)
            self._draw_inset_border(painter)

        painter.end()


def open_selection_overlay(device_scale_factor: float = 1.0) -> SelectionOverlay:
    """
    Create the overlay over the primary screen without showing it.

    Callers connect bounds_ready before calling showFullScreen(), since the
    first showEvent fires inside show().
    """
    overlay = SelectionOverlay(device_scale_factor=device_scale_factor)
    app = QApplication.instance()
    screen = app.primaryScreen() if app else None
    if screen is not None:
        overlay.setGeometry(screen.geometry())
    return overlay
