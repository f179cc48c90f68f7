"""Shared color palette and stylesheet for the GhostLens UI.

Colors are defined once here so the overlay, the assistant window and the
tray stay visually consistent.
"""

from PyQt6.QtGui import QColor


class GhostLensColors:
    """Centralized color palette for GhostLens UI components."""

    # Primary accent - selection border, active pills, primary button
    ACCENT = QColor(99, 102, 241, 220)
    ACCENT_SOLID = QColor(99, 102, 241, 255)

    # Selection overlay
    DARK_OVERLAY_BLACK = QColor(0, 0, 0)  # Alpha channel set dynamically
    INSET_BORDER = QColor(255, 255, 255, 90)

    # Text
    WHITE_TEXT = QColor(255, 255, 255, 255)
    MUTED_TEXT = QColor(255, 255, 255, 150)
    ERROR_TEXT = QColor(253, 164, 175, 255)

    # Backgrounds
    SEMI_TRANSPARENT_BLACK = QColor(0, 0, 0, 120)  # Dimension label background
    PANEL_BACKGROUND = QColor(17, 17, 27, 215)


def rgba(color: QColor) -> str:
    """Format a QColor for use in a Qt stylesheet."""
    return f"rgba({color.red()}, {color.green()}, {color.blue()}, {color.alpha()})"


ASSISTANT_STYLESHEET = f"""
#panel {{
    background-color: {rgba(GhostLensColors.PANEL_BACKGROUND)};
    border: 1px solid rgba(255, 255, 255, 30);
    border-radius: 14px;
}}
QLabel, QCheckBox {{ color: {rgba(GhostLensColors.WHITE_TEXT)}; }}
QLabel#muted {{ color: {rgba(GhostLensColors.MUTED_TEXT)}; }}
QLabel#error {{ color: {rgba(GhostLensColors.ERROR_TEXT)}; }}
QLabel#kbd {{
    color: {rgba(GhostLensColors.MUTED_TEXT)};
    border: 1px solid rgba(255, 255, 255, 40);
    border-radius: 4px;
    padding: 1px 6px;
}}
QLineEdit {{
    background: rgba(255, 255, 255, 18);
    color: white;
    border: 1px solid rgba(255, 255, 255, 35);
    border-radius: 8px;
    padding: 6px 10px;
}}
QPushButton#primary {{
    background: {rgba(GhostLensColors.ACCENT)};
    color: white;
    border-radius: 8px;
    padding: 6px 12px;
}}
QPushButton#pill {{
    background: rgba(255, 255, 255, 14);
    color: white;
    border-radius: 11px;
    padding: 3px 12px;
}}
QPushButton#pill:checked {{ background: {rgba(GhostLensColors.ACCENT)}; }}
QPushButton#dotRed {{ background: #ff5f57; border-radius: 6px; }}
QPushButton#dotYellow {{ background: #febc2e; border-radius: 6px; }}
QPushButton#dotGreen {{ background: #28c840; border-radius: 6px; }}
QListWidget, QTextBrowser {{
    background: transparent;
    color: white;
    border: none;
}}
"""
