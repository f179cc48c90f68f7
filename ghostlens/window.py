"""
GhostLens assistant window and tray icon.

The window is a frameless, translucent, always-on-top panel with:
- macOS-style close / minimize / maximize dots and a drag region
- Chat/Browse and Listen toggles
- A query box with Ask AI and Visual ask buttons
- Chat, Insights and Transcript tabs

The window only renders state and emits intent signals; AssistantApp wires
those to the conversation and the visual-ask controller.
"""

import html
import logging
from typing import List, Optional

from PyQt6.QtWidgets import (
    QApplication,
    QButtonGroup,
    QCheckBox,
    QFrame,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMenu,
    QPushButton,
    QStackedWidget,
    QSystemTrayIcon,
    QTextBrowser,
    QVBoxLayout,
    QWidget,
)
from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QAction, QIcon, QMouseEvent, QPainter, QPixmap

from ghostlens.conversation import TAB_CHAT, TAB_INSIGHTS, TAB_TRANSCRIPT, ChatMessage, Insight
from ghostlens.ui import UIConstants
from ghostlens.utils.geometry import WindowBounds
from ghostlens.utils.stealth import set_content_protection
from ghostlens.utils.theme import ASSISTANT_STYLESHEET, GhostLensColors

logger = logging.getLogger(__name__)

TOGGLE_SHORTCUT_HINT = "Ctrl/⌘ + Shift + Space"


class DragRegion(QWidget):
    """Empty title-bar stretch that moves the frameless window when dragged."""

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton:
            handle = self.window().windowHandle()
            if handle is not None:
                handle.startSystemMove()
            return
        super().mousePressEvent(event)

    def mouseDoubleClickEvent(self, event: QMouseEvent):
        window = self.window()
        if isinstance(window, AssistantWindow):
            window.toggle_maximize()


class AssistantWindow(QWidget):
    """Frameless assistant panel hidden from screen sharing by default."""

    ask_requested = pyqtSignal(str)
    visual_ask_requested = pyqtSignal()
    listening_toggled = pyqtSignal(bool)
    chat_mode_toggled = pyqtSignal(bool)
    tab_selected = pyqtSignal(str)
    query_edited = pyqtSignal(str)

    def __init__(self):
        super().__init__()
        self.visible_to_others = False
        self._syncing = False

        self.setup_window()
        self.setup_layout()
        self.setup_geometry()

    def setup_window(self):
        """Configure frameless, translucent, always-on-top window properties."""
        self.setWindowFlags(
            Qt.WindowType.FramelessWindowHint
            | Qt.WindowType.WindowStaysOnTopHint
            | Qt.WindowType.Tool
        )
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WidgetAttribute.WA_ShowWithoutActivating, True)
        self.setWindowTitle("GhostLens")
        self.setStyleSheet(ASSISTANT_STYLESHEET)

    def setup_geometry(self):
        """Size the panel relative to the primary screen's work area."""
        app = QApplication.instance()
        screen = app.primaryScreen() if app else None
        self.setMinimumSize(UIConstants.ASSISTANT_MIN_WIDTH, UIConstants.ASSISTANT_MIN_HEIGHT)
        if screen is None:
            logger.error("No screens found")
            return

        work_area = screen.availableGeometry()
        width = min(UIConstants.ASSISTANT_MAX_WIDTH, int(work_area.width() * UIConstants.ASSISTANT_WIDTH_RATIO))
        height = min(UIConstants.ASSISTANT_MAX_HEIGHT, int(work_area.height() * UIConstants.ASSISTANT_HEIGHT_RATIO))
        self.resize(width, height)
        logger.debug(f"Assistant window sized {width}x{height} for work area {work_area.width()}x{work_area.height()}")

    def setup_layout(self):
        outer = QVBoxLayout(self)
        outer.setContentsMargins(0, 0, 0, 0)

        panel = QFrame(self)
        panel.setObjectName("panel")
        outer.addWidget(panel)

        layout = QVBoxLayout(panel)
        layout.setContentsMargins(12, 10, 12, 10)
        layout.setSpacing(8)

        # Title bar
        titlebar = QHBoxLayout()
        titlebar.setSpacing(8)
        for name, tip, slot in (
            ("dotRed", "Close", self.close_window),
            ("dotYellow", "Minimize", self.minimize_window),
            ("dotGreen", "Maximize", self.toggle_maximize),
        ):
            dot = QPushButton(self)
            dot.setObjectName(name)
            dot.setFixedSize(12, 12)
            dot.setToolTip(tip)
            dot.clicked.connect(slot)
            titlebar.addWidget(dot)
        titlebar.addWidget(DragRegion(self), 1)

        self.chat_toggle = QCheckBox("Chat", self)
        self.chat_toggle.setChecked(True)
        self.chat_toggle.toggled.connect(self._on_chat_toggled)
        self.listen_toggle = QCheckBox("Listen", self)
        self.listen_toggle.toggled.connect(self._on_listen_toggled)
        titlebar.addWidget(self.chat_toggle)
        titlebar.addWidget(self.listen_toggle)
        layout.addLayout(titlebar)

        # Query row
        search = QHBoxLayout()
        self.query_input = QLineEdit(self)
        self.query_input.setPlaceholderText("Type to chat")
        self.query_input.returnPressed.connect(self._on_ask_clicked)
        self.query_input.textEdited.connect(self.query_edited.emit)
        self.ask_button = QPushButton("Ask AI", self)
        self.ask_button.setObjectName("primary")
        self.ask_button.clicked.connect(self._on_ask_clicked)
        self.visual_button = QPushButton("Visual ask", self)
        self.visual_button.setObjectName("pill")
        self.visual_button.setToolTip("Select a screen region to ask about")
        self.visual_button.clicked.connect(self.visual_ask_requested.emit)
        search.addWidget(self.query_input, 1)
        search.addWidget(self.ask_button)
        search.addWidget(self.visual_button)
        layout.addLayout(search)

        self.error_label = QLabel("", self)
        self.error_label.setObjectName("error")
        self.error_label.setWordWrap(True)
        self.error_label.hide()
        layout.addWidget(self.error_label)

        # Tabs
        tabs = QHBoxLayout()
        self.tab_group = QButtonGroup(self)
        self.tab_group.setExclusive(True)
        self.tab_buttons = {}
        for key, label in ((TAB_CHAT, "Chat"), (TAB_INSIGHTS, "Insights"), (TAB_TRANSCRIPT, "Transcript")):
            pill = QPushButton(label, self)
            pill.setObjectName("pill")
            pill.setCheckable(True)
            pill.clicked.connect(lambda _checked, k=key: self.tab_selected.emit(k))
            self.tab_group.addButton(pill)
            self.tab_buttons[key] = pill
            tabs.addWidget(pill)
        tabs.addStretch(1)
        self.tab_buttons[TAB_CHAT].setChecked(True)
        layout.addLayout(tabs)

        self.pages = QStackedWidget(self)
        self.chat_view = QTextBrowser(self)
        self.insights_view = QTextBrowser(self)
        self.transcript_view = QTextBrowser(self)
        self.page_index = {}
        for key, view in ((TAB_CHAT, self.chat_view), (TAB_INSIGHTS, self.insights_view),
                          (TAB_TRANSCRIPT, self.transcript_view)):
            self.page_index[key] = self.pages.addWidget(view)
        layout.addWidget(self.pages, 1)

        # Footer
        footer = QHBoxLayout()
        hint = QLabel("Invisible to screen share and recordings.", self)
        hint.setObjectName("muted")
        self.footer_hint = hint
        kbd = QLabel(TOGGLE_SHORTCUT_HINT, self)
        kbd.setObjectName("kbd")
        footer.addWidget(hint, 1)
        footer.addWidget(kbd)
        layout.addLayout(footer)

    # --- intent slots -----------------------------------------------------

    def _on_ask_clicked(self):
        self.ask_requested.emit(self.query_input.text())

    def _on_chat_toggled(self, checked: bool):
        self.chat_toggle.setText("Chat" if checked else "Browse")
        if not self._syncing:
            self.chat_mode_toggled.emit(checked)

    def _on_listen_toggled(self, checked: bool):
        self.listen_toggle.setText("Listening" if checked else "Listen")
        if not self._syncing:
            self.listening_toggled.emit(checked)

    # --- rendering ----------------------------------------------------------

    def render_state(
        self,
        messages: List[ChatMessage],
        insights: List[Insight],
        transcript: List[str],
        query: str,
        loading: bool,
        error: str,
        listening: bool,
        chat_mode: bool,
        active_tab: str,
        placeholder: str,
    ):
        """Re-render the window from a snapshot of the conversation."""
        self._syncing = True
        try:
            self.chat_toggle.setChecked(chat_mode)
            self.listen_toggle.setChecked(listening)

            if self.query_input.text() != query:
                self.query_input.setText(query)
            self.query_input.setPlaceholderText(placeholder)
            self.query_input.setDisabled(loading)
            self.ask_button.setDisabled(loading)
            self.ask_button.setText("Thinking…" if loading else "Ask AI")

            self.error_label.setText(error)
            self.error_label.setVisible(bool(error))

            self.tab_buttons[active_tab].setChecked(True)
            self.pages.setCurrentIndex(self.page_index[active_tab])
        finally:
            self._syncing = False

        self.chat_view.setHtml("".join(
            f'<p><b>{"You" if m.role == "user" else "AI"}:</b> '
            f'{html.escape(m.content).replace(chr(10), "<br>")}</p>'
            for m in messages
        ))
        bar = self.chat_view.verticalScrollBar()
        bar.setValue(bar.maximum())

        self.insights_view.setHtml("".join(
            f"<p><b>{html.escape(item.title)}</b><br>{html.escape(item.detail)}</p>"
            for item in insights
        ))

        if transcript:
            body = "".join(f"<div>{html.escape(line)}</div>" for line in transcript)
        else:
            body = '<div style="color: gray">Start speaking to see real-time insights...</div>'
        self.transcript_view.setHtml(f"<h4>Transcript</h4>{body}")

    # --- window actions -----------------------------------------------------

    def minimize_window(self):
        self.showMinimized()

    def toggle_maximize(self) -> bool:
        """Maximize or restore; returns True when now maximized."""
        if self.isMaximized():
            self.showNormal()
            return False
        self.showMaximized()
        return True

    def hide_window(self):
        self.hide()

    def close_window(self):
        # The tray keeps the app alive; closing only hides the panel
        self.hide()

    def get_bounds(self) -> WindowBounds:
        geo = self.geometry()
        return WindowBounds(geo.x(), geo.y(), geo.width(), geo.height())

    def toggle_visibility(self):
        if self.isVisible():
            self.hide()
        else:
            self.show()
            self.raise_()

    def set_sharing_mode(self, visible: bool) -> bool:
        """
        Show or hide the window from screen sharing.

        Hidden (default): content protection on, always on top, no taskbar
        entry. Visible: all three reversed.

        Returns:
            The new visible-to-others state
        """
        self.visible_to_others = bool(visible)
        was_shown = self.isVisible()

        self.setWindowFlag(Qt.WindowType.WindowStaysOnTopHint, not self.visible_to_others)
        self.setWindowFlag(Qt.WindowType.Tool, not self.visible_to_others)
        if was_shown:
            # Changing window flags re-creates the native window
            self.show()

        set_content_protection(int(self.winId()), not self.visible_to_others)
        self.footer_hint.setText(
            "Visible to screen share and recordings."
            if self.visible_to_others
            else "Invisible to screen share and recordings."
        )
        logger.info(f"Sharing mode: {'visible' if self.visible_to_others else 'hidden'} to others")
        return self.visible_to_others

    def showEvent(self, event):
        super().showEvent(event)
        if not self.visible_to_others:
            set_content_protection(int(self.winId()), True)


def _tray_icon() -> QIcon:
    pixmap = QPixmap(32, 32)
    pixmap.fill(Qt.GlobalColor.transparent)
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    painter.setBrush(GhostLensColors.ACCENT_SOLID)
    painter.setPen(Qt.PenStyle.NoPen)
    painter.drawEllipse(4, 4, 24, 24)
    painter.end()
    return QIcon(pixmap)


def create_tray(window: AssistantWindow, on_visual_ask, on_quit) -> Optional[QSystemTrayIcon]:
    """Create the tray icon with Show/Hide, Visual ask, sharing and Quit."""
    if not QSystemTrayIcon.isSystemTrayAvailable():
        logger.warning("System tray not available - tray icon disabled")
        return None

    tray = QSystemTrayIcon(_tray_icon(), window)
    tray.setToolTip("GhostLens")

    menu = QMenu(window)
    show_action = QAction("Show/Hide", menu)
    show_action.triggered.connect(window.toggle_visibility)
    visual_action = QAction("Visual ask", menu)
    visual_action.triggered.connect(on_visual_ask)
    share_action = QAction("Visible to screen share", menu)
    share_action.setCheckable(True)
    share_action.toggled.connect(window.set_sharing_mode)
    quit_action = QAction("Quit", menu)
    quit_action.triggered.connect(on_quit)

    menu.addAction(show_action)
    menu.addAction(visual_action)
    menu.addAction(share_action)
    menu.addSeparator()
    menu.addAction(quit_action)
    tray.setContextMenu(menu)

    def _on_activated(reason):
        if reason == QSystemTrayIcon.ActivationReason.Trigger:
            window.toggle_visibility()

    tray.activated.connect(_on_activated)
    tray.show()
    return tray
