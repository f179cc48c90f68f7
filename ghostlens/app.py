"""
GhostLens application wiring.

Connects the Qt shell (assistant window, selection overlay, tray, D-Bus
service) to the asyncio side (visual-ask controller, conversation, listening
loop) running on an AsyncLoopThread. State changes on the loop thread come
back to widgets through queued Qt signals.
"""

import asyncio
import logging
import sys
from typing import Optional, Set

from PyQt6.QtWidgets import QApplication
from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from ghostlens.conversation import Conversation
from ghostlens.session import SessionState, VisualAskController, VisualAskSession
from ghostlens.speech import ListeningLoop, SpeechResult, SpeechUnavailable, start_listening
from ghostlens.ui import SelectionOverlay, UIConstants, open_selection_overlay
from ghostlens.utils.async_bridge import AsyncLoopThread
from ghostlens.utils.capture import DesktopBoundsResolver, X11ScreenSource
from ghostlens.utils.geometry import SelectionRect, WindowBounds
from ghostlens.utils.instance_service import AssistantService
from ghostlens.utils.notifications import notify_error, send_notification
from ghostlens.utils.openrouter import OpenRouterClient
from ghostlens.utils.settings import Settings
from ghostlens.utils.speech_io import MicrophoneSpeechSource, Pyttsx3Speaker
from ghostlens.window import AssistantWindow, create_tray

logger = logging.getLogger(__name__)

SPEECH_UNSUPPORTED = "Speech recognition not supported in this runtime"


class _SignalBridge(QObject):
    """Carries loop-thread notifications onto the Qt main thread."""

    conversation_changed = pyqtSignal()
    session_changed = pyqtSignal(object)


class AssistantApp:
    """Owns the Qt application and every long-lived GhostLens component."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.qt_app = QApplication.instance() or QApplication(sys.argv)
        self.qt_app.setQuitOnLastWindowClosed(False)

        screen = self.qt_app.primaryScreen()
        self.device_scale_factor = screen.devicePixelRatio() if screen else 1.0

        self.loop_thread = AsyncLoopThread().start()
        self.resolver = DesktopBoundsResolver(X11ScreenSource(self.device_scale_factor))
        self.controller = VisualAskController(self.resolver, capture_timeout=settings.capture_timeout)
        self.conversation = Conversation(OpenRouterClient(settings), settings, Pyttsx3Speaker())

        self.listening_loop: Optional[ListeningLoop] = None
        self._speech_tasks: Set[asyncio.Task] = set()
        self.overlay: Optional[SelectionOverlay] = None

        self.bridge = _SignalBridge()
        self.bridge.conversation_changed.connect(self._render)
        self.bridge.session_changed.connect(self._on_session_changed)
        self.conversation.add_listener(lambda _c: self.bridge.conversation_changed.emit())
        self.controller.add_listener(self.bridge.session_changed.emit)

        self.window = AssistantWindow()
        self.window.ask_requested.connect(self._on_ask)
        self.window.visual_ask_requested.connect(self.start_visual_ask)
        self.window.listening_toggled.connect(self._on_listening_toggled)
        self.window.chat_mode_toggled.connect(
            lambda enabled: self.loop_thread.call(self.conversation.set_chat_mode, enabled)
        )
        self.window.tab_selected.connect(lambda tab: self.loop_thread.call(self.conversation.set_tab, tab))
        self.window.query_edited.connect(lambda text: self.loop_thread.call(self.conversation.set_query, text))

        self.tray = create_tray(self.window, self.start_visual_ask, self.quit)
        self.service = AssistantService(self.window.toggle_visibility, self.start_visual_ask)

        if not settings.has_api_key:
            logger.warning("No OpenRouter API key configured - set OPEN_ROUTER_API_KEY in .env.local")

    # --- rendering ----------------------------------------------------------

    def _render(self):
        c = self.conversation
        self.window.render_state(
            messages=list(c.messages),
            insights=list(c.insights),
            transcript=list(c.transcript),
            query=c.query,
            loading=c.loading,
            error=c.error,
            listening=c.listening,
            chat_mode=c.chat_mode,
            active_tab=c.active_tab,
            placeholder=c.placeholder,
        )

    # --- chat ---------------------------------------------------------------

    def _on_ask(self, text: str):
        self.loop_thread.submit(self.conversation.ask(text))

    # --- listening ----------------------------------------------------------

    def _on_listening_toggled(self, enabled: bool):
        if enabled:
            self.loop_thread.submit(self._start_listening())
        else:
            self.loop_thread.call(self._stop_listening)

    async def _start_listening(self):
        if self.listening_loop is not None and self.listening_loop.active:
            return
        try:
            source = MicrophoneSpeechSource(self.settings.speech_language)
        except SpeechUnavailable as e:
            logger.error(f"Cannot start listening: {e}")
            self.conversation.set_listening(False)
            self.conversation.set_error(SPEECH_UNSUPPORTED)
            return

        loop = asyncio.get_running_loop()

        def _on_result(result: SpeechResult):
            task = loop.create_task(self.conversation.on_speech_result(result))
            self._speech_tasks.add(task)
            task.add_done_callback(self._speech_tasks.discard)

        def _on_unavailable(_error: Exception):
            self.listening_loop = None
            self.conversation.set_listening(False)
            self.conversation.set_error(SPEECH_UNSUPPORTED)

        self.listening_loop, _task = start_listening(source, _on_result, _on_unavailable)
        self.conversation.set_listening(True)

    def _stop_listening(self):
        if self.listening_loop is not None:
            self.listening_loop.stop()
            self.listening_loop = None
        self.conversation.set_listening(False)

    # --- visual ask ---------------------------------------------------------

    def start_visual_ask(self):
        """Open the selection overlay; a running session is superseded."""
        if self.overlay is not None and self.overlay.isVisible():
            self.overlay.activateWindow()
            return

        overlay = open_selection_overlay(self.device_scale_factor)
        overlay.bounds_ready.connect(self._on_overlay_bounds)
        overlay.selection_confirmed.connect(self._on_selection_confirmed)
        overlay.selection_cancelled.connect(lambda: self.loop_thread.call(self.controller.cancel))
        overlay.destroyed.connect(self._on_overlay_destroyed)
        self.overlay = overlay
        overlay.showFullScreen()

    def _on_overlay_destroyed(self):
        self.overlay = None

    def _on_overlay_bounds(self, bounds: WindowBounds):
        self.resolver.track_window(bounds)
        inner = self.overlay.inner_rect() if self.overlay else None
        width = inner.width() if inner else bounds.width
        height = inner.height() if inner else bounds.height
        self.loop_thread.call(self.controller.begin_session, width, height)

    def _on_selection_confirmed(self, selection: SelectionRect):
        # Let the overlay fade out of the framebuffer before grabbing it
        QTimer.singleShot(
            UIConstants.HIDE_SETTLE_MS,
            lambda: self.loop_thread.submit(self._run_visual_ask(selection)),
        )

    async def _run_visual_ask(self, selection: SelectionRect):
        session = await self.controller.confirm(selection)
        if session is None or session.state is not SessionState.READY:
            return
        await self.conversation.ask_about_image(session.result.data_uri)

    def _on_session_changed(self, session: VisualAskSession):
        if session.state is not SessionState.FAILED:
            return

        message = str(session.error) if session.error else "Visual ask failed"
        self.loop_thread.call(self.conversation.set_error, message)
        if not self.window.isVisible():
            notify_error("Visual ask failed", message)

    # --- lifecycle ----------------------------------------------------------

    def quit(self):
        logger.info("Shutting down GhostLens")
        self.loop_thread.call(self._stop_listening)
        self.service.release()
        if self.tray is not None:
            self.tray.hide()
        self.loop_thread.stop()
        self.qt_app.quit()

    def run(self) -> int:
        self.window.show()
        self._render()
        if not self.settings.has_api_key:
            send_notification("Not configured", "Missing OpenRouter API key")
        return self.qt_app.exec()


def main(settings: Optional[Settings] = None) -> int:
    """Start the assistant UI; returns the Qt exit code."""
    settings = settings or Settings.from_env()
    try:
        app = AssistantApp(settings)
    except RuntimeError as e:
        logger.error(str(e))
        return 1
    return app.run()
