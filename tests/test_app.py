"""
tests/test_app.py - Unit tests for ghostlens.app wiring

Runs Qt on the offscreen platform. AssistantApp is assembled by hand so no
D-Bus service, tray icon or speech engine is started.

Covers:
  - Opening the overlay starts a SELECTING session with the overlay's bounds
  - A second show of the same overlay keeps the session
  - A confirmed selection on that session reaches READY
  - Speech result tasks are held until they finish
"""

import asyncio
import io
import os
import unittest
from unittest.mock import MagicMock, patch

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PIL import Image
from PyQt6.QtWidgets import QApplication

from ghostlens.app import AssistantApp
from ghostlens.session import SessionState, VisualAskController
from ghostlens.speech import SpeechResult
from ghostlens.utils.async_bridge import AsyncLoopThread
from ghostlens.utils.capture import DesktopBoundsResolver
from ghostlens.utils.geometry import ScreenCapture, SelectionRect
from ghostlens.utils.settings import Settings


def make_capture(width, height):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (9, 9, 9)).save(buffer, "PNG")
    return ScreenCapture(buffer.getvalue(), width, height)


class TestVisualAskWiring(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.qt_app = QApplication.instance() or QApplication([])

    def setUp(self):
        self.screen_source = MagicMock()
        app = AssistantApp.__new__(AssistantApp)
        app.device_scale_factor = 1.0
        app.overlay = None
        app.loop_thread = AsyncLoopThread().start()
        app.resolver = DesktopBoundsResolver(self.screen_source)
        app.controller = VisualAskController(app.resolver, capture_timeout=2.0)
        self.app = app

    def tearDown(self):
        if self.app.overlay is not None:
            self.app.overlay.close()
        self._flush()
        self.app.loop_thread.stop()

    def _flush(self):
        """Wait until every call already queued on the loop thread has run."""
        self.qt_app.processEvents()
        self.app.loop_thread.submit(asyncio.sleep(0)).result(timeout=2)

    def test_start_visual_ask_begins_session(self):
        self.app.start_visual_ask()
        self._flush()

        overlay = self.app.overlay
        self.assertIsNotNone(overlay)
        self.assertTrue(overlay.isVisible())

        session = self.app.controller.active
        self.assertIsNotNone(session)
        self.assertIs(session.state, SessionState.SELECTING)
        self.assertEqual(session.overlay_width, overlay.inner_rect().width())
        self.assertEqual(session.overlay_height, overlay.inner_rect().height())

        bounds = self.app.loop_thread.submit(self.app.resolver.get_window_bounds()).result(timeout=2)
        self.assertEqual(bounds, overlay.current_bounds())

    def test_reshow_keeps_session(self):
        self.app.start_visual_ask()
        self._flush()
        first = self.app.controller.active

        self.app.overlay.hide()
        self.app.overlay.show()
        self._flush()

        self.assertIs(self.app.controller.active, first)
        self.assertIs(first.state, SessionState.SELECTING)

    def test_confirmed_selection_reaches_ready(self):
        self.app.start_visual_ask()
        self._flush()
        bounds = self.app.overlay.current_bounds()
        self.screen_source.capture_full_screen.return_value = make_capture(
            int(bounds.x + bounds.width), int(bounds.y + bounds.height)
        )

        future = self.app.loop_thread.submit(self.app.controller.confirm(SelectionRect(0, 0, 50, 40)))
        session = future.result(timeout=5)

        self.assertIs(session.state, SessionState.READY)
        self.assertEqual((session.result.width, session.result.height), (50, 40))


class TestSpeechResults(unittest.IsolatedAsyncioTestCase):

    async def test_result_tasks_are_kept_until_done(self):
        app = AssistantApp.__new__(AssistantApp)
        app.settings = Settings(api_key="sk-test")
        app.listening_loop = None
        app._speech_tasks = set()
        app.conversation = MagicMock()

        gate = asyncio.Event()

        async def on_speech_result(_result):
            await gate.wait()

        app.conversation.on_speech_result = on_speech_result

        with patch("ghostlens.app.MicrophoneSpeechSource"), \
                patch("ghostlens.app.start_listening", return_value=(MagicMock(), None)) as start:
            await app._start_listening()

        on_result = start.call_args.args[1]
        on_result(SpeechResult("hello", is_final=True))
        self.assertEqual(len(app._speech_tasks), 1)

        gate.set()
        await asyncio.gather(*list(app._speech_tasks))
        await asyncio.sleep(0)
        self.assertEqual(app._speech_tasks, set())


if __name__ == "__main__":
    unittest.main()
