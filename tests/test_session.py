"""
tests/test_session.py - Unit tests for ghostlens.session

Covers:
  - Happy path SELECTING -> CONFIRMED -> CAPTURING -> CROPPING -> READY
  - Invalid selections cancel without capturing
  - Confirm is a no-op outside SELECTING
  - Cancellation and supersession discard late results
  - Failure reasons (timeout, capture_unavailable, decode_error, empty_region)
"""

import asyncio
import io
import math
import unittest

from PIL import Image

from ghostlens.session import SessionState, TERMINAL_STATES, VisualAskController
from ghostlens.utils.errors import CaptureUnavailable
from ghostlens.utils.geometry import OVERLAY_MARGIN_PX, ScreenCapture, SelectionRect, WindowBounds
from ghostlens.utils.selection import SelectionTracker


def make_capture(width=400, height=300, scale=2.0):
    img = Image.new("RGB", (width, height), (20, 40, 60))
    buffer = io.BytesIO()
    img.save(buffer, "PNG")
    return ScreenCapture(buffer.getvalue(), width / scale, height / scale, device_scale_factor=scale)


class FakeResolver:
    """BoundsResolver double with an optional gate on the capture."""

    def __init__(self, capture=None, bounds=WindowBounds(0, 0, 200, 150)):
        self.capture = capture or make_capture()
        self.bounds = bounds
        self.gate = None
        self.capture_error = None
        self.bounds_error = None
        self.capture_calls = 0

    async def get_window_bounds(self):
        if self.bounds_error:
            raise self.bounds_error
        return self.bounds

    async def capture_full_screen(self):
        self.capture_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.capture_error:
            raise self.capture_error
        return self.capture


# 200x150 logical overlay minus the 12 px inset on each side
INNER_W, INNER_H = 176, 126
SELECTION = SelectionRect(8, 8, 50, 40)


class SessionTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.resolver = FakeResolver()
        self.controller = VisualAskController(self.resolver, capture_timeout=1.0)
        self.states = []
        self.controller.add_listener(lambda s: self.states.append((s.session_id, s.state)))

    async def wait_until(self, predicate, message="condition not reached"):
        for _ in range(200):
            if predicate():
                return
            await asyncio.sleep(0)
        self.fail(message)


# ======================================================================
# 1. Happy path
# ======================================================================

class TestHappyPath(SessionTestCase):

    async def test_confirm_produces_ready_crop(self):
        session = self.controller.begin_session(INNER_W, INNER_H)
        self.assertIs(self.controller.active, session)
        self.assertIs(session.state, SessionState.SELECTING)

        result = await self.controller.confirm(SELECTION)

        self.assertIs(result, session)
        self.assertIs(session.state, SessionState.READY)
        # abs (20, 20, 50, 40) at scale 2
        self.assertEqual((session.result.width, session.result.height), (100, 80))
        self.assertTrue(session.result.data_uri.startswith("data:image/png;base64,"))
        self.assertIsNone(session.error)

    async def test_state_sequence(self):
        self.controller.begin_session(INNER_W, INNER_H)
        await self.controller.confirm(SELECTION)
        self.assertEqual(
            [state for _, state in self.states],
            [
                SessionState.SELECTING,
                SessionState.CONFIRMED,
                SessionState.CAPTURING,
                SessionState.CROPPING,
                SessionState.READY,
            ],
        )

    async def test_terminal_state_discards_working_state(self):
        session = self.controller.begin_session(INNER_W, INNER_H)
        await self.controller.confirm(SELECTION)
        self.assertIsNone(self.controller.active)
        self.assertIsNone(session.selection)
        self.assertIsNone(session.capture)
        self.assertIsNone(session.crop_rect)
        self.assertIsNotNone(session.result)

    async def test_confirm_accepts_tracker_selection(self):
        tracker = SelectionTracker(INNER_W, INNER_H)
        tracker.pointer_down(8, 8)
        tracker.pointer_up(58, 48)
        session = self.controller.begin_session(INNER_W, INNER_H)
        await self.controller.confirm(tracker.selection)
        self.assertIs(session.state, SessionState.READY)
        self.assertEqual((session.result.width, session.result.height), (100, 80))

    async def test_full_inset_area_round_trip(self):
        # Whole selection area -> floor(W * scale) x floor(H * scale), within 1 px
        bounds = WindowBounds(0, 0, 200, 150)
        width = bounds.width - 2 * OVERLAY_MARGIN_PX
        height = bounds.height - 2 * OVERLAY_MARGIN_PX
        for scale in (1.0, 1.25, 2.0):
            with self.subTest(scale=scale):
                self.resolver.bounds = bounds
                self.resolver.capture = make_capture(
                    math.floor(bounds.width * scale), math.floor(bounds.height * scale), scale
                )
                session = self.controller.begin_session(width, height)
                await self.controller.confirm(SelectionRect(0, 0, width, height))

                self.assertIs(session.state, SessionState.READY)
                self.assertLessEqual(abs(session.result.width - math.floor(width * scale)), 1)
                self.assertLessEqual(abs(session.result.height - math.floor(height * scale)), 1)

    async def test_missing_selection_cancels(self):
        session = self.controller.begin_session(INNER_W, INNER_H)
        await self.controller.confirm(None)
        self.assertIs(session.state, SessionState.CANCELLED)
        self.assertEqual(self.resolver.capture_calls, 0)


# ======================================================================
# 2. Cancellation and no-op confirms
# ======================================================================

class TestCancellation(SessionTestCase):

    async def test_invalid_selection_cancels_without_capture(self):
        session = self.controller.begin_session(INNER_W, INNER_H)
        await self.controller.confirm(SelectionRect(10, 10, 2, 50))
        self.assertIs(session.state, SessionState.CANCELLED)
        self.assertEqual(self.resolver.capture_calls, 0)
        self.assertIsNone(session.result)

    async def test_confirm_without_session(self):
        self.assertIsNone(await self.controller.confirm(SELECTION))
        self.assertEqual(self.resolver.capture_calls, 0)

    async def test_cancel_while_selecting(self):
        session = self.controller.begin_session(INNER_W, INNER_H)
        self.assertIs(self.controller.cancel(), session)
        self.assertIs(session.state, SessionState.CANCELLED)
        self.assertIsNone(self.controller.active)
        self.assertIsNone(self.controller.cancel())

    async def test_repeated_confirm_is_noop(self):
        self.resolver.gate = asyncio.Event()
        session = self.controller.begin_session(INNER_W, INNER_H)
        first = asyncio.create_task(self.controller.confirm(SELECTION))
        await self.wait_until(lambda: self.resolver.capture_calls == 1)

        second = await self.controller.confirm(SELECTION)
        self.assertIs(second, session)
        self.assertIs(session.state, SessionState.CAPTURING)

        self.resolver.gate.set()
        await first
        self.assertIs(session.state, SessionState.READY)
        self.assertEqual(self.resolver.capture_calls, 1)

    async def test_cancel_during_capture_discards_result(self):
        self.resolver.gate = asyncio.Event()
        session = self.controller.begin_session(INNER_W, INNER_H)
        task = asyncio.create_task(self.controller.confirm(SELECTION))
        await self.wait_until(lambda: self.resolver.capture_calls == 1)

        self.controller.cancel()
        self.resolver.gate.set()
        result = await task

        self.assertIs(result, session)
        self.assertIs(session.state, SessionState.CANCELLED)
        self.assertIsNone(session.result)
        self.assertNotIn((session.session_id, SessionState.READY), self.states)

    async def test_cancel_during_crop_discards_result(self):
        session = self.controller.begin_session(INNER_W, INNER_H)

        def cancel_on_crop(s):
            if s is session and s.state is SessionState.CROPPING:
                self.controller.cancel()

        self.controller.add_listener(cancel_on_crop)
        await self.controller.confirm(SELECTION)

        self.assertIs(session.state, SessionState.CANCELLED)
        self.assertIsNone(session.result)

    async def test_new_session_supersedes_previous(self):
        self.resolver.gate = asyncio.Event()
        old = self.controller.begin_session(INNER_W, INNER_H)
        old_task = asyncio.create_task(self.controller.confirm(SELECTION))
        await self.wait_until(lambda: self.resolver.capture_calls == 1)

        new = self.controller.begin_session(INNER_W, INNER_H)
        self.assertIsNot(new, old)
        self.assertIs(self.controller.active, new)
        self.assertIs(new.state, SessionState.SELECTING)

        await old_task
        self.assertIs(old.state, SessionState.CANCELLED)
        self.assertIsNone(old.result)

        self.resolver.gate.set()
        await self.controller.confirm(SELECTION)
        self.assertIs(new.state, SessionState.READY)
        self.assertGreater(new.session_id, old.session_id)


# ======================================================================
# 3. Failures
# ======================================================================

class TestFailures(SessionTestCase):

    async def _confirm(self):
        session = self.controller.begin_session(INNER_W, INNER_H)
        await self.controller.confirm(SELECTION)
        return session

    async def test_capture_timeout(self):
        self.controller.capture_timeout = 0.05
        self.resolver.gate = asyncio.Event()
        session = await self._confirm()
        self.assertIs(session.state, SessionState.FAILED)
        self.assertEqual(session.failure_reason, "timeout")
        self.assertIsNone(self.controller.active)

    async def test_capture_unavailable(self):
        self.resolver.capture_error = CaptureUnavailable("no display")
        session = await self._confirm()
        self.assertIs(session.state, SessionState.FAILED)
        self.assertEqual(session.failure_reason, "capture_unavailable")
        self.assertIn("no display", str(session.error))

    async def test_missing_bounds(self):
        self.resolver.bounds_error = CaptureUnavailable("overlay window bounds not available")
        session = await self._confirm()
        self.assertEqual(session.failure_reason, "capture_unavailable")
        self.assertEqual(self.resolver.capture_calls, 0)

    async def test_decode_error(self):
        self.resolver.capture = ScreenCapture(b"not an image", 200, 150, device_scale_factor=2)
        session = await self._confirm()
        self.assertEqual(session.failure_reason, "decode_error")

    async def test_empty_region(self):
        # Overlay reported past the right edge of the captured screen
        self.resolver.bounds = WindowBounds(500, 0, 200, 150)
        session = await self._confirm()
        self.assertEqual(session.failure_reason, "empty_region")

    async def test_unexpected_error_fails_session(self):
        self.resolver.capture_error = RuntimeError("boom")
        session = await self._confirm()
        self.assertIs(session.state, SessionState.FAILED)
        self.assertEqual(session.failure_reason, "failed")

    async def test_every_session_ends_terminal(self):
        for error in (None, CaptureUnavailable("x"), RuntimeError("y")):
            self.resolver.capture_error = error
            session = await self._confirm()
            self.assertIn(session.state, TERMINAL_STATES)


if __name__ == "__main__":
    unittest.main()
