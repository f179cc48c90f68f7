"""
Visual-ask session controller for GhostLens.

A visual-ask session walks one linear chain:

    IDLE -> SELECTING -> {CANCELLED | CONFIRMED} -> CAPTURING -> CROPPING
         -> {READY | FAILED}

Every state after SELECTING is terminal for the session. A new session always
starts fresh, and starting one cancels whatever the previous session still had
in flight (last session wins).

All coroutines here run on a single asyncio loop; the only suspension points
are the bounds fetch, the screen capture and the crop, in that order.
"""

import asyncio
import itertools
import logging
from enum import Enum
from typing import Callable, List, Optional, Protocol

from ghostlens.utils.cropper import crop_capture
from ghostlens.utils.errors import CaptureTimeout, VisualAskError
from ghostlens.utils.geometry import (
    OVERLAY_MARGIN_PX,
    CropRect,
    CroppedImage,
    ScreenCapture,
    SelectionRect,
    WindowBounds,
    map_capture,
)
from ghostlens.utils.selection import is_valid_selection

logger = logging.getLogger(__name__)

# Recommended ceiling for the screen grab (seconds)
DEFAULT_CAPTURE_TIMEOUT_S = 5.0


class SessionState(Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    CANCELLED = "cancelled"
    CONFIRMED = "confirmed"
    CAPTURING = "capturing"
    CROPPING = "cropping"
    READY = "ready"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SessionState.CANCELLED, SessionState.READY, SessionState.FAILED})


class BoundsResolver(Protocol):
    """Window bounds and screen capture collaborator."""

    async def get_window_bounds(self) -> WindowBounds: ...

    async def capture_full_screen(self) -> ScreenCapture: ...


class VisualAskSession:
    """Session context handed through every pipeline stage."""

    def __init__(self, session_id: int, overlay_width: float, overlay_height: float):
        self.session_id = session_id
        self.state = SessionState.IDLE
        self.overlay_width = overlay_width
        self.overlay_height = overlay_height
        self.selection: Optional[SelectionRect] = None
        self.bounds: Optional[WindowBounds] = None
        self.capture: Optional[ScreenCapture] = None
        self.crop_rect: Optional[CropRect] = None
        self.result: Optional[CroppedImage] = None
        self.error: Optional[VisualAskError] = None
        self.task: Optional[asyncio.Task] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def failure_reason(self) -> Optional[str]:
        return self.error.reason if self.error else None

    def discard_working_state(self) -> None:
        """Drop selection, capture and crop; keep only result/error."""
        self.selection = None
        self.bounds = None
        self.capture = None
        self.crop_rect = None
        self.task = None

    def __repr__(self) -> str:
        return f"VisualAskSession(id={self.session_id}, state={self.state.value})"


class VisualAskController:
    """Single owner of the active visual-ask session."""

    def __init__(
        self,
        resolver: BoundsResolver,
        capture_timeout: float = DEFAULT_CAPTURE_TIMEOUT_S,
        margin: float = OVERLAY_MARGIN_PX,
    ):
        self.resolver = resolver
        self.capture_timeout = capture_timeout
        self.margin = margin
        self.active: Optional[VisualAskSession] = None
        self._ids = itertools.count(1)
        self._listeners: List[Callable[[VisualAskSession], None]] = []

    def add_listener(self, listener: Callable[[VisualAskSession], None]) -> None:
        self._listeners.append(listener)

    def _transition(self, session: VisualAskSession, state: SessionState) -> None:
        logger.debug(f"Session {session.session_id}: {session.state.value} -> {state.value}")
        session.state = state
        if session.is_terminal:
            session.discard_working_state()
            if self.active is session:
                self.active = None
        for listener in self._listeners:
            try:
                listener(session)
            except Exception as e:
                logger.error(f"Session listener failed: {e}")

    def _is_stale(self, session: VisualAskSession) -> bool:
        return session.is_terminal or self.active is not session

    def begin_session(self, overlay_width: float, overlay_height: float) -> VisualAskSession:
        """Start a fresh session in SELECTING, cancelling any previous one."""
        if self.active is not None:
            logger.info(f"New visual ask supersedes session {self.active.session_id}")
            self.cancel()

        session = VisualAskSession(next(self._ids), overlay_width, overlay_height)
        self.active = session
        self._transition(session, SessionState.SELECTING)
        return session

    def cancel(self) -> Optional[VisualAskSession]:
        """Cancel the active session; late capture results are discarded."""
        session = self.active
        if session is None:
            return None

        task = session.task
        logger.info(f"Session {session.session_id} cancelled during {session.state.value}")
        self._transition(session, SessionState.CANCELLED)

        if task is not None and not task.done() and task is not _current_task():
            task.cancel()
        return session

    async def confirm(self, selection: Optional[SelectionRect]) -> Optional[VisualAskSession]:
        """
        Confirm the active selection and run capture and crop.

        Args:
            selection: Frozen selection from the overlay; None or a rectangle
                too small to use cancels the session

        Returns:
            The session in its final state, or None when nothing was active.
            Confirming a session that is not SELECTING is a no-op.
        """
        session = self.active
        if session is None or session.state is not SessionState.SELECTING:
            return session

        if not is_valid_selection(selection):
            logger.info(f"Session {session.session_id}: selection {selection} too small - cancelling")
            self._transition(session, SessionState.CANCELLED)
            return session

        session.selection = selection
        session.task = _current_task()
        self._transition(session, SessionState.CONFIRMED)

        try:
            await self._run(session)
        except asyncio.CancelledError:
            if session.state is SessionState.CANCELLED:
                logger.debug(f"Session {session.session_id}: pending work cancelled")
                return session
            raise
        return session

    async def _run(self, session: VisualAskSession) -> None:
        selection = session.selection
        try:
            self._transition(session, SessionState.CAPTURING)

            bounds = await self.resolver.get_window_bounds()
            if self._is_stale(session):
                return
            session.bounds = bounds

            try:
                capture = await asyncio.wait_for(
                    self.resolver.capture_full_screen(), timeout=self.capture_timeout
                )
            except asyncio.TimeoutError:
                raise CaptureTimeout(f"no capture after {self.capture_timeout:.1f}s")
            if self._is_stale(session):
                logger.debug(f"Session {session.session_id}: discarding late capture")
                return
            session.capture = capture

            self._transition(session, SessionState.CROPPING)
            crop_rect = map_capture(bounds, selection, capture, margin=self.margin)
            session.crop_rect = crop_rect

            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(None, crop_capture, capture, crop_rect)
            if self._is_stale(session):
                logger.debug(f"Session {session.session_id}: discarding late crop")
                return

            session.result = result
            logger.info(f"Session {session.session_id} ready: {result.width}x{result.height} crop")
            self._transition(session, SessionState.READY)

        except VisualAskError as e:
            if self._is_stale(session):
                return
            logger.error(f"Session {session.session_id} failed: {e}")
            session.error = e
            self._transition(session, SessionState.FAILED)
        except Exception as e:
            if self._is_stale(session):
                return
            logger.exception(f"Session {session.session_id} hit an unexpected error")
            session.error = VisualAskError(str(e))
            self._transition(session, SessionState.FAILED)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
