"""Background asyncio loop for the Qt shell.

Qt owns the main thread, so GhostLens runs a single asyncio loop in a daemon
thread. Controller and conversation calls are submitted to it; results come
back to widgets through Qt signals.
"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Callable, Coroutine, Optional

logger = logging.getLogger(__name__)


class AsyncLoopThread:
    """Runs one asyncio event loop on a dedicated daemon thread."""

    JOIN_TIMEOUT_S = 2

    def __init__(self, name: str = "GhostLensLoop"):
        self.name = name
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

    def start(self) -> "AsyncLoopThread":
        if self._thread is not None:
            return self
        self._thread = threading.Thread(target=self._run, daemon=True, name=self.name)
        self._thread.start()
        self._ready.wait()
        logger.debug(f"[LOOP] {self.name} started")
        return self

    def _run(self) -> None:
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self._ready.set()
        try:
            self.loop.run_forever()
        finally:
            pending = asyncio.all_tasks(self.loop)
            for task in pending:
                task.cancel()
            if pending:
                self.loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            self.loop.close()
            logger.debug(f"[LOOP] {self.name} closed")

    def submit(self, coro: Coroutine[Any, Any, Any]) -> concurrent.futures.Future:
        """Schedule a coroutine on the loop; returns a thread-safe future."""
        if self.loop is None:
            raise RuntimeError("AsyncLoopThread not started")
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def call(self, fn: Callable[..., Any], *args: Any) -> None:
        """Run a plain callable on the loop thread, preserving call order."""
        if self.loop is None:
            raise RuntimeError("AsyncLoopThread not started")
        self.loop.call_soon_threadsafe(fn, *args)

    def stop(self) -> None:
        if self.loop is None or self._thread is None:
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=self.JOIN_TIMEOUT_S)
        if self._thread.is_alive():
            logger.warning(f"[LOOP] {self.name} did not stop within {self.JOIN_TIMEOUT_S}s")
        self._thread = None
