"""
Continuous listening for GhostLens.

Speech engines stop on their own (silence, network hiccups, device resets).
`ListeningLoop` owns the restart policy: while it is active and nobody has
asked it to stop, every end-of-stream is followed by a fresh listen.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

# Pause before re-listening after a source error (seconds)
RESTART_BACKOFF_S = 1.0


@dataclass(frozen=True)
class SpeechResult:
    text: str
    is_final: bool


class SpeechSource(Protocol):
    """Speech-to-text collaborator; iteration ending means end of stream."""

    def listen(self) -> AsyncIterator[SpeechResult]: ...


class Speaker(Protocol):
    """Text-to-speech collaborator."""

    def speak(self, text: str) -> None: ...

    def cancel(self) -> None: ...


class SpeechUnavailable(RuntimeError):
    """Raised when no speech engine or microphone can be used."""


class ListeningLoop:
    """Keeps a SpeechSource listening until explicitly stopped."""

    def __init__(
        self,
        source: SpeechSource,
        on_result: Callable[[SpeechResult], None],
        restart_backoff: float = RESTART_BACKOFF_S,
    ):
        self.source = source
        self.on_result = on_result
        self.restart_backoff = restart_backoff
        self.restarts = 0
        self._stopped = asyncio.Event()
        self._active = False

    @property
    def active(self) -> bool:
        return self._active and not self._stopped.is_set()

    async def run(self) -> None:
        """
        Listen until `stop()` is called.

        Raises:
            SpeechUnavailable: propagated from the source; ends the loop
        """
        self._active = True
        logger.info("Listening loop started")
        try:
            while self.active:
                try:
                    async for result in self.source.listen():
                        if not self.active:
                            break
                        self.on_result(result)
                except SpeechUnavailable:
                    raise
                except Exception as e:
                    logger.warning(f"Speech source error, restarting: {e}")
                    await self._pause(self.restart_backoff)

                if self.active:
                    self.restarts += 1
                    logger.debug(f"End of speech stream - restarting (#{self.restarts})")
                    await asyncio.sleep(0)
        finally:
            self._active = False
            logger.info("Listening loop stopped")

    async def _pause(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def stop(self) -> None:
        self._stopped.set()


def start_listening(
    source: SpeechSource,
    on_result: Callable[[SpeechResult], None],
    on_unavailable: Optional[Callable[[Exception], None]] = None,
) -> Tuple[ListeningLoop, asyncio.Task]:
    """Create a loop and schedule it on the running event loop."""
    loop_obj = ListeningLoop(source, on_result)

    async def _runner():
        try:
            await loop_obj.run()
        except SpeechUnavailable as e:
            logger.error(f"Speech recognition unavailable: {e}")
            if on_unavailable:
                on_unavailable(e)

    task = asyncio.get_running_loop().create_task(_runner())
    return loop_obj, task
