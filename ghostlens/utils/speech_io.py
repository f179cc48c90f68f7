"""
Speech adapters for GhostLens.

Concrete SpeechSource / Speaker implementations:
- MicrophoneSpeechSource: SpeechRecognition + PyAudio microphone, Google STT
- Pyttsx3Speaker: offline text-to-speech through pyttsx3

Both engines block, so their work runs in worker threads.
"""

import asyncio
import logging
import threading
from typing import AsyncIterator, Optional

from ghostlens.speech import SpeechResult, SpeechUnavailable

logger = logging.getLogger(__name__)


class MicrophoneSpeechSource:
    """Listens on the default microphone until a silence timeout ends the stream."""

    # Seconds of silence before a listen() stream ends (and the loop restarts)
    SILENCE_TIMEOUT_S = 8
    PHRASE_TIME_LIMIT_S = 15
    AMBIENT_CALIBRATION_S = 0.5

    def __init__(self, language: str = "en-US"):
        self.language = language
        try:
            import speech_recognition as sr
        except ImportError as e:
            raise SpeechUnavailable(f"SpeechRecognition not installed: {e}")
        self._sr = sr
        self.recognizer = sr.Recognizer()
        self._calibrated = False

    def _capture_phrase(self):
        """Block until one phrase is heard; None when the silence timeout hits."""
        sr = self._sr
        try:
            with sr.Microphone() as source:
                if not self._calibrated:
                    self.recognizer.adjust_for_ambient_noise(source, duration=self.AMBIENT_CALIBRATION_S)
                    self._calibrated = True
                return self.recognizer.listen(
                    source,
                    timeout=self.SILENCE_TIMEOUT_S,
                    phrase_time_limit=self.PHRASE_TIME_LIMIT_S,
                )
        except sr.WaitTimeoutError:
            return None
        except (OSError, AttributeError) as e:
            # AttributeError: PyAudio missing; OSError: no input device
            raise SpeechUnavailable(f"microphone unavailable: {e}")

    def _transcribe(self, audio) -> Optional[str]:
        sr = self._sr
        try:
            return self.recognizer.recognize_google(audio, language=self.language)
        except sr.UnknownValueError:
            logger.debug("Speech not understood")
            return None

    async def listen(self) -> AsyncIterator[SpeechResult]:
        loop = asyncio.get_running_loop()
        while True:
            audio = await loop.run_in_executor(None, self._capture_phrase)
            if audio is None:
                logger.debug("Silence timeout - ending speech stream")
                return
            text = await loop.run_in_executor(None, self._transcribe, audio)
            if text and text.strip():
                yield SpeechResult(text=text.strip(), is_final=True)


class Pyttsx3Speaker:
    """Speaks answers aloud; a new utterance cancels the previous one."""

    def __init__(self, rate: Optional[int] = None):
        self.rate = rate
        self._lock = threading.Lock()
        self._engine = None

    def _get_engine(self):
        if self._engine is None:
            import pyttsx3
            self._engine = pyttsx3.init()
            if self.rate:
                self._engine.setProperty("rate", self.rate)
        return self._engine

    def _say(self, text: str) -> None:
        with self._lock:
            try:
                engine = self._get_engine()
                engine.say(text)
                engine.runAndWait()
            except Exception as e:
                logger.warning(f"Text-to-speech failed: {e}")

    def speak(self, text: str) -> None:
        if not text:
            return
        self.cancel()
        threading.Thread(target=self._say, args=(text,), daemon=True, name="Speaker").start()

    def cancel(self) -> None:
        if self._engine is not None:
            try:
                self._engine.stop()
            except Exception as e:
                logger.debug(f"Text-to-speech stop failed: {e}")
