"""
Chat, insights and transcript state for the GhostLens assistant.

`Conversation` is the model behind the assistant window. It owns the message
history sent to OpenRouter, the insight cards, the rolling speech transcript
and the loading/error flags. It is plain Python so it can be driven from the
asyncio worker loop and tested without Qt.
"""

import itertools
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ghostlens.speech import Speaker, SpeechResult
from ghostlens.utils.openrouter import DEFAULT_VISION_PROMPT, OpenRouterClient
from ghostlens.utils.settings import Settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a concise real-time assistant."
TRANSCRIPT_HISTORY = 100
INTERIM_PREFIX = "(…) "

TAB_CHAT = "chat"
TAB_INSIGHTS = "insights"
TAB_TRANSCRIPT = "transcript"


@dataclass
class ChatMessage:
    role: str
    content: str

    def as_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class Insight:
    id: int
    title: str
    detail: str


class Conversation:
    """Assistant conversation model with change listeners."""

    def __init__(self, client: OpenRouterClient, settings: Settings, speaker: Optional[Speaker] = None):
        self.client = client
        self.settings = settings
        self.speaker = speaker

        self.messages: List[ChatMessage] = []
        self.insights: List[Insight] = [
            Insight(1, "Meeting introduction", "Start speaking to see real-time insights...")
        ]
        self.transcript: List[str] = []
        self.query: str = ""
        self.loading: bool = False
        self.error: str = ""
        self.listening: bool = False
        self.chat_mode: bool = True
        self.active_tab: str = TAB_CHAT

        self._insight_ids = itertools.count(int(time.time() * 1000))
        self._listeners: List[Callable[["Conversation"], None]] = []

    def add_listener(self, listener: Callable[["Conversation"], None]) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in self._listeners:
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Conversation listener failed: {e}")

    # --- simple setters used by the window ---------------------------------

    def set_query(self, text: str) -> None:
        self.query = text
        self._changed()

    def set_tab(self, tab: str) -> None:
        if tab not in (TAB_CHAT, TAB_INSIGHTS, TAB_TRANSCRIPT):
            raise ValueError(f"Unknown tab: {tab}")
        self.active_tab = tab
        self._changed()

    def set_chat_mode(self, enabled: bool) -> None:
        self.chat_mode = enabled
        self._changed()

    def set_listening(self, enabled: bool) -> None:
        self.listening = enabled
        if not enabled and self.speaker:
            self.speaker.cancel()
        self._changed()

    def set_error(self, message: str) -> None:
        self.error = message
        self._changed()

    @property
    def placeholder(self) -> str:
        if self.loading:
            return "Asking…"
        return "Type to chat" if self.chat_mode else "Ask AI about what you see"

    # --- transcript ---------------------------------------------------------

    def _append_transcript(self, line: str) -> None:
        self.transcript = self.transcript[-TRANSCRIPT_HISTORY:] + [line]

    async def on_speech_result(self, result: SpeechResult) -> None:
        """Record a recognition result; final phrases are asked immediately."""
        if not result.is_final:
            if result.text:
                self._append_transcript(f"{INTERIM_PREFIX}{result.text}")
                self._changed()
            return

        text = result.text.strip()
        if not text:
            return
        self._append_transcript(text)
        self.active_tab = TAB_CHAT
        self._changed()
        await self.ask(text)

    # --- asking -------------------------------------------------------------

    def _record_answer(self, content: str) -> None:
        now = datetime.now().strftime("%X")
        self.insights.insert(0, Insight(next(self._insight_ids), f"AI ({now})", content))
        self.messages.append(ChatMessage("assistant", content))
        if self.listening and self.speaker:
            self.speaker.speak(content)

    async def ask(self, text: Optional[str] = None) -> Optional[str]:
        """
        Ask the model, using `text` or the current query.

        Returns:
            The answer, or None when nothing was asked or the request failed
        """
        q = (text if text is not None else self.query).strip()
        if not q or self.loading:
            return None

        self.loading = True
        self.error = ""
        self._changed()
        try:
            if not self.settings.has_api_key:
                raise RuntimeError("Missing OpenRouter API key")

            history = [{"role": "system", "content": SYSTEM_PROMPT}]
            history += [m.as_dict() for m in self.messages]
            history.append({"role": "user", "content": q})

            self.messages.append(ChatMessage("user", q))
            self.query = ""
            self._changed()

            content = await self.client.ask(history)
            self._record_answer(content)
            return content

        except Exception as e:
            logger.error(f"Ask failed: {e}")
            self.error = str(e) or "Failed to ask AI"
            return None
        finally:
            self.loading = False
            self._changed()

    async def ask_about_image(self, image_data_uri: str, prompt: Optional[str] = None) -> Optional[str]:
        """Ask about a cropped screen region; `prompt` defaults to the query."""
        if self.loading:
            return None

        q = (prompt if prompt is not None else self.query).strip() or DEFAULT_VISION_PROMPT

        self.loading = True
        self.error = ""
        self._changed()
        try:
            if not self.settings.has_api_key:
                raise RuntimeError("Missing OpenRouter API key")

            self.messages.append(ChatMessage("user", f"[Screen region] {q}"))
            self.query = ""
            self.active_tab = TAB_CHAT
            self._changed()

            content = await self.client.ask_with_image(q, image_data_uri)
            self._record_answer(content)
            return content

        except Exception as e:
            logger.error(f"Visual ask failed: {e}")
            self.error = str(e) or "Failed to ask AI"
            return None
        finally:
            self.loading = False
            self._changed()
