"""
OpenRouter chat-completion client for GhostLens.

Two thin POST wrappers: plain chat history, and a single screenshot region
plus prompt. Uses aiohttp for direct HTTP calls.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from ghostlens.utils.errors import ChatCompletionError
from ghostlens.utils.settings import Settings

logger = logging.getLogger(__name__)

VISION_SYSTEM_PROMPT = "You are a concise visual assistant. Describe and answer clearly."
DEFAULT_VISION_PROMPT = "What do you see in this screenshot region?"


class OpenRouterClient:
    """OpenRouter client for chat and vision completions using aiohttp."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.api_key}",
            "HTTP-Referer": self.settings.referer,
            "X-Title": self.settings.app_title,
        }

    async def _post(self, messages: List[Dict[str, Any]], temperature: float, model: Optional[str]) -> str:
        payload = {
            "model": model or self.settings.model_name,
            "messages": messages,
            "temperature": temperature,
        }
        timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout)

        logger.info(f"OpenRouter request: model={payload['model']}, {len(messages)} messages")
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self.settings.api_url, headers=self._headers(), json=payload
                ) as response:
                    if response.status < 200 or response.status >= 300:
                        body = await response.text()
                        error_msg = f"OpenRouter error {response.status}: {body}"
                        logger.error(error_msg)
                        raise ChatCompletionError(error_msg)
                    try:
                        data = await response.json(content_type=None)
                    except ValueError as e:
                        logger.error(f"OpenRouter returned a non-JSON body: {e}")
                        raise ChatCompletionError(f"OpenRouter returned invalid JSON: {e}")
        except asyncio.TimeoutError:
            error_msg = f"OpenRouter request timeout after {self.settings.request_timeout:.0f}s"
            logger.error(error_msg)
            raise ChatCompletionError(error_msg)
        except aiohttp.ClientError as e:
            logger.error(f"OpenRouter request failed: {e}")
            raise ChatCompletionError(f"OpenRouter request failed: {e}")

        content = _extract_content(data)
        logger.info(f"OpenRouter response: {len(content)} characters")
        return content

    async def ask(
        self,
        messages: List[Dict[str, Any]],
        temperature: float = 0.3,
        model: Optional[str] = None,
    ) -> str:
        """
        Send a chat history and return the assistant's reply.

        Args:
            messages: OpenAI-style role/content messages
            temperature: Sampling temperature
            model: Override for the configured model

        Returns:
            The reply text, or "" when the response carries none
        """
        return await self._post(messages, temperature, model)

    async def ask_with_image(
        self,
        prompt: Optional[str],
        image_data_uri: str,
        temperature: float = 0.2,
        model: Optional[str] = None,
    ) -> str:
        """Ask about a single image (data URI) with an optional prompt."""
        messages = [
            {"role": "system", "content": VISION_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt or DEFAULT_VISION_PROMPT},
                    {"type": "image_url", "image_url": {"url": image_data_uri}},
                ],
            },
        ]
        return await self._post(messages, temperature, model)


def _extract_content(data: Any) -> str:
    """Pull choices[0].message.content out of a response, tolerating gaps."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content or ""
