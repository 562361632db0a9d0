"""Async Claude API wrapper."""
import asyncio
import logging
from typing import Optional

import anthropic

from healthcoach.errors import TextGenerationError

logger = logging.getLogger(__name__)


class ClaudeClient:
    """Thin async wrapper over the Anthropic SDK."""

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-5"):
        self._client = anthropic.Anthropic(api_key=api_key)
        self.model = model

    async def complete(
        self,
        user_prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 150,
    ) -> str:
        """
        Send a message to Claude and return the response text.
        Runs the sync SDK call in a thread pool executor.

        Raises:
            TextGenerationError: the API call failed or returned no text.
        """
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            None,
            lambda: self._complete_sync(user_prompt, system_prompt, max_tokens),
        )

    def _complete_sync(
        self,
        user_prompt: str,
        system_prompt: Optional[str],
        max_tokens: int,
    ) -> str:
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            response = self._client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            raise TextGenerationError(f"Claude request failed: {exc}") from exc

        for block in response.content:
            if getattr(block, "type", None) == "text":
                return block.text
        raise TextGenerationError("Claude response contained no text block")
