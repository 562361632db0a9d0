"""Turns a metric comparison into a coach comment via Claude."""
import logging
from typing import Optional

from healthcoach.errors import TextGenerationError
from healthcoach.insights.comparison import MetricComparison
from healthcoach.prompts.insight import SYSTEM_PROMPT, build_insight_prompt

logger = logging.getLogger(__name__)

_QUOTES = "\"'“”"


class InsightWriter:
    def __init__(self, claude, max_tokens: int = 150):
        """
        Args:
            claude: ClaudeClient (anything with an async complete()).
        """
        self.claude = claude
        self.max_tokens = max_tokens

    async def generate_insight_message(
        self, user_name: str, comparison: MetricComparison
    ) -> Optional[str]:
        """1-2 sentence comment, or None when generation fails or comes back empty."""
        prompt = build_insight_prompt(user_name, comparison)
        try:
            text = await self.claude.complete(
                prompt, system_prompt=SYSTEM_PROMPT, max_tokens=self.max_tokens
            )
        except TextGenerationError as exc:
            logger.warning("Insight message generation failed: %s", exc)
            return None

        message = (text or "").strip().strip(_QUOTES).strip()
        return message or None
