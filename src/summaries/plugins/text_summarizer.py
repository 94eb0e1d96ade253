"""
This module contains the text summarizer plugins used to roll up resolved issues.
"""

import re
from typing import Optional

from openai import AsyncOpenAI
from tenacity import retry, stop_after_attempt, wait_exponential
from tiktoken import Encoding

from config import settings, logger


SUMMARY_INSTRUCTIONS = """Summarize the provided work output (tickets, PRs, alerts) into a single-level markdown bullet list (max 5 bullets).
Focus on outcomes, milestones, and impact. Use past tense for completed actions.
Combine similar or less critical items to meet the 5-bullet limit, prioritizing relevance and impact.
Keep summaries terse, avoiding technical jargon, names, and generic phrases (e.g., "improving efficiency," "streamlining").
Do not use phrases describing the action type (e.g., "closed ticket," "merged PR")."""


class TextSummarizer:
    """Base class for text summarizer plugins."""

    async def summarize(self, text: str) -> str:
        """Summarize the given text into a short bullet list."""
        raise NotImplementedError


class FakeTextSummarizer(TextSummarizer):
    """Offline summarizer that echoes the start of the input."""

    async def summarize(self, text: str) -> str:
        flattened = re.sub(r"\r?\n|\f\n|\r", "", text)
        return f"* Fake summary of: `{flattened[:16]}`..."


class OpenAITextSummarizer(TextSummarizer):
    """
    LLM-based summarizer using OpenAI chat completions.

    Attributes:
        client (AsyncOpenAI): OpenAI API client
        encoding (tiktoken.Encoding): Token encoder used to log prompt sizes
        model (str): Chat completion model
        max_completion_tokens (int): Upper bound for the completion length
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        encoding: Encoding,
        model: Optional[str] = None,
        max_completion_tokens: Optional[int] = None,
    ):
        """
        Initialize the LLM summarizer.

        Args:
            client (AsyncOpenAI): OpenAI API client
            encoding (Encoding): Token encoder
            model (Optional[str]): Model name, defaults to the configured model
            max_completion_tokens (Optional[int]): Completion limit, defaults to the configured limit
        """
        self.client = client
        self.encoding = encoding
        self.model = model or settings.openai_llm_model
        self.max_completion_tokens = (
            max_completion_tokens or settings.openai_max_completion_tokens
        )

    def _count_tokens(self, text: str) -> int:
        """
        Count tokens in text using the model's tokenizer.

        Args:
            text (str): Text to count tokens for

        Returns:
            int: Number of tokens in text
        """
        return len(self.encoding.encode(text))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def summarize(self, text: str) -> str:
        """
        Summarize work output into at most five markdown bullets.

        Args:
            text (str): Markdown block describing resolved issues

        Returns:
            str: Markdown bullet list

        Raises:
            Exception: If the completion request keeps failing
        """
        logger.debug(f"Summary prompt token count: {self._count_tokens(text)}")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SUMMARY_INSTRUCTIONS},
                    {"role": "user", "content": text},
                ],
                max_completion_tokens=self.max_completion_tokens,
                reasoning_effort="minimal",
                timeout=120,
            )
        except Exception as e:
            logger.error(f"Error summarizing text: {e}")
            raise e

        if not response.choices:
            return "* No summary available"
        content = response.choices[0].message.content
        return content.strip() if content else "* No choices available"
