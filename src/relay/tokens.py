"""
Token count estimation for usage accounting.

Used when the backend does not report an exact count. Counts come from a
tiktoken encoding; if the encoding cannot be loaded the estimator degrades to
one token per four characters and never raises.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import tiktoken

from relay.config import settings

logger = logging.getLogger(__name__)

# Characters per token for the fallback heuristic
FALLBACK_CHARS_PER_TOKEN = 4


class TokenEstimator:
    """Counts tokens with a named tiktoken encoding, falling back to a heuristic."""

    def __init__(self, encoding_name: str | None = None) -> None:
        """
        Initialize the estimator.

        Args:
            encoding_name: tiktoken encoding name (defaults to settings)
        """
        self.encoding_name = encoding_name or settings.tokenizer_encoding
        self._encoding: Any | None = None
        self._load_failed = False

    @property
    def uses_fallback(self) -> bool:
        """True once the encoding failed to load."""
        return self._load_failed

    def _get_encoding(self) -> Any | None:
        if self._encoding is not None or self._load_failed:
            return self._encoding
        try:
            self._encoding = tiktoken.get_encoding(self.encoding_name)
        except Exception as e:
            # Remembered so later calls skip the lookup
            self._load_failed = True
            logger.warning(
                f"Tokenizer {self.encoding_name} unavailable, using length heuristic: {e}"
            )
        return self._encoding

    def estimate(self, text: str) -> int:
        """
        Estimate the number of tokens in text.

        Args:
            text: Text fragment to count

        Returns:
            Exact count from the encoding, or len(text) // 4 without one
        """
        encoding = self._get_encoding()
        if encoding is None:
            return len(text) // FALLBACK_CHARS_PER_TOKEN
        return len(encoding.encode(text, disallowed_special=()))

    async def estimate_async(self, text: str) -> int:
        """Estimate tokens in a worker thread, off the event loop."""
        return await asyncio.to_thread(self.estimate, text)

    async def warm_up(self) -> None:
        """Load the encoding off the event loop."""
        await asyncio.to_thread(self._get_encoding)


# Shared estimator for the convenience function
default_estimator = TokenEstimator()


def estimate_token_count(text: str) -> int:
    """Estimate tokens in text with the shared estimator."""
    return default_estimator.estimate(text)
