"""Base model client implementing the Template Method pattern.

The review engine depends on exactly one capability:

    submit(prompt) → _call_with_retry() → _stream()   ← only this differs per provider
                   → chunks buffered into one string

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _stream: make one streamed API call and yield text chunks

Retry and backoff live here, so the session engine only ever sees a terminal
success (the full text) or a terminal ModelRequestFailed.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator

from snaplens_core.errors import ModelRequestFailed

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 4096


class BaseModelClient(ABC):
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS
    MODEL: str = ""

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def submit(self, prompt: str) -> str:
        """Send ``prompt`` and return the complete reply text.

        Blocking; the session engine runs it on a worker thread. Streamed
        chunks are buffered and only the finished text is returned.
        Raises ModelRequestFailed once retries are exhausted.
        """
        return self._call_with_retry(prompt)

    # ------------------------------------------------------------------ #
    # Abstract — implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _stream(self, prompt: str) -> Iterator[str]:
        """Make a single streamed API call and yield text chunks.

        Should raise on failure; _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _collect(self, prompt: str) -> str:
        return "".join(chunk for chunk in self._stream(prompt) if chunk)

    def _call_with_retry(self, prompt: str) -> str:
        """Retry _collect up to MAX_RETRIES times with exponential backoff.

        A stream that fails part-way is retried from scratch; partial text is
        discarded.
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._collect(prompt)
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    raise ModelRequestFailed(f"Failed to get AI response: {e}") from e
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise ModelRequestFailed(f"{self.__class__.__name__} is configured with MAX_RETRIES={self.MAX_RETRIES}")
