from __future__ import annotations

from collections.abc import Iterator

from snaplens_core.providers.base import BaseModelClient


class AnthropicClient(BaseModelClient):
    MODEL = "claude-sonnet-4-20250514"
    # Same temperature the editor panel used for selection reviews.
    TEMPERATURE = 0.3

    def __init__(self, api_key: str, client=None):
        if client is not None:
            self.client = client
            return
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'snaplens[anthropic]'"
            )
        self.client = Anthropic(api_key=api_key)

    def _stream(self, prompt: str) -> Iterator[str]:
        with self.client.messages.stream(
            model=self.MODEL,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        ) as stream:
            yield from stream.text_stream
