from __future__ import annotations

from collections.abc import Iterator

try:
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]

from snaplens_core.providers.base import BaseModelClient


class OpenAIClient(BaseModelClient):
    MODEL = "gpt-4o"
    # Slightly lower than Anthropic's 0.3; GPT-4o drifts from the
    # "Severity: ..." lead more often at higher temperatures.
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, client=None):
        if client is not None:
            self.client = client
            return
        if _OpenAI is None:
            raise ImportError(
                "The 'openai' package is required for this provider. " "Install it with: pip install 'snaplens[openai]'"
            )
        self.client = _OpenAI(api_key=api_key)

    def _stream(self, prompt: str) -> Iterator[str]:
        stream = self.client.chat.completions.create(
            model=self.MODEL,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            stream=True,
        )
        for chunk in stream:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content
