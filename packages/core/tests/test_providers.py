"""Tests for model client implementations.

Shared behaviour (chunk buffering, _call_with_retry) lives in BaseModelClient
and is tested once via a lightweight stub, not duplicated per provider.
Provider-specific tests cover only what differs: SDK client setup and _stream.
"""

import types
from unittest.mock import MagicMock, patch

import pytest

from snaplens_core.errors import ModelRequestFailed
from snaplens_core.providers.anthropic import AnthropicClient
from snaplens_core.providers.base import BaseModelClient
from snaplens_core.providers.openai import OpenAIClient


class _StubClient(BaseModelClient):
    """Minimal concrete subclass used to test BaseModelClient shared methods."""

    def __init__(self, chunks=("Warning: ", "unchecked ", "index.")):
        self.chunks = chunks
        self.prompts = []

    def _stream(self, prompt: str):
        self.prompts.append(prompt)
        yield from self.chunks


# ---------------------------------------------------------------------------
# Shared behaviour — tested once through the stub, not per provider
# ---------------------------------------------------------------------------


class TestBaseModelClientSubmit:
    def test_chunks_buffered_into_one_reply(self):
        assert _StubClient().submit("p") == "Warning: unchecked index."

    def test_empty_and_none_chunks_skipped(self):
        assert _StubClient(chunks=("a", "", None, "b")).submit("p") == "ab"

    def test_prompt_passed_through(self):
        client = _StubClient()
        client.submit("review this")
        assert client.prompts == ["review this"]


class TestBaseModelClientRetry:
    def test_raises_model_request_failed_after_max_retries(self):
        class _AlwaysFail(BaseModelClient):
            def _stream(self, prompt: str):
                raise RuntimeError("network error")

        with patch("snaplens_core.providers.base.time.sleep") as mock_sleep:
            with pytest.raises(ModelRequestFailed) as excinfo:
                _AlwaysFail().submit("p")
        assert "network error" in str(excinfo.value)
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    def test_retries_on_transient_failure(self):
        call_count = 0

        class _FailOnceThenSucceed(BaseModelClient):
            def _stream(self, prompt: str):
                nonlocal call_count
                call_count += 1
                if call_count == 1:
                    raise RuntimeError("transient")
                yield "Info: ok"

        with patch("snaplens_core.providers.base.time.sleep"):
            assert _FailOnceThenSucceed().submit("p") == "Info: ok"
        assert call_count == 2

    def test_stream_failing_midway_discards_partial_text(self):
        attempts = 0

        class _BreaksMidStream(BaseModelClient):
            def _stream(self, prompt: str):
                nonlocal attempts
                attempts += 1
                yield "partial "
                if attempts == 1:
                    raise ConnectionError("reset")
                yield "complete"

        with patch("snaplens_core.providers.base.time.sleep"):
            assert _BreaksMidStream().submit("p") == "partial complete"


# ---------------------------------------------------------------------------
# Provider-specific — only what differs between Anthropic and OpenAI
# ---------------------------------------------------------------------------


class TestAnthropicClient:
    def test_raises_import_error_without_sdk(self):
        """AnthropicClient.__init__ must raise if the anthropic package is absent."""
        with patch.dict("sys.modules", {"anthropic": None}):
            with pytest.raises(ImportError):
                AnthropicClient(api_key="key")

    def test_model_is_claude(self):
        assert "claude" in AnthropicClient.MODEL

    def test_temperature_is_set(self):
        assert AnthropicClient.TEMPERATURE == 0.3

    def test_streams_text(self):
        sdk = MagicMock()
        stream = sdk.messages.stream.return_value.__enter__.return_value
        stream.text_stream = iter(["Error: ", "leak"])

        client = AnthropicClient(api_key="key", client=sdk)
        assert client.submit("prompt") == "Error: leak"

        kwargs = sdk.messages.stream.call_args.kwargs
        assert kwargs["model"] == AnthropicClient.MODEL
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]
        assert kwargs["temperature"] == 0.3


class TestOpenAIClient:
    def test_raises_import_error_without_sdk(self):
        """OpenAIClient.__init__ must raise if the openai package is absent."""
        import snaplens_core.providers.openai as openai_mod

        real_openai = openai_mod._OpenAI
        openai_mod._OpenAI = None
        try:
            with pytest.raises(ImportError):
                OpenAIClient(api_key="key")
        finally:
            openai_mod._OpenAI = real_openai

    def test_model_is_gpt(self):
        assert "gpt" in OpenAIClient.MODEL

    def test_temperature_is_set(self):
        assert OpenAIClient.TEMPERATURE == 0.2

    def test_streams_deltas(self):
        def chunk(content):
            return types.SimpleNamespace(choices=[types.SimpleNamespace(delta=types.SimpleNamespace(content=content))])

        sdk = MagicMock()
        sdk.chat.completions.create.return_value = iter(
            [chunk("Suggestion: "), chunk(None), types.SimpleNamespace(choices=[]), chunk("rename")]
        )

        client = OpenAIClient(api_key="key", client=sdk)
        assert client.submit("prompt") == "Suggestion: rename"
        assert sdk.chat.completions.create.call_args.kwargs["stream"] is True
