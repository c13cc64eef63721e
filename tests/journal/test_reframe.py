"""Tests for AI reframe suggestions and the LLM wrapper."""

from unittest.mock import MagicMock, patch

import pytest
from sakina.journal.models import ThinkingTrap
from sakina.journal.reframe import (
    EMPTY_REFRAME_FALLBACK,
    ERROR_REFRAME_FALLBACK,
    build_reframe_prompt,
    suggest_reframe,
)
from sakina.shared.llm import EmptyResponseError, LLMError, call_llm

TRAPS = [ThinkingTrap.CATASTROPHIZING, ThinkingTrap.FORTUNE_TELLING]


def _text_block(text: str) -> MagicMock:
    block = MagicMock()
    block.type = "text"
    block.text = text
    return block


class TestSuggestReframe:
    def test_returns_model_text(self):
        with patch("sakina.journal.reframe.call_llm", return_value="كل شيء سيمر") as mock_call:
            result = suggest_reframe("سأفقد وظيفتي", TRAPS)
        assert result == "كل شيء سيمر"
        _, kwargs = mock_call.call_args
        assert kwargs["label"] == "reframe"

    def test_blank_thought_skips_call(self):
        with patch("sakina.journal.reframe.call_llm") as mock_call:
            assert suggest_reframe("   ", TRAPS) == ""
        mock_call.assert_not_called()

    def test_no_traps_skips_call(self):
        with patch("sakina.journal.reframe.call_llm") as mock_call:
            assert suggest_reframe("thought", []) == ""
        mock_call.assert_not_called()

    def test_empty_response_uses_fallback(self):
        with patch(
            "sakina.journal.reframe.call_llm",
            side_effect=EmptyResponseError("empty"),
        ):
            assert suggest_reframe("thought", TRAPS) == EMPTY_REFRAME_FALLBACK

    def test_failure_is_absorbed(self):
        with patch("sakina.journal.reframe.call_llm", side_effect=LLMError("boom")):
            assert suggest_reframe("thought", TRAPS) == ERROR_REFRAME_FALLBACK

    def test_prompt_lists_traps(self):
        prompt = build_reframe_prompt("  my thought ", TRAPS)
        assert '"my thought"' in prompt
        assert "التهويل" in prompt
        assert "قراءة الغيب" in prompt


class TestCallLLM:
    def test_missing_key_raises(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(LLMError, match="ANTHROPIC_API_KEY"):
            call_llm("sys", "user")

    def test_joins_text_blocks(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
        mock_client = MagicMock()
        mock_client.messages.create.return_value.content = [
            _text_block("hello "),
            _text_block("world"),
        ]
        with patch("sakina.shared.llm.anthropic.Anthropic", return_value=mock_client):
            assert call_llm("sys", "user", model="haiku") == "hello world"

        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-haiku-4-5-20251001"
        assert kwargs["system"] == "sys"

    def test_empty_response_raises_empty_error(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
        mock_client = MagicMock()
        mock_client.messages.create.return_value.content = [_text_block("  ")]
        with patch("sakina.shared.llm.anthropic.Anthropic", return_value=mock_client):
            with pytest.raises(EmptyResponseError):
                call_llm("sys", "user")

    def test_api_error_wrapped(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
        mock_client = MagicMock()
        mock_client.messages.create.side_effect = RuntimeError("down")
        with patch("sakina.shared.llm.anthropic.Anthropic", return_value=mock_client):
            with pytest.raises(LLMError, match="down"):
                call_llm("sys", "user")
