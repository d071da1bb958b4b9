"""Tests for the LLM gateway wrapped around the repair model."""

from unittest.mock import MagicMock, patch

import pytest

from contractloom.core.gateway import MAX_TRIES, LLMGateway


def _make_response(text="{}", prompt_tokens=1_000_000, completion_tokens=500_000):
    usage = MagicMock(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
    return MagicMock(text=text, raw={"usage": usage})


def _make_gateway(model="gpt-4o-mini"):
    inner = MagicMock()
    inner.model = model
    return LLMGateway(inner), inner


class TestLLMGateway:
    def test_complete_delegates_and_records_usage(self):
        gateway, inner = _make_gateway()
        inner.complete.return_value = _make_response('{"fixes": []}')

        response = gateway.complete("prompt")

        assert response.text == '{"fixes": []}'
        inner.complete.assert_called_once_with("prompt", formatted=False)
        metrics = gateway.get_metrics()
        assert metrics["total_calls"] == 1
        assert metrics["total_tokens_in"] == 1_000_000
        assert metrics["total_tokens_out"] == 500_000
        assert metrics["model"] == "gpt-4o-mini"
        assert metrics["estimated_cost_usd"] == pytest.approx(0.45)

    @patch("time.sleep")
    def test_connection_errors_are_retried(self, _sleep):
        gateway, inner = _make_gateway()
        inner.complete.side_effect = [ConnectionError("reset"), _make_response()]

        gateway.complete("prompt")

        assert inner.complete.call_count == 2
        assert gateway.get_metrics()["retries"] == 1

    @patch("time.sleep")
    def test_gives_up_after_max_tries(self, _sleep):
        gateway, inner = _make_gateway()
        inner.complete.side_effect = ConnectionError("down")

        with pytest.raises(ConnectionError):
            gateway.complete("prompt")

        assert inner.complete.call_count == MAX_TRIES
        assert gateway.get_metrics()["errors"] == 1

    def test_other_errors_are_not_retried(self):
        gateway, inner = _make_gateway()
        inner.complete.side_effect = ValueError("bad request")

        with pytest.raises(ValueError):
            gateway.complete("prompt")

        inner.complete.assert_called_once()

    def test_unknown_model_costs_nothing(self):
        gateway, inner = _make_gateway(model="llama3")
        inner.complete.return_value = _make_response()

        gateway.complete("prompt")

        assert gateway.get_metrics()["estimated_cost_usd"] == 0.0

    def test_content_filtered_completions_counted(self):
        gateway, inner = _make_gateway()
        response = _make_response()
        response.raw["choices"] = [{"finish_reason": "content_filter"}]
        inner.complete.return_value = response

        gateway.complete("prompt")

        assert gateway.get_metrics()["content_filtered"] == 1
