"""Tests for the Anthropic narrative service."""

from unittest.mock import MagicMock, patch

import anthropic
import httpx
import pytest

from ip_cost_estimator.config import NarrativeConfig
from ip_cost_estimator.errors import CollaboratorUnavailableError
from ip_cost_estimator.narrative import AnthropicNarrativeService


def make_config(**kwargs) -> NarrativeConfig:
    defaults = {
        "enabled": True,
        "api_key": "test-key",
        "model": "claude-sonnet-4-20250514",
        "rate_limit_per_minute": 1000,  # no rate limiting in tests
        "max_tokens": 500,
        "timeout_seconds": 30,
        "max_retries": 2,
    }
    defaults.update(kwargs)
    return NarrativeConfig(**defaults)


def make_text_response(text: str):
    response = MagicMock()
    response.content = [MagicMock(text=text)]
    return response


def make_status_error(cls, status: int):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    response = httpx.Response(status, request=request)
    return cls(f"status {status}", response=response, body=None)


@patch("ip_cost_estimator.narrative.anthropic.Anthropic")
def test_complete_splits_numbered_lines(mock_anthropic_cls):
    mock_client = MagicMock()
    mock_anthropic_cls.return_value = mock_client
    mock_client.messages.create.return_value = make_text_response(
        "1. File a provisional application first.\n\n2) Prioritise the US market.\n- Budget for renewals."
    )

    service = AnthropicNarrativeService(make_config())
    lines = service.complete("Business: smart glasses")

    assert lines == [
        "File a provisional application first.",
        "Prioritise the US market.",
        "Budget for renewals.",
    ]
    kwargs = mock_client.messages.create.call_args.kwargs
    assert kwargs["model"] == "claude-sonnet-4-20250514"
    assert kwargs["max_tokens"] == 500
    assert kwargs["messages"][0]["content"] == "Business: smart glasses"


@patch("ip_cost_estimator.narrative.anthropic.Anthropic")
def test_client_built_with_timeout(mock_anthropic_cls):
    AnthropicNarrativeService(make_config(timeout_seconds=12))
    kwargs = mock_anthropic_cls.call_args.kwargs
    assert kwargs["api_key"] == "test-key"
    assert kwargs["timeout"] == 12.0


@patch("ip_cost_estimator.narrative.anthropic.Anthropic")
def test_empty_response(mock_anthropic_cls):
    mock_client = MagicMock()
    mock_anthropic_cls.return_value = mock_client
    mock_client.messages.create.return_value = make_text_response("\n  \n")

    assert AnthropicNarrativeService(make_config()).complete("prompt") == []


@patch("ip_cost_estimator.narrative.time.sleep")
@patch("ip_cost_estimator.narrative.anthropic.Anthropic")
def test_server_error_retried(mock_anthropic_cls, mock_sleep):
    mock_client = MagicMock()
    mock_anthropic_cls.return_value = mock_client
    mock_client.messages.create.side_effect = [
        make_status_error(anthropic.InternalServerError, 500),
        make_text_response("1. Retry worked."),
    ]

    lines = AnthropicNarrativeService(make_config()).complete("prompt")

    assert lines == ["Retry worked."]
    assert mock_client.messages.create.call_count == 2


@patch("ip_cost_estimator.narrative.time.sleep")
@patch("ip_cost_estimator.narrative.anthropic.Anthropic")
def test_rate_limit_exhausts_retries(mock_anthropic_cls, mock_sleep):
    mock_client = MagicMock()
    mock_anthropic_cls.return_value = mock_client
    mock_client.messages.create.side_effect = make_status_error(anthropic.RateLimitError, 429)

    with pytest.raises(CollaboratorUnavailableError):
        AnthropicNarrativeService(make_config(max_retries=2)).complete("prompt")
    assert mock_client.messages.create.call_count == 2


@patch("ip_cost_estimator.narrative.anthropic.Anthropic")
def test_client_error_not_retried(mock_anthropic_cls):
    mock_client = MagicMock()
    mock_anthropic_cls.return_value = mock_client
    mock_client.messages.create.side_effect = make_status_error(anthropic.AuthenticationError, 401)

    with pytest.raises(CollaboratorUnavailableError, match="401"):
        AnthropicNarrativeService(make_config()).complete("prompt")
    assert mock_client.messages.create.call_count == 1


@patch("ip_cost_estimator.narrative.anthropic.Anthropic")
def test_timeout_raises_unavailable(mock_anthropic_cls):
    mock_client = MagicMock()
    mock_anthropic_cls.return_value = mock_client
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    mock_client.messages.create.side_effect = anthropic.APITimeoutError(request=request)

    with pytest.raises(CollaboratorUnavailableError):
        AnthropicNarrativeService(make_config()).complete("prompt")
