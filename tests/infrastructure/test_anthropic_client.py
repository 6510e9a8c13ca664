"""Resilient Anthropic Client — retry, backoff and error mapping around messages.create.

Tests cover:
    - Success on first attempt passes kwargs through (tools / tool_choice only when given)
    - Rate limits and 5xx retried, then succeed
    - Exhausted retries → AnthropicAPIError with rate_limit / connection_error type
    - 529 overloaded treated as transient
    - 4xx client errors fail immediately
"""

from types import SimpleNamespace

import anthropic
import httpx
import pytest

from donor_crm.core.errors import AnthropicAPIError, ErrorContext
from donor_crm.infrastructure.anthropic_client import ResilientAnthropicClient

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
_OK = SimpleNamespace(
    content=[], usage=SimpleNamespace(input_tokens=10, output_tokens=5),
)


def _response(status, headers=None):
    return httpx.Response(status, headers=headers or {}, request=_REQUEST)


def _rate_limited(retry_after="0"):
    return anthropic.RateLimitError(
        "rate limited", response=_response(429, {"retry-after": retry_after}), body=None,
    )


class _FakeMessages:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(outcomes, max_retries=2):
    client = ResilientAnthropicClient(api_key="test-key", max_retries=max_retries, base_delay_ms=0)
    messages = _FakeMessages(outcomes)
    client.client = SimpleNamespace(messages=messages)
    return client, messages


async def _call(client, **extra):
    return await client.create_message(
        model="m", max_tokens=10, system="s", messages=[{"role": "user", "content": "hi"}],
        **extra,
    )


async def test_success_passes_kwargs_through():
    client, messages = _client([_OK])
    assert await _call(client) is _OK
    [kwargs] = messages.calls
    assert kwargs["model"] == "m"
    assert "tools" not in kwargs
    assert "tool_choice" not in kwargs


async def test_tools_and_tool_choice_forwarded():
    client, messages = _client([_OK])
    await _call(client, tools=[{"name": "t"}], tool_choice={"type": "tool", "name": "t"})
    assert messages.calls[0]["tool_choice"] == {"type": "tool", "name": "t"}


async def test_rate_limit_then_success():
    client, messages = _client([_rate_limited(), _OK])
    assert await _call(client) is _OK
    assert len(messages.calls) == 2


async def test_rate_limit_exhausted_keeps_retry_after():
    client, _ = _client([_rate_limited("3")], max_retries=0)
    context = ErrorContext(organization_id="org_hope")
    with pytest.raises(AnthropicAPIError) as exc:
        await _call(client, context=context)
    assert exc.value.api_error_type == "rate_limit"
    assert exc.value.context.retry_after_ms == 3000
    assert exc.value.context.organization_id == "org_hope"


async def test_server_errors_retried_until_exhausted():
    errors = [
        anthropic.InternalServerError("boom", response=_response(500), body=None)
        for _ in range(3)
    ]
    client, messages = _client(errors, max_retries=2)
    with pytest.raises(AnthropicAPIError) as exc:
        await _call(client)
    assert exc.value.api_error_type == "connection_error"
    assert len(messages.calls) == 3


async def test_connection_error_then_success():
    client, _ = _client([anthropic.APIConnectionError(request=_REQUEST), _OK])
    assert await _call(client) is _OK


async def test_overloaded_is_transient():
    overloaded = anthropic.APIStatusError("overloaded", response=_response(529), body=None)
    client, messages = _client([overloaded, _OK])
    assert await _call(client) is _OK
    assert len(messages.calls) == 2


async def test_client_error_fails_immediately():
    bad = anthropic.BadRequestError("bad request", response=_response(400), body=None)
    client, messages = _client([bad, _OK])
    with pytest.raises(AnthropicAPIError) as exc:
        await _call(client)
    assert exc.value.api_error_type == "client_error"
    assert len(messages.calls) == 1
