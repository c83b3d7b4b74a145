"""Tests for the OpenAI-compatible completion client."""

import json

import httpx
import pytest

from config.settings import ServerConfig
from services.completion_client import CompletionClient
from services.errors import CompletionError, ConfigurationError


def _servers(*urls):
    return {
        f"s{i}": ServerConfig(base_url=url, api_key=f"key-{i}", models=["gpt-4o-mini"])
        for i, url in enumerate(urls)
    }


def _ok(content="Hello!"):
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


@pytest.mark.asyncio
async def test_complete_sends_system_and_user_messages():
    seen = []

    def handler(request):
        seen.append((request, json.loads(request.content)))
        return _ok("Sounds good")

    client = CompletionClient(_servers("https://llm.example.com/v1"), transport=httpx.MockTransport(handler))
    text = await client.complete("be brief", "lunch?", model="gpt-4o-mini", temperature=0.7, max_tokens=500)
    await client.close()

    assert text == "Sounds good"
    request, body = seen[0]
    assert str(request.url) == "https://llm.example.com/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer key-0"
    assert body == {
        "model": "gpt-4o-mini",
        "messages": [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "lunch?"},
        ],
        "temperature": 0.7,
        "max_tokens": 500,
    }


@pytest.mark.asyncio
async def test_round_robin_across_servers():
    hosts = []

    def handler(request):
        hosts.append(request.url.host)
        return _ok()

    client = CompletionClient(
        _servers("https://a.example.com/v1", "https://b.example.com/v1"),
        transport=httpx.MockTransport(handler),
    )
    for _ in range(3):
        await client.complete("s", "u", model="gpt-4o-mini")

    assert hosts == ["a.example.com", "b.example.com", "a.example.com"]


@pytest.mark.asyncio
async def test_unknown_model_is_configuration_error():
    client = CompletionClient({})

    with pytest.raises(ConfigurationError):
        await client.complete("s", "u", model="gpt-4o-mini")


@pytest.mark.asyncio
async def test_error_status_is_completion_error():
    client = CompletionClient(
        _servers("https://llm.example.com/v1"),
        transport=httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "overloaded"})),
    )

    with pytest.raises(CompletionError):
        await client.complete("s", "u", model="gpt-4o-mini")


@pytest.mark.asyncio
async def test_timeout_is_completion_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = CompletionClient(_servers("https://llm.example.com/v1"), transport=httpx.MockTransport(handler))

    with pytest.raises(CompletionError):
        await client.complete("s", "u", model="gpt-4o-mini")


@pytest.mark.asyncio
async def test_malformed_payload_is_completion_error():
    client = CompletionClient(
        _servers("https://llm.example.com/v1"),
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": []})),
    )

    with pytest.raises(CompletionError):
        await client.complete("s", "u", model="gpt-4o-mini")
