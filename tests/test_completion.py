"""
Completion client against a mocked HTTP transport.

httpx.MockTransport stands in for the endpoint, so these tests see the exact
request the SDK sends and never touch the network.
"""

import json

import httpx
import pytest

from telllm.completion import (
    ApiError,
    CompletionClient,
    ProtocolError,
    TransportError,
)

CONVERSATION = [
    {"role": "system", "content": "You are a test bot."},
    {"role": "user", "content": "hello"},
]


def completion_body(*contents):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "test-model",
        "choices": [
            {
                "index": i,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
            for i, content in enumerate(contents)
        ],
    }


def make_client(handler, api_key=""):
    return CompletionClient(
        "http://llm.test/v1",
        "test-model",
        api_key=api_key,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_request_shape_without_key(monkeypatch):
    # Nothing for the SDK to fall back on
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=completion_body("hi"))

    client = make_client(handler)
    assert await client.complete(CONVERSATION) == "hi"

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "http://llm.test/v1/chat/completions"
    assert json.loads(request.content) == {
        "model": "test-model",
        "messages": CONVERSATION,
        "stream": False,
    }
    assert "authorization" not in request.headers
    await client.close()


@pytest.mark.asyncio
async def test_bearer_header_with_key():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=completion_body("hi"))

    client = make_client(handler, api_key="sk-test")
    await client.complete(CONVERSATION)
    assert seen[0].headers["authorization"] == "Bearer sk-test"


@pytest.mark.asyncio
async def test_returns_first_choice_untrimmed():
    client = make_client(
        lambda request: httpx.Response(
            200, json=completion_body("  spaced reply \n", "second")
        )
    )
    assert await client.complete(CONVERSATION) == "  spaced reply \n"


@pytest.mark.asyncio
async def test_status_error_carries_status_and_body_without_retry():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, text="overloaded")

    client = make_client(handler)
    with pytest.raises(ApiError) as excinfo:
        await client.complete(CONVERSATION)

    assert excinfo.value.status == 500
    assert excinfo.value.body == "overloaded"
    assert "overloaded" in str(excinfo.value)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_transport_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(TransportError):
        await client.complete(CONVERSATION)


@pytest.mark.asyncio
async def test_empty_choices_is_protocol_error():
    client = make_client(lambda request: httpx.Response(200, json=completion_body()))
    with pytest.raises(ProtocolError, match="No response from LLM"):
        await client.complete(CONVERSATION)


@pytest.mark.asyncio
async def test_unexpected_json_shape_is_protocol_error():
    client = make_client(
        lambda request: httpx.Response(200, json={"unexpected": True})
    )
    with pytest.raises(ProtocolError):
        await client.complete(CONVERSATION)


@pytest.mark.asyncio
async def test_malformed_json_is_protocol_error():
    client = make_client(
        lambda request: httpx.Response(
            200, content=b"{not json", headers={"content-type": "application/json"}
        )
    )
    with pytest.raises(ProtocolError):
        await client.complete(CONVERSATION)


@pytest.mark.asyncio
async def test_plain_text_body_is_protocol_error():
    client = make_client(lambda request: httpx.Response(200, text="hello"))
    with pytest.raises(ProtocolError):
        await client.complete(CONVERSATION)


@pytest.mark.asyncio
async def test_empty_conversation_rejected():
    client = make_client(lambda request: httpx.Response(200, json=completion_body("x")))
    with pytest.raises(ValueError):
        await client.complete([])
