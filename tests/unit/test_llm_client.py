"""Tests for the OpenAI-compatible HTTP client, using httpx.MockTransport."""
import json

import httpx
import pytest

from chatrag.errors import ExternalDependencyError, InvalidInputError
from chatrag.llm_client import LLMClient


def make_client(handler, **kwargs) -> LLMClient:
    return LLMClient(
        base_url="http://llm.test/v1",
        api_key=kwargs.pop("api_key", ""),
        chat_model="test-chat",
        embedding_model="test-embed",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def embeddings_handler(requests):
    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        requests.append(payload)
        # Reply out of order to check that results follow "index"
        data = [
            {"index": i, "embedding": [float(len(text)), float(i)]}
            for i, text in enumerate(payload["input"])
        ]
        return httpx.Response(200, json={"data": list(reversed(data))})
    return handler


@pytest.mark.asyncio
async def test_chat_completion_text():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "Hi there"}}]})

    client = make_client(handler, api_key="secret")

    answer = await client.chat_completion([{"role": "user", "content": "Hi"}], temperature=0.2)

    assert answer == "Hi there"
    assert seen["path"] == "/v1/chat/completions"
    assert seen["auth"] == "Bearer secret"
    assert seen["payload"]["model"] == "test-chat"
    assert seen["payload"]["temperature"] == 0.2
    assert "response_format" not in seen["payload"]


@pytest.mark.asyncio
async def test_chat_completion_json_mode_and_empty_content():
    seen = {}

    def handler(request):
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": None}}]})

    client = make_client(handler)

    answer = await client.chat_completion(
        [{"role": "user", "content": "x"}], response_format="json_object"
    )

    assert answer == ""
    assert seen["payload"]["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_chat_completion_http_error():
    client = make_client(lambda request: httpx.Response(503, json={"error": "busy"}))

    with pytest.raises(ExternalDependencyError) as exc_info:
        await client.chat_completion([{"role": "user", "content": "x"}])

    assert exc_info.value.details["status_code"] == 503
    assert exc_info.value.details["dependency"] == "llm"


@pytest.mark.asyncio
async def test_chat_completion_missing_choices():
    client = make_client(lambda request: httpx.Response(200, json={"choices": []}))

    with pytest.raises(ExternalDependencyError):
        await client.chat_completion([{"role": "user", "content": "x"}])


@pytest.mark.asyncio
async def test_connection_error_is_wrapped():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)

    with pytest.raises(ExternalDependencyError):
        await client.embed("hello")


@pytest.mark.asyncio
async def test_embed_single_text():
    requests = []
    client = make_client(embeddings_handler(requests))

    embedding = await client.embed("hello")

    assert embedding == [5.0, 0.0]
    assert requests[0] == {"model": "test-embed", "input": ["hello"]}


@pytest.mark.asyncio
async def test_embed_batch_splits_requests_and_keeps_order():
    requests = []
    client = make_client(embeddings_handler(requests), batch_size=2)
    texts = ["a", "bb", "ccc", "dddd", "eeeee"]

    embeddings = await client.embed_batch(texts)

    assert len(requests) == 3
    assert [e[0] for e in embeddings] == [1.0, 2.0, 3.0, 4.0, 5.0]


@pytest.mark.asyncio
async def test_embed_batch_empty_input_raises():
    client = make_client(embeddings_handler([]))

    with pytest.raises(InvalidInputError):
        await client.embed_batch([])


@pytest.mark.asyncio
async def test_embed_batch_count_mismatch_raises():
    def handler(request):
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0]}]})

    client = make_client(handler)

    with pytest.raises(ExternalDependencyError):
        await client.embed_batch(["one", "two"])


@pytest.mark.asyncio
async def test_list_models():
    def handler(request):
        assert request.url.path == "/v1/models"
        return httpx.Response(200, json={"data": [{"id": "gemma3:12b"}, {"id": "mxbai"}]})

    client = make_client(handler)

    assert await client.list_models() == ["gemma3:12b", "mxbai"]
    assert await client.initialize() is True
