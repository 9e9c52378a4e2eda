import json

import httpx
import pytest
import pytest_asyncio

from advisor_gateway.models import University
from advisor_gateway.services.demo_mode import DemoMode
from advisor_gateway.services.llm_client import CALL_SITE_PARAMS, LLMClient, UpstreamError
from advisor_gateway.services.reconciliation import reconcile_matches


def completion(content):
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


@pytest_asyncio.fixture
async def make_client():
    clients = []

    def make(handler, **kwargs):
        client = LLMClient(
            base_url="https://llm.test/v1/", api_key="sk-test", model="test-model",
            transport=httpx.MockTransport(handler), **kwargs
        )
        clients.append(client)
        return client

    yield make
    for client in clients:
        await client.close()


@pytest.mark.asyncio
async def test_generate_posts_chat_completion(make_client):
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=completion('{"matches": []}'))

    client = make_client(handler)
    text = await client.generate("Rank these universities", CALL_SITE_PARAMS["tasks"])

    assert text == '{"matches": []}'
    assert seen["url"] == "https://llm.test/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    body = seen["body"]
    assert body["model"] == "test-model"
    assert body["stream"] is False
    assert (body["temperature"], body["max_tokens"]) == (0.3, 4000)
    assert body["messages"] == [{"role": "user", "content": "Rank these universities"}]


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"choices": []},
    {"choices": [{"message": {"content": None}}]},
    {"choices": [{"message": "flat"}]},
    {"error": {"message": "overloaded"}},
    ["not", "a", "completion"],
])
async def test_malformed_payload_raises(make_client, payload):
    client = make_client(lambda request: httpx.Response(200, json=payload))
    with pytest.raises(UpstreamError):
        await client.generate("p", CALL_SITE_PARAMS["chat"])


@pytest.mark.asyncio
async def test_non_json_body_raises(make_client):
    client = make_client(lambda request: httpx.Response(200, text="<html>gateway timeout</html>"))
    with pytest.raises(UpstreamError):
        await client.generate("p", CALL_SITE_PARAMS["chat"])


@pytest.mark.asyncio
async def test_http_error_propagates(make_client):
    client = make_client(lambda request: httpx.Response(503, json={"error": "unavailable"}))
    with pytest.raises(httpx.HTTPStatusError):
        await client.generate("p", CALL_SITE_PARAMS["matching"])


@pytest.mark.asyncio
async def test_demo_mode_skips_network(make_client, monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "true")
    DemoMode.reset()

    def handler(request):
        raise AssertionError("demo mode must not hit the network")

    client = make_client(handler)
    raw = await client.generate("p", CALL_SITE_PARAMS["matching"])

    demo_candidates = [
        University(id="demo-u1", name="Demo Tech"),
        University(id="demo-u2", name="Demo State"),
    ]
    result = reconcile_matches(raw, demo_candidates)
    assert result.success
    assert [(m.university.id, m.match_score) for m in result.matches] == [("demo-u1", 88), ("demo-u2", 74)]


def test_demo_mode_flag(monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "TRUE")
    DemoMode.reset()
    assert DemoMode.is_enabled()
    assert DemoMode.canned_response("chat")

    monkeypatch.setenv("DEMO_MODE", "false")
    assert DemoMode.is_enabled()  # cached until reset
    DemoMode.reset()
    assert DemoMode.canned_response("chat") is None
