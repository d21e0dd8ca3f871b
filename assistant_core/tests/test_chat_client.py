import asyncio

import httpx
import pytest

from assistant_core.agents.chat_client import ChatClient
from assistant_core.config.settings import ClientConfig
from assistant_core.domain.exceptions import (
    ApiError,
    ClientClosedError,
    DecodingError,
    InvalidResponseError,
    NetworkError,
    NoDataError,
    ValidationError,
)


CONFIG = ClientConfig(api_key="sk-test-key-123", model="gpt-4", base_url="https://api.test/v1")


def fake_client(handler, captured=None):
    """构造替换 httpx.AsyncClient 的假客户端，handler(method, url, json) 返回 httpx.Response。"""

    class Client:
        def __init__(self, *a, **kw):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def request(self, method, url, json=None, params=None, headers=None):
            if captured is not None:
                captured.append({"method": method, "url": url, "json": json, "headers": headers})
            await asyncio.sleep(0)
            return handler(method, url, json)

    return Client


def fake_stream_client(body, status_code=200, captured=None):
    class StreamContext:
        def __init__(self, response):
            self._response = response

        async def __aenter__(self):
            return self._response

        async def __aexit__(self, *args):
            return False

    class Client:
        def __init__(self, *a, **kw):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def request(self, *a, **kw):
            raise AssertionError("request should not be called in stream test")

        def stream(self, method, url, json=None, headers=None):
            if captured is not None:
                captured.append({"method": method, "url": url, "json": json})
            return StreamContext(httpx.Response(status_code, content=body.encode("utf-8")))

    return Client


def reply(content):
    return httpx.Response(
        200,
        json={"id": "chatcmpl-1", "choices": [{"message": {"role": "assistant", "content": content}}]},
    )


def test_send_message_builds_payload_and_updates_history(monkeypatch):
    captured = []
    monkeypatch.setattr("httpx.AsyncClient", fake_client(lambda *a: reply("ok"), captured))
    client = ChatClient(CONFIG, system_prompt="be brief")

    res = asyncio.run(client.send_message("hi"))

    assert res == "ok"
    call = captured[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://api.test/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer sk-test-key-123"
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["json"] == {
        "model": "gpt-4",
        "messages": [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hi"},
        ],
        "temperature": 0.7,
        "stream": False,
    }
    assert [(m.role, m.content) for m in client.history] == [
        ("system", "be brief"),
        ("user", "hi"),
        ("assistant", "ok"),
    ]


def test_error_payload_maps_to_api_message(monkeypatch):
    body = {"error": {"message": "rate limited", "type": "rate_limit"}}
    monkeypatch.setattr("httpx.AsyncClient", fake_client(lambda *a: httpx.Response(429, json=body)))
    client = ChatClient(CONFIG)

    with pytest.raises(ApiError) as exc:
        asyncio.run(client.send_message("hi"))
    assert exc.value.message == "rate limited"
    assert exc.value.http_status == 429
    # 失败时保留用户消息，便于调用方重试
    assert [m.role for m in client.history] == ["user"]
    assert client.last_user_message() == "hi"


def test_non_2xx_without_error_body_is_invalid_response(monkeypatch):
    monkeypatch.setattr("httpx.AsyncClient", fake_client(lambda *a: httpx.Response(502, text="<html>bad gateway</html>")))
    client = ChatClient(CONFIG)

    with pytest.raises(InvalidResponseError) as exc:
        asyncio.run(client.send_message("hi"))
    assert "bad gateway" not in exc.value.message
    assert exc.value.http_status == 502


def test_unparsable_json_is_decoding_error(monkeypatch):
    monkeypatch.setattr("httpx.AsyncClient", fake_client(lambda *a: httpx.Response(200, text="{oops")))
    client = ChatClient(CONFIG)

    with pytest.raises(DecodingError):
        asyncio.run(client.send_message("hi"))


def test_empty_body_is_no_data(monkeypatch):
    monkeypatch.setattr("httpx.AsyncClient", fake_client(lambda *a: httpx.Response(200, content=b"")))
    client = ChatClient(CONFIG)

    with pytest.raises(NoDataError):
        asyncio.run(client.send_message("hi"))


def test_missing_assistant_message_is_invalid_response(monkeypatch):
    monkeypatch.setattr("httpx.AsyncClient", fake_client(lambda *a: httpx.Response(200, json={"id": "x", "choices": []})))
    client = ChatClient(CONFIG)

    with pytest.raises(InvalidResponseError):
        asyncio.run(client.send_message("hi"))
    assert [m.role for m in client.history] == ["user"]


@pytest.mark.parametrize("choices", [5, {"a": 1}, ["text"], "abc"])
def test_unexpected_choices_shape_is_invalid_response(monkeypatch, choices):
    body = {"id": "x", "choices": choices}
    monkeypatch.setattr("httpx.AsyncClient", fake_client(lambda *a: httpx.Response(200, json=body)))
    client = ChatClient(CONFIG)

    with pytest.raises(InvalidResponseError):
        asyncio.run(client.send_message("hi"))
    assert [m.role for m in client.history] == ["user"]


def test_stream_skips_records_of_unexpected_shape(monkeypatch):
    body = (
        'data: {"choices":[{"delta":{"content":"Hi"}}]}\n'
        'data: {"choices": {"a": 1}}\n'
        'data: {"choices": 5}\n'
        'data: {"choices":[{"delta":{"content":" there"}}]}\n'
        "data: [DONE]\n"
    )
    monkeypatch.setattr("httpx.AsyncClient", fake_stream_client(body))
    client = ChatClient(CONFIG)
    fragments = []

    res = asyncio.run(client.send_message_stream("hi", on_fragment=fragments.append))

    assert res == "Hi there"
    assert fragments == ["Hi", "Hi there"]


def test_transport_failure_is_network_error(monkeypatch):
    def boom(*a):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr("httpx.AsyncClient", fake_client(boom))
    client = ChatClient(CONFIG)

    with pytest.raises(NetworkError) as exc:
        asyncio.run(client.send_message("hi"))
    assert isinstance(exc.value.cause, httpx.ConnectError)
    assert exc.value.describe().startswith("Network Error:")


def test_concurrent_sends_do_not_interleave(monkeypatch):
    captured = []
    counter = {"n": 0}

    def handler(method, url, json):
        counter["n"] += 1
        return reply(f"a{counter['n']}")

    monkeypatch.setattr("httpx.AsyncClient", fake_client(handler, captured))
    client = ChatClient(CONFIG)

    async def scenario():
        return await asyncio.gather(client.send_message("q1"), client.send_message("q2"))

    assert asyncio.run(scenario()) == ["a1", "a2"]
    second = captured[1]["json"]["messages"]
    assert [m["content"] for m in second] == ["q1", "a1", "q2"]
    assert [m.content for m in client.history] == ["q1", "a1", "q2", "a2"]


def test_stream_fragments_then_done(monkeypatch):
    body = (
        'data: {"choices":[{"delta":{"content":"Hi"}}]}\n'
        "\n"
        'data: {"choices":[{"delta":{"content":" there"}}]}\n'
        "data: [DONE]\n"
    )
    captured = []
    monkeypatch.setattr("httpx.AsyncClient", fake_stream_client(body, captured=captured))
    client = ChatClient(CONFIG)
    events = []

    res = asyncio.run(
        client.send_message_stream(
            "hi",
            on_fragment=lambda text: events.append(("fragment", text)),
            on_done=lambda text: events.append(("done", text)),
        )
    )

    assert res == "Hi there"
    assert events == [("fragment", "Hi"), ("fragment", "Hi there"), ("done", "Hi there")]
    assert captured[0]["json"]["stream"] is True
    assert [(m.role, m.content) for m in client.history] == [("user", "hi"), ("assistant", "Hi there")]


def test_stream_without_fragments_is_no_data(monkeypatch):
    monkeypatch.setattr("httpx.AsyncClient", fake_stream_client("data: [DONE]\n"))
    client = ChatClient(CONFIG)
    done = []

    with pytest.raises(NoDataError):
        asyncio.run(client.send_message_stream("hi", on_done=done.append))
    assert done == []
    assert [m.role for m in client.history] == ["user"]


def test_stream_error_status_maps_to_api_message(monkeypatch):
    body = '{"error": {"message": "rate limited", "type": "rate_limit"}}'
    monkeypatch.setattr("httpx.AsyncClient", fake_stream_client(body, status_code=429))
    client = ChatClient(CONFIG)

    with pytest.raises(ApiError) as exc:
        asyncio.run(client.send_message_stream("hi"))
    assert exc.value.message == "rate limited"


def test_closed_client_rejects_calls(monkeypatch):
    monkeypatch.setattr("httpx.AsyncClient", fake_client(lambda *a: reply("ok")))
    client = ChatClient(CONFIG)
    asyncio.run(client.aclose())

    with pytest.raises(ClientClosedError):
        asyncio.run(client.send_message("hi"))


def test_missing_api_key_is_rejected():
    with pytest.raises(ValidationError) as exc:
        ChatClient(ClientConfig(api_key=""))
    assert exc.value.code == "MISSING_API_KEY"
