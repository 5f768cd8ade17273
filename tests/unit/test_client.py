from unittest.mock import MagicMock, AsyncMock
import logging

import httpx
import pytest

from azure_agent_chat._client import ENV_HTTP_DEBUG, AgentHttpClient, HttpConfig
from azure_agent_chat._errors import AgentAPIError


def test_httpconfig_initialization():
    cfg = HttpConfig(base_url="https://example.com", timeout_s=10.0)

    assert cfg.base_url == "https://example.com"
    assert cfg.timeout_s == 10.0


def make_client():
    cfg = HttpConfig(base_url="https://example.com", timeout_s=5.0)
    return AgentHttpClient(config=cfg)


def test_headers_without_accept():
    headers = AgentHttpClient._headers()

    assert headers["Content-Type"] == "application/json"
    assert "Accept" not in headers


def test_headers_with_accept():
    headers = AgentHttpClient._headers(accept="text/event-stream")

    assert headers["Accept"] == "text/event-stream"


def test_raise_for_status_success():
    resp = httpx.Response(200, text="ok")

    # No exception for 2xx.
    AgentHttpClient.raise_for_status(resp)


def test_raise_for_status_error_raises():
    resp = httpx.Response(404, text="missing", headers={"content-type": "text/plain"})

    with pytest.raises(AgentAPIError) as exc:
        AgentHttpClient.raise_for_status(resp)

    assert exc.value.status_code == 404
    assert exc.value.message == "missing"
    assert exc.value.body == "missing"


def test_raise_for_status_reads_streamed_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"detail": "AZURE_OPENAI_MODEL is not set"})

    with httpx.Client(transport=httpx.MockTransport(handler)) as c:
        with c.stream("POST", "https://example.com/test_agent/") as r:
            with pytest.raises(AgentAPIError) as exc:
                AgentHttpClient.raise_for_status(r)

    assert exc.value.status_code == 500
    assert exc.value.message == "AZURE_OPENAI_MODEL is not set"
    assert exc.value.is_server_error is True


@pytest.mark.asyncio
async def test_araise_for_status_reads_streamed_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="Bad Gateway")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as c:
        async with c.stream("POST", "https://example.com/test_agent/") as r:
            with pytest.raises(AgentAPIError) as exc:
                await AgentHttpClient.araise_for_status(r)

    assert exc.value.status_code == 502
    assert exc.value.body == "Bad Gateway"


@pytest.mark.asyncio
async def test_araise_for_status_success():
    await AgentHttpClient.araise_for_status(httpx.Response(204))


def test_get_calls_client_with_params():
    client = make_client()
    mock_client = MagicMock()
    mock_response = MagicMock()
    # raise_for_status needs an int status code.
    mock_response.status_code = 200
    mock_client.get.return_value = mock_response
    client._client = mock_client

    params = {"q": "test"}
    resp = client.get("/items", params=params)

    assert resp is mock_response
    mock_client.get.assert_called_once()
    args, kwargs = mock_client.get.call_args
    assert args[0] == "https://example.com/items"
    assert kwargs["params"] == params
    assert kwargs["headers"]["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_aget_calls_async_client():
    client = make_client()
    mock_ac = AsyncMock()
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_ac.get = AsyncMock(return_value=mock_response)
    client._aclient = mock_ac

    resp = await client.aget("/azure_agent_reset/")

    assert resp is mock_response
    mock_ac.get.assert_awaited_once()
    args, kwargs = mock_ac.get.call_args
    assert args[0] == "https://example.com/azure_agent_reset/"
    assert kwargs["params"] is None


def test_get_raises_on_error_status():
    client = make_client()
    mock_client = MagicMock()
    mock_client.get.return_value = httpx.Response(503, text="down")
    client._client = mock_client

    with pytest.raises(AgentAPIError) as exc:
        client.get("/azure_agent_reset/")

    assert exc.value.status_code == 503


def test_stream_post_json_returns_stream_context_manager():
    client = make_client()
    mock_client = MagicMock()
    mock_stream = MagicMock()
    mock_client.stream.return_value = mock_stream
    client._client = mock_client

    payload = {"question": "hi", "user_id": 7}
    cm = client.stream_post_json("/test_agent/", payload)

    assert cm is mock_stream
    mock_client.stream.assert_called_once()
    args, kwargs = mock_client.stream.call_args
    assert args[0] == "POST"
    assert args[1] == "https://example.com/test_agent/"
    headers = kwargs["headers"]
    assert headers["Content-Type"] == "application/json"
    assert headers["Accept"] == "text/event-stream"
    assert kwargs["json"] == payload


@pytest.mark.asyncio
async def test_astream_post_json_returns_async_stream_context_manager():
    client = make_client()
    mock_ac = AsyncMock()
    mock_stream = MagicMock()
    # httpx.AsyncClient.stream is a plain method returning a context manager.
    mock_ac.stream = MagicMock(return_value=mock_stream)
    client._aclient = mock_ac

    payload = {"question": "hi", "user_id": 7}
    cm = client.astream_post_json("/test_agent/", payload)

    assert cm is mock_stream
    args, kwargs = mock_ac.stream.call_args
    assert args[0] == "POST"
    assert args[1] == "https://example.com/test_agent/"
    assert kwargs["headers"]["Accept"] == "text/event-stream"
    assert kwargs["json"] == payload


def test_close_closes_underlying_client():
    client = make_client()
    mock_client = MagicMock()
    client._client = mock_client

    client.close()

    mock_client.close.assert_called_once()


@pytest.mark.asyncio
async def test_aclose_closes_underlying_async_client():
    client = make_client()
    mock_ac = AsyncMock()
    client._aclient = mock_ac

    await client.aclose()

    mock_ac.aclose.assert_awaited_once()


def test_log_request_redacts_headers_debug_on(monkeypatch, caplog):
    monkeypatch.setenv(ENV_HTTP_DEBUG, "1")
    client = make_client()

    request_hook = client._client.event_hooks["request"][0]

    request = httpx.Request(
        "POST",
        "https://example.com/test_agent/",
        headers={"Authorization": "Bearer secret-token", "X-Other": "1"},
        content=b'{"question": "hi"}',
    )

    with caplog.at_level(logging.WARNING):
        request_hook(request)

    messages = " ".join(rec.getMessage() for rec in caplog.records)
    assert "***REDACTED***" in messages
    assert "secret-token" not in messages
    assert '"question"' in messages


def test_log_hooks_silent_when_debug_off(monkeypatch, caplog):
    monkeypatch.delenv(ENV_HTTP_DEBUG, raising=False)
    client = make_client()
    req = httpx.Request("GET", "https://example.com/azure_agent_reset/")

    with caplog.at_level(logging.WARNING):
        client._client.event_hooks["request"][0](req)
        client._client.event_hooks["response"][0](httpx.Response(200, request=req))

    assert caplog.records == []


@pytest.mark.asyncio
async def test_log_request_and_response_async_debug_on(monkeypatch, caplog):
    monkeypatch.setenv(ENV_HTTP_DEBUG, "true")
    client = make_client()

    async_request_hook = client._aclient.event_hooks["request"][0]
    async_response_hook = client._aclient.event_hooks["response"][0]

    req = httpx.Request("POST", "https://example.com/test_agent/", content=b"{}")
    resp = httpx.Response(200, request=req, headers={"content-type": "text/event-stream"})

    with caplog.at_level(logging.WARNING):
        await async_request_hook(req)
        await async_response_hook(resp)

    messages = " ".join(rec.getMessage() for rec in caplog.records)
    assert "HTTPX REQUEST POST" in messages
    assert "HTTPX RESPONSE" in messages
    assert "not auto-logged" in messages
