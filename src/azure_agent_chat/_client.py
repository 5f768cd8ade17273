from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from azure_agent_chat._errors import AgentAPIError

ENV_HTTP_DEBUG = "AGENT_CHAT_HTTP_DEBUG"


@dataclass(frozen=True, slots=True)
class HttpConfig:
    base_url: str
    timeout_s: float = 120.0


def _message_from_detail(detail: Any) -> str | None:
    if isinstance(detail, str) and detail.strip():
        return detail.strip()
    # Validation errors from FastAPI: [{"loc": [...], "msg": "...", "type": "..."}]
    if isinstance(detail, list):
        msgs = [d.get("msg") for d in detail if isinstance(d, dict) and isinstance(d.get("msg"), str)]
        if msgs:
            return "; ".join(msgs)
    return None


def _parse_error_response(
    status_code: int,
    body_text: str,
    content_type: str,
) -> AgentAPIError:
    """
    Build an AgentAPIError from an error response.

    If the body is not JSON or does not match a known shape, the raw text becomes
    the message and `detail` stays None.
    """
    message = "HTTP error"
    detail: Any | None = None

    if body_text and body_text.strip():
        message = body_text

    if "application/json" not in content_type.lower():
        return AgentAPIError(status_code=status_code, message=message, body=body_text)

    try:
        data = json.loads(body_text) if body_text else {}
    except (json.JSONDecodeError, ValueError):
        return AgentAPIError(status_code=status_code, message=message, body=body_text)

    if not isinstance(data, dict):
        return AgentAPIError(
            status_code=status_code,
            message=str(data) if data else message,
            body=body_text,
        )

    if "detail" in data:
        detail = data.get("detail")
        msg = _message_from_detail(detail)
        if msg:
            message = msg
    else:
        for key in ("message", "error"):
            msg = data.get(key)
            if isinstance(msg, str) and msg.strip():
                message = msg.strip()
                break

    return AgentAPIError(status_code=status_code, message=message, body=body_text, detail=detail)


class AgentHttpClient:
    """
    Thin HTTPX wrapper with:
    - JSON requests
    - Streaming via httpx.Client.stream / AsyncClient.stream
    - Optional debug logging
    """

    def __init__(self, *, config: HttpConfig) -> None:
        self._config = config
        self._debug_http = os.getenv(ENV_HTTP_DEBUG, "").lower() in {"1", "true", "yes", "on"}

        def _redact_headers(headers: dict[str, Any]) -> dict[str, Any]:
            out = dict(headers)
            for k in ("authorization", "Authorization", "cookie", "Cookie"):
                if k in out:
                    out[k] = "***REDACTED***"
            return out

        def _log_request(request: httpx.Request) -> None:
            if not self._debug_http:
                return
            logging.warning("HTTPX REQUEST %s %s", request.method, request.url)
            logging.warning("HTTPX REQUEST headers=%s", _redact_headers(dict(request.headers)))
            if request.content:
                logging.warning("HTTPX REQUEST body=%s", request.content.decode("utf-8", "replace"))

        def _log_response_line(response: httpx.Response) -> bool:
            if not self._debug_http:
                return False
            req = response.request
            logging.warning("HTTPX RESPONSE %s %s -> %s", req.method, req.url, response.status_code)
            logging.warning("HTTPX RESPONSE headers=%s", dict(response.headers))
            return True

        def _log_response_sync(response: httpx.Response) -> None:
            if not _log_response_line(response):
                return
            # Answers are streamed; reading the body here would consume the stream.
            logging.warning("HTTPX RESPONSE body=(streamed; not auto-logged)")

        async def _log_request_async(request: httpx.Request) -> None:
            _log_request(request)

        async def _log_response_async(response: httpx.Response) -> None:
            _log_response_sync(response)

        EventHooksDict = dict[str, list[Callable[..., Any]]]

        hooks_sync: EventHooksDict = {"request": [_log_request], "response": [_log_response_sync]}
        hooks_async: EventHooksDict = {"request": [_log_request_async], "response": [_log_response_async]}

        self._client = httpx.Client(timeout=httpx.Timeout(config.timeout_s), event_hooks=hooks_sync)
        self._aclient = httpx.AsyncClient(timeout=httpx.Timeout(config.timeout_s), event_hooks=hooks_async)

    def close(self) -> None:
        self._client.close()

    async def aclose(self) -> None:
        await self._aclient.aclose()

    def _url(self, path: str) -> str:
        return f"{self._config.base_url}{path}"

    @staticmethod
    def _headers(*, accept: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if accept:
            headers["Accept"] = accept
        return headers

    @staticmethod
    def _error_from(resp: httpx.Response) -> AgentAPIError:
        try:
            body_text = resp.text
        except httpx.ResponseNotRead:
            body_text = ""
        return _parse_error_response(
            status_code=resp.status_code,
            body_text=body_text or "",
            content_type=resp.headers.get("content-type", ""),
        )

    @classmethod
    def raise_for_status(cls, resp: httpx.Response) -> None:
        """Check the status and raise AgentAPIError. Streaming bodies are read first."""
        if 200 <= resp.status_code < 300:
            return
        if not resp.is_closed:
            resp.read()
        raise cls._error_from(resp)

    @classmethod
    async def araise_for_status(cls, resp: httpx.Response) -> None:
        if 200 <= resp.status_code < 300:
            return
        if not resp.is_closed:
            await resp.aread()
        raise cls._error_from(resp)

    def get(self, path: str, *, params: dict[str, Any] | None = None) -> httpx.Response:
        resp = self._client.get(self._url(path), headers=self._headers(), params=params)
        self.raise_for_status(resp)
        return resp

    async def aget(self, path: str, *, params: dict[str, Any] | None = None) -> httpx.Response:
        resp = await self._aclient.get(self._url(path), headers=self._headers(), params=params)
        await self.araise_for_status(resp)
        return resp

    def stream_post_json(self, path: str, payload: dict[str, Any]) -> Any:
        """
        Return an httpx streaming context manager.

        Usage:
            with client.stream_post_json(...) as r:
                client.raise_for_status(r)
                for chunk in r.iter_bytes():
                    ...
        """
        headers = self._headers(accept="text/event-stream")
        return self._client.stream("POST", self._url(path), headers=headers, json=payload)

    def astream_post_json(self, path: str, payload: dict[str, Any]) -> Any:
        """
        Return an async httpx streaming context manager.

        Usage:
            async with client.astream_post_json(...) as r:
                await client.araise_for_status(r)
                async for chunk in r.aiter_bytes():
                    ...
        """
        headers = self._headers(accept="text/event-stream")
        return self._aclient.stream("POST", self._url(path), headers=headers, json=payload)
