"""Async HTTP client for the research-assistant API."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
import json
import logging
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from .exceptions import (
    DeepProbeError,
    ProbeConnectionError,
    ProbeRequestError,
    ProbeResponseError,
    ProbeStreamingError,
)
from .logging_utils import event_extra
from .models import ChatReply, HealthStatus, Message, RemoteTool, Session, StreamChunk

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://probe-api.sangonomiya.icu"


class ResearchApi(Protocol):
    """Remote operations the session controller depends on.

    Implementations raise ``DeepProbeError`` subclasses for transport
    failures. ``ResearchApiClient`` is the HTTP implementation; tests supply
    in-memory fakes.
    """

    async def health_check(self) -> HealthStatus: ...

    async def list_sessions(self) -> list[Session]: ...

    async def create_session(
        self, model_name: str, temperature: float, system_prompt: str
    ) -> Session: ...

    async def delete_session(self, session_id: str) -> None: ...

    async def get_history(self, session_id: str, limit: int = 50) -> list[Message]: ...

    async def clear_history(self, session_id: str) -> None: ...

    async def send_chat(self, session_id: str, text: str) -> ChatReply: ...

    def stream_chat(
        self, session_id: str, text: str
    ) -> AsyncGenerator[StreamChunk, None]: ...


def _segment(value: str) -> str:
    return quote(value, safe="")


class ResearchApiClient:
    """Thin async wrapper over the research API's REST and SSE endpoints.

    Only idempotent ``GET`` reads honour ``retries``; chat, create, and delete
    requests are sent exactly once.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60,
        retries: int = 0,
        retry_backoff_seconds: float = 0.5,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = max(0, retries)
        self.retry_backoff_seconds = retry_backoff_seconds
        if client is not None:
            self._client = client
            self._owns_client = False
        else:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=timeout,
                headers={"Content-Type": "application/json"},
            )
            self._owns_client = True

    async def __aenter__(self) -> ResearchApiClient:
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client when this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    def _map_exception(self, exc: Exception) -> DeepProbeError:
        if isinstance(exc, DeepProbeError):
            return exc
        if isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            return ProbeRequestError(
                f"Research API returned HTTP {status} for {exc.request.url.path}.",
                status_code=status,
            )
        if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
            return ProbeConnectionError(
                f"Unable to reach research API at {self.base_url}: {exc}"
            )
        if isinstance(exc, ValueError):
            return ProbeResponseError(f"Research API sent an undecodable payload: {exc}")
        return DeepProbeError(f"Research API request failed: {exc}")

    @staticmethod
    def _is_retryable(exc: DeepProbeError) -> bool:
        if isinstance(exc, ProbeConnectionError):
            return True
        return isinstance(exc, ProbeRequestError) and exc.status_code >= 500

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        attempts = self.retries + 1 if method == "GET" else 1
        for attempt in range(attempts):
            try:
                response = await self._client.request(
                    method, path, params=params, json=json_body
                )
                response.raise_for_status()
                if not response.content:
                    return None
                return response.json()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001 - transport can fail in many ways.
                mapped = self._map_exception(exc)
                if attempt + 1 >= attempts or not self._is_retryable(mapped):
                    LOGGER.warning(
                        "api.request.failed",
                        extra=event_extra(
                            "api.request.failed",
                            method=method,
                            path=path,
                            error_type=mapped.__class__.__name__,
                        ),
                    )
                    raise mapped from exc
                LOGGER.warning(
                    "api.request.retry",
                    extra=event_extra(
                        "api.request.retry",
                        method=method,
                        path=path,
                        attempt=attempt + 1,
                        error_type=mapped.__class__.__name__,
                    ),
                )
                await asyncio.sleep(self.retry_backoff_seconds * (attempt + 1))
        raise AssertionError("unreachable")  # pragma: no cover

    @staticmethod
    def _require_list(payload: Any, kind: str) -> list[Any]:
        if not isinstance(payload, list):
            raise ProbeResponseError(f"Expected a JSON list of {kind}.")
        return payload

    async def health_check(self) -> HealthStatus:
        return HealthStatus.from_payload(await self._request("GET", "/health"))

    async def list_tools(self) -> list[RemoteTool]:
        payload = self._require_list(await self._request("GET", "/tools"), "tools")
        return [RemoteTool.from_payload(item) for item in payload]

    async def list_sessions(self) -> list[Session]:
        payload = self._require_list(
            await self._request("GET", "/sessions"), "sessions"
        )
        return [Session.from_payload(item) for item in payload]

    async def create_session(
        self, model_name: str, temperature: float, system_prompt: str
    ) -> Session:
        payload = await self._request(
            "POST",
            "/sessions",
            json_body={
                "model_name": model_name,
                "temperature": temperature,
                "system_prompt": system_prompt,
            },
        )
        return Session.from_payload(payload)

    async def delete_session(self, session_id: str) -> None:
        await self._request("DELETE", f"/sessions/{_segment(session_id)}")

    async def get_history(self, session_id: str, limit: int = 50) -> list[Message]:
        """Fetch a session's history; accepts a bare list or ``{"history": [...]}``.

        Entries that cannot be read as messages are skipped with a warning.
        """
        payload = await self._request(
            "GET",
            f"/sessions/{_segment(session_id)}/history",
            params={"limit": limit},
        )
        if isinstance(payload, dict):
            payload = payload.get("history")
        messages: list[Message] = []
        for index, item in enumerate(self._require_list(payload, "messages")):
            try:
                messages.append(Message.from_payload(item))
            except ProbeResponseError as exc:
                LOGGER.warning(
                    "api.history.entry_skipped",
                    extra=event_extra(
                        "api.history.entry_skipped",
                        session_id=session_id,
                        index=index,
                        error=str(exc),
                    ),
                )
        return messages

    async def clear_history(self, session_id: str) -> None:
        await self._request("DELETE", f"/sessions/{_segment(session_id)}/history")

    async def send_chat(self, session_id: str, text: str) -> ChatReply:
        payload = await self._request(
            "POST", f"/chat/{_segment(session_id)}", json_body={"message": text}
        )
        return ChatReply.from_payload(payload)

    async def stream_chat(
        self, session_id: str, text: str
    ) -> AsyncGenerator[StreamChunk, None]:
        """Stream a chat turn as server-sent events.

        Each ``data:`` line carries one JSON chunk. The stream ends on a
        ``done`` chunk, a ``[DONE]`` sentinel, or when the server closes it.
        """
        path = f"/chat/{_segment(session_id)}/stream"
        try:
            async with self._client.stream(
                "GET",
                path,
                params={"message": text},
                headers={"Accept": "text/event-stream"},
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise ProbeRequestError(
                        f"Research API returned HTTP {response.status_code} for {path}.",
                        status_code=response.status_code,
                    )
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[5:].strip()
                    if not data:
                        continue
                    if data == "[DONE]":
                        return
                    try:
                        chunk = StreamChunk.from_payload(json.loads(data))
                    except (ValueError, ProbeResponseError) as exc:
                        raise ProbeStreamingError(
                            f"Malformed stream event from {path}: {exc}"
                        ) from exc
                    yield chunk
                    if chunk.type == "done":
                        return
        except DeepProbeError:
            raise
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            raise ProbeConnectionError(
                f"Unable to reach research API at {self.base_url}: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProbeStreamingError(
                f"Stream from research API at {self.base_url} failed: {exc}"
            ) from exc
