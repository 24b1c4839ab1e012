"""In-memory research API used by controller and application tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
import itertools

from deep_probe.exceptions import ProbeConnectionError
from deep_probe.models import ChatReply, HealthStatus, Message, RemoteTool, Session, StreamChunk


class FakeResearchApi:
    """Deterministic stand-in for ``ResearchApiClient``.

    ``fail`` holds operation names that raise ``ProbeConnectionError``.
    ``send_gate`` lets a test hold ``send_chat`` open until it is set.
    """

    def __init__(
        self,
        sessions: list[Session] | None = None,
        histories: dict[str, list[Message]] | None = None,
        replies: list[ChatReply] | None = None,
        stream_chunks: list[StreamChunk] | None = None,
        fail: set[str] | None = None,
    ) -> None:
        self.sessions = list(sessions or [])
        self.histories = {key: list(value) for key, value in (histories or {}).items()}
        self.replies = list(replies or [])
        self.stream_chunks = list(stream_chunks or [])
        self.fail = set(fail or ())
        self.send_gate: asyncio.Event | None = None
        self.calls: list[tuple[str, tuple[object, ...]]] = []
        self._ids = itertools.count(1)
        self.closed = False

    def _record(self, name: str, *args: object) -> None:
        self.calls.append((name, args))
        if name in self.fail:
            raise ProbeConnectionError(f"{name} unavailable")

    def call_names(self) -> list[str]:
        return [name for name, _args in self.calls]

    async def health_check(self) -> HealthStatus:
        self._record("health_check")
        return HealthStatus(status="healthy", version="test")

    async def list_tools(self) -> list[RemoteTool]:
        self._record("list_tools")
        return [RemoteTool(name="google_search", description="Search the web")]

    async def list_sessions(self) -> list[Session]:
        self._record("list_sessions")
        return list(self.sessions)

    async def create_session(
        self, model_name: str, temperature: float, system_prompt: str
    ) -> Session:
        self._record("create_session", model_name, temperature, system_prompt)
        session = Session(
            session_id=f"new-{next(self._ids)}",
            model_name=model_name,
            temperature=temperature,
            created_at="2026-01-01T00:00:00+00:00",
        )
        self.sessions.insert(0, session)
        return session

    async def delete_session(self, session_id: str) -> None:
        self._record("delete_session", session_id)
        self.sessions = [
            session for session in self.sessions if session.session_id != session_id
        ]

    async def get_history(self, session_id: str, limit: int = 50) -> list[Message]:
        self._record("get_history", session_id, limit)
        return list(self.histories.get(session_id, []))[-limit:]

    async def clear_history(self, session_id: str) -> None:
        self._record("clear_history", session_id)
        self.histories[session_id] = []

    async def send_chat(self, session_id: str, text: str) -> ChatReply:
        self._record("send_chat", session_id, text)
        if self.send_gate is not None:
            await self.send_gate.wait()
        if self.replies:
            return self.replies.pop(0)
        return ChatReply(content=f"echo: {text}", timestamp="2026-01-01T00:00:01+00:00")

    async def stream_chat(
        self, session_id: str, text: str
    ) -> AsyncGenerator[StreamChunk, None]:
        self._record("stream_chat", session_id, text)
        for chunk in self.stream_chunks:
            yield chunk

    async def aclose(self) -> None:
        self.closed = True
