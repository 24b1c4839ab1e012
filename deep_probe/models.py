"""Immutable records exchanged with the research API."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Literal

from .exceptions import ProbeResponseError

MessageRole = Literal["user", "assistant", "system", "tool"]
StreamChunkType = Literal["text", "tool_start", "tool_end", "thinking", "error", "done"]

_MESSAGE_ROLES = {"user", "assistant", "system", "tool"}
_STREAM_CHUNK_TYPES = {"text", "tool_start", "tool_end", "thinking", "error", "done"}


def utc_now_iso() -> str:
    """Return the local clock as an ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


def _require_mapping(payload: Any, kind: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ProbeResponseError(f"Expected a JSON object for {kind}, got {type(payload).__name__}.")
    return payload


def _string_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in value if isinstance(item, str) and item)


@dataclass(frozen=True)
class Session:
    """A server-tracked conversation context."""

    session_id: str
    model_name: str = ""
    temperature: float = 0.0
    created_at: str = ""
    message_count: int = 0

    @classmethod
    def from_payload(cls, payload: Any) -> Session:
        data = _require_mapping(payload, "session")
        session_id = data.get("session_id")
        if not isinstance(session_id, str) or not session_id:
            raise ProbeResponseError("Session payload is missing session_id.")
        try:
            temperature = float(data.get("temperature") or 0.0)
            message_count = int(data.get("message_count") or 0)
        except (TypeError, ValueError) as exc:
            raise ProbeResponseError(f"Malformed session payload: {exc}") from exc
        return cls(
            session_id=session_id,
            model_name=str(data.get("model_name") or ""),
            temperature=temperature,
            created_at=str(data.get("created_at") or ""),
            message_count=message_count,
        )

    def with_message_count(self, message_count: int) -> Session:
        """Return a copy carrying a different local message count."""
        return replace(self, message_count=max(0, message_count))


@dataclass(frozen=True)
class Message:
    """One entry of a session's conversation history."""

    role: MessageRole
    content: str
    timestamp: str = ""
    tools_used: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> Message:
        data = _require_mapping(payload, "message")
        role = str(data.get("role") or "").strip().lower()
        if role not in _MESSAGE_ROLES:
            raise ProbeResponseError(f"Unknown message role {role!r}.")
        return cls(
            role=role,  # type: ignore[arg-type]
            content=str(data.get("content") or ""),
            timestamp=str(data.get("timestamp") or ""),
            tools_used=_string_tuple(data.get("tools_used")),
        )


@dataclass(frozen=True)
class ChatReply:
    """Assistant turn returned by a single chat request."""

    content: str
    timestamp: str = ""
    tools_used: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> ChatReply:
        data = _require_mapping(payload, "chat reply")
        content = data.get("message")
        if not isinstance(content, str):
            raise ProbeResponseError("Chat reply payload is missing message text.")
        return cls(
            content=content,
            timestamp=str(data.get("timestamp") or ""),
            tools_used=_string_tuple(data.get("tools_used")),
        )

    def to_message(self) -> Message:
        return Message(
            role="assistant",
            content=self.content,
            timestamp=self.timestamp or utc_now_iso(),
            tools_used=self.tools_used,
        )


@dataclass(frozen=True)
class StreamChunk:
    """A single server-sent event of a streamed chat turn."""

    type: StreamChunkType
    content: str = ""
    tool_name: str = ""
    tool_args: dict[str, Any] = field(default_factory=dict)
    timestamp: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> StreamChunk:
        data = _require_mapping(payload, "stream chunk")
        chunk_type = str(data.get("type") or "").strip().lower()
        if chunk_type not in _STREAM_CHUNK_TYPES:
            raise ProbeResponseError(f"Unknown stream chunk type {chunk_type!r}.")
        tool_args = data.get("tool_args")
        return cls(
            type=chunk_type,  # type: ignore[arg-type]
            content=str(data.get("content") or ""),
            tool_name=str(data.get("tool_name") or ""),
            tool_args=dict(tool_args) if isinstance(tool_args, dict) else {},
            timestamp=str(data.get("timestamp") or ""),
        )


@dataclass(frozen=True)
class HealthStatus:
    """Liveness report of the research API."""

    status: str
    timestamp: str = ""
    version: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> HealthStatus:
        data = _require_mapping(payload, "health")
        return cls(
            status=str(data.get("status") or "unknown"),
            timestamp=str(data.get("timestamp") or ""),
            version=str(data.get("version") or ""),
        )


@dataclass(frozen=True)
class RemoteTool:
    """Tool as advertised by the server's ``/tools`` listing."""

    name: str
    description: str = ""
    category: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)
    examples: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> RemoteTool:
        data = _require_mapping(payload, "tool")
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ProbeResponseError("Tool payload is missing name.")
        parameters = data.get("parameters")
        return cls(
            name=name,
            description=str(data.get("description") or ""),
            category=str(data.get("category") or ""),
            parameters=dict(parameters) if isinstance(parameters, dict) else {},
            examples=_string_tuple(data.get("examples")),
        )
