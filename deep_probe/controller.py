"""Session and conversation controller for the research-assistant client.

The controller owns the session list, the active session id and that
session's history. Every mutation goes through one of its named operations.
Operations that touch sessions or history are serialised through the
``StateManager``: each claims the conversation state with a compare-and-set
from ``IDLE`` and releases it on every exit path, so two optimistic-append
sequences can never interleave.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator, Callable
from contextlib import aclosing, asynccontextmanager
import logging

from .api import ResearchApi
from .config import DEFAULT_MODEL_NAME, DEFAULT_SYSTEM_PROMPT, DEFAULT_TEMPERATURE
from .exceptions import ConversationBusyError, DeepProbeError, ProbeConnectionError
from .logging_utils import event_extra
from .mentions import Composer, MentionTransformer, ToolMode
from .message_store import MessageStore
from .models import Message, Session, StreamChunk, utc_now_iso
from .state import AppPhase, ConnectionState, ConversationState, StateManager
from .tool_registry import ToolRegistry, build_default_registry

LOGGER = logging.getLogger(__name__)

ERROR_REPLY_TEXT = (
    "Sorry, I encountered an error while processing your message. Please try again."
)

# One user turn plus one assistant turn.
_TURN_MESSAGE_COUNT = 2


class SessionController:
    """Single owner of session and conversation state."""

    def __init__(
        self,
        api: ResearchApi,
        registry: ToolRegistry | None = None,
        *,
        model_name: str = DEFAULT_MODEL_NAME,
        temperature: float = DEFAULT_TEMPERATURE,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        history_limit: int = 50,
        tool_mode: ToolMode | str = ToolMode.AUTO,
    ) -> None:
        self.api = api
        self.model_name = model_name
        self.temperature = temperature
        self.system_prompt = system_prompt
        self.history_limit = history_limit
        self.connection_state = ConnectionState.UNKNOWN

        self._registry = registry or build_default_registry()
        self._transformer = MentionTransformer(self._registry)
        self._composer = Composer(
            self._registry, mode=tool_mode, transformer=self._transformer
        )
        self._sessions: list[Session] = []
        self._active_session_id: str | None = None
        self._store = MessageStore()
        self._state = StateManager()
        self._phase = AppPhase.INITIALIZING
        self._is_loading = False

    @property
    def sessions(self) -> tuple[Session, ...]:
        """Known sessions, newest first."""
        return tuple(self._sessions)

    @property
    def active_session_id(self) -> str | None:
        return self._active_session_id

    @property
    def active_session(self) -> Session | None:
        for session in self._sessions:
            if session.session_id == self._active_session_id:
                return session
        return None

    @property
    def messages(self) -> tuple[Message, ...]:
        """Read-only view of the active session's history."""
        return self._store.messages

    @property
    def is_loading(self) -> bool:
        """True while a chat request is in flight."""
        return self._is_loading

    @property
    def is_initializing(self) -> bool:
        return self._phase is AppPhase.INITIALIZING

    @property
    def phase(self) -> AppPhase:
        return self._phase

    @property
    def conversation_state(self) -> ConversationState:
        return self._state.state

    @property
    def composer(self) -> Composer:
        return self._composer

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def transformer(self) -> MentionTransformer:
        return self._transformer

    @asynccontextmanager
    async def _exclusive(
        self,
        operation: str,
        busy_state: ConversationState = ConversationState.UPDATING,
    ) -> AsyncIterator[None]:
        claimed = await self._state.transition_if(ConversationState.IDLE, busy_state)
        if not claimed:
            LOGGER.info(
                "controller.busy",
                extra=event_extra(
                    "controller.busy",
                    operation=operation,
                    state=self._state.state.value,
                ),
            )
            raise ConversationBusyError(
                f"Cannot {operation} while another request is in flight."
            )
        LOGGER.debug(
            "controller.state.transition",
            extra=event_extra(
                "controller.state.transition",
                from_state=ConversationState.IDLE.value,
                to_state=busy_state.value,
                operation=operation,
            ),
        )
        try:
            yield
        finally:
            await self._state.transition_to(ConversationState.IDLE)
            LOGGER.debug(
                "controller.state.transition",
                extra=event_extra(
                    "controller.state.transition",
                    from_state=busy_state.value,
                    to_state=ConversationState.IDLE.value,
                    operation=operation,
                ),
            )

    def _note_transport_error(self, exc: DeepProbeError) -> None:
        if isinstance(exc, ProbeConnectionError):
            self.connection_state = ConnectionState.OFFLINE

    def _update_session(
        self, session_id: str, update: Callable[[Session], Session]
    ) -> None:
        self._sessions = [
            update(session) if session.session_id == session_id else session
            for session in self._sessions
        ]

    async def initialize(self) -> None:
        """Run the start-up sequence; the phase is READY afterwards regardless."""
        try:
            async with self._exclusive("initialize"):
                await self._startup()
        finally:
            self._phase = AppPhase.READY
            LOGGER.info(
                "controller.phase",
                extra=event_extra(
                    "controller.phase",
                    phase=self._phase.value,
                    session_count=len(self._sessions),
                    active_session_id=self._active_session_id,
                ),
            )

    async def _startup(self) -> None:
        try:
            await self.api.health_check()
        except DeepProbeError as exc:
            self.connection_state = ConnectionState.OFFLINE
            LOGGER.warning(
                "controller.startup.health_failed",
                extra=event_extra(
                    "controller.startup.health_failed",
                    error_type=exc.__class__.__name__,
                    error=str(exc),
                ),
            )
            return
        self.connection_state = ConnectionState.ONLINE

        try:
            sessions = await self.api.list_sessions()
        except DeepProbeError as exc:
            self._note_transport_error(exc)
            LOGGER.warning(
                "controller.startup.list_failed",
                extra=event_extra(
                    "controller.startup.list_failed",
                    error_type=exc.__class__.__name__,
                    error=str(exc),
                ),
            )
            return
        self._sessions = list(sessions)

        if not self._sessions:
            try:
                await self._create_session()
            except DeepProbeError as exc:
                self._note_transport_error(exc)
                LOGGER.warning(
                    "controller.startup.create_failed",
                    extra=event_extra(
                        "controller.startup.create_failed",
                        error_type=exc.__class__.__name__,
                        error=str(exc),
                    ),
                )
            return

        first = self._sessions[0].session_id
        self._active_session_id = first
        await self._load_history(first)

    async def _create_session(self) -> Session:
        session = await self.api.create_session(
            self.model_name, self.temperature, self.system_prompt
        )
        self._sessions.insert(0, session)
        self._active_session_id = session.session_id
        self._store.clear()
        LOGGER.info(
            "controller.session.created",
            extra=event_extra(
                "controller.session.created",
                session_id=session.session_id,
                model_name=session.model_name,
            ),
        )
        return session

    async def _load_history(self, session_id: str) -> None:
        try:
            history = await self.api.get_history(session_id, self.history_limit)
        except DeepProbeError as exc:
            self._note_transport_error(exc)
            LOGGER.warning(
                "controller.history.load_failed",
                extra=event_extra(
                    "controller.history.load_failed",
                    session_id=session_id,
                    error_type=exc.__class__.__name__,
                    error=str(exc),
                ),
            )
            history = []
        self._store.replace_messages(history)

    async def _activate_fallback(self) -> None:
        """Select the first remaining session, or create one when none remain."""
        if self._sessions:
            first = self._sessions[0].session_id
            self._active_session_id = first
            await self._load_history(first)
            return
        self._active_session_id = None
        self._store.clear()
        try:
            await self._create_session()
        except DeepProbeError as exc:
            self._note_transport_error(exc)
            LOGGER.warning(
                "controller.session.create_failed",
                extra=event_extra(
                    "controller.session.create_failed",
                    error_type=exc.__class__.__name__,
                    error=str(exc),
                ),
            )

    async def create_session(self) -> Session:
        """Create a session, prepend it and make it active.

        Transport failures propagate and leave state untouched.
        """
        async with self._exclusive("create a session"):
            try:
                return await self._create_session()
            except DeepProbeError as exc:
                self._note_transport_error(exc)
                LOGGER.warning(
                    "controller.session.create_failed",
                    extra=event_extra(
                        "controller.session.create_failed",
                        error_type=exc.__class__.__name__,
                        error=str(exc),
                    ),
                )
                raise

    async def select_session(self, session_id: str) -> None:
        """Make a session active and load its history.

        A failed history load leaves an empty conversation; the id change is
        kept.
        """
        async with self._exclusive("select a session"):
            self._active_session_id = session_id
            self._store.clear()
            await self._load_history(session_id)

    async def delete_session(self, session_id: str) -> None:
        """Delete a session remotely, then drop it from the local list."""
        async with self._exclusive("delete a session"):
            try:
                await self.api.delete_session(session_id)
            except DeepProbeError as exc:
                self._note_transport_error(exc)
                LOGGER.warning(
                    "controller.session.delete_failed",
                    extra=event_extra(
                        "controller.session.delete_failed",
                        session_id=session_id,
                        error_type=exc.__class__.__name__,
                        error=str(exc),
                    ),
                )
                raise
            was_active = session_id == self._active_session_id
            self._sessions = [
                session
                for session in self._sessions
                if session.session_id != session_id
            ]
            LOGGER.info(
                "controller.session.deleted",
                extra=event_extra(
                    "controller.session.deleted",
                    session_id=session_id,
                    was_active=was_active,
                ),
            )
            if was_active:
                await self._activate_fallback()

    async def clear_history(self) -> None:
        """Clear the active session's history remotely and locally."""
        session_id = self._active_session_id
        if session_id is None:
            return
        async with self._exclusive("clear history"):
            try:
                await self.api.clear_history(session_id)
            except DeepProbeError as exc:
                self._note_transport_error(exc)
                LOGGER.warning(
                    "controller.history.clear_failed",
                    extra=event_extra(
                        "controller.history.clear_failed",
                        session_id=session_id,
                        error_type=exc.__class__.__name__,
                    ),
                )
                raise
            self._store.clear()
            self._update_session(
                session_id, lambda session: session.with_message_count(0)
            )

    async def refresh_sessions(self) -> None:
        """Re-list sessions to pick up authoritative message counts."""
        async with self._exclusive("refresh sessions"):
            try:
                sessions = await self.api.list_sessions()
            except DeepProbeError as exc:
                self._note_transport_error(exc)
                LOGGER.warning(
                    "controller.sessions.refresh_failed",
                    extra=event_extra(
                        "controller.sessions.refresh_failed",
                        error_type=exc.__class__.__name__,
                        error=str(exc),
                    ),
                )
                return
            self.connection_state = ConnectionState.ONLINE
            self._sessions = list(sessions)
            if self.active_session is None:
                await self._activate_fallback()

    def _user_message(self, text: str) -> Message:
        return Message(role="user", content=text, timestamp=utc_now_iso())

    @staticmethod
    def _apology() -> Message:
        return Message(role="assistant", content=ERROR_REPLY_TEXT, timestamp=utc_now_iso())

    def _log_send_failure(self, session_id: str, exc: DeepProbeError) -> None:
        self._note_transport_error(exc)
        LOGGER.warning(
            "controller.send.failed",
            extra=event_extra(
                "controller.send.failed",
                session_id=session_id,
                error_type=exc.__class__.__name__,
                error=str(exc),
            ),
        )

    def _close_abandoned_turn(self, session_id: str) -> None:
        """End a turn whose request was cancelled with the apology."""
        LOGGER.warning(
            "controller.send.abandoned",
            extra=event_extra("controller.send.abandoned", session_id=session_id),
        )
        self._store.append(self._apology())

    async def send_message(self, text: str) -> Message | None:
        """Send already-encoded text and append the reply or the apology.

        Returns the terminal assistant message, or None when there is no
        active session or nothing to send.
        """
        session_id = self._active_session_id
        trimmed = text.strip()
        if session_id is None or not trimmed:
            return None
        async with self._exclusive("send a message", ConversationState.SENDING):
            self._store.append(self._user_message(trimmed))
            self._is_loading = True
            message: Message | None = None
            try:
                try:
                    reply = await self.api.send_chat(session_id, trimmed)
                except DeepProbeError as exc:
                    self._log_send_failure(session_id, exc)
                    message = self._apology()
                else:
                    self.connection_state = ConnectionState.ONLINE
                    message = reply.to_message()
                    self._update_session(
                        session_id,
                        lambda session: session.with_message_count(
                            session.message_count + _TURN_MESSAGE_COUNT
                        ),
                    )
                self._store.append(message)
            finally:
                self._is_loading = False
                if message is None:
                    self._close_abandoned_turn(session_id)
            return message

    async def stream_message(self, text: str) -> AsyncGenerator[StreamChunk, None]:
        """Streaming variant of ``send_message``.

        Chunks are yielded as they arrive. Once the stream ends a single
        assistant message is appended, built from the text chunks, with
        ``tools_used`` taken from ``tool_start`` chunks in order. An ``error``
        chunk or a transport failure appends the apology instead.
        If the consumer stops iterating early, the apology is appended as
        well, so the turn never ends on the user message.
        """
        session_id = self._active_session_id
        trimmed = text.strip()
        if session_id is None or not trimmed:
            return
        async with self._exclusive("send a message", ConversationState.SENDING):
            self._store.append(self._user_message(trimmed))
            self._is_loading = True
            parts: list[str] = []
            tools_used: dict[str, None] = {}
            timestamp = ""
            failed = False
            closed = False
            try:
                try:
                    async with aclosing(
                        self.api.stream_chat(session_id, trimmed)
                    ) as stream:
                        async for chunk in stream:
                            if chunk.type == "text":
                                parts.append(chunk.content)
                            elif chunk.type == "tool_start" and chunk.tool_name:
                                tools_used.setdefault(chunk.tool_name, None)
                            elif chunk.type == "error":
                                failed = True
                                LOGGER.warning(
                                    "controller.stream.error_chunk",
                                    extra=event_extra(
                                        "controller.stream.error_chunk",
                                        session_id=session_id,
                                        content=chunk.content,
                                    ),
                                )
                            if chunk.timestamp:
                                timestamp = chunk.timestamp
                            yield chunk
                            if failed:
                                break
                except DeepProbeError as exc:
                    self._log_send_failure(session_id, exc)
                    failed = True

                if failed:
                    message = self._apology()
                else:
                    self.connection_state = ConnectionState.ONLINE
                    message = Message(
                        role="assistant",
                        content="".join(parts),
                        timestamp=timestamp or utc_now_iso(),
                        tools_used=tuple(tools_used),
                    )
                    self._update_session(
                        session_id,
                        lambda session: session.with_message_count(
                            session.message_count + _TURN_MESSAGE_COUNT
                        ),
                    )
                self._store.append(message)
                closed = True
            finally:
                self._is_loading = False
                if not closed:
                    self._close_abandoned_turn(session_id)

    async def submit(self) -> Message | None:
        """Encode the composer draft, send it and reset the composer.

        With nothing to send the draft is left alone and None is returned.
        """
        wire_text = self._composer.encode_for_submission()
        if wire_text is None or self._active_session_id is None:
            return None
        message = await self.send_message(wire_text)
        self._composer.reset()
        return message

    async def submit_stream(self) -> AsyncGenerator[StreamChunk, None]:
        """Streaming variant of ``submit``."""
        wire_text = self._composer.encode_for_submission()
        if wire_text is None or self._active_session_id is None:
            return
        async with aclosing(self.stream_message(wire_text)) as stream:
            async for chunk in stream:
                yield chunk
        self._composer.reset()

    def select_tool(self, identifier: str) -> None:
        self._composer.apply_tool_selection(identifier)

    def remove_tool(self, identifier: str) -> None:
        self._composer.remove_tool(identifier)

    def toggle_tool(self, identifier: str) -> None:
        self._composer.toggle_tool(identifier)

    def select_group(self, label: str) -> None:
        self._composer.apply_group(label)

    def set_mode(self, mode: ToolMode | str) -> None:
        self._composer.set_mode(mode)

    def set_draft(self, text: str) -> None:
        self._composer.set_text(text)

    def display_content(self, message: Message) -> str:
        """Return the text shown for a message; user mentions use display names."""
        if message.role == "user":
            return self._transformer.to_display(message.content)
        return message.content
