"""Append-only storage for the active session's conversation history."""

from __future__ import annotations

from collections.abc import Iterable

from .models import Message


class MessageStore:
    """Hold the history of one session.

    Entries are only ever appended; the whole history may be replaced when a
    different session is loaded, or cleared when a session starts afresh.
    """

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = list(messages)

    @property
    def messages(self) -> tuple[Message, ...]:
        """Return a read-only snapshot of stored messages."""
        return tuple(self._messages)

    def append(self, message: Message) -> None:
        """Append a message at the end of the history."""
        self._messages.append(message)

    def replace_messages(self, messages: Iterable[Message]) -> None:
        """Replace history with messages fetched for another session."""
        self._messages = list(messages)

    def clear(self) -> None:
        self._messages = []
