"""Sidebar listing the research sessions, newest first."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from textual.message import Message
from textual.widgets import OptionList
from textual.widgets.option_list import Option

from ..formatting import format_relative_time
from ..models import Session


def session_label(
    session: Session, *, active: bool = False, now: datetime | None = None
) -> str:
    """One sidebar line: active marker, model, message count and age."""
    marker = "●" if active else " "
    model = session.model_name or "session"
    noun = "message" if session.message_count == 1 else "messages"
    age = format_relative_time(session.created_at, now=now)
    return f"{marker} {model}\n  {session.message_count} {noun} · {age}"


class SessionList(OptionList):
    """Selectable session sidebar."""

    DEFAULT_CSS = """
    SessionList {
        width: 32;
        height: 1fr;
        border-right: solid $panel;
        background: $surface;
    }
    """

    class SessionSelected(Message):
        """Posted when the user picks a session."""

        def __init__(self, session_id: str) -> None:
            super().__init__()
            self.session_id = session_id

    def __init__(self, **kwargs: object) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self._session_ids: list[str] = []

    @property
    def session_ids(self) -> list[str]:
        return list(self._session_ids)

    def set_sessions(
        self, sessions: Sequence[Session], active_session_id: str | None
    ) -> None:
        """Rebuild the option list from the controller's sessions."""
        self.clear_options()
        self._session_ids = [session.session_id for session in sessions]
        self.add_options(
            [
                Option(
                    session_label(session, active=session.session_id == active_session_id),
                    id=session.session_id,
                )
                for session in sessions
            ]
        )
        if active_session_id in self._session_ids:
            self.highlighted = self._session_ids.index(active_session_id)

    def neighbour_of(self, session_id: str | None, step: int) -> str | None:
        """Return the session ``step`` places away, wrapping around."""
        if not self._session_ids:
            return None
        if session_id not in self._session_ids:
            return self._session_ids[0]
        index = self._session_ids.index(session_id)
        return self._session_ids[(index + step) % len(self._session_ids)]

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        option_id = event.option.id
        if option_id:
            self.post_message(self.SessionSelected(option_id))
