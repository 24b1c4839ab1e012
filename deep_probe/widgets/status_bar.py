"""Status bar widget for connection, session and composer state."""

from __future__ import annotations

from collections.abc import Sequence

from textual import events
from textual.app import ComposeResult
from textual.message import Message
from textual.widgets import Label, Static

from ..formatting import truncate_text


class StatusBar(Static):
    """Render compact runtime status information.

    Segments (left to right):
        🟢 online  |  Session: 3f2a9c1e (gemini-2.5-flash)  |  Mode: manual  |  @Search @News  |  Messages: 4
    The tool segment is hidden unless the draft mentions tools.
    """

    DEFAULT_CSS = """
    StatusBar {
        layout: horizontal;
        height: auto;
    }
    StatusBar Label {
        margin-right: 1;
    }
    StatusBar #status_tools {
        color: $accent;
    }
    """

    class ModePickerRequested(Message):
        """Posted when the status bar is clicked."""

    def compose(self) -> ComposeResult:
        yield Label("⚪ unknown", id="status_connection")
        yield Label("|", id="status_sep1")
        yield Label("Session: -", id="status_session")
        yield Label("|", id="status_sep2")
        yield Label("Mode: auto", id="status_mode")
        yield Label("|", id="status_sep3")
        yield Label("", id="status_tools")
        yield Label("|", id="status_sep4")
        yield Label("Messages: 0", id="status_messages")

    def on_mount(self) -> None:
        self._lbl_connection = self.query_one("#status_connection", Label)
        self._lbl_session = self.query_one("#status_session", Label)
        self._lbl_mode = self.query_one("#status_mode", Label)
        self._lbl_tools = self.query_one("#status_tools", Label)
        self._sep_tools = self.query_one("#status_sep4", Label)
        self._lbl_messages = self.query_one("#status_messages", Label)

    @staticmethod
    def connection_icon(connection_state: str) -> str:
        return {"online": "🟢", "offline": "🔴"}.get(connection_state, "⚪")

    @staticmethod
    def session_text(session_id: str | None, model_name: str = "") -> str:
        if not session_id:
            return "Session: -"
        short_id = truncate_text(session_id, 8).removesuffix("...")
        return f"Session: {short_id} ({model_name})" if model_name else f"Session: {short_id}"

    def set_status(
        self,
        *,
        connection_state: str,
        session_id: str | None,
        model_name: str,
        mode: str,
        mentions: Sequence[str],
        message_count: int,
    ) -> None:
        """Update all status segment labels."""
        icon = self.connection_icon(connection_state)
        self._lbl_connection.update(f"{icon} {connection_state}")
        self._lbl_session.update(self.session_text(session_id, model_name))
        self._lbl_mode.update(f"Mode: {mode}")
        self._lbl_messages.update(f"Messages: {message_count}")

        tools_text = " ".join(f"@{name}" for name in mentions)
        self._lbl_tools.update(tools_text)
        visible = bool(tools_text)
        self._lbl_tools.display = visible
        self._sep_tools.display = visible

    def on_click(self, event: events.Click) -> None:
        event.stop()
        self.post_message(self.ModePickerRequested())
