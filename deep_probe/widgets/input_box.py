"""Input row containing the tool-mode button, message field, send button and slash menu."""

from __future__ import annotations

from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widgets import Button, Input, OptionList

from ..mentions import ToolMode

_MODE_LABELS: dict[ToolMode, str] = {
    ToolMode.AUTO: "Tools: auto",
    ToolMode.NONE: "Tools: off",
    ToolMode.MANUAL: "Tools: manual",
}


def mode_button_label(mode: ToolMode) -> str:
    return _MODE_LABELS[mode]


class InputBox(Vertical):
    """Input region with mode button, message field, tools and send buttons."""

    class ModeCycleRequested(Message):
        """Posted when the user clicks the tool-mode button."""

    class ToolPickerRequested(Message):
        """Posted when the user clicks the tools button."""

    def compose(self):  # type: ignore[override]
        with Horizontal(id="input_row"):
            yield Button(
                mode_button_label(ToolMode.AUTO), id="mode_button", variant="default"
            )
            yield Input(
                placeholder="Ask anything... (@Search to pick a tool, / for commands)",
                id="message_input",
            )
            yield Button("@ Tools", id="tools_button", variant="default")
            yield Button("Send", id="send_button", variant="success")
        yield OptionList(id="slash_menu", classes="hidden")

    def set_mode(self, mode: ToolMode) -> None:
        self.query_one("#mode_button", Button).label = mode_button_label(mode)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "mode_button":
            event.stop()
            self.post_message(self.ModeCycleRequested())
        elif event.button.id == "tools_button":
            event.stop()
            self.post_message(self.ToolPickerRequested())
