"""Modal screens: info dialog, confirmation and tool/group/mode pickers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, OptionList, Static

from .mentions import ToolMode
from .tool_registry import ToolRegistry

_MODE_DESCRIPTIONS: dict[ToolMode, str] = {
    ToolMode.AUTO: "Auto - the assistant decides which tools to use",
    ToolMode.NONE: "None - answer without any tools",
    ToolMode.MANUAL: "Manual - only the tools mentioned with @Name",
}


class DialogScreen(ModalScreen[Any]):
    """Centered modal dialog; Escape dismisses it with ``cancel_result``."""

    BINDINGS = [Binding("escape", "cancel", "Close", show=False)]

    DEFAULT_CSS = """
    DialogScreen {
        align: center middle;
    }

    DialogScreen > .dialog {
        width: 70;
        height: auto;
        max-height: 28;
        padding: 1 2;
        border: round $panel;
        background: $surface;
    }

    DialogScreen .dialog-title {
        padding-bottom: 1;
        text-style: bold;
    }

    DialogScreen .dialog-help {
        padding-top: 1;
        color: $text-muted;
    }

    DialogScreen .dialog-actions {
        height: 3;
        align: right middle;
        margin-top: 1;
    }

    DialogScreen .dialog-actions Button {
        margin-left: 1;
    }
    """

    cancel_result: Any = None

    def action_cancel(self) -> None:
        self.dismiss(self.cancel_result)


class InfoScreen(DialogScreen):
    """Read-only text such as the help listing."""

    CSS = """
    #info-body {
        height: auto;
        max-height: 20;
    }
    """

    def __init__(self, text: str, title: str = "Deep Probe") -> None:
        super().__init__()
        self._title = title
        self._text = text

    def compose(self) -> ComposeResult:
        with Vertical(classes="dialog"):
            yield Static(self._title, classes="dialog-title")
            with VerticalScroll(id="info-body"):
                yield Static(self._text)
            with Horizontal(classes="dialog-actions"):
                yield Button("OK", id="info-ok", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.dismiss(None)


class ConfirmScreen(DialogScreen):
    """Yes/no question; dismisses with ``True`` only on confirmation."""

    CSS = """
    ConfirmScreen > .dialog {
        width: 60;
        border: round $warning;
    }
    """

    cancel_result = False

    def __init__(self, prompt: str, confirm_label: str = "Delete") -> None:
        super().__init__()
        self._prompt = prompt
        self._confirm_label = confirm_label

    def compose(self) -> ComposeResult:
        with Vertical(classes="dialog"):
            yield Static(self._prompt)
            with Horizontal(classes="dialog-actions"):
                yield Button("Cancel", id="confirm-no")
                yield Button(self._confirm_label, id="confirm-yes", variant="error")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.dismiss(event.button.id == "confirm-yes")


class OptionPickerScreen(DialogScreen):
    """Pick one of ``(label, value)`` pairs; dismisses with the value."""

    def __init__(self, title: str, options: Sequence[tuple[str, str]]) -> None:
        super().__init__()
        self._title = title
        self._options = list(options)

    @property
    def options(self) -> list[tuple[str, str]]:
        return list(self._options)

    def compose(self) -> ComposeResult:
        with Vertical(classes="dialog"):
            yield Static(self._title, classes="dialog-title")
            yield OptionList(*(label for label, _ in self._options))
            yield Static("Enter or click to select, Esc to cancel", classes="dialog-help")

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        index = event.option_index
        if 0 <= index < len(self._options):
            event.stop()
            self.dismiss(self._options[index][1])


def tool_picker_options(
    registry: ToolRegistry, active_tools: Sequence[str]
) -> list[tuple[str, str]]:
    """Label every tool with its icon, mention and active marker."""
    active = set(active_tools)
    options: list[tuple[str, str]] = []
    for tool in registry.tools:
        marker = "[x]" if tool.identifier in active else "[ ]"
        label = f"{marker} {tool.icon} @{tool.display_name} - {tool.description}"
        options.append((label, tool.identifier))
    return options


def group_picker_options(registry: ToolRegistry) -> list[tuple[str, str]]:
    options: list[tuple[str, str]] = []
    for group in registry.groups:
        mentions = " ".join(
            f"@{registry.display_name_for(identifier)}" for identifier in group.tools
        )
        options.append(
            (f"{group.icon} {group.label} - {group.description} ({mentions})", group.label)
        )
    return options


def mode_picker_options(current: ToolMode) -> list[tuple[str, str]]:
    return [
        (("* " if mode is current else "  ") + _MODE_DESCRIPTIONS[mode], mode.value)
        for mode in ToolMode
    ]


class ToolPickerScreen(OptionPickerScreen):
    """Pick a tool to toggle in the draft."""

    def __init__(self, registry: ToolRegistry, active_tools: Sequence[str]) -> None:
        super().__init__("Tools", tool_picker_options(registry, active_tools))


class GroupPickerScreen(OptionPickerScreen):
    """Pick a tool group to activate."""

    def __init__(self, registry: ToolRegistry) -> None:
        super().__init__("Tool groups", group_picker_options(registry))


class ModePickerScreen(OptionPickerScreen):
    """Pick the tool mode."""

    def __init__(self, current: ToolMode) -> None:
        super().__init__("Tool mode", mode_picker_options(current))
