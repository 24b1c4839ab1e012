"""Main Textual application for the Deep Probe research assistant."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from contextlib import aclosing
from datetime import datetime
import logging
import sys
from typing import Any

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Footer, Header, Input, OptionList

from .api import ResearchApi, ResearchApiClient
from .commands import (
    SLASH_COMMANDS,
    SlashCommand,
    help_text,
    parse_slash_command,
    parse_tool_mode,
    resolve_group_argument,
    resolve_tool_argument,
)
from .config import load_config
from .controller import SessionController
from .exceptions import ConversationBusyError, DeepProbeError
from .formatting import format_timestamp
from .logging_utils import configure_logging, event_extra
from .mentions import ToolMode
from .models import Message
from .screens import (
    ConfirmScreen,
    GroupPickerScreen,
    InfoScreen,
    ModePickerScreen,
    ToolPickerScreen,
)
from .state import AppPhase
from .stream_handler import StreamHandler
from .tool_registry import build_default_registry
from .widgets.conversation import ConversationView
from .widgets.input_box import InputBox
from .widgets.message import MessageBubble
from .widgets.session_list import SessionList
from .widgets.status_bar import StatusBar

LOGGER = logging.getLogger(__name__)

_MODE_CYCLE: tuple[ToolMode, ...] = (ToolMode.AUTO, ToolMode.NONE, ToolMode.MANUAL)

_SlashHandler = Callable[[str], Awaitable[None]]


class DeepProbeApp(App[None]):
    """Terminal front-end for the research-assistant service."""

    CSS = """
    Screen {
        layout: vertical;
        background: $background;
    }

    #app-root {
        height: 1fr;
        background: $background;
    }

    #main-pane {
        width: 1fr;
        height: 1fr;
    }

    Header {
        border-bottom: solid $panel;
        background: $surface;
    }

    Footer {
        border-top: solid $panel;
        background: $surface;
    }

    #conversation {
        height: 1fr;
        padding: 1;
    }

    InputBox {
        height: auto;
        padding: 0 1 1 1;
        border-top: solid $panel;
        background: $surface;
    }

    #message_input {
        width: 1fr;
    }

    #mode_button {
        margin-right: 1;
        min-width: 16;
    }

    #tools_button, #send_button {
        margin-left: 1;
        min-width: 10;
    }

    #input_row {
        height: auto;
    }

    #status_bar {
        height: auto;
        padding: 0 1;
        border-top: solid $panel;
        background: $surface;
    }

    #slash_menu {
        max-height: 8;
        width: 60;
        margin-top: 1;
    }

    #slash_menu.hidden {
        display: none;
    }

    MessageBubble {
        width: 85%;
        margin: 1 0;
        padding: 1 2;
        border: round $panel;
    }

    .message-user {
        align-horizontal: right;
        background: $primary;
    }

    .message-assistant {
        align-horizontal: left;
        background: $surface;
    }
    """

    DEFAULT_ACTION_DESCRIPTIONS: dict[str, str] = {
        "send_message": "Send",
        "new_session": "New Session",
        "delete_session": "Delete Session",
        "next_session": "Next Session",
        "previous_session": "Prev Session",
        "tool_picker": "Tools",
        "group_picker": "Groups",
        "cycle_mode": "Tool Mode",
        "command_palette": "🧭 Help",
        "quit": "Quit",
    }

    RESPONSE_PLACEHOLDER_FRAMES: tuple[str, ...] = (
        "🔍 Probing the depths...",
        "📚 Consulting the sources...",
        "🧭 Following the citations...",
        "🛰️ Gathering fresh facts...",
    )

    def __init__(
        self,
        config: dict[str, dict[str, Any]] | None = None,
        api: ResearchApi | None = None,
    ) -> None:
        self.config = config if config is not None else load_config()
        self.window_title = str(self.config["app"]["title"])
        self.window_class = str(self.config["app"]["class"])
        configure_logging(self.config["logging"])
        LOGGER.info(
            "app.python",
            extra=event_extra(
                "app.python",
                executable=sys.executable,
                version=sys.version.split()[0],
            ),
        )

        api_cfg = self.config["api"]
        session_cfg = self.config["session"]
        ui_cfg = self.config["ui"]
        self._owns_api = api is None
        self.api: ResearchApi = api or ResearchApiClient(
            base_url=str(api_cfg["base_url"]),
            timeout=float(api_cfg["timeout"]),
            retries=int(api_cfg["retries"]),
        )
        self.controller = SessionController(
            self.api,
            build_default_registry(),
            model_name=str(session_cfg["model_name"]),
            temperature=float(session_cfg["temperature"]),
            system_prompt=str(session_cfg["system_prompt"]),
            history_limit=int(api_cfg["history_limit"]),
            tool_mode=str(ui_cfg["default_tool_mode"]),
        )
        self._streaming = bool(api_cfg["streaming"])
        self._tasks: set[asyncio.Task[Any]] = set()
        self._placeholder_task: asyncio.Task[None] | None = None

        self._w_input: Input | None = None
        self._w_send: Button | None = None
        self._w_input_box: InputBox | None = None
        self._w_status: StatusBar | None = None
        self._w_sessions: SessionList | None = None
        self._w_conversation: ConversationView | None = None

        self._slash_registry = self._build_slash_registry()
        self._binding_specs = self._binding_specs_from_config(self.config)
        self._apply_terminal_window_identity()
        super().__init__()

    @classmethod
    def _binding_specs_from_config(
        cls, config: dict[str, dict[str, Any]]
    ) -> list[Binding]:
        keybinds = config.get("keybinds", {})
        bindings: list[Binding] = []
        for action_name, description in cls.DEFAULT_ACTION_DESCRIPTIONS.items():
            binding_key = keybinds.get(action_name)
            if isinstance(binding_key, str) and binding_key.strip():
                bindings.append(
                    Binding(
                        key=binding_key.strip(),
                        action=action_name,
                        description=description,
                        show=True,
                    )
                )
        return bindings

    def _apply_terminal_window_identity(self) -> None:
        """Best-effort terminal title and class via OSC sequences."""
        self._emit_osc("0", self.window_title)
        self._emit_osc("2", self.window_title)
        self._emit_osc("1", self.window_class)

    @staticmethod
    def _emit_osc(code: str, value: str) -> None:
        if not value.strip() or not sys.stdout.isatty():
            return
        print(f"\033]{code};{value.strip()}\007", end="", flush=True)

    def _help_key_display(self) -> str:
        for binding in self._binding_specs:
            if binding.action == "command_palette":
                return binding.key.upper()
        return "CTRL+P"

    def _set_idle_sub_title(self, prefix: str) -> None:
        self.sub_title = f"{prefix}  |  🧭 Help: {self._help_key_display()}"

    def compose(self) -> ComposeResult:
        yield Header(name=self.window_title, icon="☰")
        with Horizontal(id="app-root"):
            yield SessionList(id="session_list")
            with Vertical(id="main-pane"):
                yield ConversationView(id="conversation")
                yield InputBox()
                yield StatusBar(id="status_bar")
        yield Footer()

    async def on_mount(self) -> None:
        self.title = self.window_title
        self.sub_title = "Initializing Deep Probe..."
        for binding in self._binding_specs:
            self.bind(
                binding.key,
                binding.action,
                description=binding.description,
                show=binding.show,
            )

        self._w_input = self.query_one("#message_input", Input)
        self._w_send = self.query_one("#send_button", Button)
        self._w_input_box = self.query_one(InputBox)
        self._w_status = self.query_one("#status_bar", StatusBar)
        self._w_sessions = self.query_one("#session_list", SessionList)
        self._w_conversation = self.query_one(ConversationView)

        self._w_input_box.set_mode(self.controller.composer.mode)
        self._set_input_enabled(False)
        self._update_status_bar()
        self._spawn(self._run_startup())

    def _spawn(self, coroutine: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coroutine)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_startup(self) -> None:
        try:
            await self.controller.initialize()
        finally:
            await self._refresh_view()
            self._set_input_enabled(True)
            if self._w_input is not None:
                self._w_input.focus()
            if self.controller.active_session_id is None:
                self._set_idle_sub_title("Offline: no session available (try /sessions)")
            else:
                self._set_idle_sub_title("Ready")

    def _input_ready(self) -> bool:
        return (
            self.controller.phase is AppPhase.READY and not self.controller.is_loading
        )

    def _set_input_enabled(self, enabled: bool) -> None:
        allowed = enabled and self._input_ready()
        for widget_id in ("#message_input", "#send_button", "#tools_button", "#mode_button"):
            try:
                self.query_one(widget_id).disabled = not allowed
            except Exception:  # noqa: BLE001 - widget tree may be torn down.
                continue

    def _timestamp(self, value: str = "") -> str:
        if not bool(self.config["ui"]["show_timestamps"]):
            return ""
        if value:
            return format_timestamp(value)
        return datetime.now().strftime("%H:%M")

    def _tool_badges(self, message: Message) -> list[str]:
        if not bool(self.config["ui"]["show_tool_badges"]):
            return []
        badges: list[str] = []
        for identifier in message.tools_used:
            tool = self.controller.registry.lookup(identifier)
            if tool is None:
                badges.append(f"🔧 {identifier}")
            else:
                badges.append(f"{tool.icon} {tool.display_name}")
        return badges

    def _update_status_bar(self) -> None:
        status = self._w_status or self.query_one("#status_bar", StatusBar)
        controller = self.controller
        session = controller.active_session
        registry = controller.registry
        status.set_status(
            connection_state=controller.connection_state.value,
            session_id=controller.active_session_id,
            model_name=session.model_name if session is not None else "",
            mode=controller.composer.mode.value,
            mentions=[
                registry.display_name_for(identifier)
                for identifier in controller.composer.active_tools
            ],
            message_count=len(controller.messages),
        )

    def _refresh_sessions(self) -> None:
        sessions = self._w_sessions or self.query_one("#session_list", SessionList)
        sessions.set_sessions(
            self.controller.sessions, self.controller.active_session_id
        )

    async def _refresh_view(self) -> None:
        """Redraw sidebar, conversation and status from controller state."""
        self._refresh_sessions()
        await self._render_messages_from_history()
        self._update_status_bar()

    async def _add_message(
        self,
        content: str,
        role: str,
        timestamp: str = "",
        tool_badges: list[str] | None = None,
    ) -> MessageBubble:
        conversation = self._w_conversation or self.query_one(ConversationView)
        return await conversation.add_message(
            content=content,
            role=role,
            timestamp=timestamp,
            tool_badges=tool_badges or [],
        )

    async def _render_messages_from_history(self) -> None:
        conversation = self._w_conversation or self.query_one(ConversationView)
        await conversation.clear_messages()
        for message in self.controller.messages:
            if message.role == "system":
                continue
            bubble = await self._add_message(
                content=self.controller.display_content(message),
                role=message.role,
                timestamp=self._timestamp(message.timestamp),
                tool_badges=self._tool_badges(message),
            )
            await bubble.finalize_content()

    def _sync_input_from_composer(self) -> None:
        """Mirror the composer draft and mode back into the input row."""
        input_widget = self._w_input or self.query_one("#message_input", Input)
        text = self.controller.composer.text
        if input_widget.value != text:
            input_widget.value = text
            input_widget.cursor_position = len(text)
        input_box = self._w_input_box or self.query_one(InputBox)
        input_box.set_mode(self.controller.composer.mode)
        self._update_status_bar()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "message_input":
            return
        value = event.value
        if value.startswith("/"):
            self._show_slash_menu(prefix=value)
        else:
            self._hide_slash_menu()
            self.controller.set_draft(value)
            self._update_status_bar()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "message_input":
            await self.send_user_message()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "send_button":
            await self.send_user_message()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        if event.option_list.id != "slash_menu":
            return
        command = str(event.option.prompt).split(" ", 1)[0]
        input_widget = self._w_input or self.query_one("#message_input", Input)
        input_widget.value = f"{command} "
        input_widget.cursor_position = len(input_widget.value)
        self._hide_slash_menu()
        input_widget.focus()
        event.stop()

    def _show_slash_menu(self, prefix: str) -> None:
        try:
            menu = self.query_one("#slash_menu", OptionList)
        except Exception:  # noqa: BLE001 - menu lives inside InputBox.
            return
        menu.clear_options()
        normalized_prefix = prefix.lower().split(" ", 1)[0]
        for usage, description in SLASH_COMMANDS:
            if usage.lower().startswith(normalized_prefix):
                menu.add_option(f"{usage} - {description}")
        if menu.option_count:
            menu.remove_class("hidden")
        else:
            menu.add_class("hidden")

    def _hide_slash_menu(self) -> None:
        try:
            menu = self.query_one("#slash_menu", OptionList)
        except Exception:  # noqa: BLE001 - menu lives inside InputBox.
            return
        menu.add_class("hidden")
        menu.clear_options()

    async def action_send_message(self) -> None:
        await self.send_user_message()

    async def _animate_response_placeholder(self, bubble: MessageBubble) -> None:
        frame_index = 0
        while True:
            bubble.set_content(
                self.RESPONSE_PLACEHOLDER_FRAMES[
                    frame_index % len(self.RESPONSE_PLACEHOLDER_FRAMES)
                ]
            )
            frame_index += 1
            await asyncio.sleep(0.35)

    def _start_placeholder(self, bubble: MessageBubble) -> None:
        self._placeholder_task = self._spawn(self._animate_response_placeholder(bubble))

    async def _stop_placeholder(self) -> None:
        task = self._placeholder_task
        self._placeholder_task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def send_user_message(self) -> None:
        """Run slash commands, or submit the composer draft to the active session."""
        input_widget = self._w_input or self.query_one("#message_input", Input)
        raw_text = input_widget.value.strip()

        command = parse_slash_command(raw_text)
        if command is not None:
            input_widget.value = ""
            self._hide_slash_menu()
            await self._dispatch_slash_command(command)
            return

        if not self._input_ready():
            self.sub_title = "Busy. Wait for the current request to finish."
            return
        self.controller.set_draft(input_widget.value)
        wire_text = self.controller.composer.encode_for_submission()
        if wire_text is None:
            self.sub_title = "Cannot send an empty message."
            return
        if self.controller.active_session_id is None:
            self.sub_title = "No active session. Use /new or /sessions."
            return

        self._hide_slash_menu()
        self._set_input_enabled(False)
        self.sub_title = "Sending message..."
        user_bubble = await self._add_message(
            content=self.controller.transformer.to_display(wire_text),
            role="user",
            timestamp=self._timestamp(),
        )
        bubble = await self._add_message(
            content="", role="assistant", timestamp=self._timestamp()
        )
        try:
            if self._streaming:
                await self._stream_submission(bubble)
            else:
                await self._plain_submission(bubble)
            self._set_idle_sub_title("Ready")
        except ConversationBusyError:
            await user_bubble.remove()
            await bubble.remove()
            self.sub_title = "Busy. Wait for the current request to finish."
        finally:
            await self._stop_placeholder()
            self._set_input_enabled(True)
            self._sync_input_from_composer()
            self._refresh_sessions()
            input_widget.focus()

    async def _finish_bubble(self, bubble: MessageBubble) -> None:
        messages = self.controller.messages
        last = messages[-1] if messages else None
        if last is None or last.role != "assistant":
            return
        bubble.set_tool_badges(self._tool_badges(last))

    async def _plain_submission(self, bubble: MessageBubble) -> None:
        self._start_placeholder(bubble)
        message = await self.controller.submit()
        await self._stop_placeholder()
        bubble.set_content(message.content if message is not None else "")
        await bubble.finalize_content()
        await self._finish_bubble(bubble)

    async def _stream_submission(self, bubble: MessageBubble) -> None:
        chunk_size = max(1, int(self.config["ui"]["stream_chunk_size"]))
        self._start_placeholder(bubble)

        def _scroll() -> None:
            conversation = self._w_conversation or self.query_one(ConversationView)
            conversation.scroll_end(animate=False)

        handler = StreamHandler(
            bubble=bubble,
            scroll_callback=_scroll,
            chunk_size=chunk_size,
            tool_label=self.controller.registry.display_name_for,
        )
        async with aclosing(self.controller.submit_stream()) as stream:
            async for chunk in stream:
                await handler.handle_chunk(chunk, self._stop_placeholder)
                if handler.status:
                    self.sub_title = handler.status
        await self._stop_placeholder()

        messages = self.controller.messages
        last = messages[-1] if messages else None
        final_content = last.content if last is not None and last.role == "assistant" else None
        await handler.finalize(final_content or None)
        await self._finish_bubble(bubble)

    async def _run_controller_op(
        self,
        operation: Callable[[], Awaitable[Any]],
        *,
        failure: str,
        success: str = "",
    ) -> bool:
        """Run a session operation, report the outcome and redraw."""
        if self.controller.phase is not AppPhase.READY:
            self.sub_title = "Still initializing..."
            return False
        self._set_input_enabled(False)
        ok = False
        try:
            await operation()
            ok = True
        except ConversationBusyError:
            self.sub_title = "Busy. Wait for the current request to finish."
        except DeepProbeError as exc:
            self.sub_title = f"{failure}: {exc}"
        finally:
            self._set_input_enabled(True)
            await self._refresh_view()
        if ok and success:
            self._set_idle_sub_title(success)
        return ok

    async def action_new_session(self) -> None:
        await self._run_controller_op(
            self.controller.create_session,
            failure="Could not create a session",
            success="New session ready",
        )

    async def action_delete_session(self) -> None:
        session = self.controller.active_session
        if session is None:
            self.sub_title = "No active session to delete."
            return
        self.push_screen(
            ConfirmScreen(f"Delete session {session.session_id}?"),
            callback=lambda confirmed: self._on_delete_confirmed(
                session.session_id, confirmed
            ),
        )

    def _on_delete_confirmed(self, session_id: str, confirmed: bool | None) -> None:
        if not confirmed:
            return
        self._spawn(
            self._run_controller_op(
                lambda: self.controller.delete_session(session_id),
                failure="Could not delete the session",
                success="Session deleted",
            )
        )

    async def _select_session(self, session_id: str) -> None:
        if session_id == self.controller.active_session_id:
            return
        await self._run_controller_op(
            lambda: self.controller.select_session(session_id),
            failure="Could not open the session",
        )

    async def on_session_list_session_selected(
        self, event: SessionList.SessionSelected
    ) -> None:
        await self._select_session(event.session_id)

    async def _step_session(self, step: int) -> None:
        sessions = self._w_sessions or self.query_one("#session_list", SessionList)
        target = sessions.neighbour_of(self.controller.active_session_id, step)
        if target is None:
            self.sub_title = "No sessions available."
            return
        await self._select_session(target)

    async def action_next_session(self) -> None:
        await self._step_session(1)

    async def action_previous_session(self) -> None:
        await self._step_session(-1)

    def _apply_mode(self, mode: ToolMode) -> None:
        self.controller.set_mode(mode)
        self._sync_input_from_composer()
        self.sub_title = f"Tool mode: {mode.value}"

    async def action_cycle_mode(self) -> None:
        current = self.controller.composer.mode
        index = _MODE_CYCLE.index(current)
        self._apply_mode(_MODE_CYCLE[(index + 1) % len(_MODE_CYCLE)])

    async def action_tool_picker(self) -> None:
        self.controller.set_draft(self._current_draft())
        self.push_screen(
            ToolPickerScreen(
                self.controller.registry, self.controller.composer.active_tools
            ),
            callback=self._on_tool_picked,
        )

    def _on_tool_picked(self, identifier: str | None) -> None:
        if identifier is None:
            return
        self.controller.toggle_tool(identifier)
        self._sync_input_from_composer()

    async def action_group_picker(self) -> None:
        self.controller.set_draft(self._current_draft())
        self.push_screen(
            GroupPickerScreen(self.controller.registry),
            callback=self._on_group_picked,
        )

    def _on_group_picked(self, label: str | None) -> None:
        if label is None:
            return
        self.controller.select_group(label)
        self._sync_input_from_composer()
        self.sub_title = f"Activated tool group: {label}"

    def _open_mode_picker(self) -> None:
        self.push_screen(
            ModePickerScreen(self.controller.composer.mode),
            callback=self._on_mode_picked,
        )

    def _on_mode_picked(self, value: str | None) -> None:
        if value is None:
            return
        self._apply_mode(ToolMode(value))

    def _current_draft(self) -> str:
        input_widget = self._w_input or self.query_one("#message_input", Input)
        return input_widget.value

    async def on_input_box_mode_cycle_requested(
        self, _message: InputBox.ModeCycleRequested
    ) -> None:
        await self.action_cycle_mode()

    async def on_input_box_tool_picker_requested(
        self, _message: InputBox.ToolPickerRequested
    ) -> None:
        await self.action_tool_picker()

    def on_status_bar_mode_picker_requested(
        self, _message: StatusBar.ModePickerRequested
    ) -> None:
        self._open_mode_picker()

    async def action_command_palette(self) -> None:
        """Show slash commands and keybindings."""
        bindings = [(binding.key, binding.description) for binding in self._binding_specs]
        await self.push_screen(InfoScreen(help_text(bindings), title="Help"))

    async def _show_server_tools(self) -> None:
        list_tools = getattr(self.api, "list_tools", None)
        if list_tools is None:
            self.sub_title = "Tool listing is not available."
            return
        try:
            tools = await list_tools()
        except DeepProbeError as exc:
            LOGGER.warning(
                "app.tools.list_failed",
                extra=event_extra(
                    "app.tools.list_failed", error_type=exc.__class__.__name__
                ),
            )
            self.sub_title = f"Could not list server tools: {exc}"
            return
        registry = self.controller.registry
        lines: list[str] = []
        for tool in tools:
            mention = (
                f"@{registry.display_name_for(tool.name)}" if tool.name in registry else "(no mention)"
            )
            lines.append(f"{tool.name} {mention} - {tool.description}")
        await self.push_screen(
            InfoScreen("\n".join(lines) or "No tools reported.", title="Server tools")
        )

    def _build_slash_registry(self) -> dict[str, _SlashHandler]:
        """Map slash command names to async handlers taking the argument text."""

        async def _handle_new(_args: str) -> None:
            await self.action_new_session()

        async def _handle_delete(_args: str) -> None:
            await self.action_delete_session()

        async def _handle_clear(_args: str) -> None:
            await self._run_controller_op(
                self.controller.clear_history,
                failure="Could not clear history",
                success="History cleared",
            )

        async def _handle_sessions(_args: str) -> None:
            await self._run_controller_op(
                self.controller.refresh_sessions,
                failure="Could not refresh sessions",
                success="Sessions refreshed",
            )

        async def _handle_mode(args: str) -> None:
            if not args:
                self._open_mode_picker()
                return
            mode = parse_tool_mode(args)
            if mode is None:
                self.sub_title = f"Unknown tool mode: {args}"
                return
            self._apply_mode(mode)

        async def _handle_tool(args: str) -> None:
            if not args:
                await self.action_tool_picker()
                return
            identifier = resolve_tool_argument(self.controller.registry, args)
            if identifier is None:
                self.sub_title = f"Unknown tool: {args}"
                return
            self.controller.toggle_tool(identifier)
            self._sync_input_from_composer()

        async def _handle_group(args: str) -> None:
            if not args:
                await self.action_group_picker()
                return
            group = resolve_group_argument(self.controller.registry, args)
            if group is None:
                self.sub_title = f"Unknown tool group: {args}"
                return
            self._on_group_picked(group.label)

        async def _handle_tools(_args: str) -> None:
            await self._show_server_tools()

        async def _handle_help(_args: str) -> None:
            await self.action_command_palette()

        return {
            "/new": _handle_new,
            "/delete": _handle_delete,
            "/clear": _handle_clear,
            "/sessions": _handle_sessions,
            "/mode": _handle_mode,
            "/tool": _handle_tool,
            "/group": _handle_group,
            "/tools": _handle_tools,
            "/help": _handle_help,
        }

    async def _dispatch_slash_command(self, command: SlashCommand) -> bool:
        handler = self._slash_registry.get(command.name)
        if handler is None:
            return False
        LOGGER.info(
            "app.slash_command",
            extra=event_extra("app.slash_command", command=command.name),
        )
        await handler(command.args)
        return True

    async def on_unmount(self) -> None:
        await self._stop_placeholder()
        for task in list(self._tasks):
            task.cancel()
        for task in list(self._tasks):
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._owns_api and isinstance(self.api, ResearchApiClient):
            await self.api.aclose()
