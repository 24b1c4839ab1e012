"""Message bubble widget for conversation rendering."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from rich.console import RenderableType
from rich.markdown import Markdown
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import Static

TOOL_RESULT_PREVIEW_CHARS = 200


class MessageBubble(Vertical):
    """One chat turn: header, reasoning, tool trace, body and tool badges.

    Assistant bodies are shown as plain text while a reply streams in and
    switch to markdown once ``finalize_content`` runs. User bodies are always
    markdown.
    """

    DEFAULT_CSS = """
    MessageBubble {
        height: auto;
    }
    MessageBubble > .bubble-header {
        padding: 0;
    }
    MessageBubble > .bubble-reasoning {
        color: $text-muted;
        padding: 0 1;
        border-left: solid $panel;
        margin-bottom: 1;
    }
    MessageBubble > .bubble-trace {
        color: $text-muted;
        padding: 0 1;
        border-left: solid $warning;
        margin-bottom: 1;
    }
    MessageBubble > .bubble-body {
        height: auto;
    }
    MessageBubble > .bubble-badges {
        color: $accent;
        margin-top: 1;
    }
    """

    def __init__(
        self,
        content: str,
        role: str,
        timestamp: str = "",
        tool_badges: Sequence[str] = (),
        show_thinking: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.message_content = content
        self.role = role
        self.timestamp = timestamp
        self.tool_badges = list(tool_badges)
        self.show_thinking = show_thinking
        self.add_class(f"role-{role}")

        self._reasoning = ""
        self._reasoning_done = False
        self._trace: list[str] = []
        self._rendered_markdown = role == "user"

        # Created in compose(); None until then.
        self._reasoning_view: Static | None = None
        self._trace_view: Static | None = None
        self._body_view: Static | None = None
        self._badge_view: Static | None = None

    @property
    def role_prefix(self) -> str:
        return "You" if self.role == "user" else "Deep Probe"

    def compose(self) -> ComposeResult:
        header = f"**{self.role_prefix}**"
        if self.timestamp:
            header += f"  _{self.timestamp}_"
        self._reasoning_view = Static("", classes="bubble-reasoning")
        self._trace_view = Static("", classes="bubble-trace")
        self._body_view = Static("", classes="bubble-body")
        self._badge_view = Static("", classes="bubble-badges")
        yield Static(Markdown(header), classes="bubble-header")
        if self.show_thinking:
            yield self._reasoning_view
        yield self._trace_view
        yield self._body_view
        yield self._badge_view

    def on_mount(self) -> None:
        self._render_body()
        self._render_reasoning()
        self._render_trace()
        self._render_badges()

    @staticmethod
    def _show(view: Static | None, renderable: RenderableType | None) -> None:
        """Update ``view`` or hide it when there is nothing to show."""
        if view is None:
            return
        view.display = renderable is not None
        if renderable is not None:
            view.update(renderable)

    def _render_body(self) -> None:
        if self._body_view is None:
            return
        text = self.message_content.rstrip()
        if not text:
            self._body_view.update("")
        elif self._rendered_markdown:
            self._body_view.update(Markdown(text))
        else:
            self._body_view.update(Text(text))

    def _render_reasoning(self) -> None:
        if not self.show_thinking:
            return
        label = "Thought" if self._reasoning_done else "Thinking"
        self._show(
            self._reasoning_view,
            Text(f"{label}:\n{self._reasoning}", style="dim italic")
            if self._reasoning
            else None,
        )

    def _render_trace(self) -> None:
        self._show(
            self._trace_view,
            Text("\n".join(self._trace), style="dim") if self._trace else None,
        )

    def _render_badges(self) -> None:
        self._show(
            self._badge_view,
            Text("  ".join(self.tool_badges)) if self.tool_badges else None,
        )

    def set_content(self, content: str) -> None:
        self.message_content = content
        self._render_body()

    def append_content(self, content_chunk: str) -> None:
        self.message_content += content_chunk
        self._render_body()

    async def finalize_content(self) -> None:
        self._rendered_markdown = True
        self._render_body()

    def set_tool_badges(self, badges: Sequence[str]) -> None:
        self.tool_badges = list(badges)
        self._render_badges()

    def append_thinking(self, thinking_chunk: str) -> None:
        self._reasoning += thinking_chunk
        self._render_reasoning()

    def finalize_thinking(self) -> None:
        self._reasoning_done = True
        self._render_reasoning()

    def append_tool_call(self, name: str, args: dict[str, Any]) -> None:
        """Record that the assistant started using a tool."""
        shown_args = ", ".join(f"{key}={value!r}" for key, value in args.items())
        self._trace.append(f"> Using: {name}({shown_args})")
        self._render_trace()

    def append_tool_result(self, name: str, result: str) -> None:
        if len(result) > TOOL_RESULT_PREVIEW_CHARS:
            result = result[:TOOL_RESULT_PREVIEW_CHARS] + "..."
        self._trace.append(f"< {name}: {result}" if result else f"< {name} done")
        self._render_trace()
