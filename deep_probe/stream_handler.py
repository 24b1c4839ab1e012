"""Render a streamed chat turn into a message bubble."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
import time
from typing import Any

from .models import StreamChunk

StopIndicator = Callable[[], Awaitable[None]]


class StreamHandler:
    """Feed ``StreamChunk`` events into a bubble.

    The bubble and scroll callback are passed in so the handler never touches
    the widget tree directly. Text is buffered and flushed every
    ``chunk_size`` chunks.
    """

    def __init__(
        self,
        bubble: Any,
        scroll_callback: Callable[[], None],
        chunk_size: int = 1,
        min_update_interval_seconds: float = 0.05,
        tool_label: Callable[[str], str] | None = None,
    ) -> None:
        self._bubble = bubble
        self._scroll = scroll_callback
        self._chunk_size = max(1, chunk_size)
        self._min_update_interval_seconds = max(0.0, min_update_interval_seconds)
        self._tool_label = tool_label or (lambda name: name)
        self.response_started = False
        self.thinking_started = False
        self.failed = False
        self._content_buffer: list[str] = []
        self._status = ""
        self._last_update_ts = 0.0

    @property
    def status(self) -> str:
        """Latest status line for the app subtitle."""
        return self._status

    def _maybe_scroll(self, *, force: bool = False) -> None:
        now = time.monotonic()
        if (
            force
            or self._min_update_interval_seconds <= 0
            or now - self._last_update_ts >= self._min_update_interval_seconds
        ):
            self._last_update_ts = now
            self._scroll()

    async def _start_response(self, stop_indicator: StopIndicator) -> None:
        if self.response_started:
            return
        await stop_indicator()
        self._bubble.set_content("")
        self.response_started = True

    async def handle_chunk(
        self, chunk: StreamChunk, stop_indicator: StopIndicator
    ) -> None:
        """Dispatch one chunk by type; ``done`` only flushes."""
        if chunk.type == "text":
            await self.handle_text(chunk.content, stop_indicator)
        elif chunk.type == "thinking":
            await self.handle_thinking(chunk.content, stop_indicator)
        elif chunk.type == "tool_start":
            await self.handle_tool_start(chunk.tool_name, chunk.tool_args, stop_indicator)
        elif chunk.type == "tool_end":
            self.handle_tool_end(chunk.tool_name, chunk.content)
        elif chunk.type == "error":
            await self.handle_error(chunk.content, stop_indicator)
        else:
            self.flush_buffer()

    async def handle_thinking(self, text: str, stop_indicator: StopIndicator) -> None:
        await self._start_response(stop_indicator)
        if not self.thinking_started:
            self.thinking_started = True
            self._status = "Thinking..."
        self._bubble.append_thinking(text)
        self._maybe_scroll()

    async def handle_text(self, text: str, stop_indicator: StopIndicator) -> None:
        await self._start_response(stop_indicator)
        if self.thinking_started:
            self._bubble.finalize_thinking()
            self.thinking_started = False
        self._status = "Streaming response..."
        self._content_buffer.append(text)
        if len(self._content_buffer) >= self._chunk_size:
            self.flush_buffer()

    async def handle_tool_start(
        self,
        tool_name: str,
        tool_args: dict[str, Any],
        stop_indicator: StopIndicator,
    ) -> None:
        await self._start_response(stop_indicator)
        self.flush_buffer()
        label = self._tool_label(tool_name)
        self._bubble.append_tool_call(label, tool_args)
        self._status = f"Using tool: {label}..."
        self._maybe_scroll(force=True)

    def handle_tool_end(self, tool_name: str, result: str) -> None:
        self._bubble.append_tool_result(self._tool_label(tool_name), result)
        self._status = "Processing tool result..."
        self._maybe_scroll(force=True)

    async def handle_error(self, text: str, stop_indicator: StopIndicator) -> None:
        await self._start_response(stop_indicator)
        self.flush_buffer()
        self.failed = True
        self._status = f"Stream error: {text}" if text else "Stream error"

    def flush_buffer(self) -> None:
        if self._content_buffer:
            self._bubble.append_content("".join(self._content_buffer))
            self._content_buffer.clear()
            self._maybe_scroll(force=True)

    async def finalize(self, final_content: str | None = None) -> None:
        """Flush pending text and seal the bubble.

        ``final_content`` replaces whatever was streamed, e.g. with the
        apology appended to history after a failure.
        """
        self.flush_buffer()
        if final_content is not None:
            self._bubble.set_content(final_content)
        elif not self.response_started:
            self._bubble.set_content("(No response from the research assistant.)")
        await self._bubble.finalize_content()
