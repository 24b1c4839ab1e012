"""Tool-mention parsing, rewriting, and the message composer draft state.

Two mention syntaxes coexist in message text:

* display syntax, ``@Search``, typed and read by the user;
* backend syntax, ``@google_search``, understood by the research API.

Rewriting is done from a single left-to-right tokenisation of ``@word``
tokens, so each token is replaced at most once and a display name that is a
prefix of another word (``@News`` inside ``@Newsletter``) is never touched.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
import logging
import re

from .logging_utils import event_extra
from .tool_registry import ToolRegistry

LOGGER = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"@(\w+)")
_MENTION_WITH_TRAILING_SPACE = re.compile(r"@\w+\s*")

NO_TOOLS_MARKER = "[NO_TOOLS] "


class ToolMode(str, Enum):
    """Tool-invocation policy of the message being composed."""

    AUTO = "auto"
    NONE = "none"
    MANUAL = "manual"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class MentionToken:
    """An ``@word`` occurrence located in a piece of text."""

    start: int
    end: int
    word: str

    @property
    def text(self) -> str:
        return f"@{self.word}"


class MentionTransformer:
    """Convert between display and backend mention syntax."""

    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    @staticmethod
    def tokenize(text: str) -> list[MentionToken]:
        """Return every ``@word`` token of ``text`` in order of appearance."""
        return [
            MentionToken(start=match.start(), end=match.end(), word=match.group(1))
            for match in MENTION_PATTERN.finditer(text)
        ]

    def _rewrite(self, text: str, resolve: Callable[[str], str | None]) -> str:
        parts: list[str] = []
        cursor = 0
        for token in self.tokenize(text):
            replacement = resolve(token.word)
            if replacement is None:
                continue
            parts.append(text[cursor : token.start])
            parts.append(f"@{replacement}")
            cursor = token.end
        if not parts:
            return text
        parts.append(text[cursor:])
        return "".join(parts)

    def to_display(self, text: str) -> str:
        """Rewrite backend mentions to display mentions (history replay only)."""
        return self._rewrite(text, self.registry.identifier_to_display.get)

    def to_backend(self, text: str) -> str:
        """Rewrite every known display mention to its backend identifier."""
        return self._rewrite(text, self.registry.resolve_display)

    def extract_mentions(self, text: str) -> tuple[str, ...]:
        """Return identifiers of the display mentions in ``text``, first occurrence first."""
        seen: dict[str, None] = {}
        for token in self.tokenize(text):
            identifier = self.registry.resolve_display(token.word)
            if identifier is not None:
                seen.setdefault(identifier, None)
        return tuple(seen)

    @staticmethod
    def strip_mentions(text: str) -> str:
        """Remove every mention token together with its trailing whitespace."""
        return _MENTION_WITH_TRAILING_SPACE.sub("", text)

    def strip_mention(self, text: str, identifier: str) -> str:
        """Remove every display mention of one tool together with its trailing whitespace."""
        display_name = self.registry.display_name_for(identifier)
        pattern = re.compile(rf"@{re.escape(display_name)}(?!\w)\s*")
        return pattern.sub("", text)


@dataclass
class ComposerState:
    """Draft of the message being composed."""

    text: str = ""
    mode: ToolMode = ToolMode.AUTO
    active_tools: list[str] = field(default_factory=list)


class Composer:
    """Keep a draft's active tool set consistent with the mentions it contains.

    In manual mode ``active_tools`` always equals the mentions present in the
    text. In auto and none modes it is empty.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        mode: ToolMode | str = ToolMode.AUTO,
        transformer: MentionTransformer | None = None,
    ) -> None:
        self.registry = registry
        self.transformer = transformer or MentionTransformer(registry)
        self.state = ComposerState(mode=ToolMode(mode))

    @property
    def text(self) -> str:
        return self.state.text

    @property
    def mode(self) -> ToolMode:
        return self.state.mode

    @property
    def active_tools(self) -> tuple[str, ...]:
        return tuple(self.state.active_tools)

    def reconcile(self) -> tuple[str, ...]:
        """Resynchronise ``active_tools`` from the mentions present in the draft."""
        if self.state.mode is ToolMode.MANUAL:
            mentioned = list(self.transformer.extract_mentions(self.state.text))
            if mentioned != self.state.active_tools:
                LOGGER.debug(
                    "composer.tools.reconciled",
                    extra=event_extra(
                        "composer.tools.reconciled",
                        before=list(self.state.active_tools),
                        after=mentioned,
                    ),
                )
            self.state.active_tools = mentioned
        else:
            self.state.active_tools = []
        return self.active_tools

    def set_text(self, text: str) -> None:
        """Replace the draft text (e.g. on every edit of the input field)."""
        self.state.text = text
        if self.state.mode is ToolMode.MANUAL:
            self.reconcile()

    def apply_tool_selection(self, identifier: str) -> None:
        """Append the tool's mention to the draft and switch to manual mode."""
        if identifier not in self.registry:
            raise KeyError(f"Unknown tool {identifier!r}")
        mention = f"@{self.registry.display_name_for(identifier)} "
        text = self.state.text
        if text and not text[-1].isspace():
            text += " "
        self.state.text = text + mention
        if identifier not in self.state.active_tools:
            self.state.active_tools.append(identifier)
        self.state.mode = ToolMode.MANUAL
        self.reconcile()

    def apply_group(self, label: str) -> None:
        """Activate every tool of a group that is not active yet."""
        group = self.registry.group(label)
        if group is None:
            raise KeyError(f"Unknown tool group {label!r}")
        for identifier in group.tools:
            if identifier not in self.state.active_tools:
                self.apply_tool_selection(identifier)
        self.state.mode = ToolMode.MANUAL
        self.reconcile()

    def remove_tool(self, identifier: str) -> None:
        """Strip the tool's mentions from the draft and deactivate it."""
        self.state.text = self.transformer.strip_mention(self.state.text, identifier)
        if identifier in self.state.active_tools:
            self.state.active_tools.remove(identifier)
        if self.state.mode is ToolMode.MANUAL:
            self.reconcile()

    def toggle_tool(self, identifier: str) -> None:
        """Remove an active tool, otherwise select it."""
        if identifier in self.state.active_tools:
            self.remove_tool(identifier)
        else:
            self.apply_tool_selection(identifier)

    def set_mode(self, mode: ToolMode | str) -> None:
        """Switch tool mode; leaving manual strips every mention from the draft."""
        new_mode = ToolMode(mode)
        self.state.mode = new_mode
        if new_mode is ToolMode.MANUAL:
            self.reconcile()
            return
        self.state.text = self.transformer.strip_mentions(self.state.text)
        self.state.active_tools = []

    def encode_for_submission(self) -> str | None:
        """Return the wire text for the current draft, or None when it is blank.

        The live draft is left unchanged.
        """
        trimmed = self.state.text.strip()
        if not trimmed:
            return None
        self.reconcile()
        mode = self.state.mode
        if mode is ToolMode.NONE:
            if trimmed.startswith(NO_TOOLS_MARKER):
                return trimmed
            return f"{NO_TOOLS_MARKER}{trimmed}"
        if mode is ToolMode.MANUAL:
            return self.transformer.to_backend(trimmed)
        return trimmed

    def reset(self) -> None:
        """Clear the draft after a submission; the mode is kept."""
        self.state.text = ""
        self.state.active_tools = []
