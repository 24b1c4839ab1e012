"""Pure parsing helpers for slash commands typed into the message input."""

from __future__ import annotations

from dataclasses import dataclass

from .mentions import ToolMode
from .tool_registry import ToolGroup, ToolRegistry

SLASH_COMMANDS: tuple[tuple[str, str], ...] = (
    ("/new", "Start a new session"),
    ("/delete", "Delete the active session"),
    ("/clear", "Clear the active session's history"),
    ("/sessions", "Refresh the session list"),
    ("/mode <auto|none|manual>", "Set the tool mode"),
    ("/tool <name>", "Toggle a tool mention"),
    ("/group <label>", "Activate a tool group"),
    ("/tools", "List tools offered by the server"),
    ("/help", "Show help"),
)

KNOWN_COMMANDS = frozenset(usage.split(" ", 1)[0] for usage, _ in SLASH_COMMANDS)


@dataclass(frozen=True)
class SlashCommand:
    """A parsed ``/name args`` input line."""

    name: str
    args: str = ""


def parse_slash_command(text: str) -> SlashCommand | None:
    """Split ``/name rest`` into a command; None when ``text`` is not one.

    Only commands listed in ``SLASH_COMMANDS`` are recognised, so a message
    that merely starts with a slash is sent as chat text.
    """
    stripped = text.strip()
    if not stripped.startswith("/"):
        return None
    parts = stripped.split(maxsplit=1)
    name = parts[0].lower()
    if name not in KNOWN_COMMANDS:
        return None
    return SlashCommand(name=name, args=parts[1].strip() if len(parts) == 2 else "")


def parse_tool_mode(value: str) -> ToolMode | None:
    try:
        return ToolMode(value.strip().lower())
    except ValueError:
        return None


def resolve_tool_argument(registry: ToolRegistry, value: str) -> str | None:
    """Resolve a display name or identifier, with or without ``@``, to an identifier."""
    name = value.strip().lstrip("@")
    if not name:
        return None
    if name in registry:
        return name
    identifier = registry.resolve_display(name)
    if identifier is not None:
        return identifier
    lowered = name.lower()
    for tool in registry.tools:
        if tool.display_name.lower() == lowered or tool.identifier.lower() == lowered:
            return tool.identifier
    return None


def resolve_group_argument(registry: ToolRegistry, value: str) -> ToolGroup | None:
    """Find a group by exact label, then case-insensitively."""
    label = value.strip()
    if not label:
        return None
    group = registry.group(label)
    if group is not None:
        return group
    lowered = label.lower()
    for candidate in registry.groups:
        if candidate.label.lower() == lowered:
            return candidate
    return None


def help_text(bindings: list[tuple[str, str]] | None = None) -> str:
    """Render the help listing shown by ``/help`` and the command palette."""
    lines = ["Commands:", ""]
    for usage, description in SLASH_COMMANDS:
        lines.append(f"{usage} - {description}")
    if bindings:
        lines.append("")
        lines.append("Keybind actions:")
        for key, description in bindings:
            lines.append(f"{key.upper()} - {description}")
    lines.append("")
    lines.append("Mention a tool with @Name (e.g. @Search) to request it explicitly.")
    return "\n".join(lines)
