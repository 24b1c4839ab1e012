"""Static registry of backend tools and their human-facing mention names."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
import logging
import re
from types import MappingProxyType

from .exceptions import ToolRegistryError
from .logging_utils import event_extra

LOGGER = logging.getLogger(__name__)

_MENTION_WORD = re.compile(r"^\w+$")


@dataclass(frozen=True)
class ToolDescriptor:
    """A backend tool the user can request by mention."""

    identifier: str
    display_name: str
    category: str
    description: str
    icon: str = "🔧"


@dataclass(frozen=True)
class ToolGroup:
    """Named bundle of tools activated together."""

    label: str
    tools: tuple[str, ...]
    description: str = ""
    icon: str = "⚡"


DEFAULT_TOOLS: tuple[ToolDescriptor, ...] = (
    ToolDescriptor("google_search", "Search", "search", "Search the web", "🔍"),
    ToolDescriptor("news_search", "News", "news", "Latest news", "📰"),
    ToolDescriptor("stock_price", "Stocks", "finance", "Stock data", "📈"),
    ToolDescriptor("wikipedia_fetch", "Wikipedia", "information", "Encyclopedia", "📖"),
    ToolDescriptor("youtube_search", "YouTube", "media", "Find videos", "▶"),
    ToolDescriptor("youtube_transcribe", "Transcript", "media", "Video text", "📝"),
    ToolDescriptor("html_skim", "Web", "web", "Read pages", "🌐"),
    ToolDescriptor("weather_forecast", "Weather", "weather", "Forecasts", "☁"),
    ToolDescriptor("pubmed_search", "PubMed", "medical", "Medical research", "❤"),
    ToolDescriptor(
        "openstreetmap_search",
        "Maps",
        "location",
        "Find locations and addresses",
        "🗺",
    ),
    ToolDescriptor(
        "github_search", "GitHub", "development", "Search code repositories", "🐙"
    ),
    ToolDescriptor(
        "country_info", "Countries", "location", "Country data and statistics", "🏳"
    ),
    ToolDescriptor(
        "timezone_api", "Timezone", "location", "World timezone information", "🕒"
    ),
)

DEFAULT_TOOL_GROUPS: tuple[ToolGroup, ...] = (
    ToolGroup(
        "Research & Facts",
        ("google_search", "wikipedia_fetch", "pubmed_search"),
        "Comprehensive information gathering",
        "🔍",
    ),
    ToolGroup(
        "News & Updates",
        ("news_search", "google_search"),
        "Latest news and current events",
        "📰",
    ),
    ToolGroup(
        "Verify News",
        ("news_search", "google_search", "html_skim"),
        "Cross-check and verify stories",
        "🛡",
    ),
    ToolGroup(
        "Video Analysis",
        ("youtube_search", "youtube_transcribe"),
        "Find and analyze video content",
        "▶",
    ),
    ToolGroup(
        "Market Data",
        ("stock_price", "news_search"),
        "Financial information and analysis",
        "📈",
    ),
    ToolGroup(
        "Location & Maps",
        ("openstreetmap_search", "timezone_api", "country_info"),
        "Geographic and location services",
        "📍",
    ),
    ToolGroup(
        "Development Tools",
        ("github_search", "html_skim"),
        "Code search and web development",
        "💻",
    ),
)


class ToolRegistry:
    """Immutable two-way index between tool identifiers and display names.

    Construction validates that identifiers and display names are each unique,
    that every display name is a single mention word, and that groups only
    reference registered tools. Any violation raises ``ToolRegistryError``.
    """

    def __init__(
        self,
        tools: Iterable[ToolDescriptor],
        groups: Iterable[ToolGroup] = (),
    ) -> None:
        by_identifier: dict[str, ToolDescriptor] = {}
        display_to_identifier: dict[str, str] = {}
        for tool in tools:
            if tool.identifier in by_identifier:
                raise ToolRegistryError(
                    f"Duplicate tool identifier {tool.identifier!r}."
                )
            if tool.display_name in display_to_identifier:
                raise ToolRegistryError(
                    f"Duplicate tool display name {tool.display_name!r} "
                    f"({display_to_identifier[tool.display_name]!r} and {tool.identifier!r})."
                )
            if not _MENTION_WORD.match(tool.identifier):
                raise ToolRegistryError(
                    f"Tool identifier {tool.identifier!r} is not a mention word."
                )
            if not _MENTION_WORD.match(tool.display_name):
                raise ToolRegistryError(
                    f"Tool display name {tool.display_name!r} is not a mention word."
                )
            by_identifier[tool.identifier] = tool
            display_to_identifier[tool.display_name] = tool.identifier

        group_index: dict[str, ToolGroup] = {}
        for group in groups:
            if group.label in group_index:
                raise ToolRegistryError(f"Duplicate tool group {group.label!r}.")
            unknown = [name for name in group.tools if name not in by_identifier]
            if unknown:
                raise ToolRegistryError(
                    f"Tool group {group.label!r} references unknown tools: {', '.join(unknown)}."
                )
            group_index[group.label] = group

        self._tools = tuple(by_identifier.values())
        self._by_identifier = MappingProxyType(by_identifier)
        self._identifier_to_display: Mapping[str, str] = MappingProxyType(
            {tool.identifier: tool.display_name for tool in self._tools}
        )
        self._display_to_identifier: Mapping[str, str] = MappingProxyType(
            display_to_identifier
        )
        self._groups = tuple(group_index.values())
        self._group_index = MappingProxyType(group_index)

    @property
    def tools(self) -> tuple[ToolDescriptor, ...]:
        """Registered tools in configuration order."""
        return self._tools

    @property
    def groups(self) -> tuple[ToolGroup, ...]:
        return self._groups

    @property
    def identifier_to_display(self) -> Mapping[str, str]:
        return self._identifier_to_display

    @property
    def display_to_identifier(self) -> Mapping[str, str]:
        return self._display_to_identifier

    def lookup(self, identifier: str) -> ToolDescriptor | None:
        """Return the descriptor for a backend identifier, if registered."""
        return self._by_identifier.get(identifier)

    def resolve_display(self, display_name: str) -> str | None:
        """Return the backend identifier for a display name, if registered."""
        return self._display_to_identifier.get(display_name)

    def display_name_for(self, identifier: str) -> str:
        """Return the display name, falling back to the identifier itself."""
        return self._identifier_to_display.get(identifier, identifier)

    def group(self, label: str) -> ToolGroup | None:
        return self._group_index.get(label)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._by_identifier

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._tools)


def build_default_registry() -> ToolRegistry:
    """Build the registry of tools served by the research API."""
    registry = ToolRegistry(DEFAULT_TOOLS, DEFAULT_TOOL_GROUPS)
    LOGGER.debug(
        "tools.registry.built",
        extra=event_extra(
            "tools.registry.built",
            tool_count=len(registry),
            group_count=len(registry.groups),
        ),
    )
    return registry
