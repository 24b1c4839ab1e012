"""Top-level package for the Deep Probe research-assistant client."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .api import ResearchApi, ResearchApiClient
    from .app import DeepProbeApp
    from .config import ensure_config_dir, load_config
    from .controller import ERROR_REPLY_TEXT, SessionController
    from .exceptions import (
        ConfigValidationError,
        ConversationBusyError,
        DeepProbeError,
        ProbeConnectionError,
        ProbeRequestError,
        ProbeResponseError,
        ProbeStreamingError,
        ToolRegistryError,
    )
    from .mentions import Composer, MentionTransformer, ToolMode
    from .message_store import MessageStore
    from .state import AppPhase, ConversationState, StateManager
    from .tool_registry import ToolRegistry, build_default_registry

_EXPORTS: dict[str, str] = {
    "ResearchApi": ".api",
    "ResearchApiClient": ".api",
    "DeepProbeApp": ".app",
    "ensure_config_dir": ".config",
    "load_config": ".config",
    "ERROR_REPLY_TEXT": ".controller",
    "SessionController": ".controller",
    "ConfigValidationError": ".exceptions",
    "ConversationBusyError": ".exceptions",
    "DeepProbeError": ".exceptions",
    "ProbeConnectionError": ".exceptions",
    "ProbeRequestError": ".exceptions",
    "ProbeResponseError": ".exceptions",
    "ProbeStreamingError": ".exceptions",
    "ToolRegistryError": ".exceptions",
    "Composer": ".mentions",
    "MentionTransformer": ".mentions",
    "ToolMode": ".mentions",
    "MessageStore": ".message_store",
    "AppPhase": ".state",
    "ConversationState": ".state",
    "StateManager": ".state",
    "ToolRegistry": ".tool_registry",
    "build_default_registry": ".tool_registry",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> Any:
    """Lazily import symbols so the UI stack loads only when it is used."""
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    from importlib import import_module

    return getattr(import_module(module_name, __name__), name)
