"""Domain exception hierarchy for the Deep Probe client."""

from __future__ import annotations


class DeepProbeError(RuntimeError):
    """Base class for all domain-level client errors."""


class ProbeConnectionError(DeepProbeError):
    """Raised when the research API cannot be reached or times out."""


class ProbeRequestError(DeepProbeError):
    """Raised when the research API answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProbeResponseError(DeepProbeError):
    """Raised when a response payload cannot be decoded."""


class ProbeStreamingError(DeepProbeError):
    """Raised when a server-sent event stream fails mid-flight."""


class ToolRegistryError(DeepProbeError):
    """Raised when the tool registry configuration is inconsistent."""


class ConfigValidationError(DeepProbeError):
    """Raised when configuration cannot be validated safely."""


class ConversationBusyError(DeepProbeError):
    """Raised when an operation overlaps a send that is still in flight."""
