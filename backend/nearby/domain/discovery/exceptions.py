"""Domain-level exceptions for signal ingestion and proximity discovery."""

from __future__ import annotations

from typing import Any, Optional, Sequence


class DiscoveryError(Exception):
    """Base class for discovery engine errors."""

    reason: str = "unknown"
    retryable: bool = False

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or self.reason)
        if reason:
            self.reason = reason


class ValidationError(DiscoveryError):
    """Malformed coordinates or identifiers, out-of-range radius, unknown channel."""

    reason = "validation_error"

    def __init__(self, reason: str | None = None, errors: Optional[Sequence[dict[str, Any]]] = None) -> None:
        super().__init__(reason)
        self.errors = list(errors or [])


class AuthError(DiscoveryError):
    reason = "invalid_token"


class NotFoundError(DiscoveryError):
    reason = "user_not_found"


class ChannelPermissionError(DiscoveryError):
    """The device refused positioning or radio access for a channel."""

    reason = "capability_denied"

    def __init__(self, channel: str, state: str) -> None:
        super().__init__(f"{channel}_{state}")
        self.channel = channel
        self.state = state


class UpstreamError(DiscoveryError):
    """Signal Store or Relationship Oracle unavailable or timed out."""

    reason = "upstream_unavailable"
    retryable = True

    def __init__(self, reason: str | None = None, *, source: str | None = None) -> None:
        super().__init__(reason)
        self.source = source
