"""Proximity discovery domain exports."""

from .exceptions import (  # noqa: F401
	AuthError,
	ChannelPermissionError,
	DiscoveryError,
	NotFoundError,
	UpstreamError,
	ValidationError,
)
from .models import Channel, DiscoveryRequest  # noqa: F401
from .schemas import CandidateUser, DiscoveryResult, SignalAck  # noqa: F401
