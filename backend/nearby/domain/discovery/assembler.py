"""Result assembly: dedupe, order, truncate and wrap in the response envelope."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from nearby.domain.discovery.models import Channel, RawCandidate
from nearby.domain.discovery.schemas import CandidateUser, ChannelContext, DiscoveryResult

Annotated = tuple[RawCandidate, CandidateUser]


def _order_key(channel: Channel):
	if channel is Channel.GPS:
		# Closest first; distance is read from the raw candidate so privacy gating
		# of the outward field does not change the order.
		return lambda item: (item[0].proximity.distance_m or 0.0, item[0].user_id)
	return lambda item: (-item[0].signal_updated_at.timestamp(), item[0].user_id)


def rank(channel: Channel, annotated: Sequence[Annotated], *, cap: int) -> list[CandidateUser]:
	ordered = sorted(annotated, key=_order_key(channel))
	seen: set[str] = set()
	users: list[CandidateUser] = []
	for _, view in ordered:
		if view.id in seen:
			continue
		seen.add(view.id)
		users.append(view)
		if len(users) >= cap:
			break
	return users


def package(
	channel: Channel,
	users: list[CandidateUser],
	*,
	context: ChannelContext,
	generated_at: datetime,
	message: Optional[str] = None,
) -> DiscoveryResult:
	return DiscoveryResult(
		channel=channel.value,
		users=users,
		total_found=len(users),
		channel_context=context,
		timestamp=generated_at,
		message=message,
	)
