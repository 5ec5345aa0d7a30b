"""Relationship annotation and privacy projection of raw candidates."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from nearby.domain.discovery.models import Channel, RawCandidate
from nearby.domain.discovery.profiles import ProfileDirectory, UserProfile
from nearby.domain.discovery.relationships import RelationshipFlags, RelationshipOracle
from nearby.domain.discovery.schemas import CandidateUser
from nearby.infra.upstream import with_deadline
from nearby.settings import settings

logger = logging.getLogger(__name__)

_NO_FLAGS = RelationshipFlags()


def project_candidate(
	candidate: RawCandidate,
	profile: UserProfile,
	flags: RelationshipFlags,
	*,
	now: datetime,
) -> CandidateUser:
	"""Build the outward view; hidden fields are never set, not merely blanked."""
	privacy = candidate.privacy
	proximity = candidate.proximity
	view = CandidateUser(
		id=candidate.user_id,
		username=profile.username,
		first_name=profile.first_name,
		last_name=profile.last_name,
		profile_picture=profile.profile_picture,
		bio=profile.bio,
		interests=list(profile.interests),
		is_online=profile.is_online,
		is_friend=flags.is_friend,
		has_pending_request=flags.has_pending_request,
		show_age=privacy.show_age,
		show_location=privacy.show_location,
		show_last_seen=privacy.show_last_seen,
	)
	if privacy.show_age:
		view.age = profile.age(now.date())
	if privacy.show_location:
		if proximity.distance_m is not None:
			view.distance = round(proximity.distance_m)
		if proximity.estimated_distance_m is not None:
			view.estimated_distance_m = proximity.estimated_distance_m
	if privacy.show_last_seen:
		view.last_seen = candidate.last_seen
		if proximity.channel is Channel.WIFI:
			view.last_seen_wifi = candidate.signal_updated_at
		elif proximity.channel is Channel.BLUETOOTH:
			view.bluetooth_last_update = candidate.signal_updated_at
	return view


class CandidateAnnotator:
	"""Joins candidates with display fields and relationship flags."""

	def __init__(
		self,
		profiles: ProfileDirectory,
		relationships: RelationshipOracle,
		*,
		deadline: Optional[float] = None,
	) -> None:
		self._profiles = profiles
		self._relationships = relationships
		self._deadline = deadline if deadline is not None else settings.store_deadline_seconds

	async def annotate(
		self,
		requester_id: str,
		candidates: Sequence[RawCandidate],
		*,
		now: datetime,
	) -> list[tuple[RawCandidate, CandidateUser]]:
		if not candidates:
			return []
		ids = list(dict.fromkeys(candidate.user_id for candidate in candidates))
		profiles = await with_deadline(
			self._profiles.load_profiles(ids),
			source="profile_directory",
			timeout=self._deadline,
		)
		flags = await with_deadline(
			self._relationships.load_flags(requester_id, ids),
			source="relationship_oracle",
			timeout=self._deadline,
		)
		annotated: list[tuple[RawCandidate, CandidateUser]] = []
		for candidate in candidates:
			profile = profiles.get(candidate.user_id)
			if profile is None:
				# Signal rows can outlive deleted accounts.
				continue
			view = project_candidate(candidate, profile, flags.get(candidate.user_id, _NO_FLAGS), now=now)
			annotated.append((candidate, view))
		dropped = len(candidates) - len(annotated)
		if dropped:
			logger.debug("candidates without directory profile dropped count=%s", dropped)
		return annotated
