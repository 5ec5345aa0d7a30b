"""Postgres-backed Relationship Oracle over friendships and invitations."""

from __future__ import annotations

from typing import Dict, Sequence

from nearby.domain.discovery.relationships import RelationshipFlags, RelationshipOracle
from nearby.infra.postgres import get_pool
from nearby.infra.profile_repo import uuid_strings
from nearby.infra.upstream import upstream_guard


class PostgresRelationshipOracle(RelationshipOracle):
	async def load_flags(self, requester_id: str, candidate_ids: Sequence[str]) -> Dict[str, RelationshipFlags]:
		requester = uuid_strings([requester_id])
		ids = uuid_strings(candidate_ids)
		if not requester or not ids:
			return {}
		async with upstream_guard("relationship_oracle"):
			pool = await get_pool()
			# Membership is read from the candidate's side of the friendship.
			friend_rows = await pool.fetch(
				"""
				SELECT user_id
				FROM friendships
				WHERE friend_id = $1::uuid AND user_id = ANY($2::uuid[]) AND status = 'accepted'
				""",
				requester[0],
				ids,
			)
			pending_rows = await pool.fetch(
				"""
				SELECT to_user_id AS other_id
				FROM invitations
				WHERE from_user_id = $1::uuid AND to_user_id = ANY($2::uuid[]) AND status = 'sent'
				UNION
				SELECT from_user_id AS other_id
				FROM invitations
				WHERE to_user_id = $1::uuid AND from_user_id = ANY($2::uuid[]) AND status = 'sent'
				""",
				requester[0],
				ids,
			)
		friends = {str(row["user_id"]) for row in friend_rows}
		pending = {str(row["other_id"]) for row in pending_rows}
		return {
			uid: RelationshipFlags(is_friend=uid in friends, has_pending_request=uid in pending)
			for uid in friends | pending
		}
