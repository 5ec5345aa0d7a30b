"""Postgres-backed profile directory."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Sequence
from uuid import UUID

from nearby.domain.discovery.profiles import ProfileDirectory, UserProfile
from nearby.infra.postgres import get_pool
from nearby.infra.upstream import upstream_guard


def uuid_strings(user_ids: Sequence[str]) -> list[str]:
	valid: list[str] = []
	for uid in dict.fromkeys(user_ids):
		try:
			valid.append(str(UUID(str(uid))))
		except ValueError:
			continue
	return valid


def _interests(value: Any) -> list[str]:
	if value is None:
		return []
	if isinstance(value, str):
		try:
			value = json.loads(value)
		except ValueError:
			return [value]
	if isinstance(value, (list, tuple)):
		return [str(item) for item in value if item]
	return []


def _row_to_profile(row: Any) -> UserProfile:
	return UserProfile(
		user_id=str(row["id"]),
		username=row.get("username"),
		first_name=row.get("first_name"),
		last_name=row.get("last_name"),
		profile_picture=row.get("profile_picture"),
		bio=row.get("bio"),
		interests=_interests(row.get("interests")),
		is_online=bool(row.get("is_online") or False),
		date_of_birth=row.get("date_of_birth"),
	)


class PostgresProfileDirectory(ProfileDirectory):
	"""Reads display fields from the account system's users table."""

	async def exists(self, user_id: str) -> bool:
		ids = uuid_strings([user_id])
		if not ids:
			return False
		async with upstream_guard("profile_directory"):
			pool = await get_pool()
			row: Optional[Any] = await pool.fetchrow(
				"SELECT 1 FROM users WHERE id = $1::uuid AND deleted_at IS NULL",
				ids[0],
			)
		return row is not None

	async def load_profiles(self, user_ids: Sequence[str]) -> Dict[str, UserProfile]:
		ids = uuid_strings(user_ids)
		if not ids:
			return {}
		async with upstream_guard("profile_directory"):
			pool = await get_pool()
			rows = await pool.fetch(
				"""
				SELECT id, username, first_name, last_name, profile_picture, bio, interests,
				       is_online, date_of_birth
				FROM users
				WHERE id = ANY($1::uuid[]) AND deleted_at IS NULL
				""",
				ids,
			)
		return {str(row["id"]): _row_to_profile(row) for row in rows}
