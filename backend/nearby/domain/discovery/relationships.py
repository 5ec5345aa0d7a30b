"""Relationship Oracle: friendship and pending-request lookups."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence


@dataclass(slots=True, frozen=True)
class RelationshipFlags:
    is_friend: bool = False
    has_pending_request: bool = False


class RelationshipOracle(Protocol):
    async def load_flags(self, requester_id: str, candidate_ids: Sequence[str]) -> dict[str, RelationshipFlags]:
        """Flags per candidate; candidates without any relationship may be omitted.

        is_friend holds when the requester is in the candidate's accepted friends.
        has_pending_request holds when an unanswered request exists in either direction.
        """
        ...


class InMemoryRelationshipOracle(RelationshipOracle):
    """Oracle over in-process sets; used in tests and developer environments."""

    def __init__(self) -> None:
        self._friends: dict[str, set[str]] = {}
        self._pending: set[tuple[str, str]] = set()

    def add_friendship(self, user_a: str, user_b: str) -> None:
        self._friends.setdefault(user_a, set()).add(user_b)
        self._friends.setdefault(user_b, set()).add(user_a)

    def add_request(self, from_user: str, to_user: str) -> None:
        self._pending.add((from_user, to_user))

    def resolve_request(self, from_user: str, to_user: str) -> None:
        self._pending.discard((from_user, to_user))

    async def load_flags(self, requester_id: str, candidate_ids: Sequence[str]) -> dict[str, RelationshipFlags]:
        flags: dict[str, RelationshipFlags] = {}
        for candidate_id in candidate_ids:
            is_friend = requester_id in self._friends.get(candidate_id, set())
            pending = (requester_id, candidate_id) in self._pending or (candidate_id, requester_id) in self._pending
            if is_friend or pending:
                flags[candidate_id] = RelationshipFlags(is_friend=is_friend, has_pending_request=pending)
        return flags
