"""Read-only view of the external user profile directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Protocol, Sequence


@dataclass(slots=True)
class UserProfile:
    """Display fields for a candidate, owned by the account system."""

    user_id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_picture: Optional[str] = None
    bio: Optional[str] = None
    interests: list[str] = field(default_factory=list)
    is_online: bool = False
    date_of_birth: Optional[date] = None

    def age(self, today: date) -> Optional[int]:
        if self.date_of_birth is None:
            return None
        dob = self.date_of_birth
        years = today.year - dob.year
        if (today.month, today.day) < (dob.month, dob.day):
            years -= 1
        return max(years, 0)


class ProfileDirectory(Protocol):
    async def exists(self, user_id: str) -> bool:
        ...

    async def load_profiles(self, user_ids: Sequence[str]) -> dict[str, UserProfile]:
        ...


class InMemoryProfileDirectory(ProfileDirectory):
    """Directory backed by a dict; used in tests and developer environments."""

    def __init__(self, profiles: Iterable[UserProfile] = ()) -> None:
        self._profiles: dict[str, UserProfile] = {profile.user_id: profile for profile in profiles}

    def add(self, profile: UserProfile) -> UserProfile:
        self._profiles[profile.user_id] = profile
        return profile

    async def exists(self, user_id: str) -> bool:
        return user_id in self._profiles

    async def load_profiles(self, user_ids: Sequence[str]) -> dict[str, UserProfile]:
        return {uid: self._profiles[uid] for uid in user_ids if uid in self._profiles}
