from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

PendingKind = Literal["outgoing", "incoming"]
FriendshipStatus = Literal["pending", "accepted"]
RequestAction = Literal["sent", "cancelled", "respond"]
ViewMode = Literal["explore", "friends", "requests"]

FRIENDSHIP_STATUSES: frozenset[str] = frozenset({"pending", "accepted"})
VIEW_MODES: tuple[ViewMode, ...] = ("explore", "friends", "requests")


@dataclass(frozen=True)
class UserProfile:
    id: str
    username: str
    name: str
    pending: PendingKind | None = None
    friend: bool = False


@dataclass(frozen=True)
class Friendship:
    user1_id: str
    user2_id: str
    status: FriendshipStatus
    requested_by: str

    def involves(self, user_id: str) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def other(self, user_id: str) -> str:
        return self.user2_id if self.user1_id == user_id else self.user1_id


@dataclass(frozen=True)
class MatchResult:
    candidate: Any
    score: float
