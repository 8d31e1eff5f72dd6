from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any

from proof_explore.models import (
    FRIENDSHIP_STATUSES,
    Friendship,
    PendingKind,
    RequestAction,
    UserProfile,
    ViewMode,
)

logger = logging.getLogger(__name__)


class DirectoryError(RuntimeError):
    """Raised for unreadable directories, unknown users and invalid requests."""


def ordered_pair(first_id: str, second_id: str) -> tuple[str, str]:
    return (first_id, second_id) if first_id < second_id else (second_id, first_id)


def display_name(first_name: str | None, last_name: str | None) -> str:
    return f"{first_name or ''} {last_name or ''}".strip()


def _parse_profile(raw: Mapping[str, Any]) -> tuple[UserProfile, dict[str, Any]]:
    if not isinstance(raw, Mapping):
        raise DirectoryError(f"Profile entry must be an object: {raw!r}")
    try:
        user_id = str(raw["id"])
    except KeyError as exc:
        raise DirectoryError(f"Profile entry is missing an id: {raw!r}") from exc
    profile = UserProfile(
        id=user_id,
        username=str(raw.get("username") or ""),
        name=display_name(raw.get("first_name"), raw.get("last_name")),
    )
    return profile, dict(raw)


def _parse_friendship(raw: Mapping[str, Any]) -> Friendship:
    if not isinstance(raw, Mapping):
        raise DirectoryError(f"Friendship entry must be an object: {raw!r}")
    try:
        user1_id = str(raw["user1_id"])
        user2_id = str(raw["user2_id"])
        status = raw["status"]
        requested_by = str(raw["requested_by"])
    except KeyError as exc:
        raise DirectoryError(
            f"Friendship entry is missing {exc.args[0]!r}: {raw!r}"
        ) from exc
    if status not in FRIENDSHIP_STATUSES:
        raise DirectoryError(f"Unknown friendship status {status!r}.")
    user1_id, user2_id = ordered_pair(user1_id, user2_id)
    return Friendship(
        user1_id=user1_id,
        user2_id=user2_id,
        status=status,
        requested_by=requested_by,
    )


class PeopleDirectory:
    """Profiles and friendship rows, the local stand-in for the user directory."""

    def __init__(
        self,
        profiles: Iterable[UserProfile],
        friendships: Iterable[Friendship] = (),
        *,
        raw_profiles: Mapping[str, dict[str, Any]] | None = None,
    ) -> None:
        self._profiles: dict[str, UserProfile] = {}
        for profile in profiles:
            self._profiles[profile.id] = profile
        self._friendships: dict[tuple[str, str], Friendship] = {}
        for friendship in friendships:
            key = ordered_pair(friendship.user1_id, friendship.user2_id)
            self._friendships[key] = friendship
        self._raw_profiles: dict[str, dict[str, Any]] = dict(raw_profiles or {})

    def copy(self) -> PeopleDirectory:
        return PeopleDirectory(
            self._profiles.values(),
            self._friendships.values(),
            raw_profiles={
                user_id: dict(raw) for user_id, raw in self._raw_profiles.items()
            },
        )

    @classmethod
    def from_dict(cls, data: Any) -> PeopleDirectory:
        if not isinstance(data, Mapping):
            raise DirectoryError("Directory document must be a JSON object.")
        raw_profiles = data.get("profiles", [])
        raw_friends = data.get("friends", [])
        if not isinstance(raw_profiles, list) or not isinstance(raw_friends, list):
            raise DirectoryError("'profiles' and 'friends' must be lists.")

        profiles: list[UserProfile] = []
        originals: dict[str, dict[str, Any]] = {}
        for raw in raw_profiles:
            profile, original = _parse_profile(raw)
            profiles.append(profile)
            originals[profile.id] = original
        friendships = [_parse_friendship(raw) for raw in raw_friends]
        return cls(profiles, friendships, raw_profiles=originals)

    @classmethod
    def load(cls, path: Path) -> PeopleDirectory:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise DirectoryError(f"Could not read {path}: {exc.strerror}") from exc
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise DirectoryError(f"Invalid JSON in {path}: {exc}") from exc

        directory = cls.from_dict(data)
        logger.info(
            "Loaded %d profiles and %d friendships from %s",
            len(directory._profiles),
            len(directory._friendships),
            path,
        )
        return directory

    def to_dict(self) -> dict[str, Any]:
        profiles = []
        for profile in self._profiles.values():
            raw = self._raw_profiles.get(profile.id)
            if raw is None:
                first_name, _, last_name = profile.name.partition(" ")
                raw = {
                    "id": profile.id,
                    "username": profile.username,
                    "first_name": first_name,
                    "last_name": last_name,
                }
            profiles.append(raw)
        return {
            "profiles": profiles,
            "friends": [
                {
                    "user1_id": friendship.user1_id,
                    "user2_id": friendship.user2_id,
                    "status": friendship.status,
                    "requested_by": friendship.requested_by,
                }
                for friendship in self._friendships.values()
            ],
        }

    def save(self, path: Path) -> None:
        try:
            path.write_text(
                json.dumps(self.to_dict(), indent=2) + "\n", encoding="utf-8"
            )
        except OSError as exc:
            raise DirectoryError(f"Could not write {path}: {exc.strerror}") from exc
        logger.debug("Saved directory to %s", path)

    @property
    def profiles(self) -> list[UserProfile]:
        return list(self._profiles.values())

    @property
    def friendships(self) -> list[Friendship]:
        return list(self._friendships.values())

    def get_profile(self, user_id: str) -> UserProfile:
        try:
            return self._profiles[user_id]
        except KeyError as exc:
            raise DirectoryError(f"Unknown user {user_id!r}.") from exc

    def resolve_user(self, identifier: str) -> UserProfile:
        """Find a profile by id, then by case-insensitive username."""
        identifier = identifier.strip()
        if identifier in self._profiles:
            return self._profiles[identifier]

        handle = identifier.removeprefix("@").casefold()
        for profile in self._profiles.values():
            if profile.username.casefold() == handle:
                return profile
        raise DirectoryError(f"Unknown user {identifier!r}.")

    def friendship(self, user_id: str, other_id: str) -> Friendship | None:
        return self._friendships.get(ordered_pair(user_id, other_id))

    def pending_kind(self, user_id: str, other_id: str) -> PendingKind | None:
        friendship = self.friendship(user_id, other_id)
        if friendship is None or friendship.status != "pending":
            return None
        return "outgoing" if friendship.requested_by == user_id else "incoming"

    def explore_candidates(self, user_id: str) -> list[UserProfile]:
        """Everyone except ``user_id`` and their accepted friends."""
        self.get_profile(user_id)
        accepted = {
            friendship.other(user_id)
            for friendship in self._friendships.values()
            if friendship.status == "accepted" and friendship.involves(user_id)
        }
        return [
            replace(profile, pending=self.pending_kind(user_id, profile.id))
            for profile in self._profiles.values()
            if profile.id != user_id and profile.id not in accepted
        ]

    def pending_requests(self, user_id: str) -> list[UserProfile]:
        self.get_profile(user_id)
        requests: list[UserProfile] = []
        for friendship in self._friendships.values():
            if friendship.status != "pending" or not friendship.involves(user_id):
                continue
            other = self._profiles.get(friendship.other(user_id))
            if other is None:
                continue
            direction: PendingKind = (
                "outgoing" if friendship.requested_by == user_id else "incoming"
            )
            requests.append(replace(other, pending=direction))
        return requests

    def friends(self, user_id: str) -> list[UserProfile]:
        self.get_profile(user_id)
        friends: list[UserProfile] = []
        for friendship in self._friendships.values():
            if friendship.status != "accepted" or not friendship.involves(user_id):
                continue
            other = self._profiles.get(friendship.other(user_id))
            if other is not None:
                friends.append(replace(other, friend=True))
        return friends

    def people(self, user_id: str, view: ViewMode) -> list[UserProfile]:
        """The profiles listed by one of the explore, friends or requests views."""
        if view == "friends":
            return self.friends(user_id)
        if view == "requests":
            return self.pending_requests(user_id)
        return self.explore_candidates(user_id)

    def _check_pair(self, user_id: str, other_id: str) -> None:
        if user_id == other_id:
            raise DirectoryError("Cannot send a friend request to yourself.")
        self.get_profile(user_id)
        self.get_profile(other_id)

    def send_request(self, user_id: str, other_id: str) -> Friendship:
        self._check_pair(user_id, other_id)
        existing = self.friendship(user_id, other_id)
        if existing is not None:
            raise DirectoryError(
                f"A friendship with {other_id!r} already exists ({existing.status})."
            )
        user1_id, user2_id = ordered_pair(user_id, other_id)
        friendship = Friendship(
            user1_id=user1_id,
            user2_id=user2_id,
            status="pending",
            requested_by=user_id,
        )
        self._friendships[(user1_id, user2_id)] = friendship
        logger.info("Friend request sent from %s to %s", user_id, other_id)
        return friendship

    def cancel_request(self, user_id: str, other_id: str) -> Friendship:
        self._check_pair(user_id, other_id)
        if self.pending_kind(user_id, other_id) != "outgoing":
            raise DirectoryError(f"No outgoing request to {other_id!r} to cancel.")
        removed = self._friendships.pop(ordered_pair(user_id, other_id))
        logger.info("Friend request from %s to %s cancelled", user_id, other_id)
        return removed

    def accept_request(self, user_id: str, other_id: str) -> Friendship:
        self._check_pair(user_id, other_id)
        if self.pending_kind(user_id, other_id) != "incoming":
            raise DirectoryError(f"No incoming request from {other_id!r} to accept.")
        key = ordered_pair(user_id, other_id)
        accepted = replace(self._friendships[key], status="accepted")
        self._friendships[key] = accepted
        logger.info("Friend request from %s accepted by %s", other_id, user_id)
        return accepted

    def decline_request(self, user_id: str, other_id: str) -> Friendship:
        self._check_pair(user_id, other_id)
        if self.pending_kind(user_id, other_id) != "incoming":
            raise DirectoryError(f"No incoming request from {other_id!r} to decline.")
        removed = self._friendships.pop(ordered_pair(user_id, other_id))
        logger.info("Friend request from %s declined by %s", other_id, user_id)
        return removed

    def remove_friend(self, user_id: str, other_id: str) -> Friendship:
        self._check_pair(user_id, other_id)
        existing = self.friendship(user_id, other_id)
        if existing is None or existing.status != "accepted":
            raise DirectoryError(f"{other_id!r} is not in your friends list.")
        removed = self._friendships.pop(ordered_pair(user_id, other_id))
        logger.info("Friendship between %s and %s removed", user_id, other_id)
        return removed

    def toggle_request(self, user_id: str, other_id: str) -> RequestAction:
        """Send, cancel, or ask the caller to respond, like the explore button."""
        pending = self.pending_kind(user_id, other_id)
        if pending == "incoming":
            return "respond"
        if pending == "outgoing":
            self.cancel_request(user_id, other_id)
            return "cancelled"
        self.send_request(user_id, other_id)
        return "sent"
