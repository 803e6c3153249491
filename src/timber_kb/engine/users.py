"""User identity lookup used to gate every request."""

from __future__ import annotations

from typing import Protocol

from timber_kb.types import User


class UserDirectory(Protocol):
    async def get_user(self, user_id: str) -> User | None:
        """Resolve a user, or None when unknown."""


class InMemoryUserDirectory:
    def __init__(self, users: list[User] | None = None) -> None:
        self._users: dict[str, User] = {}
        for user in users or []:
            self.add(user)

    def add(self, user: User) -> None:
        self._users[user.user_id] = user

    async def get_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)
