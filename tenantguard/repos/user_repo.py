from __future__ import annotations

from typing import Protocol
from uuid import UUID

from tenantguard.models.user import User


class UserRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...
    async def get_by_email(self, email: str) -> User | None: ...
    async def add(self, user: User) -> None: ...
    async def search(self, query: str | None, offset: int, limit: int) -> list[User]: ...
    async def count(self, query: str | None = None) -> int: ...


def _matches(user: User, query: str | None) -> bool:
    if not query:
        return True
    q = query.lower()
    return q in user.email.lower() or q in user.name.lower()


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_email: dict[str, User] = {}
        self._by_id: dict[UUID, User] = {}

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        return self._by_email.get(email.strip().lower())

    async def add(self, user: User) -> None:
        if user.email in self._by_email or user.id in self._by_id:
            raise ValueError("user already exists")
        self._by_email[user.email] = user
        self._by_id[user.id] = user

    async def search(self, query: str | None, offset: int, limit: int) -> list[User]:
        hits = [u for u in self._by_id.values() if _matches(u, query)]
        hits.sort(key=lambda u: u.created_at, reverse=True)
        return hits[offset : offset + limit]

    async def count(self, query: str | None = None) -> int:
        return sum(1 for u in self._by_id.values() if _matches(u, query))
