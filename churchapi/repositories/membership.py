"""Membership repositories: users, churches, people and group membership."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from churchapi.repositories.base import RepositoryBundle, TableRepository


class UserRepository(TableRepository):
    table = "users"
    church_scoped = False

    async def load_by_email(self, email: str) -> dict[str, Any] | None:
        return await self.fetch_one(
            "SELECT * FROM users WHERE email = :email",
            {"email": email.strip()},
        )

    async def load_by_auth_guid(self, auth_guid: str) -> dict[str, Any] | None:
        return await self.fetch_one(
            "SELECT * FROM users WHERE authGuid = :auth_guid",
            {"auth_guid": auth_guid},
        )

    async def load_by_ids(self, ids: list[str]) -> list[dict[str, Any]]:
        if not ids:
            return []
        return await self.fetch_all(
            "SELECT * FROM users WHERE id IN :ids",
            {"ids": list(ids)},
            expanding=("ids",),
        )


class ChurchRepository(TableRepository):
    table = "churches"
    church_scoped = False

    async def load_by_subdomain(self, subdomain: str) -> dict[str, Any] | None:
        return await self.fetch_one(
            "SELECT * FROM churches WHERE subDomain = :subdomain",
            {"subdomain": subdomain},
        )


class PersonRepository(TableRepository):
    table = "people"

    async def load_by_ids_only(self, ids: list[str]) -> list[dict[str, Any]]:
        """Load people across churches; used when resolving a user's memberships."""
        if not ids:
            return []
        return await self.fetch_all(
            "SELECT * FROM people WHERE id IN :ids",
            {"ids": list(ids)},
            expanding=("ids",),
        )


class GroupMemberRepository(TableRepository):
    table = "groupMembers"

    async def load_for_people(self, person_ids: list[str]) -> list[dict[str, Any]]:
        if not person_ids:
            return []
        return await self.fetch_all(
            """
            SELECT gm.*, g.name, g.tags
            FROM groupMembers gm
            INNER JOIN `groups` g ON g.id = gm.groupId
            WHERE gm.personId IN :person_ids AND g.removed = 0
            """,
            {"person_ids": list(person_ids)},
            expanding=("person_ids",),
        )


@dataclass(frozen=True)
class MembershipRepos(RepositoryBundle):
    user: UserRepository
    church: ChurchRepository
    person: PersonRepository
    group_member: GroupMemberRepository
