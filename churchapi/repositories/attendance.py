"""Attendance repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from churchapi.repositories.base import RepositoryBundle, TableRepository


class CampusRepository(TableRepository):
    table = "campuses"


class SessionRepository(TableRepository):
    table = "sessions"


class VisitRepository(TableRepository):
    table = "visits"

    async def load_for_person(self, church_id: str, person_id: str) -> list[dict[str, Any]]:
        return await self.fetch_all(
            "SELECT * FROM visits WHERE churchId = :church_id AND personId = :person_id ORDER BY visitDate DESC",
            {"church_id": church_id, "person_id": person_id},
        )


@dataclass(frozen=True)
class AttendanceRepos(RepositoryBundle):
    campus: CampusRepository
    session: SessionRepository
    visit: VisitRepository
