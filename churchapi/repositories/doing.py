"""Doing (tasks and automations) repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from churchapi.repositories.base import RepositoryBundle, TableRepository


class TaskRepository(TableRepository):
    table = "tasks"


class AutomationRepository(TableRepository):
    table = "automations"

    async def load_active(self) -> list[dict[str, Any]]:
        return await self.fetch_all("SELECT * FROM automations WHERE active = 1")


@dataclass(frozen=True)
class DoingRepos(RepositoryBundle):
    task: TaskRepository
    automation: AutomationRepository
