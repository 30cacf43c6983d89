"""Reporting runs read-only queries against its own replica."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from churchapi.repositories.base import RepositoryBundle, TableRepository

_READ_ONLY_RE = re.compile(r"^\s*(select|with)\b", re.IGNORECASE)


class ReportQueryRepository(TableRepository):
    table = "reports"

    async def fetch(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        if not _READ_ONLY_RE.match(sql) or ";" in sql.strip().rstrip(";"):
            raise ValueError("Report queries must be a single SELECT statement")
        return await self.fetch_all(sql, params)


@dataclass(frozen=True)
class ReportingRepos(RepositoryBundle):
    report_query: ReportQueryRepository
