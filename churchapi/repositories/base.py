"""
Repository Base Classes

Every repository is bound to exactly one ModuleDatabase and never chooses a
connection itself. Rows are returned as plain dicts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Iterable, Protocol, get_type_hints

from sqlalchemy import bindparam, text

from churchapi.db.modules import ModuleKey


class SessionSource(Protocol):
    """What a repository needs from a module database."""

    module: ModuleKey

    def session(self) -> Any:
        ...


class TableRepository:
    """
    Church-scoped access to a single table.

    Subclasses set `table` and, for global tables without a churchId
    column, `church_scoped = False`.
    """

    table: ClassVar[str] = ""
    key_column: ClassVar[str] = "id"
    church_scoped: ClassVar[bool] = True

    def __init__(self, db: SessionSource) -> None:
        if not self.table:
            raise TypeError(f"{type(self).__name__} must define `table`")
        self.db = db

    def _scope(self, church_id: str | None) -> tuple[str, dict[str, Any]]:
        if not self.church_scoped:
            return "", {}
        if not church_id:
            raise ValueError(f"church_id is required for {self.table}")
        return " AND churchId = :church_id", {"church_id": church_id}

    async def fetch_all(self, sql: str, params: dict[str, Any] | None = None, *, expanding: Iterable[str] = ()) -> list[dict[str, Any]]:
        statement = text(sql)
        for name in expanding:
            statement = statement.bindparams(bindparam(name, expanding=True))
        async with self.db.session() as session:
            rows = await session.execute(statement, params or {})
            return [dict(row) for row in rows.mappings().all()]

    async def fetch_one(self, sql: str, params: dict[str, Any] | None = None) -> dict[str, Any] | None:
        rows = await self.fetch_all(sql, params)
        return rows[0] if rows else None

    async def load(self, church_id: str | None, id: str) -> dict[str, Any] | None:
        scope, params = self._scope(church_id)
        return await self.fetch_one(
            f"SELECT * FROM {self.table} WHERE {self.key_column} = :id{scope}",
            {"id": id, **params},
        )

    async def load_all(self, church_id: str | None) -> list[dict[str, Any]]:
        scope, params = self._scope(church_id)
        return await self.fetch_all(f"SELECT * FROM {self.table} WHERE 1 = 1{scope}", params)

    async def count(self, church_id: str | None) -> int:
        scope, params = self._scope(church_id)
        row = await self.fetch_one(f"SELECT COUNT(*) AS total FROM {self.table} WHERE 1 = 1{scope}", params)
        return int((row or {}).get("total") or 0)

    async def delete(self, church_id: str | None, id: str) -> None:
        scope, params = self._scope(church_id)
        async with self.db.session() as session:
            await session.execute(
                text(f"DELETE FROM {self.table} WHERE {self.key_column} = :id{scope}"),
                {"id": id, **params},
            )


@dataclass(frozen=True)
class RepositoryBundle:
    """Named set of repositories bound to one module database."""

    module: ModuleKey

    @classmethod
    def build(cls, module: ModuleKey, db: SessionSource) -> "RepositoryBundle":
        """Instantiate every declared repository against `db`."""
        hints = get_type_hints(cls)
        repos = {
            name: hints[name](db)
            for name in cls.__dataclass_fields__
            if name != "module"
        }
        return cls(module=module, **repos)

    def repository_names(self) -> tuple[str, ...]:
        return tuple(name for name in self.__dataclass_fields__ if name != "module")
