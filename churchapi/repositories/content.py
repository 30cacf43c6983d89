"""Content repositories."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import text

from churchapi.repositories.base import RepositoryBundle, TableRepository

RECURRENCE_INTERVAL = timedelta(weeks=1)


def next_occurrence(service_time: datetime, now: datetime) -> datetime:
    """First weekly repeat of `service_time` strictly after `now`."""
    if service_time > now:
        return service_time
    periods = (now - service_time) // RECURRENCE_INTERVAL + 1
    return service_time + periods * RECURRENCE_INTERVAL


class SermonRepository(TableRepository):
    table = "sermons"


class PlaylistRepository(TableRepository):
    table = "playlists"


class StreamingServiceRepository(TableRepository):
    table = "streamingServices"

    async def load_recurring_before(self, cutoff: datetime) -> list[dict[str, Any]]:
        """Recurring services whose start has passed; these need advancing."""
        return await self.fetch_all(
            "SELECT * FROM streamingServices WHERE recurring = 1 AND serviceTime < :cutoff",
            {"cutoff": cutoff},
        )

    async def advance_recurring(self, now: datetime | None = None) -> int:
        """
        Move every past recurring service to its next weekly occurrence.

        Service times are stored as naive UTC. Returns the number of services
        advanced.
        """
        now = now or datetime.now(timezone.utc).replace(tzinfo=None)
        rows = await self.load_recurring_before(now)
        if not rows:
            return 0

        async with self.db.session() as session:
            for row in rows:
                await session.execute(
                    text(
                        "UPDATE streamingServices SET serviceTime = :service_time "
                        "WHERE id = :id AND churchId = :church_id"
                    ),
                    {
                        "service_time": next_occurrence(row["serviceTime"], now),
                        "id": row["id"],
                        "church_id": row["churchId"],
                    },
                )
        return len(rows)


@dataclass(frozen=True)
class ContentRepos(RepositoryBundle):
    sermon: SermonRepository
    playlist: PlaylistRepository
    streaming_service: StreamingServiceRepository
