"""Built-in timer steps. Each receives the bundle of the module it runs as."""

from __future__ import annotations

import structlog

from churchapi.repositories import ContentRepos

logger = structlog.get_logger()


async def advance_recurring_services(repos: ContentRepos) -> dict[str, int]:
    advanced = await repos.streaming_service.advance_recurring()
    logger.info("Recurring streaming services advanced", advanced=advanced)
    return {"advanced": advanced}
