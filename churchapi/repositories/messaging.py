"""Messaging repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from churchapi.repositories.base import RepositoryBundle, TableRepository


class ConversationRepository(TableRepository):
    table = "conversations"


class MessageRepository(TableRepository):
    table = "messages"


class NotificationRepository(TableRepository):
    table = "notifications"

    async def load_undelivered(self, limit: int = 500) -> list[dict[str, Any]]:
        """Unread notifications not yet escalated past in-app delivery, oldest first."""
        return await self.fetch_all(
            """
            SELECT * FROM notifications
            WHERE isNew = 1 AND deliveryMethod IN ('', 'none', 'socket')
            ORDER BY timeSent
            LIMIT :limit
            """,
            {"limit": int(limit)},
        )


@dataclass(frozen=True)
class MessagingRepos(RepositoryBundle):
    conversation: ConversationRepository
    message: MessageRepository
    notification: NotificationRepository
