"""
Webhook log store.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.models.webhook_log import WebhookLog


class WebhookLogRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, log_id: int) -> Optional[WebhookLog]:
        result = await self.session.execute(select(WebhookLog).where(WebhookLog.id == log_id))
        return result.scalar_one_or_none()

    async def add(self, entry: WebhookLog) -> WebhookLog:
        self.session.add(entry)
        await self.session.flush()
        await self.session.refresh(entry)
        return entry

    async def list_failed(self, limit: int = 50) -> list[WebhookLog]:
        """Deliveries whose processing raised; rejected or ignored ones are final."""
        result = await self.session.execute(
            select(WebhookLog)
            .where(WebhookLog.processed.is_(False), WebhookLog.outcome == "failed")
            .order_by(WebhookLog.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark(
        self, entry: WebhookLog, outcome: str, error: Optional[str] = None
    ) -> WebhookLog:
        entry.outcome = outcome
        entry.error = error
        entry.attempts = (entry.attempts or 0) + 1
        entry.processed = outcome in ("processed", "ignored")
        if entry.processed:
            entry.processed_at = datetime.now(timezone.utc)
        await self.session.flush()
        return entry
