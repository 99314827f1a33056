"""In-app notifications for accounts."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.enums import NotificationType
from marketplace.core.utils import utc_now
from marketplace.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Persists notifications addressed to a single account.

    Callers treat delivery as fire-and-forget: a failure here must never undo
    the business action that triggered it.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify(
        self,
        account_id: int,
        title: str,
        message: str,
        type: NotificationType = NotificationType.SYSTEM,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        notification = Notification(
            user_id=account_id,
            title=title,
            message=message,
            type=type,
            data=data or {},
            created_at=utc_now(),
        )
        self.db.add(notification)
        await self.db.commit()
        logger.debug("Notification '%s' sent to account %s", title, account_id)
        return notification

    async def list_for_account(self, account_id: int, unread_only: bool = False) -> List[Notification]:
        query = select(Notification).where(Notification.user_id == account_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        result = await self.db.execute(query.order_by(Notification.created_at.desc(), Notification.id.desc()))
        return list(result.scalars().all())
