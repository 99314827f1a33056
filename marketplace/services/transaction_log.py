"""Append-only writer for sales transaction events."""

import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.enums import TransactionEventKind
from marketplace.core.utils import utc_now
from marketplace.models.order import Order
from marketplace.models.transaction import TransactionEvent

logger = logging.getLogger(__name__)


class TransactionLog:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(self, order: Order, kind: TransactionEventKind) -> List[TransactionEvent]:
        """
        Add one event per line item of ``order``.

        Runs inside the caller's transaction; the events become visible only
        when the status change they describe is committed.
        """
        timestamp = utc_now()
        events = [
            TransactionEvent(
                order_id=order.id,
                product_id=item.product_id,
                quantity=item.quantity,
                event_kind=kind,
                timestamp=timestamp,
            )
            for item in order.items
        ]
        self.db.add_all(events)
        await self.db.flush()
        logger.debug("Recorded %s %s event(s) for order %s", len(events), kind.value, order.id)
        return events
