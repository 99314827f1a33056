"""
Resolves which seller fulfils a customer's order.

A seller is eligible when their address pin code equals the customer's and
they are both approved and verified. Ties go to the earliest-created seller;
there is no load balancing between sellers sharing a pin code.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.enums import VerificationStatus
from marketplace.models.account import Seller

logger = logging.getLogger(__name__)


class SellerMatcher:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_eligible_seller(self, pin_code: str) -> Optional[Seller]:
        """Return the first eligible seller for ``pin_code`` or None."""
        query = (
            select(Seller)
            .where(
                Seller.pin_code == str(pin_code),
                Seller.verification_status == VerificationStatus.APPROVED,
                Seller.is_verified.is_(True),
            )
            .order_by(Seller.created_at.asc(), Seller.id.asc())
            .limit(1)
        )
        result = await self.db.execute(query)
        seller = result.scalars().first()

        if seller is None:
            logger.info("No eligible seller for pin code %s", pin_code)
        else:
            logger.debug("Pin code %s matched seller %s", pin_code, seller.id)
        return seller
