"""
Stock reservations against Product.quantity.

Every change is a single conditional UPDATE executed in the caller's
transaction, so the stock check and the decrement can never be split by a
concurrent request:

    UPDATE products SET quantity = quantity - :qty
    WHERE id = :id AND quantity >= :qty

Nothing here commits; the order workflow commits or rolls back the reservation
together with the order rows it backs.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import Settings, get_settings
from marketplace.core.exceptions import InsufficientStockError, ProductNotFoundError
from marketplace.core.utils import utc_now
from marketplace.models.product import Product

logger = logging.getLogger(__name__)


class InventoryLedger:
    def __init__(self, db: AsyncSession, settings: Settings = None):
        self.db = db
        self.settings = settings or get_settings()

    async def current_quantity(self, product_id: int):
        """Quantity on hand as stored right now, or None for an unknown product."""
        result = await self.db.execute(select(Product.quantity).where(Product.id == product_id))
        return result.scalar_one_or_none()

    async def reserve(self, product_id: int, quantity: int) -> None:
        """Decrement stock by ``quantity`` or raise InsufficientStockError."""
        if quantity < 1:
            raise ValueError("Reservation quantity must be positive")

        attempts = max(1, self.settings.STOCK_RESERVATION_RETRIES)
        for attempt in range(1, attempts + 1):
            result = await self.db.execute(
                update(Product)
                .where(Product.id == product_id, Product.quantity >= quantity)
                .values(quantity=Product.quantity - quantity, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                logger.debug("Reserved %s of product %s", quantity, product_id)
                return

            available = await self.current_quantity(product_id)
            if available is None:
                raise ProductNotFoundError(product_id)
            if available < quantity:
                logger.info(
                    "Insufficient stock for product %s: requested %s, available %s",
                    product_id, quantity, available,
                )
                raise InsufficientStockError(product_id, quantity, available)

            # Stock moved between the update and the re-read; try again
            logger.warning(
                "Stock for product %s changed during reservation (attempt %s/%s)",
                product_id, attempt, attempts,
            )

        available = await self.current_quantity(product_id)
        raise InsufficientStockError(product_id, quantity, available or 0)

    async def release(self, product_id: int, quantity: int) -> None:
        """Return ``quantity`` units to stock."""
        if quantity < 1:
            raise ValueError("Release quantity must be positive")

        result = await self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(quantity=Product.quantity + quantity, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ProductNotFoundError(product_id)
        logger.debug("Released %s of product %s", quantity, product_id)
