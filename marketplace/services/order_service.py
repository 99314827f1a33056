"""
Purpose: The order workflow engine.

Role: Places orders against the seller serving the customer's pin code and
drives them through their status lifecycle.

Placement runs as one database transaction:
- validate the request and the customer (no writes yet)
- resolve the seller for the customer's stored pin code
- load every product and snapshot its current price
- reserve stock for every line through the InventoryLedger
- insert the order, its items and the first tracking entry
- append one ``order_placed`` transaction event per item

Any failure rolls the whole transaction back, so a failed placement leaves no
order, no events and untouched stock.

Status changes are compare-and-set on the stored status: legality is checked
against the status read inside the transaction and the UPDATE only applies if
that status is still the one stored. Cancelling or rejecting releases the
reserved stock in the same transaction.
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import Settings, get_settings
from marketplace.core.enums import (
    CANCELLABLE_STATUSES,
    ORDER_TRANSITIONS,
    STATUS_DESCRIPTIONS,
    NotificationType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    TransactionEventKind,
)
from marketplace.core.exceptions import (
    BaseServiceError,
    CannotCancelError,
    DatabaseError,
    InsufficientStockError,
    InvalidTransitionError,
    NoSellerAvailableError,
    OrderConflictError,
    OrderNotFoundError,
    OrderValidationError,
    ProductNotFoundError,
)
from marketplace.core.utils import model_to_schema, models_to_schemas, to_money, utc_now
from marketplace.models.order import Order, OrderItem, OrderTracking
from marketplace.models.product import Product
from marketplace.schemas.order import OrderLineRequest, OrderRead, TrackingEntryRead, TrackingRead
from marketplace.services.account_service import AccountService
from marketplace.services.inventory_ledger import InventoryLedger
from marketplace.services.notification_service import NotificationService
from marketplace.services.seller_matcher import SellerMatcher
from marketplace.services.transaction_log import TransactionLog

logger = logging.getLogger(__name__)

OrderLine = Union[OrderLineRequest, Mapping]


class OrderService:
    def __init__(
        self,
        db: AsyncSession,
        settings: Optional[Settings] = None,
        notifier: Optional[NotificationService] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.accounts = AccountService(db)
        self.matcher = SellerMatcher(db)
        self.ledger = InventoryLedger(db, self.settings)
        self.transactions = TransactionLog(db)
        self.notifier = notifier or NotificationService(db)

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------
    async def place_order(
        self,
        customer_id: int,
        items: Iterable[OrderLine],
        payment_method: Union[PaymentMethod, str],
        prescription_image: Optional[str] = None,
        upi_id: Optional[str] = None,
        doctor: Optional[str] = None,
        notify: bool = True,
    ) -> OrderRead:
        """
        Place an order for ``customer_id``.

        Args:
            customer_id: Account id of the ordering customer
            items: Lines with ``product_id`` (or ``productId``) and ``quantity``
            payment_method: cod, upi or wallet
            prescription_image: Optional image reference for prescription items
            upi_id: Required for UPI payments
            doctor: Optional prescribing doctor
            notify: Notify the seller before returning. Callers that schedule
                ``notify_seller`` themselves (the HTTP layer) pass False.

        Returns:
            The created order

        Raises:
            OrderValidationError: Malformed request or incomplete customer address
            AccountNotFoundError: Unknown customer
            NoSellerAvailableError: No eligible seller serves the customer's pin code
            ProductNotFoundError: A requested product does not exist
            InsufficientStockError: A line exceeds the stock on hand
        """
        lines = self._normalise_lines(items)
        method = self._parse_payment_method(payment_method)
        if method == PaymentMethod.UPI and not upi_id:
            raise OrderValidationError("upi_id is required for UPI payments")

        try:
            customer = await self.accounts.get_customer(customer_id)
            if not customer.has_complete_address(self.settings.SERVICEABLE_PIN_LENGTH):
                raise OrderValidationError(
                    "Customer address is incomplete; a street, city, state and 6-digit pin code are required",
                    {"customer_id": customer_id},
                )

            # The pin code always comes from the stored address, never the request
            seller = await self.matcher.find_eligible_seller(customer.pin_code)
            if seller is None:
                raise NoSellerAvailableError(customer.pin_code)

            products = await self._load_products(lines)

            order_items = []
            total_amount = to_money(0)
            for product_id, quantity in lines.items():
                product = products[product_id]
                if product.quantity < quantity:
                    raise InsufficientStockError(product_id, quantity, product.quantity)
                unit_price = to_money(product.price)
                line_total = to_money(unit_price * quantity)
                total_amount += line_total
                order_items.append(
                    OrderItem(
                        product_id=product_id,
                        product_name=product.name,
                        quantity=quantity,
                        unit_price=unit_price,
                        line_total=line_total,
                    )
                )

            # Write pass
            for product_id, quantity in lines.items():
                await self.ledger.reserve(product_id, quantity)

            now = utc_now()
            order = Order(
                customer_id=customer.id,
                seller_id=seller.id,
                total_amount=total_amount,
                shipping_address={"name": customer.name, **customer.address},
                status=OrderStatus.PENDING,
                payment_method=method,
                payment_status=PaymentStatus.PAID if method == PaymentMethod.UPI else PaymentStatus.PENDING,
                upi_id=upi_id,
                prescription_image=prescription_image,
                doctor=doctor,
                created_at=now,
                updated_at=now,
                items=order_items,
                tracking=[
                    OrderTracking(
                        status=OrderStatus.PENDING,
                        description=STATUS_DESCRIPTIONS[OrderStatus.PENDING],
                        created_at=now,
                    )
                ],
            )
            self.db.add(order)
            await self.db.flush()

            await self.transactions.record(order, TransactionEventKind.ORDER_PLACED)
            await self.db.commit()

        except BaseServiceError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Database error placing order for customer %s", customer_id)
            raise DatabaseError(f"Failed to place order: {str(e)}") from e

        logger.info(
            "Order %s placed by customer %s with seller %s (%s item(s), total %s)",
            order.id, customer_id, order.seller_id, len(order_items), total_amount,
        )
        result = model_to_schema(order, OrderRead)
        if notify:
            await self.notify_seller(result)
        return result

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def update_status(
        self,
        order_id: int,
        new_status: Union[OrderStatus, str],
        description: Optional[str] = None,
    ) -> OrderRead:
        """
        Move an order to ``new_status``.

        Raises:
            OrderNotFoundError: Unknown order
            InvalidTransitionError: The change is not legal from the stored status
        """
        target = self._parse_status(new_status)
        return await self._transition(order_id, target, description)

    async def cancel_order(self, order_id: int, description: Optional[str] = None) -> OrderRead:
        """Cancel a pending or accepted order, restoring its stock."""
        return await self._transition(
            order_id,
            OrderStatus.CANCELLED,
            description,
            allowed_from=CANCELLABLE_STATUSES,
        )

    async def _transition(
        self,
        order_id: int,
        target: OrderStatus,
        description: Optional[str] = None,
        allowed_from: Optional[frozenset] = None,
    ) -> OrderRead:
        try:
            await self._apply_transition(order_id, target, description, allowed_from)
            await self.db.commit()
        except BaseServiceError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Database error moving order %s to %s", order_id, target.value)
            raise DatabaseError(f"Failed to update order {order_id}: {str(e)}") from e

        order = await self._load_order(order_id)
        return model_to_schema(order, OrderRead)

    async def _apply_transition(
        self,
        order_id: int,
        target: OrderStatus,
        description: Optional[str],
        allowed_from: Optional[frozenset],
    ) -> None:
        attempts = max(1, self.settings.STATUS_UPDATE_RETRIES)
        for attempt in range(1, attempts + 1):
            order = await self._load_order(order_id, for_update=True)
            current = OrderStatus(order.status)

            if allowed_from is not None and current not in allowed_from:
                raise CannotCancelError(order_id, current.value)
            if current.is_terminal:
                logger.info("Order %s is already %s; refusing '%s'", order_id, current.value, target.value)
                raise InvalidTransitionError(order_id, current.value, target.value)
            if target not in ORDER_TRANSITIONS[current]:
                raise InvalidTransitionError(order_id, current.value, target.value)

            now = utc_now()
            result = await self.db.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == current)
                .values(
                    status=target,
                    payment_status=self._payment_status_after(order, target),
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                await self._apply_side_effects(order, target, description, now)
                logger.info("Order %s moved from '%s' to '%s'", order_id, current.value, target.value)
                return

            logger.warning(
                "Order %s changed from '%s' while updating (attempt %s/%s)",
                order_id, current.value, attempt, attempts,
            )

        raise OrderConflictError(
            f"Order {order_id} kept changing while moving it to '{target.value}'",
            {"order_id": order_id, "requested_status": target.value},
        )

    async def _apply_side_effects(
        self,
        order: Order,
        target: OrderStatus,
        description: Optional[str],
        timestamp,
    ) -> None:
        if target in (OrderStatus.CANCELLED, OrderStatus.REJECTED):
            for item in order.items:
                await self.ledger.release(item.product_id, item.quantity)
            await self.transactions.record(order, TransactionEventKind.ORDER_CANCELLED)
        elif target == OrderStatus.DELIVERED:
            await self.transactions.record(order, TransactionEventKind.ORDER_DELIVERED)

        self.db.add(
            OrderTracking(
                order_id=order.id,
                status=target,
                description=description or STATUS_DESCRIPTIONS[target],
                created_at=timestamp,
            )
        )
        await self.db.flush()

    @staticmethod
    def _payment_status_after(order: Order, target: OrderStatus) -> PaymentStatus:
        payment_status = PaymentStatus(order.payment_status)
        if target == OrderStatus.DELIVERED and payment_status == PaymentStatus.PENDING \
                and PaymentMethod(order.payment_method) == PaymentMethod.COD:
            return PaymentStatus.PAID
        if target in (OrderStatus.CANCELLED, OrderStatus.REJECTED) and payment_status == PaymentStatus.PAID:
            return PaymentStatus.REFUNDED
        return payment_status

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    async def get_order(self, order_id: int) -> OrderRead:
        order = await self._load_order(order_id)
        return model_to_schema(order, OrderRead)

    async def get_seller_order(self, seller_id: int, order_id: int) -> OrderRead:
        result = await self.db.execute(
            select(Order).where(Order.id == order_id, Order.seller_id == seller_id)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_id)
        return model_to_schema(order, OrderRead)

    async def list_orders_by_customer(self, customer_id: int) -> List[OrderRead]:
        return await self._list_orders(Order.customer_id == customer_id)

    async def list_orders_by_seller(
        self,
        seller_id: int,
        status: Optional[Union[OrderStatus, str]] = None,
    ) -> List[OrderRead]:
        return await self._list_orders(Order.seller_id == seller_id, status=status)

    async def list_all_orders(self, status: Optional[Union[OrderStatus, str]] = None) -> List[OrderRead]:
        return await self._list_orders(status=status)

    async def track_order(self, order_id: int) -> TrackingRead:
        order = await self._load_order(order_id)
        return TrackingRead(
            order_id=order.id,
            status=order.status,
            timeline=[TrackingEntryRead.model_validate(entry) for entry in order.tracking],
        )

    async def _list_orders(self, *criteria, status=None) -> List[OrderRead]:
        query = select(Order).where(*criteria)
        if status is not None:
            query = query.where(Order.status == self._parse_status(status))
        query = query.order_by(Order.created_at.desc(), Order.id.desc())
        result = await self.db.execute(query)
        return models_to_schemas(list(result.scalars().all()), OrderRead)

    async def _load_order(self, order_id: int, for_update: bool = False) -> Order:
        query = (
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        order = result.scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _load_products(self, lines: Dict[int, int]) -> Dict[int, Product]:
        # populate_existing: the ledger's UPDATEs bypass the identity map
        result = await self.db.execute(
            select(Product)
            .where(Product.id.in_(list(lines)))
            .execution_options(populate_existing=True)
        )
        products = {product.id: product for product in result.scalars().all()}
        for product_id in lines:
            if product_id not in products:
                raise ProductNotFoundError(product_id)
        return products

    async def notify_seller(self, order: OrderRead) -> None:
        """
        Tell the seller about a placed order.

        Runs after the order is committed. Failures are logged and never undo the order.
        """
        if not self.settings.NOTIFY_ON_ORDER:
            return
        try:
            await self.notifier.notify(
                order.seller_id,
                "New order received",
                f"Order #{order.id} with {len(order.items)} item(s) totalling {order.total_amount} is awaiting acceptance.",
                type=NotificationType.ORDER,
                data={"order_id": order.id, "customer_id": order.customer_id},
            )
        except Exception:
            logger.exception("Failed to notify seller %s about order %s", order.seller_id, order.id)
            await self.db.rollback()

    @staticmethod
    def _normalise_lines(items: Optional[Iterable[OrderLine]]) -> Dict[int, int]:
        """Validate request lines and merge repeated products, keeping request order."""
        items = list(items or [])
        if not items:
            raise OrderValidationError("Order must contain at least one item")

        lines: Dict[int, int] = {}
        for index, item in enumerate(items):
            if isinstance(item, Mapping):
                product_id = item.get("product_id", item.get("productId"))
                quantity = item.get("quantity")
            else:
                product_id = getattr(item, "product_id", None)
                quantity = getattr(item, "quantity", None)

            if product_id is None:
                raise OrderValidationError(f"Missing productId in product at index {index}", {"index": index})
            if isinstance(product_id, bool) or not isinstance(product_id, int):
                raise OrderValidationError(f"Invalid productId for product at index {index}", {"index": index})
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
                raise OrderValidationError(f"Invalid quantity for product at index {index}", {"index": index})

            lines[product_id] = lines.get(product_id, 0) + quantity
        return lines

    @staticmethod
    def _parse_payment_method(value: Any) -> PaymentMethod:
        try:
            return PaymentMethod(value)
        except ValueError:
            raise OrderValidationError(
                f"Unsupported payment method '{value}'",
                {"allowed": [m.value for m in PaymentMethod]},
            )

    @staticmethod
    def _parse_status(value: Any) -> OrderStatus:
        try:
            return OrderStatus(value)
        except ValueError:
            raise OrderValidationError(
                f"Unknown order status '{value}'",
                {"allowed": [s.value for s in OrderStatus]},
            )


async def notify_seller_of_order(session_factory, order: OrderRead) -> None:
    """Background task: notify the seller of ``order`` using a session of its own."""
    async with session_factory() as session:
        await OrderService(session).notify_seller(order)
