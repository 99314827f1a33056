# tests/unit/services/test_order_service.py
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update

from marketplace.core.enums import (
    NotificationType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    TransactionEventKind,
)
from marketplace.core.exceptions import (
    AccountNotFoundError,
    CannotCancelError,
    InsufficientStockError,
    InvalidTransitionError,
    NoSellerAvailableError,
    OrderConflictError,
    OrderNotFoundError,
    OrderValidationError,
    ProductNotFoundError,
    ValidationError,
)
from marketplace.models import Notification, Order, Product, TransactionEvent
from marketplace.services.order_service import OrderService, notify_seller_of_order


async def add_product(db_session, seller_id, price="100.00", quantity=10, name="P1"):
    product = Product(name=name, price=Decimal(price), quantity=quantity, seller_id=seller_id)
    db_session.add(product)
    await db_session.commit()
    return product.id


async def stock_of(db_session, product_id):
    result = await db_session.execute(select(Product.quantity).where(Product.id == product_id))
    return result.scalar_one()


async def status_of(db_session, order_id):
    result = await db_session.execute(select(Order.status).where(Order.id == order_id))
    return result.scalar_one()


async def events_for(db_session, kind=None):
    query = select(TransactionEvent).order_by(TransactionEvent.id)
    if kind is not None:
        query = query.where(TransactionEvent.event_kind == kind)
    result = await db_session.execute(query)
    return list(result.scalars().all())


async def count_orders(db_session):
    result = await db_session.execute(select(func.count(Order.id)))
    return result.scalar_one()


async def place(service, customer_id, product_id, quantity=1, method=PaymentMethod.COD, **kwargs):
    return await service.place_order(
        customer_id, [{"productId": product_id, "quantity": quantity}], method, **kwargs
    )


"""
1. Placement
"""

@pytest.mark.asyncio
async def test_place_order_reserves_stock_and_logs_event(db_session, settings, customer, seller):
    """Pin 500001 customer orders 2 x P1 (100.00, stock 10) from the only seller at that pin"""
    customer_id, seller_id = customer.id, seller.id
    product_id = await add_product(db_session, seller_id, price="100.00", quantity=10)

    service = OrderService(db_session, settings)
    order = await place(service, customer_id, product_id, quantity=2)

    assert order.total_amount == Decimal("200.00")
    assert order.status == OrderStatus.PENDING
    assert order.seller_id == seller_id
    assert order.customer_id == customer_id
    assert order.payment_status == PaymentStatus.PENDING
    assert [(item.product_id, item.quantity, item.unit_price) for item in order.items] == [
        (product_id, 2, Decimal("100.00"))
    ]
    assert [(entry.status, entry.description) for entry in order.tracking] == [
        (OrderStatus.PENDING, "Order placed successfully")
    ]

    assert await stock_of(db_session, product_id) == 8
    events = await events_for(db_session)
    assert len(events) == 1
    assert events[0].event_kind == TransactionEventKind.ORDER_PLACED
    assert (events[0].order_id, events[0].product_id, events[0].quantity) == (order.id, product_id, 2)


@pytest.mark.asyncio
async def test_place_order_insufficient_stock_writes_nothing(db_session, settings, customer, seller):
    customer_id = customer.id
    product_id = await add_product(db_session, seller.id, quantity=1)

    service = OrderService(db_session, settings)
    with pytest.raises(InsufficientStockError) as exc_info:
        await place(service, customer_id, product_id, quantity=2)

    assert exc_info.value.details == {"product_id": product_id, "requested": 2, "available": 1}
    assert await count_orders(db_session) == 0
    assert await events_for(db_session) == []
    assert await stock_of(db_session, product_id) == 1


@pytest.mark.asyncio
async def test_place_order_multi_line_failure_leaves_other_lines_untouched(db_session, settings, customer, products):
    customer_id = customer.id
    product_a, product_b = products[0].id, products[1].id

    service = OrderService(db_session, settings)
    with pytest.raises(InsufficientStockError):
        await service.place_order(
            customer_id,
            [{"productId": product_a, "quantity": 2}, {"productId": product_b, "quantity": 2}],
            PaymentMethod.COD,
        )

    assert await stock_of(db_session, product_a) == 5
    assert await stock_of(db_session, product_b) == 1
    assert await count_orders(db_session) == 0


@pytest.mark.asyncio
async def test_place_order_unknown_product_fails_whole_order(db_session, settings, customer, products):
    customer_id = customer.id
    product_a = products[0].id

    service = OrderService(db_session, settings)
    with pytest.raises(ProductNotFoundError) as exc_info:
        await service.place_order(
            customer_id,
            [{"productId": product_a, "quantity": 1}, {"productId": 9999, "quantity": 1}],
            PaymentMethod.COD,
        )

    assert exc_info.value.details["product_id"] == 9999
    assert await stock_of(db_session, product_a) == 5
    assert await count_orders(db_session) == 0


@pytest.mark.asyncio
async def test_place_order_without_seller_in_area(db_session, settings, products, customer_factory):
    other = customer_factory(e_mail="far@example.com", pin_code="600001")
    db_session.add(other)
    await db_session.commit()
    other_id = other.id

    service = OrderService(db_session, settings)
    with pytest.raises(NoSellerAvailableError) as exc_info:
        await place(service, other_id, products[0].id)

    assert "No seller available in your area" in exc_info.value.message
    assert exc_info.value.details == {"pin_code": "600001"}


@pytest.mark.asyncio
async def test_place_order_ignores_unapproved_seller(db_session, settings, customer, seller_factory):
    customer_id = customer.id
    pending_seller = seller_factory(approved=False)
    db_session.add(pending_seller)
    await db_session.commit()
    product_id = await add_product(db_session, pending_seller.id)

    service = OrderService(db_session, settings)
    with pytest.raises(NoSellerAvailableError):
        await place(service, customer_id, product_id)


@pytest.mark.asyncio
async def test_place_order_requires_complete_address(db_session, settings, seller, customer_factory):
    incomplete = customer_factory(e_mail="noaddr@example.com", address_first_line=None)
    db_session.add(incomplete)
    await db_session.commit()
    customer_id = incomplete.id
    product_id = await add_product(db_session, seller.id)

    service = OrderService(db_session, settings)
    with pytest.raises(OrderValidationError):
        await place(service, customer_id, product_id)
    assert await stock_of(db_session, product_id) == 10


@pytest.mark.asyncio
async def test_place_order_unknown_customer(db_session, settings, products):
    service = OrderService(db_session, settings)
    with pytest.raises(AccountNotFoundError):
        await place(service, 4242, products[0].id)


@pytest.mark.asyncio
async def test_place_order_rejects_non_customer_account(db_session, settings, seller, products):
    seller_id = seller.id
    service = OrderService(db_session, settings)
    with pytest.raises(ValidationError):
        await place(service, seller_id, products[0].id)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "items",
    [
        [],
        [{"productId": 1, "quantity": 0}],
        [{"productId": 1, "quantity": "2"}],
        [{"quantity": 1}],
        [{"productId": "1", "quantity": 1}],
    ],
)
async def test_place_order_rejects_malformed_items(db_session, settings, items):
    service = OrderService(db_session, settings)
    with pytest.raises(OrderValidationError):
        await service.place_order(1, items, PaymentMethod.COD)


@pytest.mark.asyncio
async def test_place_order_rejects_unknown_payment_method(db_session, settings):
    service = OrderService(db_session, settings)
    with pytest.raises(OrderValidationError) as exc_info:
        await service.place_order(1, [{"productId": 1, "quantity": 1}], "cheque")
    assert exc_info.value.details["allowed"] == ["cod", "upi", "wallet"]


@pytest.mark.asyncio
async def test_upi_requires_upi_id(db_session, settings):
    service = OrderService(db_session, settings)
    with pytest.raises(OrderValidationError):
        await service.place_order(1, [{"productId": 1, "quantity": 1}], PaymentMethod.UPI)


@pytest.mark.asyncio
async def test_upi_order_is_paid_on_placement(db_session, settings, customer, products):
    service = OrderService(db_session, settings)
    order = await place(service, customer.id, products[0].id, method=PaymentMethod.UPI, upi_id="asha@upi")

    assert order.payment_status == PaymentStatus.PAID
    assert order.upi_id == "asha@upi"


@pytest.mark.asyncio
async def test_repeated_product_lines_are_merged(db_session, settings, customer, products):
    product_a = products[0].id
    service = OrderService(db_session, settings)
    order = await service.place_order(
        customer.id,
        [{"productId": product_a, "quantity": 1}, {"product_id": product_a, "quantity": 2}],
        "cod",
    )

    assert len(order.items) == 1
    assert order.items[0].quantity == 3
    assert order.total_amount == Decimal("300.00")
    assert await stock_of(db_session, product_a) == 2


@pytest.mark.asyncio
async def test_shipping_address_is_a_snapshot(db_session, settings, customer, products):
    service = OrderService(db_session, settings)
    order = await place(service, customer.id, products[0].id, prescription_image="rx/1.png", doctor="Dr. Mehta")

    customer.address_first_line = "99 New Street"
    await db_session.commit()

    stored = await service.get_order(order.id)
    assert stored.shipping_address["first_line"] == "12 MG Road"
    assert stored.shipping_address["pin_code"] == "500001"
    assert stored.shipping_address["name"] == "Asha Rao"
    assert stored.prescription_image == "rx/1.png"
    assert stored.doctor == "Dr. Mehta"


@pytest.mark.asyncio
async def test_price_change_does_not_touch_placed_order(db_session, settings, customer, products):
    product_a = products[0].id
    service = OrderService(db_session, settings)
    order = await place(service, customer.id, product_a, quantity=2)

    await db_session.execute(update(Product).where(Product.id == product_a).values(price=Decimal("150.00")))
    await db_session.commit()

    stored = await service.get_order(order.id)
    assert stored.total_amount == Decimal("200.00")
    assert stored.items[0].unit_price == Decimal("100.00")


@pytest.mark.asyncio
async def test_first_created_seller_wins_for_shared_pin(db_session, settings, customer, seller, seller_factory):
    customer_id, first_seller = customer.id, seller.id
    second = seller_factory(e_mail="second@example.com", name="Second Seller")
    db_session.add(second)
    await db_session.commit()
    product_id = await add_product(db_session, second.id)

    service = OrderService(db_session, settings)
    order = await place(service, customer_id, product_id)
    assert order.seller_id == first_seller


"""
2. Notifications
"""

@pytest.mark.asyncio
async def test_seller_is_notified_of_new_order(db_session, settings, customer, products):
    service = OrderService(db_session, settings)
    order = await place(service, customer.id, products[0].id)

    result = await db_session.execute(select(Notification))
    notifications = list(result.scalars().all())
    assert len(notifications) == 1
    assert notifications[0].user_id == order.seller_id
    assert notifications[0].type == NotificationType.ORDER
    assert notifications[0].data["order_id"] == order.id


@pytest.mark.asyncio
async def test_notification_failure_does_not_abort_order(db_session, settings, customer, products, mocker):
    product_a = products[0].id
    notifier = mocker.MagicMock()
    notifier.notify = mocker.AsyncMock(side_effect=RuntimeError("notification backend down"))

    service = OrderService(db_session, settings, notifier=notifier)
    order = await place(service, customer.id, product_a, quantity=1)

    notifier.notify.assert_awaited_once()
    assert await status_of(db_session, order.id) == OrderStatus.PENDING
    assert await stock_of(db_session, product_a) == 4


@pytest.mark.asyncio
async def test_notifications_can_be_disabled(db_session, settings, customer, products, mocker):
    settings.NOTIFY_ON_ORDER = False
    notifier = mocker.MagicMock()
    notifier.notify = mocker.AsyncMock()

    service = OrderService(db_session, settings, notifier=notifier)
    await place(service, customer.id, products[0].id)
    notifier.notify.assert_not_awaited()


@pytest.mark.asyncio
async def test_placement_can_defer_notification(db_session, session_factory, settings, customer, products, mocker):
    notifier = mocker.MagicMock()
    notifier.notify = mocker.AsyncMock()

    order = await place(OrderService(db_session, settings, notifier=notifier), customer.id, products[0].id, notify=False)
    notifier.notify.assert_not_awaited()

    await notify_seller_of_order(session_factory, order)
    result = await db_session.execute(select(Notification).where(Notification.user_id == order.seller_id))
    notification = result.scalar_one()
    assert notification.type == NotificationType.ORDER
    assert notification.data == {"order_id": order.id, "customer_id": customer.id}


"""
3. Status lifecycle
"""

@pytest.mark.asyncio
async def test_dispatched_order_cannot_go_back_to_pending(db_session, settings, customer, products):
    service = OrderService(db_session, settings)
    order = await place(service, customer.id, products[0].id)
    await service.update_status(order.id, OrderStatus.ACCEPTED)
    await service.update_status(order.id, "dispatched")

    with pytest.raises(InvalidTransitionError) as exc_info:
        await service.update_status(order.id, "pending")

    assert exc_info.value.details["current_status"] == "dispatched"
    assert await status_of(db_session, order.id) == OrderStatus.DISPATCHED


def test_terminal_statuses():
    terminal = {status for status in OrderStatus if status.is_terminal}
    assert terminal == {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REJECTED}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path",
    [
        [OrderStatus.ACCEPTED, OrderStatus.DISPATCHED, OrderStatus.DELIVERED],
        [OrderStatus.REJECTED],
        [OrderStatus.CANCELLED],
    ],
)
async def test_terminal_states_reject_every_change(db_session, settings, customer, products, path):
    service = OrderService(db_session, settings)
    order = await place(service, customer.id, products[0].id)
    for step in path:
        await service.update_status(order.id, step)
    before = await service.track_order(order.id)

    for target in OrderStatus:
        with pytest.raises(InvalidTransitionError):
            await service.update_status(order.id, target)

    after = await service.track_order(order.id)
    assert after.status == path[-1]
    assert after.timeline == before.timeline


@pytest.mark.asyncio
async def test_tracking_is_append_only(db_session, settings, customer, products):
    service = OrderService(db_session, settings)
    order = await place(service, customer.id, products[0].id)

    await service.update_status(order.id, OrderStatus.ACCEPTED, "Packed at the counter")
    first_read = await service.track_order(order.id)
    await service.update_status(order.id, OrderStatus.DISPATCHED)
    await service.update_status(order.id, OrderStatus.DELIVERED)
    tracking = await service.track_order(order.id)

    assert tracking.status == OrderStatus.DELIVERED
    assert [entry.status for entry in tracking.timeline] == [
        OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.DISPATCHED, OrderStatus.DELIVERED,
    ]
    assert tracking.timeline[1].description == "Packed at the counter"
    assert tracking.timeline[:2] == first_read.timeline


@pytest.mark.asyncio
async def test_update_status_rejects_unknown_status(db_session, settings, customer, products):
    service = OrderService(db_session, settings)
    order = await place(service, customer.id, products[0].id)
    with pytest.raises(OrderValidationError):
        await service.update_status(order.id, "shipped")


@pytest.mark.asyncio
async def test_update_status_unknown_order(db_session, settings):
    service = OrderService(db_session, settings)
    with pytest.raises(OrderNotFoundError):
        await service.update_status(12345, OrderStatus.ACCEPTED)


@pytest.mark.asyncio
async def test_delivery_logs_event_and_settles_cod(db_session, settings, customer, products):
    service = OrderService(db_session, settings)
    order = await place(service, customer.id, products[0].id, quantity=2)
    for step in (OrderStatus.ACCEPTED, OrderStatus.DISPATCHED):
        await service.update_status(order.id, step)
    delivered = await service.update_status(order.id, OrderStatus.DELIVERED)

    assert delivered.payment_status == PaymentStatus.PAID
    events = await events_for(db_session, TransactionEventKind.ORDER_DELIVERED)
    assert [(e.order_id, e.quantity) for e in events] == [(order.id, 2)]


@pytest.mark.asyncio
async def test_rejection_releases_stock(db_session, settings, customer, products):
    product_a = products[0].id
    service = OrderService(db_session, settings)
    order = await place(service, customer.id, product_a, quantity=3)
    assert await stock_of(db_session, product_a) == 2

    rejected = await service.update_status(order.id, OrderStatus.REJECTED)

    assert rejected.status == OrderStatus.REJECTED
    assert await stock_of(db_session, product_a) == 5
    assert len(await events_for(db_session, TransactionEventKind.ORDER_CANCELLED)) == 1


@pytest.mark.asyncio
async def test_status_update_gives_up_when_order_keeps_changing(settings, mocker):
    db = mocker.AsyncMock()
    db.execute.return_value = mocker.MagicMock(rowcount=0)
    service = OrderService(db, settings)
    stale = mocker.MagicMock(
        id=1,
        status=OrderStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
        payment_method=PaymentMethod.COD,
    )
    load = mocker.patch.object(service, "_load_order", mocker.AsyncMock(return_value=stale))

    with pytest.raises(OrderConflictError):
        await service.update_status(1, OrderStatus.ACCEPTED)

    assert load.await_count == settings.STATUS_UPDATE_RETRIES
    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()


"""
4. Cancellation
"""

@pytest.mark.asyncio
async def test_cancel_restores_stock_exactly(db_session, settings, customer, products):
    product_a, product_b = products[0].id, products[1].id
    service = OrderService(db_session, settings)
    order = await service.place_order(
        customer.id,
        [{"productId": product_a, "quantity": 4}, {"productId": product_b, "quantity": 1}],
        PaymentMethod.COD,
    )
    assert await stock_of(db_session, product_a) == 1
    assert await stock_of(db_session, product_b) == 0

    cancelled = await service.cancel_order(order.id)

    assert cancelled.status == OrderStatus.CANCELLED
    assert cancelled.tracking[-1].status == OrderStatus.CANCELLED
    assert await stock_of(db_session, product_a) == 5
    assert await stock_of(db_session, product_b) == 1
    events = await events_for(db_session, TransactionEventKind.ORDER_CANCELLED)
    assert sorted((e.product_id, e.quantity) for e in events) == sorted([(product_a, 4), (product_b, 1)])


@pytest.mark.asyncio
async def test_cancel_accepted_order(db_session, settings, customer, products):
    service = OrderService(db_session, settings)
    order = await place(service, customer.id, products[0].id)
    await service.update_status(order.id, OrderStatus.ACCEPTED)

    cancelled = await service.cancel_order(order.id)
    assert cancelled.status == OrderStatus.CANCELLED


@pytest.mark.asyncio
async def test_cancel_after_dispatch_names_current_status(db_session, settings, customer, products):
    product_a = products[0].id
    service = OrderService(db_session, settings)
    order = await place(service, customer.id, product_a, quantity=2)
    await service.update_status(order.id, OrderStatus.ACCEPTED)
    await service.update_status(order.id, OrderStatus.DISPATCHED)

    with pytest.raises(CannotCancelError) as exc_info:
        await service.cancel_order(order.id)

    assert "dispatched" in exc_info.value.message
    assert await status_of(db_session, order.id) == OrderStatus.DISPATCHED
    assert await stock_of(db_session, product_a) == 3


@pytest.mark.asyncio
async def test_cancelling_paid_upi_order_refunds(db_session, settings, customer, products):
    service = OrderService(db_session, settings)
    order = await place(service, customer.id, products[0].id, method=PaymentMethod.UPI, upi_id="asha@upi")

    cancelled = await service.cancel_order(order.id)
    assert cancelled.payment_status == PaymentStatus.REFUNDED


@pytest.mark.asyncio
async def test_cancel_unknown_order(db_session, settings):
    service = OrderService(db_session, settings)
    with pytest.raises(OrderNotFoundError):
        await service.cancel_order(555)


"""
5. Queries
"""

@pytest.mark.asyncio
async def test_order_queries(db_session, settings, customer, seller, products):
    customer_id, seller_id = customer.id, seller.id
    service = OrderService(db_session, settings)
    first = await place(service, customer_id, products[0].id)
    second = await place(service, customer_id, products[0].id)
    await service.update_status(second.id, OrderStatus.ACCEPTED)

    by_customer = await service.list_orders_by_customer(customer_id)
    assert {o.id for o in by_customer} == {first.id, second.id}

    accepted = await service.list_orders_by_seller(seller_id, status="accepted")
    assert [o.id for o in accepted] == [second.id]

    pending = await service.list_all_orders(status=OrderStatus.PENDING)
    assert [o.id for o in pending] == [first.id]

    assert len(await service.list_all_orders()) == 2
    assert await service.list_orders_by_customer(999) == []

    fetched = await service.get_seller_order(seller_id, first.id)
    assert fetched.id == first.id
    with pytest.raises(OrderNotFoundError):
        await service.get_seller_order(seller_id + 100, first.id)


@pytest.mark.asyncio
async def test_get_and_track_unknown_order(db_session, settings):
    service = OrderService(db_session, settings)
    with pytest.raises(OrderNotFoundError):
        await service.get_order(77)
    with pytest.raises(OrderNotFoundError):
        await service.track_order(77)
