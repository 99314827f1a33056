"""Order routes - placement, lifecycle and role-scoped listings."""
import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.core.enums import OrderStatus, Role
from marketplace.core.exceptions import AuthorizationError
from marketplace.core.security import Principal, get_current_principal, require_roles
from marketplace.dependencies import get_db, get_session_factory
from marketplace.schemas.order import OrderRead, PlaceOrderRequest, TrackingRead, UpdateStatusRequest
from marketplace.services.order_service import OrderService, notify_seller_of_order

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


def _ensure_participant(principal: Principal, order: OrderRead) -> None:
    """Only the ordering customer, the fulfilling seller or an admin may see an order."""
    if principal.is_admin:
        return
    if principal.account_id in (order.customer_id, order.seller_id):
        return
    raise AuthorizationError("Unauthorized to view this order", {"order_id": order.id})


def _ensure_self_or_admin(principal: Principal, account_id: int, role: Role) -> None:
    if principal.is_admin:
        return
    if principal.role == role and principal.account_id == account_id:
        return
    raise AuthorizationError(f"Unauthorized to view orders of {role.value} {account_id}")


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
async def place_order(
    payload: PlaceOrderRequest,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(require_roles(Role.CUSTOMER)),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Place an order with the seller serving the customer's pin code."""
    service = OrderService(db)
    order = await service.place_order(
        principal.account_id,
        payload.items,
        payload.payment_method,
        prescription_image=payload.prescription_image,
        upi_id=payload.upi_id,
        doctor=payload.doctor,
        notify=False,
    )
    # Seller notification runs after the response is sent
    background_tasks.add_task(notify_seller_of_order, session_factory, order)
    return order


@router.get("", response_model=List[OrderRead])
async def list_orders(
    status: Optional[OrderStatus] = Query(None, description="Filter by order status"),
    principal: Principal = Depends(require_roles(Role.SUPER_ADMIN, Role.REGIONAL_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).list_all_orders(status=status)


@router.get("/customer/{customer_id}", response_model=List[OrderRead])
async def list_customer_orders(
    customer_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    _ensure_self_or_admin(principal, customer_id, Role.CUSTOMER)
    return await OrderService(db).list_orders_by_customer(customer_id)


@router.get("/seller/{seller_id}", response_model=List[OrderRead])
async def list_seller_orders(
    seller_id: int,
    status: Optional[OrderStatus] = Query(None, description="Filter by order status"),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    _ensure_self_or_admin(principal, seller_id, Role.SELLER)
    return await OrderService(db).list_orders_by_seller(seller_id, status=status)


@router.get("/seller/{seller_id}/{order_id}", response_model=OrderRead)
async def get_seller_order(
    seller_id: int,
    order_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    _ensure_self_or_admin(principal, seller_id, Role.SELLER)
    return await OrderService(db).get_seller_order(seller_id, order_id)


@router.get("/{order_id}", response_model=OrderRead)
async def get_order(
    order_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderService(db).get_order(order_id)
    _ensure_participant(principal, order)
    return order


@router.get("/{order_id}/tracking", response_model=TrackingRead)
async def track_order(
    order_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    service = OrderService(db)
    _ensure_participant(principal, await service.get_order(order_id))
    return await service.track_order(order_id)


@router.patch("/{order_id}/status", response_model=OrderRead)
async def update_order_status(
    order_id: int,
    payload: UpdateStatusRequest,
    principal: Principal = Depends(require_roles(Role.SELLER, Role.REGIONAL_ADMIN, Role.SUPER_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Sellers move their own orders through the lifecycle; admins may move any order."""
    service = OrderService(db)
    order = await service.get_order(order_id)
    if not principal.is_admin and order.seller_id != principal.account_id:
        raise AuthorizationError("Unauthorized to update this order", {"order_id": order_id})
    return await service.update_status(order_id, payload.status, payload.description)


@router.post("/{order_id}/cancel", response_model=OrderRead)
async def cancel_order(
    order_id: int,
    principal: Principal = Depends(require_roles(Role.CUSTOMER)),
    db: AsyncSession = Depends(get_db),
):
    service = OrderService(db)
    order = await service.get_order(order_id)
    if order.customer_id != principal.account_id:
        raise AuthorizationError("Unauthorized to cancel this order", {"order_id": order_id})
    return await service.cancel_order(order_id)
