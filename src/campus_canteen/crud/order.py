import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from campus_canteen.auth import Identity
from campus_canteen.config import settings
from campus_canteen.crud.menu_item import get_menu_items_by_ids, is_available
from campus_canteen.db.base import utcnow
from campus_canteen.errors import CanteenError, Forbidden, InvalidInput, InvalidTransition, ItemNotFound, NotFound, Unavailable
from campus_canteen.lifecycle import authorize_transition, parse_status
from campus_canteen.models import Order, OrderItem, OrderStatusEnum, RoleEnum
from campus_canteen.schemas.order import OrderItemCreate

logger = logging.getLogger(__name__)

ORDERING_ROLES = {RoleEnum.student, RoleEnum.staff}
# largest value an orders.total_amount Numeric(10, 2) column holds
MAX_ORDER_TOTAL = Decimal("99999999.99")


def merge_order_lines(items: Iterable[OrderItemCreate]) -> "OrderedDict[int, int]":
    """
    Collapses repeated lines for the same item into one, summing quantities.
    First-seen order of items is kept.
    """
    merged: "OrderedDict[int, int]" = OrderedDict()
    for line in items:
        if line.quantity < 1:
            raise InvalidInput(f"Quantity for item {line.item_ref} must be at least 1")
        merged[line.item_ref] = merged.get(line.item_ref, 0) + line.quantity
        if merged[line.item_ref] > settings.CART_MAX_QUANTITY:
            raise InvalidInput(
                f"Quantity for item {line.item_ref} cannot exceed {settings.CART_MAX_QUANTITY}"
            )
    return merged


def _order_query():
    return select(Order).options(
        selectinload(Order.items).selectinload(OrderItem.menu_item),
    )


async def _load_order(db: AsyncSession, order_id: int) -> Optional[Order]:
    result = await db.execute(
        _order_query().where(Order.id == order_id).execution_options(populate_existing=True)
    )
    return result.scalars().unique().first()


async def _find_by_idempotency_key(db: AsyncSession, user_id: str, key: str) -> Optional[Order]:
    result = await db.execute(
        _order_query().where(Order.user_id == user_id, Order.idempotency_key == key)
    )
    return result.scalars().unique().first()


async def create_order(
    db: AsyncSession,
    identity: Identity,
    items: List[OrderItemCreate],
    idempotency_key: Optional[str] = None,
) -> Order:
    """
    Builds an order from a cart snapshot.
    Prices come from the catalog at this moment and are frozen on the order.
    A repeated idempotency key from the same user returns the first order.
    """
    if identity.role not in ORDERING_ROLES:
        raise Forbidden("Only students and staff can place orders")
    if not items:
        raise InvalidInput("Order must contain at least one item")
    if len(items) > settings.ORDER_MAX_LINES:
        raise InvalidInput(f"Order cannot contain more than {settings.ORDER_MAX_LINES} lines")

    if idempotency_key:
        existing = await _find_by_idempotency_key(db, identity.user_id, idempotency_key)
        if existing:
            logger.info("Order %s replayed for idempotency key %s", existing.id, idempotency_key)
            return existing

    lines = merge_order_lines(items)
    catalog = await get_menu_items_by_ids(db, list(lines))

    missing = [item_id for item_id in lines if item_id not in catalog]
    if missing:
        raise ItemNotFound(f"Menu items not found: {', '.join(map(str, missing))}")
    unavailable = [catalog[item_id].name for item_id in lines if not is_available(catalog[item_id])]
    if unavailable:
        raise Unavailable(f"Currently unavailable: {', '.join(unavailable)}")

    order = Order(
        user_id=identity.user_id,
        user_name=identity.name or identity.user_id,
        role=identity.role,
        status=OrderStatusEnum.pending,
        idempotency_key=idempotency_key,
        total_amount=Decimal("0.00"),
    )
    total = Decimal("0.00")
    for item_id, quantity in lines.items():
        menu_item = catalog[item_id]
        price = Decimal(menu_item.price)
        order.items.append(OrderItem(menu_item=menu_item, quantity=quantity, price=price))
        total += price * quantity
    if total > MAX_ORDER_TOTAL:
        raise InvalidInput("Order total is too large")
    order.total_amount = total.quantize(Decimal("0.01"))

    db.add(order)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        if not idempotency_key:
            raise
        # a concurrent request with the same key won the insert
        existing = await _find_by_idempotency_key(db, identity.user_id, idempotency_key)
        if existing is None:
            raise
        return existing

    logger.info(
        "Order %s created for %s (%s): %d lines, total %s",
        order.id, identity.user_id, identity.role.value, len(lines), order.total_amount,
    )
    return await _load_order(db, order.id)


async def update_order_status(
    db: AsyncSession,
    order_id: int,
    identity: Identity,
    new_status: str,
) -> Order:
    """
    Moves an order one step through its lifecycle.
    Only the status and updated_at change.
    """
    # unknown status values fail before the lookup
    parse_status(new_status)

    order = await _load_order(db, order_id)
    if not order:
        raise NotFound(f"Order with id={order_id} not found")

    previous = OrderStatusEnum(order.status)
    try:
        target = authorize_transition(order, identity, new_status)
    except CanteenError as exc:
        logger.warning(
            "Rejected %s -> %s on order %s by %s (%s): %s",
            previous.value, new_status, order_id, identity.user_id, identity.role.value, exc,
        )
        raise

    # compare-and-set on the status we validated against
    result = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status == previous)
        .values(status=target, updated_at=utcnow())
    )
    if result.rowcount != 1:
        await db.rollback()
        raise InvalidTransition(f"Order {order_id} changed status concurrently, reload and retry")
    await db.commit()

    logger.info("Order %s: %s -> %s by %s", order_id, previous.value, target.value, identity.user_id)
    return await _load_order(db, order_id)


async def list_orders_for_user(db: AsyncSession, identity: Identity) -> List[Order]:
    """
    Orders the caller placed under their current role, newest first.
    """
    stmt = (
        _order_query()
        .where(Order.user_id == identity.user_id, Order.role == identity.role)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().unique().all())


async def list_all_orders(
    db: AsyncSession,
    identity: Identity,
    status: Optional[str] = None,
) -> List[Order]:
    """
    Kitchen/admin board: every order, newest first, optionally filtered by status.
    """
    if not identity.is_privileged:
        raise Forbidden("Admin/Staff access required")

    stmt = _order_query().order_by(Order.created_at.desc(), Order.id.desc())
    if status:
        stmt = stmt.where(Order.status == parse_status(status))

    result = await db.execute(stmt)
    return list(result.scalars().unique().all())


async def get_order_by_id(db: AsyncSession, order_id: int, identity: Identity) -> Order:
    order = await _load_order(db, order_id)
    if not order:
        raise NotFound(f"Order with id={order_id} not found")
    if order.user_id != identity.user_id and not identity.is_privileged:
        raise Forbidden("Not allowed to view this order")
    return order


async def delete_order(db: AsyncSession, order_id: int, identity: Identity) -> None:
    if identity.role != RoleEnum.admin:
        raise Forbidden("Admin access required")
    order = await db.get(Order, order_id)
    if not order:
        raise NotFound(f"Order with id={order_id} not found")
    await db.delete(order)
    await db.commit()
    logger.info("Order %s deleted by %s", order_id, identity.user_id)
