from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Path, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from campus_canteen.auth import Identity, get_current_identity
from campus_canteen.crud.order import (
    create_order,
    delete_order,
    get_order_by_id,
    list_all_orders,
    list_orders_for_user,
    update_order_status,
)
from campus_canteen.db.session import get_async_session
from campus_canteen.schemas.order import MAX_ID, OrderCreate, OrderRead, OrderStatusUpdate


router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderRead, status_code=201)
async def create_order_endpoint(
    order_in: OrderCreate,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=128),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Places an order from a cart snapshot. The total is computed from current
    menu prices; repeated lines for one item are merged.
    """
    order = await create_order(db, identity, order_in.items, idempotency_key=idempotency_key)
    return OrderRead.from_orm_with_name(order)


@router.get("/mine", response_model=List[OrderRead])
async def list_my_orders(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Orders placed by the caller under their current role.
    """
    orders = await list_orders_for_user(db, identity)
    return [OrderRead.from_orm_with_name(o) for o in orders]


@router.get("", response_model=List[OrderRead])
async def list_orders(
    status: Optional[str] = Query(None, description="Filter by status"),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
):
    """
    All orders, newest first. Staff and admins only.
    """
    orders = await list_all_orders(db, identity, status=status)
    return [OrderRead.from_orm_with_name(o) for o in orders]


@router.get("/{order_id}", response_model=OrderRead)
async def get_order(
    order_id: int = Path(..., description="Order id", ge=1, le=MAX_ID),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
):
    order = await get_order_by_id(db, order_id, identity)
    return OrderRead.from_orm_with_name(order)


@router.patch("/{order_id}/status", response_model=OrderRead)
async def patch_order_status(
    order_in: OrderStatusUpdate,
    order_id: int = Path(..., description="Order id", ge=1, le=MAX_ID),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Status transition. Staff/admin drive the kitchen flow; owners may only
    cancel their own pending orders.
    """
    order = await update_order_status(db, order_id, identity, order_in.status)
    return OrderRead.from_orm_with_name(order)


@router.delete("/{order_id}", status_code=204)
async def remove_order(
    order_id: int = Path(..., description="Order id", ge=1, le=MAX_ID),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
):
    await delete_order(db, order_id, identity)
    return Response(status_code=204)
