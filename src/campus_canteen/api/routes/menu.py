from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from campus_canteen.auth import Identity, get_current_identity
from campus_canteen.crud.menu_item import (
    create_menu_item,
    delete_menu_item,
    get_menu_item,
    list_menu_items,
    update_menu_item,
)
from campus_canteen.db.session import get_async_session
from campus_canteen.errors import NotFound
from campus_canteen.schemas.menu_item import MenuItemCreate, MenuItemRead, MenuItemUpdate


router = APIRouter(prefix="/menu", tags=["menu"])


@router.get("", response_model=List[MenuItemRead])
async def list_menu(
    category: Optional[str] = Query(None, description="Category filter"),
    available_only: bool = Query(False, description="Hide unavailable items"),
    db: AsyncSession = Depends(get_async_session),
):
    return await list_menu_items(db, category=category, available_only=available_only)


@router.get("/{item_id}", response_model=MenuItemRead)
async def get_menu_item_endpoint(
    item_id: int = Path(..., description="Menu item id"),
    db: AsyncSession = Depends(get_async_session),
):
    item = await get_menu_item(db, item_id)
    if not item:
        raise NotFound("Menu item not found")
    return item


@router.post("", response_model=MenuItemRead, status_code=201)
async def create_menu_item_endpoint(
    item_in: MenuItemCreate,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
):
    return await create_menu_item(db, identity, item_in)


@router.patch("/{item_id}", response_model=MenuItemRead)
async def patch_menu_item_endpoint(
    item_in: MenuItemUpdate,
    item_id: int = Path(..., description="Menu item id"),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Partial update (price, availability, ...). Placed orders are not affected.
    """
    return await update_menu_item(db, identity, item_id, item_in)


@router.delete("/{item_id}", status_code=204)
async def remove_menu_item(
    item_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_session),
):
    await delete_menu_item(db, identity, item_id)
    return Response(status_code=204)
