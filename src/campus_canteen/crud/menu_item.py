import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_canteen.auth import Identity
from campus_canteen.errors import Forbidden, NotFound
from campus_canteen.models import MenuItem, RoleEnum
from campus_canteen.schemas.menu_item import MenuItemCreate, MenuItemUpdate

logger = logging.getLogger(__name__)


def is_available(item: MenuItem) -> bool:
    return bool(item.is_available)


def _require_admin(identity: Identity) -> None:
    if identity.role != RoleEnum.admin:
        raise Forbidden("Admin access required")


async def get_menu_item(db: AsyncSession, item_id: int) -> Optional[MenuItem]:
    return await db.get(MenuItem, item_id)


async def get_menu_items_by_ids(db: AsyncSession, item_ids: List[int]) -> dict[int, MenuItem]:
    if not item_ids:
        return {}
    result = await db.execute(select(MenuItem).where(MenuItem.id.in_(item_ids)))
    return {item.id: item for item in result.scalars().all()}


async def list_menu_items(
    db: AsyncSession,
    category: Optional[str] = None,
    available_only: bool = False,
) -> List[MenuItem]:
    """
    Menu listing, newest items first.
    """
    stmt = select(MenuItem).order_by(MenuItem.created_at.desc(), MenuItem.id.desc())
    if category:
        stmt = stmt.where(MenuItem.category == category)
    if available_only:
        stmt = stmt.where(MenuItem.is_available.is_(True))

    result = await db.execute(stmt)
    return list(result.scalars().all())


async def create_menu_item(db: AsyncSession, identity: Identity, item_in: MenuItemCreate) -> MenuItem:
    _require_admin(identity)
    item = MenuItem(**item_in.model_dump())
    db.add(item)
    await db.commit()
    await db.refresh(item)
    logger.info("Menu item %s (%s) created by %s", item.id, item.name, identity.user_id)
    return item


async def update_menu_item(
    db: AsyncSession, identity: Identity, item_id: int, item_in: MenuItemUpdate
) -> MenuItem:
    """
    Partial update. Existing orders keep the prices they were placed with.
    """
    _require_admin(identity)
    item = await db.get(MenuItem, item_id)
    if not item:
        raise NotFound(f"Menu item with id={item_id} not found")

    for key, value in item_in.model_dump(exclude_unset=True).items():
        setattr(item, key, value)

    await db.commit()
    await db.refresh(item)
    return item


async def delete_menu_item(db: AsyncSession, identity: Identity, item_id: int) -> None:
    _require_admin(identity)
    item = await db.get(MenuItem, item_id)
    if not item:
        raise NotFound(f"Menu item with id={item_id} not found")
    await db.delete(item)
    await db.commit()
    logger.info("Menu item %s deleted by %s", item_id, identity.user_id)
