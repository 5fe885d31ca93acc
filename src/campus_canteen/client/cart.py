"""
Client-side cart.

The cart lives with the user until an order is placed: it is never stored on
the server. It is mirrored into a SlotStore so a reload does not lose it.
Problems (unavailable item, quantity cap) become notices on the cart instead
of exceptions, and never change its contents.
"""
import asyncio
import json
import logging
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterator, List, Optional

from .storage import CART_SLOT, SlotStore

logger = logging.getLogger(__name__)

MAX_QUANTITY = 10
ADD_DEBOUNCE_SECONDS = 0.5
SAVE_DEBOUNCE_SECONDS = 0.1


@dataclass(frozen=True)
class CartItemRef:
    id: int
    name: str
    price: Decimal
    image_url: Optional[str] = None
    available: bool = True

    @classmethod
    def from_menu(cls, data: dict) -> "CartItemRef":
        """Builds a reference from a menu item as returned by GET /menu."""
        return cls(
            id=int(data["id"]),
            name=data["name"],
            price=Decimal(str(data["price"])),
            image_url=data.get("imageUrl"),
            available=bool(data.get("available", True)),
        )


@dataclass
class CartEntry:
    item: CartItemRef
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.item.price * self.quantity


@dataclass(frozen=True)
class Notice:
    level: str  # "success" | "error"
    message: str


def dump_entries(entries: List[CartEntry]) -> str:
    return json.dumps([
        {
            "item": {
                "id": e.item.id,
                "name": e.item.name,
                "price": str(e.item.price),
                "imageUrl": e.item.image_url,
                "available": e.item.available,
            },
            "quantity": e.quantity,
        }
        for e in entries
    ])


def load_entries(raw: str, max_quantity: int = MAX_QUANTITY) -> List[CartEntry]:
    """
    Parses a stored cart. Raises ValueError if the document is not a cart at
    all; individual entries that make no sense (bad ids, infinite quantities,
    NaN prices) are skipped. Repeated item ids collapse to the last one seen.
    """
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("stored cart is not a list")

    by_id: Dict[int, CartEntry] = {}
    for row in data:
        try:
            item = row["item"]
            quantity = int(row["quantity"])
            ref = CartItemRef(
                id=int(item["id"]),
                name=str(item["name"]),
                price=Decimal(str(item["price"])),
                image_url=item.get("imageUrl"),
                available=bool(item.get("available", True)),
            )
        except (KeyError, TypeError, ValueError, OverflowError, InvalidOperation):
            continue
        if quantity < 1 or not ref.price.is_finite() or ref.price < 0:
            continue
        by_id[ref.id] = CartEntry(item=ref, quantity=min(quantity, max_quantity))
    return list(by_id.values())


class Cart:
    def __init__(
        self,
        store: Optional[SlotStore] = None,
        clock: Callable[[], float] = time.monotonic,
        max_quantity: int = MAX_QUANTITY,
        add_debounce: float = ADD_DEBOUNCE_SECONDS,
        save_debounce: float = SAVE_DEBOUNCE_SECONDS,
        on_notice: Optional[Callable[[Notice], None]] = None,
    ):
        self.store = store
        self.clock = clock
        self.max_quantity = max_quantity
        self.add_debounce = add_debounce
        self.save_debounce = save_debounce
        self.on_notice = on_notice
        self.notices: List[Notice] = []
        self._entries: Dict[int, CartEntry] = {}
        self._last_add: Optional[tuple] = None
        self._save_handle: Optional[asyncio.TimerHandle] = None

    @classmethod
    def load(cls, store: SlotStore, **kwargs) -> "Cart":
        """
        Restores the cart mirrored in `store`. A corrupt slot is dropped and an
        empty cart returned.
        """
        cart = cls(store=store, **kwargs)
        raw = store.get(CART_SLOT)
        if raw:
            try:
                entries = load_entries(raw, cart.max_quantity)
            except ValueError:
                logger.warning("Discarding corrupt stored cart")
                store.remove(CART_SLOT)
                entries = []
            cart._entries = {e.item.id: e for e in entries}
        return cart

    # -- reading -----------------------------------------------------------

    @property
    def entries(self) -> List[CartEntry]:
        return list(self._entries.values())

    def __iter__(self) -> Iterator[CartEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item_id) -> bool:
        return item_id in self._entries

    def get(self, item_id: int) -> Optional[CartEntry]:
        return self._entries.get(item_id)

    def total(self) -> Decimal:
        return sum((e.line_total for e in self._entries.values()), Decimal("0"))

    def item_count(self) -> int:
        return sum(e.quantity for e in self._entries.values())

    def snapshot(self) -> List[dict]:
        """Order lines in the shape POST /orders expects."""
        return [{"itemRef": e.item.id, "quantity": e.quantity} for e in self._entries.values()]

    # -- mutations -----------------------------------------------------------

    def add(self, item: CartItemRef) -> bool:
        """
        Adds one unit of `item`. Returns True if the cart changed.
        """
        if not item.available:
            self._notify("error", "This item is currently unavailable")
            return False

        now = self.clock()
        if self._last_add and self._last_add[0] == item.id and now - self._last_add[1] < self.add_debounce:
            logger.debug("Coalesced repeated add for item %s", item.id)
            return False
        self._last_add = (item.id, now)

        self._collapse()
        existing = self._entries.get(item.id)
        if existing is None:
            self._entries[item.id] = CartEntry(item=item, quantity=1)
            self._notify("success", f"Added {item.name} to cart!")
        elif existing.quantity >= self.max_quantity:
            self._notify("error", f"Maximum quantity ({self.max_quantity}) reached for {item.name}")
            return False
        else:
            existing.quantity += 1
            self._notify("success", f"Updated {item.name} quantity to {existing.quantity}")

        self._changed()
        return True

    def remove(self, item_id: int) -> bool:
        self._collapse()
        if self._entries.pop(item_id, None) is None:
            return False
        self._notify("success", "Item removed from cart")
        self._changed()
        return True

    def set_quantity(self, item_id: int, quantity: int) -> bool:
        if quantity < 1:
            return self.remove(item_id)
        if quantity > self.max_quantity:
            self._notify("error", f"Maximum quantity per item is {self.max_quantity}")
            return False

        self._collapse()
        entry = self._entries.get(item_id)
        if entry is None or entry.quantity == quantity:
            return False
        entry.quantity = quantity
        self._changed()
        return True

    def clear(self) -> None:
        self._entries = {}
        self._last_add = None
        self._notify("success", "Cart cleared successfully")
        self._changed()

    # -- persistence ---------------------------------------------------------

    def save(self) -> None:
        if self._save_handle is not None:
            self._save_handle.cancel()
            self._save_handle = None
        if self.store is None:
            return
        try:
            self.store.set(CART_SLOT, dump_entries(self.entries))
        except OSError as exc:
            logger.warning("Could not persist cart: %s", exc)

    def discard_persisted(self) -> None:
        """Empties the cart and removes its slot, e.g. after an order went through."""
        if self._save_handle is not None:
            self._save_handle.cancel()
            self._save_handle = None
        self._entries = {}
        self._last_add = None
        if self.store is not None:
            self.store.remove(CART_SLOT)

    def _changed(self) -> None:
        if self.store is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.save()
            return
        if self._save_handle is not None:
            self._save_handle.cancel()
        self._save_handle = loop.call_later(self.save_debounce, self.save)

    def _collapse(self) -> None:
        # re-key by item id so no item can ever hold two entries
        collapsed: Dict[int, CartEntry] = {}
        for entry in self._entries.values():
            collapsed[entry.item.id] = entry
        self._entries = collapsed

    def _notify(self, level: str, message: str) -> None:
        notice = Notice(level, message)
        self.notices.append(notice)
        logger.debug("Cart notice [%s] %s", level, message)
        if self.on_notice is not None:
            self.on_notice(notice)
