from .api import ApiError, CanteenClient
from .cart import Cart, CartEntry, CartItemRef, Notice
from .handoff import HandoffResult, place_pending_order, stash_for_login
from .polling import OrderPoller, dashboard_poller
from .storage import JsonFileSlotStore, MemorySlotStore, SlotStore

__all__ = [
    "ApiError",
    "CanteenClient",
    "Cart",
    "CartEntry",
    "CartItemRef",
    "Notice",
    "HandoffResult",
    "place_pending_order",
    "stash_for_login",
    "OrderPoller",
    "dashboard_poller",
    "JsonFileSlotStore",
    "MemorySlotStore",
    "SlotStore",
]
