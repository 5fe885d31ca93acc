"""
Cart-to-order handoff across the login redirect.

Before sending an anonymous user to log in, the cart is written to the
`loginRedirect` slot together with a fresh idempotency token. After login the
slot is read exactly once, removed whatever happens, and submitted. A failed
submission can be retried from the in-memory snapshot with the same token,
so the server never creates the order twice.
"""
import json
import logging
import math
import secrets
import time
from dataclasses import dataclass, field
from typing import List, Optional

from .api import ApiError, CanteenClient
from .cart import Cart
from .storage import CART_SLOT, HANDOFF_SLOT, SlotStore

logger = logging.getLogger(__name__)

HANDOFF_MAX_AGE_SECONDS = 60 * 60
REDIRECT_TO = "/place-order"


def new_order_token(now: Optional[float] = None) -> str:
    millis = int((time.time() if now is None else now) * 1000)
    return f"order_{millis}_{secrets.token_hex(5)}"


@dataclass
class HandoffSlot:
    cart: List[dict]
    timestamp: float
    order_identifier: str
    redirect_to: str = REDIRECT_TO

    def to_json(self) -> str:
        return json.dumps({
            "redirectTo": self.redirect_to,
            "cart": self.cart,
            "timestamp": self.timestamp,
            "orderIdentifier": self.order_identifier,
        })

    @classmethod
    def from_json(cls, raw: str) -> "HandoffSlot":
        data = json.loads(raw)
        if not isinstance(data, dict) or not isinstance(data.get("cart"), list):
            raise ValueError("handoff slot has no cart")
        try:
            timestamp = float(data.get("timestamp", 0))
        except (TypeError, OverflowError) as exc:
            raise ValueError(f"bad handoff timestamp: {exc}") from exc
        if not math.isfinite(timestamp):
            raise ValueError("handoff timestamp is not finite")
        return cls(
            cart=data["cart"],
            timestamp=timestamp,
            order_identifier=str(data.get("orderIdentifier") or new_order_token()),
            redirect_to=data.get("redirectTo") or REDIRECT_TO,
        )


def dedupe_lines(lines: List[dict]) -> List[dict]:
    """
    Merges lines for the same item, summing quantities; lines without an item
    reference or with a non-positive quantity are dropped.
    """
    merged: dict = {}
    for line in lines:
        try:
            item_ref = int(line["itemRef"])
            quantity = int(line["quantity"])
        except (KeyError, TypeError, ValueError, OverflowError):
            continue
        if quantity < 1:
            continue
        merged[item_ref] = merged.get(item_ref, 0) + quantity
    return [{"itemRef": ref, "quantity": qty} for ref, qty in merged.items()]


def stash_for_login(cart: Cart, store: SlotStore, now: Optional[float] = None) -> HandoffSlot:
    now = time.time() if now is None else now
    slot = HandoffSlot(
        cart=cart.snapshot(),
        timestamp=now,
        order_identifier=new_order_token(now),
    )
    store.set(HANDOFF_SLOT, slot.to_json())
    logger.info("Cart stashed for login (%d lines, token %s)", len(slot.cart), slot.order_identifier)
    return slot


@dataclass
class HandoffResult:
    order: Optional[dict] = None
    error: Optional[ApiError] = None
    snapshot: List[dict] = field(default_factory=list)
    token: Optional[str] = None
    # where the submitted cart lives, cleared once the order goes through
    store: Optional[SlotStore] = field(default=None, repr=False)
    cart: Optional[Cart] = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.order is not None

    async def retry(self, client: CanteenClient) -> "HandoffResult":
        """
        Resubmits the same snapshot with the same token. Only ever called
        on an explicit user action.
        """
        if not self.snapshot:
            return self
        return await _submit(client, self.snapshot, self.token, self.store, self.cart)


async def _submit(
    client: CanteenClient,
    lines: List[dict],
    token: Optional[str],
    store: Optional[SlotStore],
    cart: Optional[Cart],
) -> HandoffResult:
    try:
        order = await client.create_order(lines, idempotency_key=token)
    except ApiError as exc:
        logger.warning("Placing order after login failed: %s", exc)
        return HandoffResult(error=exc, snapshot=lines, token=token, store=store, cart=cart)

    if cart is not None:
        # also cancels a pending debounced save that would rewrite the slot
        cart.discard_persisted()
    if store is not None:
        store.remove(CART_SLOT)
    logger.info("Order %s placed after login", order.get("id"))
    return HandoffResult(order=order, snapshot=lines, token=token, store=store, cart=cart)


async def place_pending_order(
    store: SlotStore,
    client: CanteenClient,
    cart: Optional[Cart] = None,
    now: Optional[float] = None,
    max_age: float = HANDOFF_MAX_AGE_SECONDS,
) -> HandoffResult:
    """
    Consumes the handoff slot and places the order it holds. On success the
    stored cart is removed too, and `cart`, if the caller holds one, is emptied.
    """
    raw = store.get(HANDOFF_SLOT)
    # read once: a reload or back-navigation must not resubmit silently
    store.remove(HANDOFF_SLOT)

    if not raw:
        return HandoffResult(error=ApiError("InvalidInput", "No order data found"))
    try:
        slot = HandoffSlot.from_json(raw)
    except ValueError:
        logger.warning("Discarding unreadable handoff slot")
        return HandoffResult(error=ApiError("InvalidInput", "No order data found"))

    now = time.time() if now is None else now
    if now - slot.timestamp > max_age:
        logger.info("Discarding stale handoff slot from %.0fs ago", now - slot.timestamp)
        return HandoffResult(error=ApiError("InvalidInput", "Saved cart has expired"))

    lines = dedupe_lines(slot.cart)
    if not lines:
        return HandoffResult(error=ApiError("InvalidInput", "Cart is empty"), token=slot.order_identifier)

    return await _submit(client, lines, slot.order_identifier, store, cart)
