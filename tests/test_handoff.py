import asyncio
import json
import time
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio

from campus_canteen.client.api import ApiError, CanteenClient
from campus_canteen.client.cart import Cart, CartItemRef
from campus_canteen.client.handoff import (
    HandoffSlot,
    dedupe_lines,
    place_pending_order,
    stash_for_login,
)
from campus_canteen.client.storage import CART_SLOT, HANDOFF_SLOT, MemorySlotStore
from campus_canteen.auth import create_access_token
from campus_canteen.main import app
from conftest import ADMIN, STUDENT, headers_for


@pytest_asyncio.fixture
async def student_client(client):
    token = create_access_token(STUDENT.user_id, STUDENT.role, STUDENT.name)
    api = CanteenClient(
        base_url="http://test",
        token=token,
        transport=httpx.ASGITransport(app=app),
    )
    yield api
    await api.aclose()


def make_cart(store, menu):
    clock = iter(range(100, 200, 5))
    cart = Cart(store=store, clock=lambda: next(clock))
    cart.add(CartItemRef(id=menu["pizza"], name="PizzaSlice", price=Decimal("199")))
    cart.add(CartItemRef(id=menu["pizza"], name="PizzaSlice", price=Decimal("199")))
    cart.add(CartItemRef(id=menu["fries"], name="Fries", price=Decimal("49")))
    cart.save()
    return cart


def test_stash_writes_snapshot_and_token():
    store = MemorySlotStore()
    cart = Cart(store=store)
    cart.add(CartItemRef(id=5, name="Tea", price=Decimal("10")))

    slot = stash_for_login(cart, store, now=1_700_000_000.0)
    saved = json.loads(store.get(HANDOFF_SLOT))
    assert saved["cart"] == [{"itemRef": 5, "quantity": 1}]
    assert saved["redirectTo"] == "/place-order"
    assert saved["orderIdentifier"] == slot.order_identifier
    assert slot.order_identifier.startswith("order_1700000000000_")

    other = stash_for_login(cart, store, now=1_700_000_000.0)
    assert other.order_identifier != slot.order_identifier


def test_dedupe_lines():
    lines = [
        {"itemRef": 1, "quantity": 2},
        {"itemRef": "1", "quantity": 3},
        {"itemRef": 2, "quantity": 0},
        {"quantity": 1},
    ]
    assert dedupe_lines(lines) == [{"itemRef": 1, "quantity": 5}]


@pytest.mark.asyncio
async def test_handoff_places_order_and_clears_slots(student_client, menu):
    store = MemorySlotStore()
    cart = make_cart(store, menu)
    stash_for_login(cart, store, now=time.time() - 600)
    assert store.get(CART_SLOT) is not None

    result = await place_pending_order(store, student_client, cart=cart)

    assert result.ok, result.error
    assert result.order["status"] == "pending"
    assert Decimal(result.order["totalAmount"]) == Decimal("447")
    assert store.get(HANDOFF_SLOT) is None
    assert store.get(CART_SLOT) is None
    assert len(cart) == 0


@pytest.mark.asyncio
async def test_slot_is_consumed_even_when_order_fails(student_client, menu):
    store = MemorySlotStore()
    cart = Cart(store=store)
    cart.add(CartItemRef(id=menu["soup"], name="Soup", price=Decimal("80")))
    cart.add(CartItemRef(id=9999, name="Ghost", price=Decimal("1")))
    cart.save()
    stash_for_login(cart, store)

    result = await place_pending_order(store, student_client)

    assert not result.ok
    assert result.error.kind == "ItemNotFound"
    assert store.get(HANDOFF_SLOT) is None
    # the cart is kept so the user can fix it
    assert store.get(CART_SLOT) is not None

    again = await place_pending_order(store, student_client)
    assert again.error.kind == "InvalidInput"


@pytest.mark.asyncio
async def test_retry_reuses_snapshot_and_token(student_client, menu):
    store = MemorySlotStore()
    slot = HandoffSlot(
        cart=[{"itemRef": menu["fries"], "quantity": 1}],
        timestamp=time.time(),
        order_identifier="order_1_retry",
    )
    store.set(HANDOFF_SLOT, slot.to_json())

    first = await place_pending_order(store, student_client)
    assert first.ok

    # a retry after a lost response must not create a second order
    second = await first.retry(student_client)
    assert second.ok
    assert second.order["id"] == first.order["id"]
    assert len(await student_client.my_orders()) == 1


@pytest.mark.asyncio
async def test_stale_or_missing_slot(student_client, menu):
    store = MemorySlotStore()
    result = await place_pending_order(store, student_client)
    assert result.error.kind == "InvalidInput"

    slot = HandoffSlot(cart=[{"itemRef": menu["fries"], "quantity": 1}], timestamp=0, order_identifier="t")
    store.set(HANDOFF_SLOT, slot.to_json())
    result = await place_pending_order(store, student_client)
    assert not result.ok
    assert store.get(HANDOFF_SLOT) is None
    assert await student_client.my_orders() == []


@pytest.mark.asyncio
async def test_network_failure_is_reported():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    api = CanteenClient(base_url="http://test", transport=httpx.MockTransport(refuse))
    with pytest.raises(ApiError) as exc_info:
        await api.my_orders()
    assert exc_info.value.kind == "Network"
    await api.aclose()


@pytest.mark.asyncio
async def test_success_empties_live_cart_with_pending_save(student_client, menu):
    store = MemorySlotStore()
    cart = Cart(store=store)
    cart.add(CartItemRef(id=menu["fries"], name="Fries", price=Decimal("49")))
    # the debounced save has not fired yet
    assert store.get(CART_SLOT) is None
    stash_for_login(cart, store)

    result = await place_pending_order(store, student_client, cart=cart)
    assert result.ok

    await asyncio.sleep(0.3)
    assert store.get(CART_SLOT) is None
    assert store.get(HANDOFF_SLOT) is None
    assert len(cart) == 0


@pytest.mark.asyncio
async def test_retry_after_failure_clears_stored_cart(client, student_client, menu):
    store = MemorySlotStore()
    cart = Cart(store=store)
    cart.add(CartItemRef(id=menu["soup"], name="Soup", price=Decimal("80")))
    cart.save()
    stash_for_login(cart, store)

    first = await place_pending_order(store, student_client, cart=cart)
    assert first.error.kind == "Unavailable"
    assert store.get(CART_SLOT) is not None

    r = await client.patch(f"/menu/{menu['soup']}", json={"available": True}, headers=headers_for(ADMIN))
    assert r.status_code == 200

    second = await first.retry(student_client)
    assert second.ok, second.error
    assert second.token == first.token
    assert store.get(CART_SLOT) is None
    assert len(cart) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw",
    [
        '{"cart": [{"itemRef": 1, "quantity": Infinity}], "timestamp": 0, "orderIdentifier": "t"}',
        '{"cart": [{"itemRef": Infinity, "quantity": 1}], "timestamp": 0, "orderIdentifier": "t"}',
        '{"cart": [{"itemRef": 1, "quantity": 1}], "timestamp": Infinity, "orderIdentifier": "t"}',
        '{"cart": [{"itemRef": 1, "quantity": 1}], "timestamp": 1e400, "orderIdentifier": "t"}',
        '{"cart": [{"itemRef": 1, "quantity": 1}], "timestamp": [], "orderIdentifier": "t"}',
        '{"cart": [{"itemRef": 1, "quantity": 1}], "timestamp": "soon", "orderIdentifier": "t"}',
        '{"cart": ["junk", 7, null], "orderIdentifier": "t"}',
    ],
)
async def test_malformed_slot_becomes_an_error_result(student_client, raw):
    store = MemorySlotStore({HANDOFF_SLOT: raw})

    result = await place_pending_order(store, student_client, now=100.0)

    assert not result.ok
    assert result.error.kind == "InvalidInput"
    assert store.get(HANDOFF_SLOT) is None
    assert await student_client.my_orders() == []
