import pytest

from conftest import ADMIN, STAFF, STUDENT, headers_for


@pytest.mark.asyncio
async def test_menu_is_public(client, menu):
    r = await client.get("/menu")
    assert r.status_code == 200
    names = {item["name"] for item in r.json()}
    assert names == {"PizzaSlice", "Fries", "Soup"}

    r = await client.get("/menu", params={"available_only": "true"})
    assert {item["name"] for item in r.json()} == {"PizzaSlice", "Fries"}


@pytest.mark.asyncio
async def test_get_menu_item(client, menu):
    r = await client.get(f"/menu/{menu['fries']}")
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Fries"
    assert body["available"] is True

    r = await client.get("/menu/9999")
    assert r.status_code == 404
    assert r.json()["kind"] == "NotFound"


@pytest.mark.asyncio
async def test_admin_manages_menu(client):
    r = await client.post(
        "/menu",
        json={"name": "Samosa", "price": "15.50", "category": "Snacks"},
        headers=headers_for(ADMIN),
    )
    assert r.status_code == 201
    item = r.json()
    assert item["available"] is True

    r = await client.patch(f"/menu/{item['id']}", json={"available": False}, headers=headers_for(ADMIN))
    assert r.status_code == 200
    assert r.json()["available"] is False

    r = await client.delete(f"/menu/{item['id']}", headers=headers_for(ADMIN))
    assert r.status_code == 204
    assert (await client.get(f"/menu/{item['id']}")).status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("identity", [STUDENT, STAFF])
async def test_only_admin_edits_menu(client, menu, identity):
    r = await client.post("/menu", json={"name": "X", "price": "1"}, headers=headers_for(identity))
    assert r.status_code == 403
    assert r.json()["kind"] == "Forbidden"

    r = await client.patch(f"/menu/{menu['pizza']}", json={"price": "1"}, headers=headers_for(identity))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_menu_edit_requires_login(client, menu):
    r = await client.delete(f"/menu/{menu['pizza']}")
    assert r.status_code == 401
    assert r.json()["kind"] == "Unauthorized"


@pytest.mark.asyncio
async def test_negative_price_is_invalid_input(client):
    r = await client.post("/menu", json={"name": "X", "price": "-1"}, headers=headers_for(ADMIN))
    assert r.status_code == 400
    assert r.json()["kind"] == "InvalidInput"
