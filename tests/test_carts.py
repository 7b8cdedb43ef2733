from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from cabinetry.models import Cart


def _item(catalog, **kw):
    body = {"cabinet_type_id": catalog["base"], "width_mm": 600, "height_mm": 720, "depth_mm": 560}
    body.update(kw)
    return body


@pytest.fixture
def cart(client, customer):
    r = client.post("/carts", headers=customer, json={"name": "Kitchen"})
    assert r.status_code == 201, r.text
    return r.json()


# -------------------------
# Carts
# -------------------------
def test_first_cart_is_primary(client, customer, cart):
    assert cart["is_primary"] is True
    second = client.post("/carts", headers=customer, json={"name": "Laundry"}).json()
    assert second["is_primary"] is False

    client.post(f"/carts/{second['id']}/primary", headers=customer)
    carts = client.get("/carts", headers=customer).json()
    assert [(c["name"], c["is_primary"]) for c in carts] == [("Laundry", True), ("Kitchen", False)]


def test_active_cart_is_created_on_demand(client, customer):
    r = client.get("/carts/active", headers=customer)
    assert r.status_code == 200
    assert r.json()["is_primary"] is True
    assert client.get("/carts/active", headers=customer).json()["id"] == r.json()["id"]


def test_archived_carts_are_read_only(client, customer, catalog, cart):
    archived = client.post(f"/carts/{cart['id']}/archive", headers=customer).json()
    assert archived["status"] == "archived"
    assert client.get("/carts", headers=customer).json() == []
    assert len(client.get("/carts", headers=customer, params={"include_archived": True}).json()) == 1

    r = client.post(f"/carts/{cart['id']}/items", headers=customer, json=_item(catalog))
    assert r.status_code == 422
    assert r.json()["error"] == "cart_not_active"


def test_carts_are_private(client, customer, other_customer, cart):
    assert client.get(f"/carts/{cart['id']}", headers=other_customer).status_code == 404


# -------------------------
# Housekeeping
# -------------------------
def test_consolidate_retires_empty_duplicates_and_fixes_totals(client, customer, catalog, cart, db):
    item = client.post(f"/carts/{cart['id']}/items", headers=customer, json=_item(catalog)).json()
    laundry = client.post("/carts", headers=customer, json={"name": "Laundry"}).json()
    db.get(Cart, cart["id"]).total_amount = Decimal("1.00")
    db.commit()

    r = client.post("/carts/consolidate", headers=customer)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["kept_cart_id"] == cart["id"]
    actions = sorted(body["actions"], key=lambda a: a["type"])
    assert actions == [
        {"type": "empty_cart_retired", "cart_id": laundry["id"]},
        {
            "type": "total_fixed",
            "cart_id": cart["id"],
            "old_total": "1.00",
            "new_total": str(Decimal(item["total_price"])),
        },
    ]

    assert [c["id"] for c in client.get("/carts", headers=customer).json()] == [cart["id"]]
    retired = client.get(f"/carts/{laundry['id']}", headers=customer).json()
    assert retired["status"] == "abandoned"
    assert retired["abandon_reason"] == "Consolidated: duplicate empty cart"
    assert retired["abandoned_at"] is not None

    assert client.post("/carts/consolidate", headers=customer).json()["actions"] == []


def test_consolidate_restores_a_primary_cart(client, customer, cart):
    laundry = client.post("/carts", headers=customer, json={"name": "Laundry"}).json()
    client.post(f"/carts/{cart['id']}/archive", headers=customer)

    body = client.post("/carts/consolidate", headers=customer).json()
    assert body == {
        "kept_cart_id": laundry["id"],
        "actions": [{"type": "primary_restored", "cart_id": laundry["id"]}],
    }
    assert client.get(f"/carts/{laundry['id']}", headers=customer).json()["is_primary"] is True


def test_consolidate_without_carts(client, customer):
    assert client.post("/carts/consolidate", headers=customer).json() == {"kept_cart_id": None, "actions": []}


def test_stale_carts_are_abandoned(client, admin, customer, cart, db):
    fresh = client.post("/carts", headers=customer, json={"name": "Laundry"}).json()
    db.get(Cart, cart["id"]).last_activity_at = datetime.now(timezone.utc) - timedelta(days=40)
    db.commit()

    assert client.post("/admin/carts/sweep/abandoned").status_code == 401
    r = client.post("/admin/carts/sweep/abandoned", auth=admin, params={"older_than_days": 50})
    assert r.json() == {"abandoned": 0}
    assert client.post("/admin/carts/sweep/abandoned", auth=admin).json() == {"abandoned": 1}

    stale = client.get(f"/carts/{cart['id']}", headers=customer).json()
    assert stale["status"] == "abandoned"
    assert stale["is_primary"] is False
    assert stale["abandon_reason"] == "No activity for 30 days"
    assert client.get(f"/carts/{fresh['id']}", headers=customer).json()["status"] == "active"


# -------------------------
# Items
# -------------------------
def test_add_update_remove_items(client, customer, catalog, cart):
    r = client.post(f"/carts/{cart['id']}/items", headers=customer, json=_item(catalog, quantity=2))
    assert r.status_code == 201
    item = r.json()
    assert Decimal(item["unit_price"]) == Decimal("86.72")
    assert Decimal(item["total_price"]) == Decimal("173.44")

    r = client.patch(
        f"/carts/{cart['id']}/items/{item['id']}",
        headers=customer,
        json={"door_style_id": catalog["door"], "quantity": 1},
    )
    assert Decimal(r.json()["unit_price"]) == Decimal("138.56")
    assert Decimal(client.get(f"/carts/{cart['id']}", headers=customer).json()["total_amount"]) == Decimal("138.56")

    corner = client.post(
        f"/carts/{cart['id']}/items",
        headers=customer,
        json=_item(catalog, cabinet_type_id=catalog["corner"], width_mm=900),
    ).json()
    assert Decimal(corner["unit_price"]) == Decimal("277.92")

    client.delete(f"/carts/{cart['id']}/items/{item['id']}", headers=customer)
    body = client.get(f"/carts/{cart['id']}", headers=customer).json()
    assert [i["id"] for i in body["items"]] == [corner["id"]]
    assert Decimal(body["total_amount"]) == Decimal("277.92")


def test_out_of_range_dimensions(client, customer, catalog, cart):
    r = client.post(f"/carts/{cart['id']}/items", headers=customer, json=_item(catalog, width_mm=1500))
    assert r.status_code == 422
    assert r.json()["meta"]["max"] == 1200


def test_inactive_cabinet_cannot_be_added(client, customer, catalog, cart):
    r = client.post(f"/carts/{cart['id']}/items", headers=customer, json=_item(catalog, cabinet_type_id=catalog["retired"]))
    assert r.status_code == 404


def test_admin_price_override_survives_edits(client, admin, customer, catalog, cart):
    item = client.post(f"/carts/{cart['id']}/items", headers=customer, json=_item(catalog)).json()

    r = client.post(
        f"/admin/cart-items/{item['id']}/price-override",
        auth=admin,
        json={"unit_price": "70", "reason": "Showroom special"},
    )
    assert r.status_code == 200
    assert Decimal(r.json()["price_override"]) == Decimal("70.00")

    r = client.patch(f"/carts/{cart['id']}/items/{item['id']}", headers=customer, json={"quantity": 3})
    assert Decimal(r.json()["unit_price"]) == Decimal("70.00")
    assert Decimal(r.json()["total_price"]) == Decimal("210.00")


def test_price_override_requires_admin(client, customer, catalog, cart):
    item = client.post(f"/carts/{cart['id']}/items", headers=customer, json=_item(catalog)).json()
    r = client.post(f"/admin/cart-items/{item['id']}/price-override", json={"unit_price": "1", "reason": "cheap"})
    assert r.status_code == 401


# -------------------------
# Conversions
# -------------------------
def test_cart_to_quote(client, admin, customer, catalog, cart):
    client.post(f"/carts/{cart['id']}/items", headers=customer, json=_item(catalog, quantity=2))

    r = client.post(f"/carts/{cart['id']}/quote", headers=customer, json={"notes": "Please call first"})
    assert r.status_code == 201, r.text
    quote = r.json()
    assert quote["status"] == "draft"
    assert quote["source_cart_id"] == cart["id"]
    assert quote["customer_email"] == "jo@example.com"
    assert Decimal(quote["subtotal"]) == Decimal("173.44")
    assert quote["items"][0]["item_name"] == "Base 600"

    converted = client.get(f"/carts/{cart['id']}", headers=customer).json()
    assert converted["status"] == "converted"
    assert converted["converted_quote_id"] == quote["id"]


def test_empty_cart_cannot_become_a_quote(client, customer, cart):
    r = client.post(f"/carts/{cart['id']}/quote", headers=customer, json={})
    assert r.status_code == 422
    assert r.json()["error"] == "cart_empty"


def test_checkout_adds_delivery_and_gst(client, customer, catalog, delivery, shipping_address, cart):
    client.post(f"/carts/{cart['id']}/items", headers=customer, json=_item(catalog, quantity=2))

    r = client.post(
        f"/carts/{cart['id']}/checkout",
        headers=customer,
        json={"shipping_address_id": shipping_address, "payment_option": "full"},
    )
    assert r.status_code == 201, r.text
    order = r.json()
    # 173.44 cabinets + 145.00 delivery, then GST
    assert Decimal(order["subtotal"]) == Decimal("173.44")
    assert Decimal(order["shipping_amount"]) == Decimal("145.00")
    assert Decimal(order["tax_amount"]) == Decimal("31.84")
    assert Decimal(order["total_amount"]) == Decimal("350.28")
    assert order["billing_address"] == order["shipping_address"]
    assert [(s["schedule_type"], s["status"]) for s in order["schedules"]] == [("full", "pending")]

    assert client.get(f"/carts/{cart['id']}", headers=customer).json()["status"] == "converted"


def test_checkout_without_delivery(client, customer, catalog, shipping_address, cart):
    client.post(f"/carts/{cart['id']}/items", headers=customer, json=_item(catalog))
    r = client.post(
        f"/carts/{cart['id']}/checkout",
        headers=customer,
        json={"shipping_address_id": shipping_address, "include_shipping": False},
    )
    assert r.status_code == 201
    assert Decimal(r.json()["total_amount"]) == Decimal("95.39")
    assert len(r.json()["schedules"]) == 3


def test_checkout_to_unknown_postcode(client, customer, catalog, shipping_address, cart):
    # no postcode zones loaded
    client.post(f"/carts/{cart['id']}/items", headers=customer, json=_item(catalog))
    r = client.post(f"/carts/{cart['id']}/checkout", headers=customer, json={"shipping_address_id": shipping_address})
    assert r.status_code == 422
    assert r.json()["error"] == "unknown_postcode"
    assert client.get(f"/carts/{cart['id']}", headers=customer).json()["status"] == "active"
