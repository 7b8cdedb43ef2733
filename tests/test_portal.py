from decimal import Decimal

import pytest

from cabinetry.auth.passwords import hash_password, verify_password
from cabinetry.models import User
from cabinetry.services import email_service


def _address(**kw):
    body = {"name": "Jo Citizen", "line1": "1 Collins St", "suburb": "Melbourne", "state": "VIC", "postcode": "3000"}
    body.update(kw)
    return body


@pytest.fixture
def sent_quote(client, admin, customer):
    quote = client.post(
        "/admin/quotes", auth=admin, json={"customer_name": "Jo Citizen", "customer_email": "jo@example.com"}
    ).json()
    client.post(f"/admin/quotes/{quote['id']}/items", auth=admin, json={"item_name": "Kitchen fit-out", "unit_price": "99.99"})
    r = client.post(f"/admin/quotes/{quote['id']}/send", auth=admin)
    assert r.status_code == 200, r.text
    return r.json()


# -------------------------
# Accounts
# -------------------------
def test_register_then_login(client):
    r = client.post(
        "/auth/register", json={"email": "New@Example.com", "password": "long-enough", "full_name": "New Person"}
    )
    assert r.status_code == 201
    assert r.json()["token_type"] == "bearer"
    assert "access_token" in r.cookies
    client.cookies.clear()

    r = client.post("/auth/token", json={"email": "new@example.com", "password": "long-enough"})
    assert r.status_code == 200
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {r.json()['access_token']}"}).json()
    assert me["email"] == "new@example.com"
    assert me["role"] == "customer"


def test_duplicate_email_is_rejected(client, customer):
    r = client.post("/auth/register", json={"email": "JO@example.com", "password": "another-one"})
    assert r.status_code == 422
    assert r.json()["error"] == "email_taken"


def test_bad_credentials(client, customer):
    r = client.post("/auth/token", json={"email": "jo@example.com", "password": "wrong-password"})
    assert r.status_code == 401
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_password_is_stored_as_passlib_hash(client, customer, db):
    user = db.query(User).filter(User.email == "jo@example.com").one()
    assert user.password_hash.startswith("$pbkdf2-sha256$")
    assert "correct-horse" not in user.password_hash
    assert verify_password("correct-horse", user.password_hash) is True
    assert verify_password("correct-horse", "not-a-hash") is False
    assert hash_password("correct-horse") != user.password_hash


def test_short_password(client):
    r = client.post("/auth/register", json={"email": "x@example.com", "password": "short"})
    assert r.status_code == 422


# -------------------------
# Address book
# -------------------------
def test_first_address_of_each_type_is_default(client, customer):
    home = client.post("/portal/addresses", headers=customer, json=_address()).json()
    work = client.post("/portal/addresses", headers=customer, json=_address(line1="9 Queen St")).json()
    billing = client.post("/portal/addresses", headers=customer, json=_address(type="billing")).json()

    assert home["is_default"] is True
    assert work["is_default"] is False
    assert billing["is_default"] is True
    assert home["country"] == "AU"


def test_switching_and_deleting_the_default(client, customer):
    home = client.post("/portal/addresses", headers=customer, json=_address()).json()
    work = client.post("/portal/addresses", headers=customer, json=_address(line1="9 Queen St")).json()

    r = client.patch(f"/portal/addresses/{work['id']}", headers=customer, json={"is_default": True})
    assert r.json()["is_default"] is True
    listed = client.get("/portal/addresses", headers=customer).json()
    assert [(a["id"], a["is_default"]) for a in listed] == [(work["id"], True), (home["id"], False)]

    client.delete(f"/portal/addresses/{work['id']}", headers=customer)
    listed = client.get("/portal/addresses", headers=customer).json()
    assert [(a["id"], a["is_default"]) for a in listed] == [(home["id"], True)]


def test_addresses_are_private(client, customer, other_customer):
    home = client.post("/portal/addresses", headers=customer, json=_address()).json()
    assert client.patch(f"/portal/addresses/{home['id']}", headers=other_customer, json={"name": "x"}).status_code == 404
    assert client.delete(f"/portal/addresses/{home['id']}", headers=other_customer).status_code == 404
    assert client.get("/portal/addresses", headers=other_customer).json() == []


@pytest.mark.parametrize("postcode", ["300", "30000", "ABCD"])
def test_address_postcode_must_be_four_digits(client, customer, postcode):
    r = client.post("/portal/addresses", headers=customer, json=_address(postcode=postcode))
    assert r.status_code == 422


# -------------------------
# Dashboard
# -------------------------
def test_empty_dashboard(client, customer):
    assert client.get("/portal/dashboard", headers=customer).json() == {
        "open_quotes": 0,
        "active_orders": 0,
        "pending_payments": 0,
        "unread_messages": 0,
        "active_cart_items": 0,
    }


def test_dashboard_counts(client, admin, customer, catalog, shipping_address, sent_quote):
    cart = client.post("/carts", headers=customer, json={}).json()
    client.post(
        f"/carts/{cart['id']}/items",
        headers=customer,
        json={"cabinet_type_id": catalog["base"], "width_mm": 600, "height_mm": 720, "depth_mm": 560},
    )
    client.post(f"/admin/messages/quote/{sent_quote['id']}", auth=admin, json={"message_text": "Any questions?"})

    body = client.get("/portal/dashboard", headers=customer).json()
    assert body["open_quotes"] == 1
    assert body["unread_messages"] == 1
    assert body["active_cart_items"] == 1

    # reading the thread clears the unread count
    client.get(f"/portal/messages/quote/{sent_quote['id']}", headers=customer)
    order = client.post(
        f"/portal/quotes/{sent_quote['id']}/accept",
        headers=customer,
        json={"shipping_address_id": shipping_address},
    ).json()
    assert Decimal(order["total_amount"]) == Decimal("109.99")

    body = client.get("/portal/dashboard", headers=customer).json()
    assert body["open_quotes"] == 0
    assert body["active_orders"] == 1
    assert body["pending_payments"] == 1
    assert body["unread_messages"] == 0


# -------------------------
# Messages
# -------------------------
def test_message_thread_between_customer_and_admin(client, admin, customer, sent_quote):
    r = client.post(
        f"/portal/messages/quote/{sent_quote['id']}", headers=customer, json={"message_text": "  Can we do oak?  "}
    )
    assert r.status_code == 201
    assert r.json()["message_type"] == "customer"
    assert r.json()["message_text"] == "Can we do oak?"

    r = client.post(f"/admin/messages/quote/{sent_quote['id']}", auth=admin, json={"message_text": "Yes, +10%"})
    assert r.json()["message_type"] == "admin"
    assert r.json()["author_id"] is None

    thread = client.get(f"/portal/messages/quote/{sent_quote['id']}", headers=customer).json()
    assert [m["message_text"] for m in thread] == ["Can we do oak?", "Yes, +10%"]


def test_message_notifications(client, admin, customer, sent_quote, monkeypatch):
    sent = []
    monkeypatch.setattr(email_service, "send_message_notification", lambda *a: sent.append(a) or True)

    client.post(f"/portal/messages/quote/{sent_quote['id']}", headers=customer, json={"message_text": "Hello"})
    client.post(f"/admin/messages/quote/{sent_quote['id']}", auth=admin, json={"message_text": "Hi Jo"})

    assert [(to, scope, ref) for to, scope, ref, _ in sent] == [
        ("workshop@example.com", "quote", sent_quote["quote_number"]),
        ("jo@example.com", "quote", sent_quote["quote_number"]),
    ]


def test_thread_access_is_scoped(client, admin, customer, other_customer, sent_quote):
    r = client.get(f"/portal/messages/quote/{sent_quote['id']}", headers=other_customer)
    assert r.status_code == 403
    assert r.json()["meta"] == {"scope": "quote", "scope_id": sent_quote["id"]}

    r = client.post(f"/portal/messages/quote/{sent_quote['id']}", headers=other_customer, json={"message_text": "hi"})
    assert r.status_code == 403

    assert client.get("/portal/messages/quote/missing", headers=customer).status_code == 404
    assert client.get("/portal/messages/banana/1", headers=customer).status_code == 422
    assert client.get("/admin/messages/order/missing", auth=admin).status_code == 404


def test_blank_message_is_rejected(client, customer, sent_quote):
    r = client.post(f"/portal/messages/quote/{sent_quote['id']}", headers=customer, json={"message_text": "   "})
    assert r.status_code == 422


def test_quote_email_matches_regardless_of_case(client, admin, make_customer):
    quote = client.post(
        "/admin/quotes", auth=admin, json={"customer_name": "Alice", "customer_email": "Alice@Example.com"}
    ).json()
    assert quote["customer_email"] == "alice@example.com"
    client.post(f"/admin/quotes/{quote['id']}/items", auth=admin, json={"item_name": "Vanity", "unit_price": "450"})
    assert client.post(f"/admin/quotes/{quote['id']}/send", auth=admin).status_code == 200

    alice = make_customer("alice@example.com", full_name="Alice")
    assert client.get(f"/portal/quotes/{quote['id']}", headers=alice).status_code == 200
    assert [q["id"] for q in client.get("/portal/quotes", headers=alice).json()] == [quote["id"]]
    assert client.get("/portal/dashboard", headers=alice).json()["open_quotes"] == 1
    assert client.get(f"/portal/messages/quote/{quote['id']}", headers=alice).status_code == 200
