from datetime import date, timedelta
from decimal import Decimal

import pytest

from cabinetry.models import Payment, PaymentSchedule
from cabinetry.services import email_service


@pytest.fixture
def order(client, customer, catalog, shipping_address):
    cart_id = client.post("/carts", headers=customer, json={}).json()["id"]
    client.post(
        f"/carts/{cart_id}/items",
        headers=customer,
        json={"cabinet_type_id": catalog["base"], "width_mm": 600, "height_mm": 720, "depth_mm": 560},
    )
    r = client.post(
        f"/carts/{cart_id}/checkout",
        headers=customer,
        json={"shipping_address_id": shipping_address, "include_shipping": False},
    )
    assert r.status_code == 201, r.text
    return r.json()


def _schedule(order, kind):
    return next(s for s in order["schedules"] if s["schedule_type"] == kind)


def _pay(client, customer, order, kind):
    s = _schedule(order, kind)
    return client.post(
        f"/portal/orders/{order['id']}/schedules/{s['id']}/pay",
        headers=customer,
        json={"amount": s["amount"], "method": "card", "reference": f"ch_{kind}"},
    )


# -------------------------
# Milestones & payments
# -------------------------
def test_schedule_adds_up_to_total(order):
    assert Decimal(order["total_amount"]) == Decimal("95.39")
    amounts = [Decimal(s["amount"]) for s in order["schedules"]]
    assert amounts == [Decimal("19.08"), Decimal("28.62"), Decimal("47.69")]
    assert _schedule(order, "deposit")["due_date"] == (date.today() + timedelta(days=7)).isoformat()


def test_deposit_payment_confirms_order(client, admin, customer, order):
    r = _pay(client, customer, order, "deposit")
    assert r.status_code == 201, r.text
    assert r.json()["status"] == "completed"
    assert r.json()["external_id"] == "ch_deposit"

    body = client.get(f"/portal/orders/{order['id']}", headers=customer).json()
    assert body["status"] == "confirmed"
    assert body["payment_status"] == "partial"
    assert body["drawings_status"] == "pending_upload"
    assert _schedule(body, "deposit")["status"] == "paid"


def test_payment_must_match_milestone(client, customer, order):
    s = _schedule(order, "deposit")
    r = client.post(
        f"/portal/orders/{order['id']}/schedules/{s['id']}/pay",
        headers=customer,
        json={"amount": "19.00"},
    )
    assert r.status_code == 422
    assert r.json()["meta"] == {"amount": "19.00", "expected": "19.08"}


def test_locked_milestone_cannot_be_paid(client, customer, order):
    r = _pay(client, customer, order, "progress")
    assert r.status_code == 422
    assert "locked" in r.json()["detail"]


def test_full_milestone_flow(client, admin, customer, order):
    _pay(client, customer, order, "deposit")

    r = client.post(f"/admin/orders/{order['id']}/triggers", auth=admin, json={"trigger_event": "drawings_approved"})
    assert r.status_code == 200
    result = r.json()
    assert result["unlocked"] == [_schedule(order, "progress")["id"]]
    assert result["drawings_status"] == "approved"

    progress = _schedule(client.get(f"/admin/orders/{order['id']}", auth=admin).json(), "progress")
    assert progress["status"] == "pending"
    assert progress["due_date"] == (date.today() + timedelta(days=14)).isoformat()

    r = client.post(
        f"/admin/orders/{order['id']}/schedules/{progress['id']}/payments",
        auth=admin,
        json={"amount": progress["amount"], "method": "bank_transfer"},
    )
    assert r.status_code == 201

    result = client.post(
        f"/admin/orders/{order['id']}/triggers", auth=admin, json={"trigger_event": "production_complete"}
    ).json()
    assert result["order_status"] == "ready_for_delivery"

    assert _pay(client, customer, order, "balance").status_code == 201
    body = client.get(f"/admin/orders/{order['id']}", auth=admin).json()
    assert body["payment_status"] == "paid"
    assert body["production_status"] == "complete"

    # firing again only reports what was already unlocked
    again = client.post(
        f"/admin/orders/{order['id']}/triggers", auth=admin, json={"trigger_event": "production_complete"}
    ).json()
    assert again["unlocked"] == []
    assert again["skipped"] == [_schedule(order, "balance")["id"]]


def test_overdue_sweep(client, admin, customer, order, db):
    deposit = db.get(PaymentSchedule, _schedule(order, "deposit")["id"])
    deposit.due_date = date.today() - timedelta(days=1)
    db.commit()

    assert client.post("/admin/orders/sweep/overdue", auth=admin).json() == {"updated": 1}
    body = client.get(f"/admin/orders/{order['id']}", auth=admin).json()
    assert _schedule(body, "deposit")["status"] == "overdue"

    # overdue milestones can still be settled
    assert _pay(client, customer, order, "deposit").status_code == 201


# -------------------------
# Order status
# -------------------------
def test_status_changes_follow_the_flow(client, admin, order):
    r = client.patch(f"/admin/orders/{order['id']}", auth=admin, json={"status": "shipped"})
    assert r.status_code == 409
    assert r.json()["meta"] == {"from": "pending", "to": "shipped"}

    r = client.patch(
        f"/admin/orders/{order['id']}",
        auth=admin,
        json={"status": "confirmed", "production_notes": "Check handle size"},
    )
    assert r.json()["status"] == "confirmed"
    assert r.json()["production_notes"] == "Check handle size"


def test_cancelled_order_is_frozen(client, admin, order):
    client.patch(f"/admin/orders/{order['id']}", auth=admin, json={"status": "cancelled"})

    r = client.post(f"/admin/orders/{order['id']}/triggers", auth=admin, json={"trigger_event": "drawings_approved"})
    assert r.status_code == 422
    r = client.post(f"/admin/orders/{order['id']}/invoices", auth=admin, json={})
    assert r.status_code == 422
    assert client.patch(f"/admin/orders/{order['id']}", auth=admin, json={"status": "confirmed"}).status_code == 409


def test_cancelled_order_refuses_payment(client, admin, customer, order, db):
    client.patch(f"/admin/orders/{order['id']}", auth=admin, json={"status": "cancelled"})

    r = _pay(client, customer, order, "deposit")
    assert r.status_code == 422
    assert r.json()["error"] == "business_rule"

    assert db.query(Payment).count() == 0
    body = client.get(f"/portal/orders/{order['id']}", headers=customer).json()
    assert body["status"] == "cancelled"
    assert body["payment_status"] == "unpaid"
    assert _schedule(body, "deposit")["status"] == "pending"


def test_admin_order_filters(client, admin, customer, order):
    assert [o["id"] for o in client.get("/admin/orders", auth=admin, params={"payment_status": "unpaid"}).json()] == [order["id"]]
    _pay(client, customer, order, "deposit")
    assert client.get("/admin/orders", auth=admin, params={"payment_status": "unpaid"}).json() == []
    found = client.get("/admin/orders", auth=admin, params={"search": order["order_number"]}).json()
    assert [o["id"] for o in found] == [order["id"]]


def test_orders_are_private(client, customer, other_customer, order):
    assert [o["id"] for o in client.get("/portal/orders", headers=customer).json()] == [order["id"]]
    assert client.get(f"/portal/orders/{order['id']}", headers=other_customer).status_code == 404
    assert client.get("/portal/orders", headers=other_customer).json() == []


# -------------------------
# Shipments
# -------------------------
def test_shipment_flow(client, admin, customer, delivery, order, monkeypatch):
    sent = []
    monkeypatch.setattr(email_service, "send_shipment_dispatched", lambda *a: sent.append(a) or True)
    url = f"/admin/orders/{order['id']}/shipments"

    r = client.post(url, auth=admin, json={"carrier": "tnt", "service_type": "road"})
    assert r.status_code == 422
    assert r.json()["error"] == "order_not_ready"

    client.post(f"/admin/orders/{order['id']}/triggers", auth=admin, json={"trigger_event": "production_complete"})
    r = client.post(url, auth=admin, json={"carrier": "tnt", "service_type": "road", "pallet_count": 2})
    assert r.status_code == 201, r.text
    shipment = r.json()
    assert shipment["carrier"] == "TNT"
    assert shipment["status"] == "preparing"
    assert shipment["tracking_number"].startswith("TRK")
    assert shipment["shipping_address"]["postcode"] == "3000"
    assert shipment["estimated_delivery"] == (date.today() + timedelta(days=5)).isoformat()

    r = client.patch(f"{url}/{shipment['id']}", auth=admin, json={"status": "delivered"})
    assert r.status_code == 409

    r = client.patch(f"{url}/{shipment['id']}", auth=admin, json={"status": "in_transit"})
    assert r.json()["shipped_at"] is not None
    assert client.get(f"/admin/orders/{order['id']}", auth=admin).json()["status"] == "shipped"
    assert len(sent) == 1
    assert sent[0][2] == order["order_number"]
    assert sent[0][4] == shipment["tracking_number"]

    client.patch(f"{url}/{shipment['id']}", auth=admin, json={"status": "delivered"})
    body = client.get(f"/portal/orders/{order['id']}", headers=customer).json()
    assert body["status"] == "delivered"
    assert [s["status"] for s in body["shipments"]] == ["delivered"]

    assert client.patch(f"{url}/no-such-shipment", auth=admin, json={"notes": "x"}).status_code == 404


# -------------------------
# Invoices
# -------------------------
def test_milestone_invoice_lines_and_payment(client, admin, customer, order):
    deposit = _schedule(order, "deposit")
    r = client.post(f"/admin/orders/{order['id']}/invoices", auth=admin, json={"payment_schedule_id": deposit["id"]})
    assert r.status_code == 201, r.text
    invoice = r.json()
    assert invoice["invoice_number"].startswith("INV-")
    assert invoice["status"] == "draft"
    assert Decimal(invoice["total_amount"]) == Decimal("19.08")
    assert Decimal(invoice["subtotal"]) + Decimal(invoice["tax_amount"]) == Decimal("19.08")
    assert len(invoice["lines"]) == 1
    assert "deposit" in invoice["lines"][0]["description"]

    dup = client.post(f"/admin/orders/{order['id']}/invoices", auth=admin, json={"payment_schedule_id": deposit["id"]})
    assert dup.status_code == 422

    # drafts stay hidden from the customer
    assert client.get(f"/portal/orders/{order['id']}/invoices", headers=customer).json() == []

    _pay(client, customer, order, "deposit")
    invoices = client.get(f"/portal/orders/{order['id']}/invoices", headers=customer).json()
    assert [(i["id"], i["status"]) for i in invoices] == [(invoice["id"], "paid")]


def test_whole_order_invoice_with_pdf(client, admin, order):
    r = client.post(f"/admin/orders/{order['id']}/invoices", auth=admin, json={"render_pdf": True})
    invoice = r.json()
    assert Decimal(invoice["total_amount"]) == Decimal("95.39")
    assert invoice["payment_schedule_id"] is None
    assert invoice["pdf_url"].endswith(f"{invoice['invoice_number']}.pdf")


def test_invoice_status_transitions(client, admin, order):
    invoice = client.post(f"/admin/orders/{order['id']}/invoices", auth=admin, json={}).json()
    url = f"/admin/orders/{order['id']}/invoices/{invoice['id']}"

    assert client.patch(url, auth=admin, json={"status": "sent"}).json()["status"] == "sent"
    paid = client.patch(url, auth=admin, json={"status": "paid"}).json()
    assert paid["paid_at"] is not None

    r = client.patch(url, auth=admin, json={"status": "void"})
    assert r.status_code == 409
    assert r.json()["error"] == "invalid_transition"


def test_invoice_pdf_is_scoped_to_its_order(client, admin, order):
    invoice = client.post(f"/admin/orders/{order['id']}/invoices", auth=admin, json={}).json()

    r = client.post(f"/admin/orders/{order['id']}/invoices/{invoice['id']}/pdf", auth=admin)
    assert r.status_code == 200
    assert r.json()["pdf_url"].endswith(".pdf")

    assert client.post(f"/admin/orders/not-an-order/invoices/{invoice['id']}/pdf", auth=admin).status_code == 404
