from datetime import date, timedelta
from decimal import Decimal

import pytest

from cabinetry.models import Quote
from cabinetry.services import email_service


def _new_quote(client, admin, email="jo@example.com"):
    r = client.post("/admin/quotes", auth=admin, json={"customer_name": "Jo Citizen", "customer_email": email})
    assert r.status_code == 201, r.text
    return r.json()


def _add_items(client, admin, quote_id, catalog):
    r = client.post(
        f"/admin/quotes/{quote_id}/items",
        auth=admin,
        json={
            "cabinet_type_id": catalog["base"],
            "door_style_id": catalog["door"],
            "color_id": catalog["color"],
            "finish_id": catalog["finish"],
            "production_option_ids": [catalog["option"]],
            "width_mm": 600,
            "height_mm": 720,
            "depth_mm": 560,
            "quantity": 2,
        },
    )
    assert r.status_code == 201, r.text
    manual = client.post(
        f"/admin/quotes/{quote_id}/items",
        auth=admin,
        json={"item_name": "Site measure", "unit_price": "99.99"},
    )
    assert manual.status_code == 201, manual.text
    return r.json(), manual.json()


@pytest.fixture
def sent_quote(client, admin, catalog, customer):
    quote = _new_quote(client, admin)
    _add_items(client, admin, quote["id"], catalog)
    r = client.post(f"/admin/quotes/{quote['id']}/send", auth=admin)
    assert r.status_code == 200, r.text
    return r.json()


# -------------------------
# Admin drafting
# -------------------------
def test_quote_numbers_and_totals(client, admin, catalog):
    quote = _new_quote(client, admin)
    assert quote["quote_number"].startswith(f"QUO-{date.today():%Y%m%d}-")
    assert quote["status"] == "draft"

    cabinet, manual = _add_items(client, admin, quote["id"], catalog)
    assert Decimal(cabinet["unit_price"]) == Decimal("170.04")
    assert cabinet["item_name"] == "Base 600"
    assert cabinet["configuration"]["production_option_ids"] == [catalog["option"]]
    assert manual["line_number"] == 2
    assert manual["configuration"]["pricing"]["method"] == "manual"

    detail = client.get(f"/admin/quotes/{quote['id']}", auth=admin).json()
    assert Decimal(detail["subtotal"]) == Decimal("440.07")
    assert Decimal(detail["tax_amount"]) == Decimal("44.01")
    assert Decimal(detail["total_amount"]) == Decimal("484.08")


def test_manual_line_keeps_its_price_on_update(client, admin, catalog):
    quote = _new_quote(client, admin)
    _, manual = _add_items(client, admin, quote["id"], catalog)

    r = client.patch(f"/admin/quotes/{quote['id']}/items/{manual['id']}", auth=admin, json={"quantity": 2})
    assert r.status_code == 200
    assert Decimal(r.json()["total_price"]) == Decimal("199.98")


def test_remove_item_renumbers_lines(client, admin, catalog):
    quote = _new_quote(client, admin)
    cabinet, manual = _add_items(client, admin, quote["id"], catalog)

    client.delete(f"/admin/quotes/{quote['id']}/items/{cabinet['id']}", auth=admin)
    detail = client.get(f"/admin/quotes/{quote['id']}", auth=admin).json()
    assert [(i["id"], i["line_number"]) for i in detail["items"]] == [(manual["id"], 1)]
    assert Decimal(detail["total_amount"]) == Decimal("109.99")


def test_item_needs_cabinet_or_price(client, admin):
    quote = _new_quote(client, admin)
    r = client.post(f"/admin/quotes/{quote['id']}/items", auth=admin, json={"item_name": "Mystery"})
    assert r.status_code == 422
    assert r.json()["error"] == "business_rule"


def test_empty_quote_cannot_be_sent(client, admin):
    quote = _new_quote(client, admin)
    r = client.post(f"/admin/quotes/{quote['id']}/send", auth=admin)
    assert r.status_code == 422
    assert r.json()["error"] == "quote_empty"


def test_only_drafts_can_be_deleted(client, admin, sent_quote):
    r = client.delete(f"/admin/quotes/{sent_quote['id']}", auth=admin)
    assert r.status_code == 422

    draft = _new_quote(client, admin)
    assert client.delete(f"/admin/quotes/{draft['id']}", auth=admin).json()["result"] == "deleted"


# -------------------------
# Sending
# -------------------------
def test_send_sets_validity_snapshots_and_emails(client, admin, catalog, monkeypatch):
    sent = []
    monkeypatch.setattr(email_service, "send_quote_email", lambda *a: sent.append(a) or True)

    quote = _new_quote(client, admin)
    _add_items(client, admin, quote["id"], catalog)
    body = client.post(f"/admin/quotes/{quote['id']}/send", auth=admin).json()

    assert body["status"] == "sent"
    assert body["valid_until"] == (date.today() + timedelta(days=30)).isoformat()
    assert [v["version_number"] for v in body["versions"]] == [1]
    assert body["versions"][0]["created_by"] == "admin"

    assert len(sent) == 1
    assert sent[0][0] == "jo@example.com"
    assert sent[0][2] == quote["quote_number"]


def test_sent_quote_is_locked(client, admin, sent_quote):
    r = client.patch(f"/admin/quotes/{sent_quote['id']}", auth=admin, json={"notes": "late edit"})
    assert r.status_code == 422
    assert r.json()["error"] == "quote_locked"

    again = client.post(f"/admin/quotes/{sent_quote['id']}/send", auth=admin)
    assert again.status_code == 409


# -------------------------
# Portal
# -------------------------
def test_drafts_are_invisible_to_customers(client, admin, customer):
    draft = _new_quote(client, admin)
    assert client.get(f"/portal/quotes/{draft['id']}", headers=customer).status_code == 404
    assert client.get("/portal/quotes", headers=customer).json() == []


def test_first_view_marks_quote_viewed(client, customer, sent_quote):
    listed = client.get("/portal/quotes", headers=customer).json()
    assert [q["id"] for q in listed] == [sent_quote["id"]]

    body = client.get(f"/portal/quotes/{sent_quote['id']}", headers=customer).json()
    assert body["status"] == "viewed"
    assert body["viewed_at"] is not None

    again = client.get(f"/portal/quotes/{sent_quote['id']}", headers=customer).json()
    assert again["viewed_at"] == body["viewed_at"]


def test_other_customers_get_404(client, other_customer, sent_quote):
    assert client.get(f"/portal/quotes/{sent_quote['id']}", headers=other_customer).status_code == 404
    r = client.post(f"/portal/quotes/{sent_quote['id']}/accept", headers=other_customer, json={})
    assert r.status_code == 404


def test_accept_creates_order_with_schedule(client, admin, customer, shipping_address, sent_quote):
    r = client.post(
        f"/portal/quotes/{sent_quote['id']}/accept",
        headers=customer,
        json={"payment_option": "deposit", "shipping_address_id": shipping_address},
    )
    assert r.status_code == 201, r.text
    order = r.json()
    assert order["status"] == "pending"
    assert order["payment_status"] == "unpaid"
    assert order["quote_id"] == sent_quote["id"]
    assert Decimal(order["total_amount"]) == Decimal("484.08")
    assert order["shipping_address"]["postcode"] == "3000"
    assert [Decimal(s["amount"]) for s in order["schedules"]] == [
        Decimal("96.82"),
        Decimal("145.22"),
        Decimal("242.04"),
    ]
    assert [s["status"] for s in order["schedules"]] == ["pending", "locked", "locked"]
    assert len(order["items"]) == 2

    quote = client.get(f"/admin/quotes/{sent_quote['id']}", auth=admin).json()
    assert quote["status"] == "accepted"
    assert quote["converted_order_id"] == order["id"]

    twice = client.post(f"/portal/quotes/{sent_quote['id']}/accept", headers=customer, json={})
    assert twice.status_code == 409


def test_accept_with_someone_elses_address(client, customer, other_customer, sent_quote):
    r = client.post(
        "/portal/addresses",
        headers=other_customer,
        json={"name": "Sam", "line1": "2 Smith St", "suburb": "Fitzroy", "state": "VIC", "postcode": "3065"},
    )
    r = client.post(
        f"/portal/quotes/{sent_quote['id']}/accept",
        headers=customer,
        json={"shipping_address_id": r.json()["id"]},
    )
    assert r.status_code == 404


def test_reject_with_reason(client, customer, sent_quote):
    r = client.post(f"/portal/quotes/{sent_quote['id']}/reject", headers=customer, json={"reason": "Too pricey"})
    assert r.status_code == 200
    assert r.json()["status"] == "rejected"
    assert r.json()["rejection_reason"] == "Too pricey"

    r = client.post(f"/portal/quotes/{sent_quote['id']}/accept", headers=customer, json={})
    assert r.status_code == 409
    assert r.json()["error"] == "invalid_transition"


def test_change_request_and_revision(client, admin, customer, sent_quote):
    r = client.post(
        f"/portal/quotes/{sent_quote['id']}/request-changes",
        headers=customer,
        json={"changes": "Make the base cabinet 900 wide"},
    )
    assert r.status_code == 200
    assert r.json()["status"] == "revision_requested"

    thread = client.get(f"/portal/messages/quote/{sent_quote['id']}", headers=customer).json()
    assert thread[0]["message_type"] == "system"
    assert "900 wide" in thread[0]["message_text"]

    revised = client.post(f"/admin/quotes/{sent_quote['id']}/revise", auth=admin).json()
    assert revised["status"] == "draft"
    assert revised["version_number"] == 2
    assert sorted(v["status"] for v in revised["versions"]) == ["revision_requested", "sent"]

    # back to editable
    r = client.patch(f"/admin/quotes/{sent_quote['id']}", auth=admin, json={"notes": "v2"})
    assert r.status_code == 200


def test_expired_quote_cannot_be_accepted(client, admin, customer, sent_quote, db):
    quote = db.get(Quote, sent_quote["id"])
    quote.valid_until = date.today() - timedelta(days=1)
    db.commit()

    r = client.post(f"/portal/quotes/{sent_quote['id']}/accept", headers=customer, json={})
    assert r.status_code == 422
    assert r.json()["error"] == "quote_expired"

    assert client.post("/admin/quotes/expire", auth=admin).json() == {"expired": 1}
    assert client.get(f"/admin/quotes/{sent_quote['id']}", auth=admin).json()["status"] == "expired"
    assert client.post("/admin/quotes/expire", auth=admin).json() == {"expired": 0}


def test_quote_lines_copied_into_cart(client, customer, sent_quote):
    r = client.post(f"/portal/quotes/{sent_quote['id']}/cart", headers=customer, json={})
    assert r.status_code == 200, r.text
    cart = r.json()
    # the manual line has no cabinet to configure
    assert len(cart["items"]) == 1
    assert Decimal(cart["items"][0]["unit_price"]) == Decimal("170.04")
    assert cart["source"] == "quote_conversion"
    assert Decimal(cart["total_amount"]) == Decimal("340.08")


def test_copied_lines_keep_the_quoted_price(client, admin, customer, catalog):
    quote = _new_quote(client, admin)
    cabinet, _ = _add_items(client, admin, quote["id"], catalog)
    # negotiated below the list price
    client.patch(f"/admin/quotes/{quote['id']}/items/{cabinet['id']}", auth=admin, json={"unit_price": "150.00"})
    client.post(f"/admin/quotes/{quote['id']}/send", auth=admin)

    cart = client.post(
        f"/portal/quotes/{quote['id']}/cart", headers=customer, json={"item_ids": [cabinet["id"]]}
    ).json()
    (item,) = cart["items"]
    assert Decimal(item["price_override"]) == Decimal("150.00")
    assert item["override_reason"] == f"Quoted on {quote['quote_number']}"

    r = client.patch(f"/carts/{cart['id']}/items/{item['id']}", headers=customer, json={"quantity": 3})
    assert r.status_code == 200, r.text
    assert Decimal(r.json()["unit_price"]) == Decimal("150.00")
    assert Decimal(r.json()["total_price"]) == Decimal("450.00")


def test_selected_quote_lines_only(client, customer, sent_quote):
    cabinet, manual = client.get(f"/portal/quotes/{sent_quote['id']}", headers=customer).json()["items"]

    r = client.post(f"/portal/quotes/{sent_quote['id']}/cart", headers=customer, json={"item_ids": [cabinet["id"]]})
    assert r.status_code == 200
    assert [i["cabinet_type_id"] for i in r.json()["items"]] == [cabinet["cabinet_type_id"]]

    r = client.post(f"/portal/quotes/{sent_quote['id']}/cart", headers=customer, json={"item_ids": [manual["id"]]})
    assert r.status_code == 422
    assert r.json()["error"] == "items_not_configurable"
    assert r.json()["meta"] == {"item_ids": [manual["id"]]}


@pytest.mark.parametrize("item_ids", [[], ["no-such-line"]])
def test_selecting_no_quote_lines_is_rejected(client, customer, sent_quote, item_ids):
    r = client.post(f"/portal/quotes/{sent_quote['id']}/cart", headers=customer, json={"item_ids": item_ids})
    assert r.status_code == 422
    assert r.json()["error"] == "no_items_selected"
    assert client.get("/carts", headers=customer).json() == []


def test_quote_pdfs(client, admin, customer, sent_quote):
    r = client.get(f"/portal/quotes/{sent_quote['id']}/pdf", headers=customer)
    assert r.status_code == 200
    assert r.json()["pdf_url"].endswith(f"{sent_quote['quote_number']}-v1.pdf")

    r = client.post(f"/admin/quotes/{sent_quote['id']}/pdf", auth=admin)
    assert r.json()["pdf_url"].endswith(".pdf")


# -------------------------
# Listing & export
# -------------------------
def test_admin_list_filters(client, admin, sent_quote):
    _new_quote(client, admin, email="someone@example.com")

    drafts = client.get("/admin/quotes", auth=admin, params={"status": "draft"}).json()
    assert [q["customer_email"] for q in drafts] == ["someone@example.com"]
    found = client.get("/admin/quotes", auth=admin, params={"search": sent_quote["quote_number"]}).json()
    assert [q["id"] for q in found] == [sent_quote["id"]]


def test_export_xlsx(client, admin, sent_quote):
    r = client.get("/admin/quotes/export.xlsx", auth=admin)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/vnd.openxmlformats")
    assert "attachment" in r.headers["content-disposition"]
    assert r.content[:2] == b"PK"
