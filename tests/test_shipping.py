from decimal import Decimal

import httpx
import pytest

from cabinetry.dependencies import get_geocoder
from cabinetry.main import app
from cabinetry.models import PostcodeZone
from cabinetry.services.geocoding import GeocodingClient

GEELONG_WEST = {"center": [144.3393, -38.1436], "place_name": "3218, Geelong West, Victoria, Australia"}


def mapbox_stub(features_by_postcode):
    """A GeocodingClient whose HTTP calls are answered from a dict."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        query = request.url.path.rsplit("/", 1)[-1]
        for postcode, feature in features_by_postcode.items():
            if postcode in query:
                return httpx.Response(200, json={"features": [feature]})
        return httpx.Response(200, json={"features": []})

    client = GeocodingClient("pk.test", client=httpx.Client(transport=httpx.MockTransport(handler)))
    return client, calls


def create_zone(client, admin, **overrides):
    body = {"zone_name": "Melbourne 100km", "radius_km": 100}
    body.update(overrides)
    r = client.post("/admin/shipping/zones", auth=admin, json=body)
    assert r.status_code == 201, r.text
    return r.json()


# -------------------------
# Assembly eligibility
# -------------------------
def test_known_postcode_is_eligible(client, delivery):
    r = client.post("/shipping/assembly-eligibility", json={"postcode": "3000"})
    assert r.status_code == 200
    body = r.json()
    assert body["eligible"] is True
    assert body["source"] == "postcode_zone"
    assert body["lead_time_days"] == 5
    assert body["carcass_only_price"] == 50.0
    assert body["with_doors_price"] == 100.0
    assert "Professional installation" in body["includes"]
    assert "surcharge_info" not in body


def test_known_but_ineligible_postcode(client, delivery):
    body = client.post("/shipping/assembly-eligibility", json={"postcode": "3220"}).json()
    assert body["eligible"] is False
    assert "carcass_only_price" not in body


def test_unknown_postcode_without_geocoder(client, delivery):
    body = client.post("/shipping/assembly-eligibility", json={"postcode": "3999"}).json()
    assert body == {"postcode": "3999", "eligible": False, "lead_time_days": 8, "source": "unknown"}


def test_malformed_postcode_rejected(client):
    r = client.post("/shipping/assembly-eligibility", json={"postcode": "30"})
    assert r.status_code == 422
    assert r.json()["error"] == "business_rule"


def test_unknown_postcode_geocoded_into_nearest_zone(client, admin, delivery):
    create_zone(client, admin)
    create_zone(client, admin, zone_name="Far away", center_latitude=-33.8688, center_longitude=151.2093)
    geocoder, calls = mapbox_stub({"3218": GEELONG_WEST})
    app.dependency_overrides[get_geocoder] = lambda: geocoder

    body = client.post("/shipping/assembly-eligibility", json={"postcode": "3218"}).json()

    assert len(calls) == 1
    assert calls[0].url.params["access_token"] == "pk.test"
    assert body["source"] == "geocoded"
    assert body["eligible"] is True
    assert body["assembly_center"]["name"] == "Melbourne 100km"
    # 15 % / 20 % zone defaults
    assert body["carcass_only_price"] == 57.5
    assert body["with_doors_price"] == 120.0
    assert body["surcharge_info"]["reason"] == "Regional surcharge"


def test_geocoded_postcode_outside_every_zone(client, admin):
    create_zone(client, admin, radius_km=10)
    geocoder, _ = mapbox_stub({"3218": GEELONG_WEST})
    app.dependency_overrides[get_geocoder] = lambda: geocoder

    body = client.post("/shipping/assembly-eligibility", json={"postcode": "3218"}).json()
    assert body["source"] == "geocoded"
    assert body["eligible"] is False


# -------------------------
# Radius preview / apply
# -------------------------
def test_radius_preview_stats(client, admin, delivery):
    r = client.post(
        "/admin/shipping/zones/radius-preview",
        auth=admin,
        json={"center_latitude": -37.8136, "center_longitude": 144.9631, "radius_km": 20},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["stats"]["total"] == 2
    assert body["stats"]["within_radius"] == 1
    assert body["stats"]["outside_radius"] == 1
    assert body["stats"]["coverage_pct"] == 50.0
    assert [p["postcode"] for p in body["postcodes"]] == ["3000", "3220"]
    assert body["postcodes"][0]["distance_km"] == 0.0


def test_radius_coverage_counts_postcodes_without_coordinates(client, admin, delivery, db):
    db.add(PostcodeZone(postcode="3550", suburb="Bendigo", state="VIC"))
    db.commit()

    stats = client.post(
        "/admin/shipping/zones/radius-preview",
        auth=admin,
        json={"center_latitude": -37.8136, "center_longitude": 144.9631, "radius_km": 20},
    ).json()["stats"]
    assert stats["total"] == 3
    assert stats["missing_coordinates"] == 1
    assert stats["outside_radius"] == 1
    assert stats["coverage_pct"] == 33.3


def test_radius_preview_geocodes_missing_coordinates(client, admin, delivery):
    client.post(
        "/admin/shipping/postcodes",
        auth=admin,
        json={"postcode": "3218", "suburb": "Geelong West", "state": "VIC", "zone": "VIC_REGIONAL"},
    )
    geocoder, _ = mapbox_stub({"3218": GEELONG_WEST})
    app.dependency_overrides[get_geocoder] = lambda: geocoder

    body = client.post(
        "/admin/shipping/zones/radius-preview",
        auth=admin,
        json={"center_latitude": -37.8136, "center_longitude": 144.9631, "radius_km": 100, "geocode_missing": True},
    ).json()

    assert body["stats"]["geocoded_count"] == 1
    assert body["stats"]["missing_coordinates"] == 0
    assert body["stats"]["within_radius"] == 3
    assert body["geocode_errors"] == []


def test_apply_skips_manual_postcodes_unless_overridden(client, admin, delivery, db):
    zone = create_zone(client, admin)

    r = client.post(f"/admin/shipping/zones/{zone['id']}/apply", auth=admin, json={})
    assert r.status_code == 200
    result = r.json()
    assert result["assigned"] == ["3220"]
    assert result["skipped_manual"] == ["3000"]

    geelong = db.query(PostcodeZone).filter_by(postcode="3220").one()
    assert geelong.assembly_eligible is True
    assert geelong.assignment_method == "radius"
    assert geelong.assigned_zone_id == zone["id"]
    assert geelong.assembly_carcass_surcharge_pct == Decimal("15")

    result = client.post(
        f"/admin/shipping/zones/{zone['id']}/apply", auth=admin, json={"override_manual": True}
    ).json()
    assert sorted(result["assigned"]) == ["3000", "3220"]
    assert client.get(f"/admin/shipping/zones/{zone['id']}", auth=admin).json()["affected_postcodes_count"] == 2


def test_shrinking_radius_releases_postcodes(client, admin, delivery, db):
    zone = create_zone(client, admin)
    client.post(f"/admin/shipping/zones/{zone['id']}/apply", auth=admin, json={})

    client.patch(f"/admin/shipping/zones/{zone['id']}", auth=admin, json={"radius_km": 20})
    result = client.post(f"/admin/shipping/zones/{zone['id']}/apply", auth=admin, json={}).json()
    assert result["released"] == ["3220"]
    assert result["released_count"] == 1

    geelong = db.query(PostcodeZone).filter_by(postcode="3220").one()
    assert geelong.assembly_eligible is False
    assert geelong.assignment_method is None
    assert geelong.assigned_zone_id is None
    assert geelong.assembly_doors_surcharge_pct == Decimal("0")


def test_delete_zone_releases_its_postcodes(client, admin, delivery):
    zone = create_zone(client, admin)
    client.post(f"/admin/shipping/zones/{zone['id']}/apply", auth=admin, json={"override_manual": True})

    r = client.delete(f"/admin/shipping/zones/{zone['id']}", auth=admin)
    assert r.json() == {"id": zone["id"], "result": "deleted", "released_postcodes": 2}
    assert client.get(f"/admin/shipping/zones/{zone['id']}", auth=admin).status_code == 404

    pc = client.get("/admin/shipping/postcodes/3000", auth=admin).json()
    assert pc["assembly_eligible"] is False
    assert pc["assignment_method"] is None


def test_inactive_zone_cannot_be_applied(client, admin, delivery):
    zone = create_zone(client, admin, active=False)
    r = client.post(f"/admin/shipping/zones/{zone['id']}/apply", auth=admin, json={})
    assert r.status_code == 422


# -------------------------
# Admin postcodes & rate cards
# -------------------------
def test_admin_requires_credentials(client):
    assert client.get("/admin/shipping/postcodes").status_code == 401
    assert client.get("/admin/shipping/postcodes", auth=("admin", "nope")).status_code == 401


def test_manual_assembly_edit_pins_postcode(client, admin, delivery):
    r = client.patch(
        "/admin/shipping/postcodes/3220/assembly",
        auth=admin,
        json={"assembly_eligible": True, "assembly_carcass_surcharge_pct": "25"},
    )
    assert r.status_code == 200
    assert r.json()["assignment_method"] == "manual"

    listed = client.get("/admin/shipping/postcodes", auth=admin, params={"assignment_method": "manual"}).json()
    assert [p["postcode"] for p in listed] == ["3000", "3220"]

    body = client.post("/shipping/assembly-eligibility", json={"postcode": "3220"}).json()
    assert body["carcass_only_price"] == 62.5
    assert body["surcharge_info"]["carcass_surcharge_pct"] == 25.0


def test_postcode_crud_and_filters(client, admin, delivery):
    r = client.post("/admin/shipping/postcodes", auth=admin, json={"postcode": "2000", "suburb": "Sydney", "state": "NSW"})
    assert r.status_code == 201
    dup = client.post("/admin/shipping/postcodes", auth=admin, json={"postcode": "2000", "state": "NSW"})
    assert dup.status_code == 422

    nsw = client.get("/admin/shipping/postcodes", auth=admin, params={"state": "nsw"}).json()
    assert [p["postcode"] for p in nsw] == ["2000"]
    geelong = client.get("/admin/shipping/postcodes", auth=admin, params={"search": "geel"}).json()
    assert [p["postcode"] for p in geelong] == ["3220"]
    unassigned = client.get("/admin/shipping/postcodes", auth=admin, params={"assignment_method": "none"}).json()
    assert {p["postcode"] for p in unassigned} == {"2000", "3220"}

    r = client.patch("/admin/shipping/postcodes/2000", auth=admin, json={"lead_time_days": 12})
    assert r.json()["lead_time_days"] == 12

    assert client.delete("/admin/shipping/postcodes/2000", auth=admin).json()["result"] == "deleted"
    assert client.get("/admin/shipping/postcodes/2000", auth=admin).status_code == 404


def test_bulk_import_reports_bad_rows(client, admin, delivery):
    r = client.post(
        "/admin/shipping/postcodes/import",
        auth=admin,
        json={
            "rows": [
                {"postcode": "3000", "state": "VIC", "lead_time_days": 3},
                {"postcode": "3121", "suburb": "Richmond", "state": "VIC"},
                {"postcode": "31", "state": "VIC"},
            ]
        },
    )
    body = r.json()
    assert body["created"] == 1
    assert body["updated"] == 1
    assert [e["row"] for e in body["errors"]] == [2]
    assert client.get("/admin/shipping/postcodes/3000", auth=admin).json()["lead_time_days"] == 3


def test_rate_card_crud(client, admin):
    card = {"carrier": "Acme", "service_name": "Express", "zone_from": "MEL_METRO", "zone_to": "SYD_METRO", "base_price": "90"}
    r = client.post("/admin/shipping/rate-cards", auth=admin, json=card)
    assert r.status_code == 201
    card_id = r.json()["id"]

    card["per_kg"] = "2.25"
    r = client.put(f"/admin/shipping/rate-cards/{card_id}", auth=admin, json=card)
    assert Decimal(r.json()["per_kg"]) == Decimal("2.25")

    assert len(client.get("/admin/shipping/rate-cards", auth=admin).json()) == 1
    assert client.delete(f"/admin/shipping/rate-cards/{card_id}", auth=admin).status_code == 200
    assert client.get("/admin/shipping/rate-cards", auth=admin).json() == []


# -------------------------
# Delivery quote
# -------------------------
@pytest.fixture
def cart_with_cabinets(client, customer, catalog):
    cart_id = client.post("/carts", headers=customer, json={}).json()["id"]
    r = client.post(
        f"/carts/{cart_id}/items",
        headers=customer,
        json={"cabinet_type_id": catalog["base"], "width_mm": 600, "height_mm": 720, "depth_mm": 560, "quantity": 2},
    )
    assert r.status_code == 201, r.text
    return cart_id


def test_shipping_quote_for_cart(client, customer, delivery, cart_with_cabinets):
    r = client.post("/shipping/quote", headers=customer, json={"postcode": "3000", "cart_id": cart_with_cabinets})
    assert r.status_code == 200, r.text
    body = r.json()
    # 60 base + 50 kg * 1.50 + 10 residential
    assert Decimal(body["weight_kg"]) == Decimal("50")
    assert Decimal(body["ex_gst"]) == Decimal("145.00")
    assert Decimal(body["gst"]) == Decimal("14.50")
    assert Decimal(body["total"]) == Decimal("159.50")
    assert body["lead_time_days"] == 5

    tail = client.post(
        "/shipping/quote",
        headers=customer,
        json={"postcode": "3000", "cart_id": cart_with_cabinets, "tail_lift": True, "residential": False},
    ).json()
    assert Decimal(tail["ex_gst"]) == Decimal("165.00")


@pytest.mark.parametrize("postcode,code", [("3999", "unknown_postcode"), ("3220", "no_rate_card")])
def test_shipping_quote_errors(client, customer, delivery, cart_with_cabinets, postcode, code):
    r = client.post("/shipping/quote", headers=customer, json={"postcode": postcode, "cart_id": cart_with_cabinets})
    assert r.status_code == 422
    assert r.json()["error"] == code


def test_shipping_quote_needs_items(client, customer, delivery):
    r = client.post("/shipping/quote", headers=customer, json={"postcode": "3000"})
    assert r.status_code == 422
    assert r.json()["error"] == "cart_empty"


def test_shipping_quote_requires_login(client, delivery):
    assert client.post("/shipping/quote", json={"postcode": "3000"}).status_code == 401
