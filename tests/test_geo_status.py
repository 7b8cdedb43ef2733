from datetime import date

import pytest

from cabinetry.core.errors import InvalidTransitionError
from cabinetry.domain.geo import GeoPoint, distance_km, is_valid_coordinate, is_valid_postcode
from cabinetry.domain.status import ensure_order_transition, ensure_quote_transition, order_transitions
from cabinetry.models import Quote
from cabinetry.services.numbering import next_number

MELBOURNE = GeoPoint(-37.8136, 144.9631)
GEELONG = GeoPoint(-38.1499, 144.3617)


# -------------------------
# Geo
# -------------------------
def test_distance_melbourne_geelong():
    assert distance_km(MELBOURNE, GEELONG) == pytest.approx(64.7, abs=0.5)
    assert distance_km(MELBOURNE, MELBOURNE) == 0.0


@pytest.mark.parametrize("postcode,ok", [("3000", True), (" 2000 ", True), ("300", False), ("30a0", False), (None, False)])
def test_postcode_format(postcode, ok):
    assert is_valid_postcode(postcode) is ok


def test_coordinate_bounds():
    assert is_valid_coordinate(-37.8, 144.9)
    assert not is_valid_coordinate(-91, 0)
    assert not is_valid_coordinate(None, 144.9)


# -------------------------
# Status machines
# -------------------------
def test_order_transitions():
    assert order_transitions("pending") == {"confirmed", "cancelled"}
    assert order_transitions("shipped") == {"delivered", "cancelled"}
    assert order_transitions("delivered") == set()
    assert order_transitions("cancelled") == set()


def test_order_cannot_skip_steps():
    ensure_order_transition("confirmed", "in_production")
    with pytest.raises(InvalidTransitionError):
        ensure_order_transition("pending", "shipped")


def test_quote_transitions():
    ensure_quote_transition("draft", "sent")
    ensure_quote_transition("viewed", "accepted")
    with pytest.raises(InvalidTransitionError) as exc:
        ensure_quote_transition("accepted", "draft")
    assert exc.value.meta == {"from": "accepted", "to": "draft"}


# -------------------------
# Numbering
# -------------------------
def test_numbers_increment_per_day(db):
    day = date(2025, 1, 31)
    first = next_number(db, Quote.quote_number, "QUO", day)
    assert first == "QUO-20250131-0001"

    db.add(Quote(quote_number=first, customer_name="A", customer_email="a@example.com"))
    db.commit()

    assert next_number(db, Quote.quote_number, "QUO", day) == "QUO-20250131-0002"
    assert next_number(db, Quote.quote_number, "QUO", date(2025, 2, 1)) == "QUO-20250201-0001"
