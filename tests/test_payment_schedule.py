from datetime import date, timedelta
from decimal import Decimal

import pytest

from cabinetry.core.errors import BusinessRuleError
from cabinetry.services.payment_schedule import build_schedule, validate_payment_amount
from cabinetry.services.tax import calc_gst, split_inclusive

TODAY = date(2025, 3, 3)


def test_deposit_schedule_splits_and_last_milestone_takes_remainder():
    ms = build_schedule(Decimal("1000.01"), "deposit", today=TODAY)

    assert [m.schedule_type for m in ms] == ["deposit", "progress", "balance"]
    assert [m.amount for m in ms] == [Decimal("200.00"), Decimal("300.00"), Decimal("500.01")]
    assert sum(m.amount for m in ms) == Decimal("1000.01")

    deposit, progress, balance = ms
    assert deposit.status == "pending"
    assert deposit.due_date == TODAY + timedelta(days=7)
    assert progress.status == "locked" and progress.trigger_event == "drawings_approved"
    assert balance.status == "locked" and balance.trigger_event == "production_complete"
    assert balance.due_date is None


def test_full_payment_is_single_milestone_due_today():
    (only,) = build_schedule("459.90", "full", today=TODAY)
    assert only.percentage == Decimal("100")
    assert only.amount == Decimal("459.90")
    assert only.due_date == TODAY
    assert only.status == "pending"


@pytest.mark.parametrize("total,option", [(0, "deposit"), (-5, "full"), (100, "layby")])
def test_bad_schedule_inputs(total, option):
    with pytest.raises(BusinessRuleError):
        build_schedule(total, option, today=TODAY)


def test_payment_must_match_to_the_cent():
    validate_payment_amount("200", Decimal("200.00"))
    with pytest.raises(BusinessRuleError) as exc:
        validate_payment_amount("199.99", Decimal("200.00"))
    assert exc.value.meta == {"amount": "199.99", "expected": "200.00"}


# -------------------------
# GST
# -------------------------
def test_calc_gst_rounds_half_up():
    gst = calc_gst(Decimal("99.99"), Decimal("0.10"))
    assert gst.gst_amount == Decimal("10.00")
    assert gst.total_inc_gst == Decimal("109.99")


def test_split_inclusive():
    gst = split_inclusive(110, "0.10")
    assert gst.subtotal_ex_gst == Decimal("100.00")
    assert gst.gst_amount == Decimal("10.00")
