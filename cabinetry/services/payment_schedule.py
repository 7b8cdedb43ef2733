# cabinetry/services/payment_schedule.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, List, Optional

from cabinetry.core.errors import BusinessRuleError
from cabinetry.core.settings import settings
from cabinetry.services.tax import qmoney, to_decimal

PAYMENT_OPTIONS = ("full", "deposit", "milestones")

# schedule_type -> trigger that unlocks it
TRIGGERS = {
    "progress": "drawings_approved",
    "balance": "production_complete",
}


@dataclass
class Milestone:
    schedule_type: str
    sequence: int
    percentage: Decimal
    amount: Decimal
    status: str
    trigger_event: Optional[str]
    due_date: Optional[date]


def build_schedule(total: Any, option: str = "deposit", today: Optional[date] = None) -> List[Milestone]:
    """
    Split an order total into payment milestones.

    ``full``: one milestone for 100 %, due today.
    ``deposit`` / ``milestones``: deposit (pending), progress and balance
    (locked until their trigger fires). Each amount is rounded to cents and
    the last milestone takes the remainder, so the amounts always add up
    to the order total.
    """
    total = qmoney(total)
    today = today or date.today()
    if total <= 0:
        raise BusinessRuleError("Order total must be positive to build a payment schedule")

    if option == "full":
        return [Milestone("full", 1, Decimal("100"), total, "pending", None, today)]

    if option not in PAYMENT_OPTIONS:
        raise BusinessRuleError(
            f"Unknown payment option '{option}'", meta={"allowed": list(PAYMENT_OPTIONS)}
        )

    plan = [
        ("deposit", to_decimal(settings.DEPOSIT_PCT)),
        ("progress", to_decimal(settings.PROGRESS_PCT)),
        ("balance", to_decimal(settings.BALANCE_PCT)),
    ]
    if sum(pct for _, pct in plan) != Decimal("100"):
        raise BusinessRuleError("Milestone percentages must add up to 100")

    milestones: List[Milestone] = []
    allocated = Decimal("0.00")
    for seq, (kind, pct) in enumerate(plan, start=1):
        if seq == len(plan):
            amount = total - allocated
        else:
            amount = qmoney(total * pct / Decimal("100"))
            allocated += amount

        if kind == "deposit":
            milestones.append(
                Milestone(kind, seq, pct, amount, "pending", None,
                          today + timedelta(days=settings.DEPOSIT_DUE_DAYS))
            )
        else:
            milestones.append(Milestone(kind, seq, pct, amount, "locked", TRIGGERS[kind], None))
    return milestones


def validate_payment_amount(amount: Any, expected: Any) -> None:
    """A milestone is settled by exactly its amount, to the cent."""
    paid = qmoney(amount)
    due = qmoney(expected)
    if paid != due:
        raise BusinessRuleError(
            f"Payment amount {paid} does not match milestone amount {due}",
            meta={"amount": str(paid), "expected": str(due)},
        )
