from __future__ import annotations

from cabinetry.core.errors import InvalidTransitionError

QUOTE_TRANSITIONS: dict[str, set[str]] = {
    "draft": {"sent"},
    "sent": {"viewed", "accepted", "rejected", "expired", "revision_requested"},
    "viewed": {"accepted", "rejected", "expired", "revision_requested"},
    "revision_requested": {"draft"},
    "accepted": set(),
    "rejected": set(),
    "expired": set(),
}
QUOTE_EDITABLE = {"draft", "revision_requested"}
QUOTE_OPEN = {"sent", "viewed"}

ORDER_FLOW = [
    "pending",
    "confirmed",
    "in_production",
    "ready_for_delivery",
    "shipped",
    "delivered",
]
ORDER_TERMINAL = {"delivered", "cancelled"}


def order_transitions(current: str) -> set[str]:
    if current in ORDER_TERMINAL:
        return set()
    allowed = {"cancelled"}
    idx = ORDER_FLOW.index(current)
    if idx + 1 < len(ORDER_FLOW):
        allowed.add(ORDER_FLOW[idx + 1])
    return allowed


def ensure_quote_transition(current: str, target: str) -> None:
    if target not in QUOTE_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(
            f"Quote cannot move from '{current}' to '{target}'",
            meta={"from": current, "to": target},
        )


def ensure_order_transition(current: str, target: str) -> None:
    if current not in ORDER_FLOW and current != "cancelled":
        raise InvalidTransitionError(f"Unknown order status '{current}'")
    if target not in order_transitions(current):
        raise InvalidTransitionError(
            f"Order cannot move from '{current}' to '{target}'",
            meta={"from": current, "to": target},
        )


SHIPMENT_TRANSITIONS: dict[str, set[str]] = {
    "preparing": {"in_transit", "cancelled"},
    "in_transit": {"delivered", "cancelled"},
    "delivered": set(),
    "cancelled": set(),
}


def ensure_shipment_transition(current: str, target: str) -> None:
    if target not in SHIPMENT_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(
            f"Shipment cannot move from '{current}' to '{target}'",
            meta={"from": current, "to": target},
        )
