from __future__ import annotations

from ordering.core.errors import InvalidTransition, ValidationFailed

PENDING = "pending"
CONFIRMED = "confirmed"
PREPARING = "preparing"
READY = "ready"
COMPLETED = "completed"
CANCELLED = "cancelled"

ORDER_STATUSES = (PENDING, CONFIRMED, PREPARING, READY, COMPLETED, CANCELLED)
CANCELABLE_STATUSES = frozenset({PENDING})

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({CONFIRMED, CANCELLED}),
    CONFIRMED: frozenset({PREPARING, CANCELLED}),
    PREPARING: frozenset({READY}),
    READY: frozenset({COMPLETED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
}


def normalize_status(value: str | None) -> str:
    status = (value or "").strip().lower()
    if status not in ORDER_STATUSES:
        raise ValidationFailed(f"Unknown order status: {value!r}", allowed=list(ORDER_STATUSES))
    return status


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, new: str) -> None:
    if not can_transition(current, new):
        raise InvalidTransition(
            f"Cannot move order from {current} to {new}",
            current_status=current,
            requested_status=new,
            allowed=sorted(ALLOWED_TRANSITIONS.get(current, frozenset())),
        )
