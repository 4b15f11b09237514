import random
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from ordering.core.errors import (
    InvalidTransition,
    NotCancelable,
    OrderNotFound,
    OrderNumberCollision,
    TotalsMismatch,
    ValidationFailed,
)
from ordering.models.order import Order
from ordering.models.order_item import OrderItem
from ordering.services.order_codec import ComboItemPayload, decode_display_payload
from ordering.services.order_store import (
    OrderFilters,
    cancel_order,
    generate_order_number,
    get_order,
    list_orders,
    order_to_dict,
    place_order,
    transition_order,
)
from tests.fixtures_data import (
    GOLD_CHOPSTICKS_ID,
    PIZZA_PALACE_ID,
    SCENARIO_A_ITEMS,
    SCENARIO_C_ITEMS,
    build_session_factory,
    build_submission,
    seed_reference_data,
)

GOLD = SimpleNamespace(id=GOLD_CHOPSTICKS_ID)


@pytest.fixture
def db():
    session_factory = build_session_factory()
    session = session_factory()
    seed_reference_data(session)
    try:
        yield session
    finally:
        session.close()


def _place(db, items=None, total="25.98", **kwargs):
    return place_order(db, GOLD, build_submission(items or SCENARIO_A_ITEMS, total, **kwargs))


def test_generate_order_number_format():
    number = generate_order_number("GC", now_ms=1700000123456, rng=random.Random(7))

    assert number.startswith("GC123456")
    assert len(number) == 11
    assert number[2:].isdigit()


def test_place_order_persists_order_and_items(db):
    order = _place(db)

    assert order.id is not None
    assert order.status == "pending"
    assert order.payment_status == "pending"
    assert order.subtotal_cents + order.tax_cents + order.delivery_fee_cents == order.total_cents
    rows = db.query(OrderItem).filter(OrderItem.order_id == order.id).all()
    assert len(rows) == 1
    assert rows[0].tenant_id == GOLD_CHOPSTICKS_ID
    assert rows[0].line_total_cents == 2598


def test_combo_survives_store_round_trip(db):
    order = _place(db, SCENARIO_C_ITEMS, "32.85")
    db.expire_all()

    stored = get_order(db, GOLD_CHOPSTICKS_ID, order.id)
    payload = decode_display_payload(stored.items[0].display_payload)

    assert payload == ComboItemPayload(
        combo_type_id=3,
        selected_entree_ids=(5, 6),
        additional_entree_ids=(7, 5),
        base_choice_id=8,
        original_name="Family Dinner for 2",
    )
    serialized = order_to_dict(stored)["items"][0]
    assert serialized["type"] == "combo"
    assert serialized["selected_entree_ids"] == [5, 6]


def test_validation_failure_writes_nothing(db):
    with pytest.raises(TotalsMismatch):
        _place(db, total="1.00")

    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0


def test_pending_cannot_jump_to_completed(db):
    order = _place(db)

    with pytest.raises(InvalidTransition):
        transition_order(db, GOLD_CHOPSTICKS_ID, order.id, "completed")

    assert get_order(db, GOLD_CHOPSTICKS_ID, order.id).status == "pending"


def test_full_lifecycle(db):
    order = _place(db)

    for status in ("confirmed", "preparing", "ready", "completed"):
        order = transition_order(db, GOLD_CHOPSTICKS_ID, order.id, status)
        assert order.status == status

    with pytest.raises(InvalidTransition):
        transition_order(db, GOLD_CHOPSTICKS_ID, order.id, "cancelled")


def test_same_status_is_an_invalid_transition(db):
    order = _place(db)

    with pytest.raises(InvalidTransition):
        transition_order(db, GOLD_CHOPSTICKS_ID, order.id, "pending")


def test_unknown_status_is_a_validation_error(db):
    order = _place(db)

    with pytest.raises(ValidationFailed):
        transition_order(db, GOLD_CHOPSTICKS_ID, order.id, "teleported")


def test_confirmed_order_can_be_cancelled_through_transition(db):
    order = _place(db)
    transition_order(db, GOLD_CHOPSTICKS_ID, order.id, "confirmed")

    assert transition_order(db, GOLD_CHOPSTICKS_ID, order.id, "CANCELLED").status == "cancelled"


def test_cancel_pending_order(db):
    order = _place(db)

    assert cancel_order(db, GOLD_CHOPSTICKS_ID, order.id).status == "cancelled"


def test_cancel_preparing_order_is_not_allowed(db):
    order = _place(db)
    transition_order(db, GOLD_CHOPSTICKS_ID, order.id, "confirmed")
    transition_order(db, GOLD_CHOPSTICKS_ID, order.id, "preparing")

    with pytest.raises(NotCancelable):
        cancel_order(db, GOLD_CHOPSTICKS_ID, order.id)

    assert get_order(db, GOLD_CHOPSTICKS_ID, order.id).status == "preparing"


def test_orders_are_invisible_to_other_tenants(db):
    order = _place(db)

    with pytest.raises(OrderNotFound):
        get_order(db, PIZZA_PALACE_ID, order.id)
    with pytest.raises(OrderNotFound):
        transition_order(db, PIZZA_PALACE_ID, order.id, "confirmed")
    with pytest.raises(OrderNotFound):
        cancel_order(db, PIZZA_PALACE_ID, order.id)


def test_order_number_collision_is_retried(db):
    with patch(
        "ordering.services.order_store.generate_order_number",
        side_effect=["GC123456001", "GC123456001", "GC123456002"],
    ):
        first = _place(db)
        second = _place(db)

    assert first.order_number == "GC123456001"
    assert second.order_number == "GC123456002"
    assert db.query(Order).count() == 2


def test_order_number_collision_surfaces_after_max_attempts(db):
    with patch("ordering.services.order_store.generate_order_number", return_value="GC000000001"):
        _place(db)
        with pytest.raises(OrderNumberCollision) as exc_info:
            place_order(db, GOLD, build_submission(SCENARIO_A_ITEMS, "25.98"), max_attempts=2)

    assert exc_info.value.retryable is True
    assert db.query(Order).count() == 1
    assert db.query(OrderItem).count() == 1


def test_list_orders_filters_and_paginates(db):
    for _ in range(3):
        _place(db)
    delivery = _place(db, order_type="delivery", address="1 Main St", payment_method="cash_on_arrival")
    cancel_order(db, GOLD_CHOPSTICKS_ID, delivery.id)

    page = list_orders(db, GOLD_CHOPSTICKS_ID, page=1, limit=3)
    assert page.total == 4
    assert page.pages == 2
    assert len(page.orders) == 3
    assert page.orders[0].id == delivery.id

    second = list_orders(db, GOLD_CHOPSTICKS_ID, page=2, limit=3)
    assert len(second.orders) == 1

    cancelled = list_orders(db, GOLD_CHOPSTICKS_ID, OrderFilters(status="cancelled"))
    assert [order.id for order in cancelled.orders] == [delivery.id]

    by_type = list_orders(db, GOLD_CHOPSTICKS_ID, OrderFilters(order_type="delivery", payment_method="cash_on_arrival"))
    assert by_type.total == 1

    assert list_orders(db, PIZZA_PALACE_ID).total == 0


def test_list_orders_date_range(db):
    _place(db)
    now = datetime.now(timezone.utc).replace(tzinfo=None)

    assert list_orders(db, GOLD_CHOPSTICKS_ID, OrderFilters(created_from=now - timedelta(days=1))).total == 1
    assert list_orders(db, GOLD_CHOPSTICKS_ID, OrderFilters(created_to=now - timedelta(days=1))).total == 0

    with pytest.raises(ValidationFailed):
        list_orders(
            db,
            GOLD_CHOPSTICKS_ID,
            OrderFilters(created_from=now, created_to=now - timedelta(days=1)),
        )


def test_list_orders_rejects_unknown_status_filter(db):
    with pytest.raises(ValidationFailed):
        list_orders(db, GOLD_CHOPSTICKS_ID, OrderFilters(status="lost"))
