from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from ordering.core.database import get_db
from ordering.core.errors import TenantDirectoryUnavailable
from ordering.deps import require_staff_user
from ordering.main import app
from ordering.receipts.mock_provider import MockReceiptProvider
from ordering.receipts.service import ReceiptService
from ordering.services.tenant_resolver import TenantResolver
from tests.fixtures_data import (
    GOLD_CHOPSTICKS_ID,
    PIZZA_PALACE_ID,
    SCENARIO_A_ITEMS,
    SCENARIO_C_ITEMS,
    build_session_factory,
    build_submission,
    seed_reference_data,
)

GOLD_HOST = {"X-Forwarded-Host": "goldchopsticks.yourapi.com"}
PIZZA_HOST = {"X-Forwarded-Host": "order.pizzapalace.com"}


class _BrokenResolver(TenantResolver):
    def get(self, identifier):
        raise TenantDirectoryUnavailable()


@pytest.fixture
def env():
    session_factory = build_session_factory()
    db = session_factory()
    seed_reference_data(db)
    db.close()

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    mock_provider = MockReceiptProvider()
    receipts = ReceiptService(provider_name="mock", enabled=True, mock_provider=mock_provider)
    previous_resolver = app.state.tenant_resolver
    app.state.tenant_resolver = TenantResolver(session_factory, platform_domain="yourapi.com")
    app.dependency_overrides[get_db] = _get_db
    try:
        with patch("ordering.services.event_handlers.SessionLocal", session_factory), patch(
            "ordering.services.event_handlers.receipt_service", receipts
        ):
            yield SimpleNamespace(
                client=TestClient(app),
                session_factory=session_factory,
                mock_provider=mock_provider,
            )
    finally:
        app.state.tenant_resolver = previous_resolver
        app.dependency_overrides.clear()


def _as_staff(tenant_id=GOLD_CHOPSTICKS_ID):
    app.dependency_overrides[require_staff_user] = lambda: SimpleNamespace(id=1, tenant_id=tenant_id, role="owner")


def _create_order(client, items=None, total="25.98", headers=GOLD_HOST):
    return client.post("/api/orders", json=build_submission(items or SCENARIO_A_ITEMS, total), headers=headers)


def test_health(env):
    response = env.client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
    assert response.headers["X-Request-ID"]


def test_public_tenant_by_subdomain_and_custom_domain(env):
    by_slug = env.client.get("/public/tenant", headers=GOLD_HOST)
    by_domain = env.client.get("/public/tenant", headers=PIZZA_HOST)

    assert by_slug.status_code == 200
    assert by_slug.json()["slug"] == "goldchopsticks"
    assert by_domain.json()["id"] == PIZZA_PALACE_ID


def test_public_tenant_without_tenant_context(env):
    response = env.client.get("/public/tenant", headers={"X-Forwarded-Host": "localhost:8000"})

    assert response.status_code == 400
    assert response.json()["code"] == "TENANT_CONTEXT_REQUIRED"


@pytest.mark.parametrize("host", ["nosuchplace.yourapi.com", "closedbistro.yourapi.com"])
def test_unknown_or_inactive_tenant_is_not_found(env, host):
    response = env.client.get("/public/tenant", headers={"X-Forwarded-Host": host})

    assert response.status_code == 404
    assert response.json()["code"] == "TENANT_NOT_FOUND"


def test_directory_outage_is_retryable(env):
    app.state.tenant_resolver = _BrokenResolver(env.session_factory, platform_domain="yourapi.com")

    response = _create_order(env.client)

    assert response.status_code == 503
    assert response.json() == {
        "code": "TENANT_DIRECTORY_UNAVAILABLE",
        "message": "Restaurant could not be determined right now",
        "retryable": True,
    }


def test_create_order_returns_created_order_and_sends_receipt(env):
    response = _create_order(env.client)

    assert response.status_code == 201
    order = response.json()["order"]
    assert order["tenant_id"] == GOLD_CHOPSTICKS_ID
    assert order["status"] == "pending"
    assert order["order_number"].startswith("GC")
    assert order["total_cents"] == 2598
    assert order["items"][0]["name"] == "General Tso's Chicken"

    assert len(env.mock_provider.sent) == 1
    receipt = env.mock_provider.sent[0]
    assert receipt.to_email == "jane@example.com"
    assert receipt.template == "order_receipt"
    assert order["order_number"] in receipt.subject
    assert receipt.reply_to == "hello@goldchopsticks.test"


def test_create_combo_order_receipt_lists_entree_names(env):
    response = _create_order(env.client, SCENARIO_C_ITEMS, "32.85")

    assert response.status_code == 201
    item = response.json()["order"]["items"][0]
    assert item["type"] == "combo"
    assert item["additional_entree_ids"] == [7, 5]
    text = env.mock_provider.sent[0].text
    assert "Entrees: General Tso's Chicken, Orange Chicken" in text
    assert "Base: Fried Rice" in text


def test_create_order_without_tenant_context(env):
    response = _create_order(env.client, headers={"X-Forwarded-Host": "www.yourapi.com"})

    assert response.status_code == 400
    assert response.json()["code"] == "TENANT_CONTEXT_REQUIRED"


def test_malformed_body_is_validation_failed(env):
    response = env.client.post("/api/orders", json={"items": []}, headers=GOLD_HOST)

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_FAILED"


def test_cross_tenant_item_is_unavailable(env):
    response = _create_order(env.client, headers=PIZZA_HOST)

    assert response.status_code == 400
    assert response.json() == {"code": "ITEMS_UNAVAILABLE", "message": "Some menu items are not available"}
    assert env.mock_provider.sent == []


def test_totals_mismatch_response(env):
    response = _create_order(env.client, total="26.00")

    assert response.status_code == 400
    assert response.json()["code"] == "TOTALS_MISMATCH"


def test_receipt_failure_does_not_fail_order(env):
    with patch(
        "ordering.services.event_handlers.receipt_service.send_order_receipt",
        side_effect=RuntimeError("mail api down"),
    ):
        response = _create_order(env.client)

    assert response.status_code == 201

    _as_staff()
    listed = env.client.get("/api/admin/orders", headers=GOLD_HOST)
    assert listed.json()["pagination"]["total"] == 1


def test_admin_requires_staff_user(env):
    response = env.client.get("/api/admin/orders", headers=GOLD_HOST)

    assert response.status_code == 401


def test_admin_rejects_staff_of_other_tenant(env):
    _as_staff(tenant_id=PIZZA_PALACE_ID)

    response = env.client.get("/api/admin/orders", headers=GOLD_HOST)

    assert response.status_code == 403


def test_admin_list_filters_and_pagination(env):
    for _ in range(3):
        _create_order(env.client)
    _as_staff()

    response = env.client.get("/api/admin/orders", params={"limit": 2}, headers=GOLD_HOST)

    assert response.status_code == 200
    body = response.json()
    assert len(body["orders"]) == 2
    assert body["pagination"]["total"] == 3
    assert body["pagination"]["pages"] == 2

    cancelled = env.client.get("/api/admin/orders", params={"status": "cancelled"}, headers=GOLD_HOST)
    assert cancelled.json()["orders"] == []

    bad = env.client.get("/api/admin/orders", params={"status": "lost"}, headers=GOLD_HOST)
    assert bad.status_code == 400
    assert bad.json()["code"] == "VALIDATION_FAILED"


def test_admin_status_flow_and_invalid_transition(env):
    order_id = _create_order(env.client).json()["order"]["id"]
    _as_staff()

    skipped = env.client.patch(
        f"/api/admin/orders/{order_id}/status", json={"status": "completed"}, headers=GOLD_HOST
    )
    assert skipped.status_code == 409
    assert skipped.json()["code"] == "INVALID_TRANSITION"

    for status in ("confirmed", "preparing", "ready"):
        response = env.client.patch(
            f"/api/admin/orders/{order_id}/status", json={"status": status}, headers=GOLD_HOST
        )
        assert response.status_code == 200
        assert response.json()["order"]["status"] == status

    assert [message.template for message in env.mock_provider.sent] == ["order_receipt", "order_ready"]

    cancel = env.client.post(f"/api/admin/orders/{order_id}/cancel", headers=GOLD_HOST)
    assert cancel.status_code == 409
    assert cancel.json()["code"] == "NOT_CANCELABLE"


def test_admin_cancel_pending_order(env):
    order_id = _create_order(env.client).json()["order"]["id"]
    _as_staff()

    response = env.client.post(f"/api/admin/orders/{order_id}/cancel", headers=GOLD_HOST)

    assert response.status_code == 200
    assert response.json()["order"]["status"] == "cancelled"
    assert env.mock_provider.sent[-1].template == "order_cancelled"


def test_admin_cannot_read_order_of_other_tenant(env):
    order_id = _create_order(env.client).json()["order"]["id"]
    _as_staff(tenant_id=PIZZA_PALACE_ID)

    response = env.client.get(f"/api/admin/orders/{order_id}", headers=PIZZA_HOST)

    assert response.status_code == 404
    assert response.json()["code"] == "ORDER_NOT_FOUND"


def test_list_combos_includes_global_combos(env):
    response = env.client.get("/api/combos", headers=GOLD_HOST)

    assert response.status_code == 200
    combos = response.json()
    assert [combo["id"] for combo in combos] == [11, 12, 3, 4, 5, 6, 7]
    assert combos[0]["is_global"] is True

    pizza = env.client.get("/api/combos", headers=PIZZA_HOST).json()
    assert [combo["id"] for combo in pizza] == [11, 10]


def test_combo_detail_uses_shared_availability(env):
    response = env.client.get("/api/combos/4", headers=GOLD_HOST)

    assert response.status_code == 200
    items = response.json()["selectable_items"]
    assert [(item["id"], item["role"]) for item in items] == [
        (8, "BASE_CHOICE"),
        (5, "ENTREE"),
        (6, "ENTREE"),
        (7, "ENTREE"),
    ]


def test_combo_of_other_tenant_is_not_found(env):
    response = env.client.get("/api/combos/10", headers=GOLD_HOST)

    assert response.status_code == 404
