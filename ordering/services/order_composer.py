from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ordering.core.errors import (
    ComboTypeUnavailable,
    ItemsUnavailable,
    TotalsMismatch,
    ValidationFailed,
    format_validation_errors,
)
from ordering.core.money import to_cents
from ordering.models.combo_type import ComboType
from ordering.schemas.cart import ComboCartLine, CustomerOrderSubmission, RegularCartLine
from ordering.services import catalog
from ordering.services.combo_rules import (
    combo_unit_price_cents,
    distinct_selection_ids,
    effective_availability_id,
)
from ordering.services.order_codec import (
    ComboItemPayload,
    DisplayPayload,
    RegularItemPayload,
    encode_display_payload,
)


logger = logging.getLogger(__name__)
ORDERS_PREFIX = "[ORDERS]"


class TenantLike(Protocol):
    id: int


@dataclass
class OrderItemDraft:
    menu_item_id: int | None
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    payload: DisplayPayload

    @property
    def display_payload(self) -> str:
        return encode_display_payload(self.payload)


@dataclass
class OrderGraph:
    """Validated, priced order ready to be written in one transaction."""

    tenant_id: int
    customer_email: str
    customer_first_name: str
    customer_last_name: str
    customer_phone: str
    customer_address: str | None
    order_type: str
    payment_method: str
    payment_reference: str | None
    notes: str | None
    subtotal_cents: int
    tax_cents: int
    delivery_fee_cents: int
    total_cents: int
    items: list[OrderItemDraft] = field(default_factory=list)


def parse_submission(data: CustomerOrderSubmission | dict[str, Any]) -> CustomerOrderSubmission:
    if isinstance(data, CustomerOrderSubmission):
        return data
    try:
        return CustomerOrderSubmission.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailed(format_validation_errors(exc.errors())) from exc


def _compose_regular_lines(
    db: Session,
    tenant_id: int,
    lines: list[RegularCartLine],
) -> dict[int, OrderItemDraft]:
    if not lines:
        return {}

    requested_ids = {line.menu_item_id for line in lines}
    items = catalog.fetch_available_items(db, tenant_id, requested_ids)
    if len(items) != len(requested_ids):
        logger.warning(
            "%s regular items unavailable tenant_id=%s requested=%s found=%s",
            ORDERS_PREFIX,
            tenant_id,
            len(requested_ids),
            len(items),
        )
        raise ItemsUnavailable()

    items_by_id = {item.id: item for item in items}
    drafts: dict[int, OrderItemDraft] = {}
    for line in lines:
        item = items_by_id[line.menu_item_id]
        unit_price_cents = int(item.price_cents)
        drafts[id(line)] = OrderItemDraft(
            menu_item_id=item.id,
            quantity=line.quantity,
            unit_price_cents=unit_price_cents,
            line_total_cents=unit_price_cents * line.quantity,
            payload=RegularItemPayload(name=item.name),
        )
    return drafts


def _compose_combo_line(
    db: Session,
    tenant_id: int,
    line: ComboCartLine,
    combo_types: dict[int, ComboType],
) -> OrderItemDraft:
    combo_type = combo_types.get(line.combo_type_id)
    if combo_type is None:
        combo_type = catalog.get_combo_type(db, tenant_id, line.combo_type_id)
        if combo_type is None:
            logger.warning(
                "%s combo type unavailable tenant_id=%s combo_type_id=%s",
                ORDERS_PREFIX,
                tenant_id,
                line.combo_type_id,
            )
            raise ComboTypeUnavailable()
        combo_types[line.combo_type_id] = combo_type

    availability_id = effective_availability_id(combo_type.id)
    selection_ids = distinct_selection_ids(
        line.selected_entree_ids,
        line.additional_entree_ids,
        line.base_choice_id,
    )
    if selection_ids:
        found = catalog.fetch_available_combo_items(db, tenant_id, availability_id, selection_ids)
        if len(found) != len(selection_ids):
            logger.warning(
                "%s combo items unavailable tenant_id=%s combo_type_id=%s availability_id=%s requested=%s found=%s",
                ORDERS_PREFIX,
                tenant_id,
                combo_type.id,
                availability_id,
                len(selection_ids),
                len(found),
            )
            raise ItemsUnavailable()

    unit_price_cents = combo_unit_price_cents(
        combo_type.base_price_cents,
        combo_type.additional_item_price_cents,
        len(line.additional_entree_ids),
    )
    return OrderItemDraft(
        menu_item_id=None,
        quantity=line.quantity,
        unit_price_cents=unit_price_cents,
        line_total_cents=unit_price_cents * line.quantity,
        payload=ComboItemPayload(
            combo_type_id=combo_type.id,
            selected_entree_ids=tuple(line.selected_entree_ids),
            additional_entree_ids=tuple(line.additional_entree_ids),
            base_choice_id=line.base_choice_id,
            original_name=(line.item_name or "").strip() or combo_type.name,
        ),
    )


def _declared_cents(value, label: str) -> int:
    try:
        return to_cents(value)
    except ValueError as exc:
        raise ValidationFailed(f"Invalid {label} amount") from exc


def compose(
    db: Session,
    tenant: TenantLike,
    submission: CustomerOrderSubmission | dict[str, Any],
) -> OrderGraph:
    submission = parse_submission(submission)
    tenant_id = int(tenant.id)

    regular_lines = [line for line in submission.items if isinstance(line, RegularCartLine)]
    combo_lines = [line for line in submission.items if isinstance(line, ComboCartLine)]

    drafts = _compose_regular_lines(db, tenant_id, regular_lines)
    combo_types: dict[int, ComboType] = {}
    for line in combo_lines:
        drafts[id(line)] = _compose_combo_line(db, tenant_id, line, combo_types)

    # mantém a ordem do carrinho
    items = [drafts[id(line)] for line in submission.items]
    subtotal_cents = sum(item.line_total_cents for item in items)

    totals = submission.totals
    tax_cents = _declared_cents(totals.tax, "tax")
    delivery_fee_cents = _declared_cents(totals.delivery_fee, "delivery fee")
    declared_total_cents = _declared_cents(totals.total, "total")

    if totals.subtotal is not None:
        declared_subtotal_cents = _declared_cents(totals.subtotal, "subtotal")
        if declared_subtotal_cents != subtotal_cents:
            logger.warning(
                "%s subtotal mismatch tenant_id=%s declared=%s computed=%s",
                ORDERS_PREFIX,
                tenant_id,
                declared_subtotal_cents,
                subtotal_cents,
            )
            raise TotalsMismatch("Order subtotal does not match current menu prices")

    if subtotal_cents + tax_cents + delivery_fee_cents != declared_total_cents:
        logger.warning(
            "%s total mismatch tenant_id=%s declared=%s computed=%s",
            ORDERS_PREFIX,
            tenant_id,
            declared_total_cents,
            subtotal_cents + tax_cents + delivery_fee_cents,
        )
        raise TotalsMismatch()

    customer = submission.customer
    return OrderGraph(
        tenant_id=tenant_id,
        customer_email=str(customer.email),
        customer_first_name=customer.first_name,
        customer_last_name=customer.last_name,
        customer_phone=customer.phone,
        customer_address=customer.address,
        order_type=submission.order_type,
        payment_method=submission.payment_method,
        payment_reference=submission.payment_reference,
        notes=(submission.notes or "").strip() or None,
        subtotal_cents=subtotal_cents,
        tax_cents=tax_cents,
        delivery_fee_cents=delivery_fee_cents,
        total_cents=declared_total_cents,
        items=items,
    )
