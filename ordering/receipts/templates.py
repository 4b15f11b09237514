from __future__ import annotations

from typing import Any, Mapping

from ordering.core.money import format_currency

SUBJECTS: dict[str, str] = {
    "order_receipt": "{restaurant_name} - Order {order_number} received",
    "order_ready": "{restaurant_name} - Order {order_number} is ready",
    "order_cancelled": "{restaurant_name} - Order {order_number} was cancelled",
}

TEMPLATES: dict[str, str] = {
    "order_receipt": (
        "Hi {customer_name},\n\n"
        "Thanks for ordering from {restaurant_name}! Your order {order_number} is {status}.\n\n"
        "{item_lines}\n\n"
        "Subtotal: {subtotal}\n"
        "Tax: {tax}\n"
        "{delivery_fee_line}"
        "Total: {total}\n\n"
        "{fulfillment_line}\n"
        "Payment: {payment_method}\n"
        "{contact_line}"
    ),
    "order_ready": (
        "Hi {customer_name},\n\n"
        "Your order {order_number} from {restaurant_name} is ready. Total: {total}.\n"
        "{contact_line}"
    ),
    "order_cancelled": (
        "Hi {customer_name},\n\n"
        "Your order {order_number} from {restaurant_name} was cancelled.\n"
        "{contact_line}"
    ),
}

PAYMENT_LABELS = {
    "card": "Paid by card",
    "card_on_arrival": "Card on arrival",
    "cash_on_arrival": "Cash on arrival",
}


def _names(ids: list[int], item_names: Mapping[int, str]) -> str:
    return ", ".join(item_names.get(item_id, f"#{item_id}") for item_id in ids)


def render_item_line(item: dict[str, Any], item_names: Mapping[int, str] | None = None) -> str:
    item_names = item_names or {}
    quantity = int(item.get("quantity") or 1)
    price = format_currency(item.get("line_total_cents"))
    if item.get("type") != "combo":
        return f"{quantity}x {item.get('name') or 'Item'} - {price}"

    name = item.get("original_name") or f"Combo #{item.get('combo_type_id')}"
    line = f"{quantity}x {name} - {price}"
    details = []
    if item.get("base_choice_id") is not None:
        details.append(f"Base: {_names([item['base_choice_id']], item_names)}")
    if item.get("selected_entree_ids"):
        details.append(f"Entrees: {_names(item['selected_entree_ids'], item_names)}")
    if item.get("additional_entree_ids"):
        details.append(f"Extra: {_names(item['additional_entree_ids'], item_names)}")
    for detail in details:
        line += f"\n    {detail}"
    return line


def render_template(
    template: str,
    order: dict[str, Any],
    tenant: dict[str, Any] | None,
    item_names: Mapping[int, str] | None = None,
) -> tuple[str, str]:
    """Return ``(subject, text)`` for ``template``."""
    tenant = tenant or {}
    customer = order.get("customer") or {}
    restaurant_name = tenant.get("name") or "our restaurant"

    contact_parts = [value for value in (tenant.get("contact_phone"), tenant.get("contact_email")) if value]
    contact_line = f"Questions? Contact us at {' / '.join(contact_parts)}\n" if contact_parts else ""

    if order.get("order_type") == "delivery":
        fulfillment_line = f"Delivery to: {customer.get('address') or '-'}"
    else:
        fulfillment_line = "Pickup at the restaurant"

    delivery_fee = int(order.get("delivery_fee_cents") or 0)
    variables = {
        "customer_name": customer.get("first_name") or "there",
        "restaurant_name": restaurant_name,
        "order_number": order.get("order_number") or "",
        "status": order.get("status") or "pending",
        "item_lines": "\n".join(render_item_line(item, item_names) for item in order.get("items") or []),
        "subtotal": format_currency(order.get("subtotal_cents")),
        "tax": format_currency(order.get("tax_cents")),
        "delivery_fee_line": f"Delivery fee: {format_currency(delivery_fee)}\n" if delivery_fee else "",
        "total": format_currency(order.get("total_cents")),
        "fulfillment_line": fulfillment_line,
        "payment_method": PAYMENT_LABELS.get(order.get("payment_method") or "", order.get("payment_method") or "-"),
        "contact_line": contact_line,
    }
    subject = SUBJECTS[template].format(**variables)
    text = TEMPLATES[template].format(**variables)
    return subject, text
