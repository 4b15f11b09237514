from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


def to_cents(value: Decimal | int | float | str | None) -> int:
    """Converte um valor decimal (ex.: 12.99) para centavos inteiros."""
    if value is None:
        return 0
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int | None) -> Decimal:
    return (Decimal(int(cents or 0)) / Decimal(100)).quantize(Decimal("0.01"))


def format_currency(cents: int | None, symbol: str = "$") -> str:
    return f"{symbol}{from_cents(cents):,.2f}"
