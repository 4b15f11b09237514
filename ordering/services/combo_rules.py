from __future__ import annotations

from typing import Iterable, Mapping

# Combos 4-7 compartilham a lista de itens do combo 3
COMBO_AVAILABILITY_EQUIVALENCE: Mapping[int, int] = {
    4: 3,
    5: 3,
    6: 3,
    7: 3,
}


def effective_availability_id(
    combo_type_id: int,
    equivalence: Mapping[int, int] | None = None,
) -> int:
    table = COMBO_AVAILABILITY_EQUIVALENCE if equivalence is None else equivalence
    return int(table.get(int(combo_type_id), int(combo_type_id)))


def distinct_selection_ids(
    selected_entree_ids: Iterable[int] | None,
    additional_entree_ids: Iterable[int] | None,
    base_choice_id: int | None = None,
) -> list[int]:
    """Union of every id a combo line references, without ``None`` and without
    repeats, in first-seen order."""
    seen: dict[int, None] = {}
    for item_id in [*(selected_entree_ids or []), *(additional_entree_ids or []), base_choice_id]:
        if item_id is None:
            continue
        seen.setdefault(int(item_id), None)
    return list(seen)


def combo_unit_price_cents(
    base_price_cents: int,
    additional_item_price_cents: int | None,
    additional_count: int,
) -> int:
    return int(base_price_cents) + int(additional_count) * int(additional_item_price_cents or 0)
