"""Encoding of ``OrderItem.display_payload``.

A regular line stores ``{"v": 1, "type": "regular", "name": ...}``; a combo line
stores its full selection so the order can be rebuilt later without the cart.
Rows written before versioning hold either the bare item name or the camelCase
combo JSON (``comboId``, ``selectedItems``...), and both still decode.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

DISPLAY_PAYLOAD_VERSION = 1


class DisplayPayloadError(ValueError):
    pass


@dataclass(frozen=True)
class RegularItemPayload:
    name: str

    type = "regular"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "name": self.name}


@dataclass(frozen=True)
class ComboItemPayload:
    combo_type_id: int
    selected_entree_ids: tuple[int, ...] = field(default_factory=tuple)
    additional_entree_ids: tuple[int, ...] = field(default_factory=tuple)
    base_choice_id: int | None = None
    original_name: str | None = None

    type = "combo"

    @property
    def name(self) -> str:
        return self.original_name or f"Combo #{self.combo_type_id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "combo_type_id": self.combo_type_id,
            "selected_entree_ids": list(self.selected_entree_ids),
            "additional_entree_ids": list(self.additional_entree_ids),
            "base_choice_id": self.base_choice_id,
            "original_name": self.original_name,
        }


DisplayPayload = Union[RegularItemPayload, ComboItemPayload]


def encode_display_payload(payload: DisplayPayload) -> str:
    body = {"v": DISPLAY_PAYLOAD_VERSION, **payload.to_dict()}
    return json.dumps(body, ensure_ascii=False, separators=(",", ":"))


def _int_list(value: Any, key: str) -> tuple[int, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise DisplayPayloadError(f"{key} must be a list")
    try:
        return tuple(int(item) for item in value)
    except (TypeError, ValueError) as exc:
        raise DisplayPayloadError(f"{key} must contain integers") from exc


def _optional_int(value: Any, key: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise DisplayPayloadError(f"{key} must be an integer") from exc


def _decode_v1(data: dict[str, Any]) -> DisplayPayload:
    payload_type = data.get("type")
    if payload_type == "regular":
        return RegularItemPayload(name=str(data.get("name") or ""))
    if payload_type == "combo":
        combo_type_id = _optional_int(data.get("combo_type_id"), "combo_type_id")
        if combo_type_id is None:
            raise DisplayPayloadError("combo payload without combo_type_id")
        return ComboItemPayload(
            combo_type_id=combo_type_id,
            selected_entree_ids=_int_list(data.get("selected_entree_ids"), "selected_entree_ids"),
            additional_entree_ids=_int_list(data.get("additional_entree_ids"), "additional_entree_ids"),
            base_choice_id=_optional_int(data.get("base_choice_id"), "base_choice_id"),
            original_name=data.get("original_name"),
        )
    raise DisplayPayloadError(f"unknown payload type: {payload_type!r}")


def _decode_legacy_combo(data: dict[str, Any]) -> ComboItemPayload:
    combo_type_id = _optional_int(data.get("comboId"), "comboId")
    if combo_type_id is None:
        raise DisplayPayloadError("legacy combo payload without comboId")
    return ComboItemPayload(
        combo_type_id=combo_type_id,
        selected_entree_ids=_int_list(data.get("selectedItems"), "selectedItems"),
        additional_entree_ids=_int_list(data.get("additionalItems"), "additionalItems"),
        base_choice_id=_optional_int(data.get("baseChoice"), "baseChoice"),
        original_name=data.get("originalName"),
    )


def decode_display_payload(raw: str | None) -> DisplayPayload:
    text = (raw or "").strip()
    if not text:
        raise DisplayPayloadError("empty display payload")

    if not text.startswith("{"):
        return RegularItemPayload(name=text)

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # nome antigo que por acaso começa com "{"
        return RegularItemPayload(name=text)
    if not isinstance(data, dict):
        raise DisplayPayloadError("display payload must be an object")

    if "v" in data:
        if data["v"] != DISPLAY_PAYLOAD_VERSION:
            raise DisplayPayloadError(f"unsupported display payload version: {data['v']!r}")
        return _decode_v1(data)

    if data.get("type") == "combo" and "comboId" in data:
        return _decode_legacy_combo(data)

    raise DisplayPayloadError("unrecognized display payload")
