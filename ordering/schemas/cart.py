from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

OrderType = Literal["pickup", "delivery"]
PaymentMethod = Literal["card", "card_on_arrival", "cash_on_arrival"]


class RegularCartLine(BaseModel):
    kind: Literal["regular"] = "regular"
    menu_item_id: int = Field(..., gt=0)
    quantity: int = Field(1, ge=1)
    # Só exibição; o preço vem sempre do catálogo
    unit_price: Optional[Decimal] = None
    item_name: Optional[str] = None


class ComboCartLine(BaseModel):
    kind: Literal["combo"]
    combo_type_id: int = Field(..., gt=0)
    base_choice_id: Optional[int] = Field(None, gt=0)
    selected_entree_ids: list[int] = Field(default_factory=list)
    additional_entree_ids: list[int] = Field(default_factory=list)
    quantity: int = Field(1, ge=1)
    unit_price: Optional[Decimal] = None
    item_name: Optional[str] = None


CartLine = Annotated[Union[RegularCartLine, ComboCartLine], Field(discriminator="kind")]


class DeclaredTotals(BaseModel):
    subtotal: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    tax: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    delivery_fee: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    total: Decimal = Field(..., ge=0, decimal_places=2)


class CustomerInfo(BaseModel):
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=120)
    last_name: str = Field(..., min_length=1, max_length=120)
    phone: str = Field(..., min_length=1, max_length=30)
    address: Optional[str] = None

    @field_validator("first_name", "last_name", "phone")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("address")
    @classmethod
    def _strip_address(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class CustomerOrderSubmission(BaseModel):
    customer: CustomerInfo
    order_type: OrderType
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    items: list[CartLine] = Field(..., min_length=1)
    totals: DeclaredTotals
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="before")
    @classmethod
    def _normalize_enums(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("order_type", "payment_method"):
            if isinstance(data.get(key), str):
                data[key] = data[key].strip().lower()
        items = data.get("items")
        if isinstance(items, list):
            normalized = []
            for line in items:
                if isinstance(line, dict):
                    line = dict(line)
                    kind = line.get("kind") or "regular"
                    line["kind"] = str(kind).strip().lower()
                normalized.append(line)
            data["items"] = normalized
        return data

    @model_validator(mode="after")
    def _delivery_needs_address(self) -> "CustomerOrderSubmission":
        if self.order_type == "delivery" and not self.customer.address:
            raise ValueError("delivery orders require a customer address")
        return self
