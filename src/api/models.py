# dataclass models for the backend payloads the register reads and writes

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from api.errors import MalformedResponseError

# what a bad field in a backend row raises while we convert it
PARSE_ERRORS = (KeyError, TypeError, ValueError, ArithmeticError)


def _money(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    amount = Decimal(str(value))
    if not amount.is_finite():
        raise ValueError(f"not a finite amount: {value!r}")
    return amount


def _first(payload: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


@dataclass(frozen=True)
class Product:
    id: int | str
    name: str
    barcode: str
    category: str
    unit_price: Decimal
    stock_quantity: int
    image_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Product":
        """
        Backend rows are not uniform: price may come as unit_price or price,
        stock as stock_quantity, stock or quantity, category as a name or an object.
        Raises MalformedResponseError when a row cannot be read.
        """
        try:
            category = _first(payload, "category", "category_name", default="")
            if isinstance(category, Mapping):
                category = category.get("name", "")
            return cls(
                id=payload["id"],
                name=str(_first(payload, "name", default="")),
                barcode=str(_first(payload, "barcode", default="")),
                category=str(category),
                unit_price=_money(_first(payload, "unit_price", "price")),
                stock_quantity=int(
                    _first(payload, "stock_quantity", "stock", "quantity", default=0)
                ),
                image_url=_first(payload, "image_url", "imageUrl"),
            )
        except PARSE_ERRORS as e:
            raise MalformedResponseError() from e


@dataclass(frozen=True)
class VisualMatch:
    product: Product
    confidence: float  # 0..1


@dataclass(frozen=True)
class RecognitionResult:
    matched: List[VisualMatch]
    ranked: List[VisualMatch]
    dominant_colors: List[Any] = field(default_factory=list)
    suggestions: List[Any] = field(default_factory=list)

    @property
    def candidates(self) -> List[VisualMatch]:
        """What the operator picks from: ranked list, else the plain matches."""
        return self.ranked or self.matched


@dataclass(frozen=True)
class SaleItem:
    product_id: int | str
    quantity: int
    unit_price: Decimal

    def to_payload(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": float(self.unit_price),
        }


@dataclass(frozen=True)
class SaleRequest:
    items: List[SaleItem]
    amount_paid: Decimal
    payment_method: str = "cash"
    discount: Decimal = Decimal("0")

    def to_payload(self) -> dict:
        return {
            "items": [item.to_payload() for item in self.items],
            "payment_method": self.payment_method,
            "amount_paid": float(self.amount_paid),
            "discount": float(self.discount),
        }


@dataclass(frozen=True)
class Settlement:
    id: int | str | None
    total_amount: Decimal
    payment_received: Decimal
    change_given: Decimal

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Settlement":
        try:
            return cls(
                id=_first(payload, "id", "sale_id"),
                total_amount=_money(_first(payload, "total_amount", "totalAmount")),
                payment_received=_money(
                    _first(payload, "payment_received", "paymentReceived", "amount_paid")
                ),
                change_given=_money(_first(payload, "change_given", "changeGiven")),
            )
        except PARSE_ERRORS as e:
            raise MalformedResponseError() from e

    @classmethod
    def from_request(cls, request: SaleRequest) -> "Settlement":
        """What the register knows about an accepted sale whose body it could not read."""
        total = sum(
            (item.unit_price * item.quantity for item in request.items), Decimal("0")
        )
        total -= request.discount
        return cls(
            id=None,
            total_amount=total,
            payment_received=request.amount_paid,
            change_given=request.amount_paid - total,
        )
