from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Iterator, List, Optional

from api.models import Product


@dataclass
class CartLine:
    product_id: int | str
    name: str
    barcode: str
    unit_price: Decimal
    quantity: int = 1

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Cart:
    """
    The sale in progress: line items in the order they were first added.

    Invariants: one line per product_id, and quantity >= 1 on every line.
    Lookups are linear scans; a ticket rarely holds more than a few dozen SKUs.
    """

    def __init__(self) -> None:
        self._lines: List[CartLine] = []

    def __iter__(self) -> Iterator[CartLine]:
        return iter(list(self._lines))

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines)

    def get(self, product_id) -> Optional[CartLine]:
        for line in self._lines:
            if line.product_id == product_id:
                return line
        return None

    def add_or_increment(self, product: Product) -> CartLine:
        """Add one unit of `product`; merges into the existing line if present."""
        line = self.get(product.id)
        if line is not None:
            line.quantity += 1
            return line

        line = CartLine(
            product_id=product.id,
            name=product.name,
            barcode=product.barcode,
            unit_price=product.unit_price,
        )
        self._lines.append(line)
        return line

    def set_quantity(self, product_id, delta: int) -> bool:
        """
        quantity = max(1, quantity + delta). Decrementing never removes the line.
        Returns False when the product is not in the cart.
        """
        line = self.get(product_id)
        if line is None:
            return False
        line.quantity = max(1, line.quantity + delta)
        return True

    def remove(self, product_id) -> bool:
        line = self.get(product_id)
        if line is None:
            return False
        self._lines.remove(line)
        return True

    def clear(self) -> None:
        self._lines.clear()

    def deduct(self, items: Iterable) -> None:
        """
        Take sold quantities (objects with product_id and quantity) off the cart.
        Lines that reach zero are removed; anything added since the sale stays.
        """
        for item in items:
            line = self.get(item.product_id)
            if line is None:
                continue
            line.quantity -= item.quantity
            if line.quantity < 1:
                self._lines.remove(line)

    def total(self) -> Decimal:
        return sum((line.line_total for line in self._lines), Decimal("0"))
