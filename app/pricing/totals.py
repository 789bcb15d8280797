"""Order totals derived from the current line set."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable

from app.pricing.evaluator import order_scheme_min_price, regular_subtotal
from app.pricing.types import ZERO, CatalogSnapshot, OrderLine

CENTS = Decimal('0.01')


@dataclass(frozen=True)
class OrderTotals:
    total_items: int
    subtotal: Decimal
    has_free_items: bool
    order_scheme_met: bool
    order_scheme_min_price: Decimal
    amount_to_order_scheme: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_items': self.total_items,
            'subtotal': str(self.subtotal),
            'has_free_items': self.has_free_items,
            'order_scheme_met': self.order_scheme_met,
            'order_scheme_min_price': str(self.order_scheme_min_price),
            'amount_to_order_scheme': str(self.amount_to_order_scheme),
        }


def calculate_order_totals(lines: Iterable[OrderLine], catalog: CatalogSnapshot) -> OrderTotals:
    """
    Totals for display and submission.

    Item count and subtotal only look at regular lines. The order scheme
    flag is recomputed here from the same subtotal so the progress display
    never depends on whether a gift line happens to be in `lines`.
    """
    lines = list(lines)
    regular = [line for line in lines if not line.is_free]

    subtotal = regular_subtotal(regular)
    min_price = order_scheme_min_price(catalog)
    met = bool(min_price) and subtotal >= min_price

    remaining = ZERO
    if min_price and not met:
        remaining = min_price - subtotal

    return OrderTotals(
        total_items=sum(line.quantity for line in regular),
        subtotal=subtotal.quantize(CENTS),
        has_free_items=any(line.is_free for line in lines),
        order_scheme_met=met,
        order_scheme_min_price=min_price.quantize(CENTS),
        amount_to_order_scheme=remaining.quantize(CENTS),
    )
