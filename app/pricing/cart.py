"""
Order cart - mutation API over the line set of a shop visit.

Each mutation changes the regular lines (or the choice store) and then runs
the scheme evaluator over the whole regular subset, replacing every free
line. Free lines are never touched directly.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from app.pricing.evaluator import evaluate_schemes, resolve_choice
from app.pricing.totals import OrderTotals, calculate_order_totals
from app.pricing.types import (
    CatalogProduct, CatalogSnapshot, OrderLine, SchemeChoice,
)

logger = logging.getLogger(__name__)

ProductRef = Union[CatalogProduct, str]


def _product_id(product: ProductRef) -> str:
    if isinstance(product, CatalogProduct):
        return product.product_id
    return str(product)


class OrderCart:
    """Explicit cart state: catalog snapshot, choice store and line set."""

    def __init__(
        self,
        catalog: Optional[CatalogSnapshot] = None,
        choices: Optional[Mapping[str, Any]] = None,
        lines: Iterable[OrderLine] = (),
    ):
        self._catalog = catalog or CatalogSnapshot.empty()
        self._choices: Dict[str, SchemeChoice] = {
            str(pid): SchemeChoice.parse(choice) for pid, choice in (choices or {}).items()
        }
        self._lines: Tuple[OrderLine, ...] = ()
        self._reevaluate([line for line in lines if not line.is_free])

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def catalog(self) -> CatalogSnapshot:
        return self._catalog

    @property
    def choices(self) -> Dict[str, SchemeChoice]:
        return dict(self._choices)

    @property
    def lines(self) -> Tuple[OrderLine, ...]:
        return self._lines

    @property
    def regular_lines(self) -> List[OrderLine]:
        return [line for line in self._lines if not line.is_free]

    @property
    def free_lines(self) -> List[OrderLine]:
        return [line for line in self._lines if line.is_free]

    def is_empty(self) -> bool:
        return not self.regular_lines

    def _reevaluate(self, regular: List[OrderLine]) -> None:
        self._lines = tuple(evaluate_schemes(regular, self._catalog, self._choices))

    def _find_regular(self, product_id: str) -> Optional[OrderLine]:
        for line in self._lines:
            if not line.is_free and line.product_id == product_id:
                return line
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def load_catalog(self, catalog: CatalogSnapshot) -> None:
        """Swap in a freshly fetched catalog and re-derive the bonuses."""
        self._catalog = catalog
        self._reevaluate(self.regular_lines)

    def increment(self, product: CatalogProduct) -> OrderLine:
        """Add one unit of `product`; the unit price is fixed at first insertion."""
        regular = self.regular_lines
        for index, line in enumerate(regular):
            if line.product_id == product.product_id:
                updated = line.with_quantity(line.quantity + 1)
                regular[index] = updated
                break
        else:
            updated = OrderLine.regular(product)
            regular.append(updated)

        logger.debug("increment %s -> qty %d", product.product_id, updated.quantity)
        self._reevaluate(regular)
        return updated

    def decrement(self, product: ProductRef) -> Optional[OrderLine]:
        """
        Remove one unit. A line at quantity 1 is dropped entirely.

        Returns the updated line, or None when the line was removed or the
        product was not in the cart.
        """
        product_id = _product_id(product)
        regular = self.regular_lines
        updated = None
        for index, line in enumerate(regular):
            if line.product_id != product_id:
                continue
            if line.quantity > 1:
                updated = line.with_quantity(line.quantity - 1)
                regular[index] = updated
            else:
                del regular[index]
            logger.debug(
                "decrement %s -> qty %d", product_id, updated.quantity if updated else 0
            )
            break
        else:
            return None

        self._reevaluate(regular)
        return updated

    def set_choice(self, product_id: str, choice: Any) -> SchemeChoice:
        """Record an either/or selection and re-derive the bonuses."""
        parsed = SchemeChoice.parse(choice)
        self._choices[str(product_id)] = parsed
        logger.debug("choice %s -> %s", product_id, parsed.value)
        self._reevaluate(self.regular_lines)
        return parsed

    def clear(self) -> None:
        self._choices.clear()
        self._lines = ()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_choice(self, product_id: str) -> SchemeChoice:
        return resolve_choice(self._choices, str(product_id))

    def quantity_of(self, product_id: str) -> int:
        line = self._find_regular(str(product_id))
        return line.quantity if line else 0

    def free_quantity_of(self, product_id: str) -> int:
        """Free units of a product across all free lines, whatever earned them."""
        return sum(
            line.quantity for line in self._lines
            if line.is_free and line.product_id == str(product_id)
        )

    def offer_product_count(self, product: CatalogProduct) -> int:
        """Units of the offer product earned by `product`."""
        if not product.offer_product_id:
            return 0
        return sum(
            line.quantity for line in self._lines
            if line.is_free
            and line.product_id == product.offer_product_id
            and line.free_gift_for == product.product_id
        )

    def totals(self) -> OrderTotals:
        return calculate_order_totals(self._lines, self._catalog)

    @property
    def subtotal(self) -> Decimal:
        return self.totals().subtotal

    def checkout_lines(self) -> Tuple[List[OrderLine], List[OrderLine]]:
        """(regular, free) split handed to the persistence layer."""
        return self.regular_lines, self.free_lines

    # ------------------------------------------------------------------
    # Seeding and serialization
    # ------------------------------------------------------------------

    @classmethod
    def from_history(
        cls,
        lines: Iterable[OrderLine],
        catalog: CatalogSnapshot,
        choices: Optional[Mapping[str, Any]] = None,
    ) -> 'OrderCart':
        """
        Seed an edit session from a previously stored order.

        Historical lines become regular lines; any stored bonus is ignored
        and regenerated by the evaluator.
        """
        merged: Dict[str, OrderLine] = {}
        for line in lines:
            if line.is_free or line.quantity < 1:
                continue
            regular = OrderLine(
                product_id=line.product_id,
                name=line.name,
                category=line.category,
                unit_of_measure=line.unit_of_measure,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            existing = merged.get(regular.product_id)
            if existing is not None:
                regular = existing.with_quantity(existing.quantity + regular.quantity)
            merged[regular.product_id] = regular
        return cls(catalog=catalog, choices=choices, lines=merged.values())

    def to_dict(self) -> Dict[str, Any]:
        """Storable state: regular lines and choices (free lines are derived)."""
        return {
            'lines': [line.to_dict() for line in self.regular_lines],
            'choices': {pid: choice.value for pid, choice in self._choices.items()},
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]], catalog: CatalogSnapshot) -> 'OrderCart':
        data = data or {}
        return cls(
            catalog=catalog,
            choices=data.get('choices') or {},
            lines=[OrderLine.from_dict(item) for item in data.get('lines', [])],
        )
