"""
Scheme evaluator - derives free lines from the regular lines of an order.

The evaluation is total: free lines are never patched, they are rebuilt from
the regular lines, the catalog snapshot and the explicit choice store on
every call. Running it twice on the same inputs gives the same lines.
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from app.pricing.types import (
    ZERO, DEFAULT_CHOICE, CatalogProduct, CatalogSnapshot, OrderLine,
    SchemeChoice, SchemeKind, SchemeScope,
)

logger = logging.getLogger(__name__)


def resolve_choice(choices: Mapping[str, SchemeChoice], product_id: str) -> SchemeChoice:
    """Choice recorded for a product, `freeQuantity` when none was made."""
    return choices.get(product_id, DEFAULT_CHOICE)


def regular_subtotal(lines: Iterable[OrderLine]) -> Decimal:
    """Sum of amounts over regular lines only."""
    return sum((line.amount for line in lines if not line.is_free), ZERO)


def order_scheme_min_price(catalog: CatalogSnapshot) -> Decimal:
    scheme = catalog.order_scheme
    if scheme is None or not scheme.min_price:
        return ZERO
    return scheme.min_price


def qualifies_for_order_scheme(lines: Iterable[OrderLine], catalog: CatalogSnapshot) -> bool:
    min_price = order_scheme_min_price(catalog)
    if not min_price:
        return False
    return regular_subtotal(lines) >= min_price


def _applicable_kind(product: CatalogProduct, catalog: CatalogSnapshot) -> Optional[SchemeKind]:
    """Product-level scheme kind, or None when nothing applies."""
    if not product.has_scheme:
        return None
    kind = product.scheme_kind
    if kind is None or not kind.is_product_scheme:
        return None
    scheme = catalog.get_scheme(product.scheme_id)
    if scheme is None or scheme.scope is SchemeScope.ORDER:
        return None
    return kind


def _same_product_line(product: CatalogProduct, sets: int, kind: SchemeKind) -> Optional[OrderLine]:
    if not product.get_qty:
        return None
    return OrderLine.free(
        product_id=product.product_id,
        name=product.name,
        category=product.category,
        unit_of_measure=product.unit_of_measure,
        quantity=sets * product.get_qty,
        scheme_id=int(kind),
        free_gift_for=product.product_id,
    )


def _offer_product_line(
    product: CatalogProduct, sets: int, kind: SchemeKind, catalog: CatalogSnapshot
) -> Optional[OrderLine]:
    # A dangling offer reference degrades to "no bonus" for this branch
    offer = catalog.get_product(product.offer_product_id)
    if offer is None:
        if product.offer_product_id:
            logger.debug(
                "Offer product %s of %s not in catalog, skipping",
                product.offer_product_id, product.product_id
            )
        return None
    return OrderLine.free(
        product_id=offer.product_id,
        name=offer.name,
        category=offer.category,
        unit_of_measure=offer.unit_of_measure,
        quantity=sets,
        scheme_id=int(kind),
        free_gift_for=product.product_id,
    )


def product_scheme_lines(
    line: OrderLine,
    catalog: CatalogSnapshot,
    choices: Mapping[str, SchemeChoice],
) -> List[OrderLine]:
    """Free lines earned by a single regular line."""
    product = catalog.get_product(line.product_id)
    if product is None:
        return []

    kind = _applicable_kind(product, catalog)
    if kind is None:
        return []

    if line.quantity < product.buy_qty:
        return []

    # Only complete sets count, no proportional bonus
    sets = line.quantity // product.buy_qty

    if kind is SchemeKind.BUY_GET_SAME:
        candidates = [_same_product_line(product, sets, kind)]
    elif kind is SchemeKind.BUY_GET_EITHER_OR:
        choice = resolve_choice(choices, product.product_id)
        if choice is SchemeChoice.OFFER_PRODUCT:
            candidates = [_offer_product_line(product, sets, kind, catalog)]
        else:
            # A completed set always earns exactly one bonus line, so BOTH
            # (not an either/or alternative) is served as the default
            # instead of granting nothing
            candidates = [_same_product_line(product, sets, kind)]
    elif kind is SchemeKind.BUY_GET_BOTH_AND:
        candidates = [
            _same_product_line(product, sets, kind),
            _offer_product_line(product, sets, kind, catalog),
        ]
    else:
        candidates = []

    return [c for c in candidates if c is not None]


def order_gift_line(lines: Iterable[OrderLine], catalog: CatalogSnapshot) -> Optional[OrderLine]:
    """The order-level gift line when the regular subtotal meets the threshold."""
    if not qualifies_for_order_scheme(lines, catalog):
        return None
    gift = catalog.gift
    return OrderLine.free(
        product_id=gift.product_id,
        name=gift.name,
        category=gift.category,
        unit_of_measure=gift.unit_of_measure,
        quantity=1,
        scheme_id=int(SchemeKind.ORDER_THRESHOLD),
    )


def derive_free_lines(
    lines: Iterable[OrderLine],
    catalog: CatalogSnapshot,
    choices: Mapping[str, SchemeChoice],
) -> List[OrderLine]:
    """All free lines justified by the regular lines in `lines`."""
    regular = [line for line in lines if not line.is_free]

    free_lines: List[OrderLine] = []
    for line in regular:
        free_lines.extend(product_scheme_lines(line, catalog, choices))

    gift = order_gift_line(regular, catalog)
    if gift is not None:
        free_lines.append(gift)

    return free_lines


def evaluate_schemes(
    lines: Iterable[OrderLine],
    catalog: CatalogSnapshot,
    choices: Mapping[str, SchemeChoice],
) -> List[OrderLine]:
    """
    Full line set for the given lines.

    Any free line in the input is discarded; the output holds the regular
    lines unchanged and in order, followed by the freshly derived free lines.
    """
    regular = [line for line in lines if not line.is_free]
    free_lines = derive_free_lines(regular, catalog, choices)
    logger.debug(
        "Evaluated schemes: %d regular lines, %d free lines",
        len(regular), len(free_lines)
    )
    return regular + free_lines


def describe_scheme(product: CatalogProduct, catalog: CatalogSnapshot) -> str:
    """Short display text for the scheme attached to a product."""
    kind = product.scheme_kind
    if kind is None:
        return ''

    if kind is SchemeKind.ORDER_THRESHOLD:
        scheme = catalog.order_scheme
        return scheme.text if scheme and scheme.text else 'Order level scheme'

    if _applicable_kind(product, catalog) is None:
        return ''

    base = f"Buy {product.buy_qty} Get {product.get_qty}"
    if kind is SchemeKind.BUY_GET_SAME:
        return base

    offer_name = product.offer_product_name
    if not offer_name:
        offer = catalog.get_product(product.offer_product_id)
        offer_name = offer.name if offer else None

    joiner = 'OR' if kind is SchemeKind.BUY_GET_EITHER_OR else 'AND'
    return f"{base} {joiner} {offer_name or 'Free Product'}"
