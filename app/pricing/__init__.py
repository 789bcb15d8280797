"""Order & promotion pricing engine."""
from app.pricing.types import (
    CatalogProduct, CatalogScheme, CatalogSnapshot, GiftProduct, OrderLine,
    SchemeChoice, SchemeKind, SchemeScope,
)
from app.pricing.evaluator import (
    evaluate_schemes, derive_free_lines, describe_scheme, qualifies_for_order_scheme,
)
from app.pricing.totals import OrderTotals, calculate_order_totals
from app.pricing.cart import OrderCart

__all__ = [
    'CatalogProduct', 'CatalogScheme', 'CatalogSnapshot', 'GiftProduct', 'OrderLine',
    'SchemeChoice', 'SchemeKind', 'SchemeScope',
    'evaluate_schemes', 'derive_free_lines', 'describe_scheme', 'qualifies_for_order_scheme',
    'OrderTotals', 'calculate_order_totals',
    'OrderCart',
]
