"""
Value types for the order pricing engine.

Everything here is immutable: a catalog snapshot and the order lines are
plain data handed in and out of the evaluator.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional

from app.exceptions import InvalidSchemeChoiceError

ZERO = Decimal('0')


def to_decimal(value: Any) -> Decimal:
    """Coerce prices coming from the DB, the cache or JSON into Decimal."""
    if value is None or value == '':
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class SchemeKind(enum.IntEnum):
    """Promotional scheme kinds, keyed by their catalog id."""

    BUY_GET_SAME = 1
    BUY_GET_EITHER_OR = 2
    BUY_GET_BOTH_AND = 3
    ORDER_THRESHOLD = 4

    @classmethod
    def from_id(cls, scheme_id: Optional[int]) -> Optional['SchemeKind']:
        if not scheme_id:
            return None
        try:
            return cls(int(scheme_id))
        except ValueError:
            return None

    @property
    def is_product_scheme(self) -> bool:
        return self is not SchemeKind.ORDER_THRESHOLD


class SchemeScope(str, enum.Enum):
    PRODUCT = 'product'
    ORDER = 'order'


class SchemeChoice(str, enum.Enum):
    """Alternative picked by the user for an either/or scheme."""

    FREE_QUANTITY = 'freeQuantity'
    OFFER_PRODUCT = 'offerProduct'
    BOTH = 'both'

    @classmethod
    def parse(cls, value: Any) -> 'SchemeChoice':
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidSchemeChoiceError(value)


DEFAULT_CHOICE = SchemeChoice.FREE_QUANTITY


@dataclass(frozen=True)
class CatalogProduct:
    """A sellable product with its (single) scheme linkage."""

    product_id: str
    name: str
    category: str = ''
    mrp: Decimal = ZERO
    ptr: Decimal = ZERO
    unit_of_measure: Optional[str] = None
    scheme_id: Optional[int] = None
    buy_qty: Optional[int] = None
    get_qty: Optional[int] = None
    offer_product_id: Optional[str] = None
    offer_product_name: Optional[str] = None

    @property
    def unit_price(self) -> Decimal:
        """Trade price when present, list price otherwise."""
        return self.ptr if self.ptr else self.mrp

    @property
    def has_scheme(self) -> bool:
        return bool(self.scheme_id) and bool(self.buy_qty) and self.buy_qty > 0

    @property
    def scheme_kind(self) -> Optional[SchemeKind]:
        return SchemeKind.from_id(self.scheme_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'name': self.name,
            'category': self.category,
            'mrp': str(self.mrp),
            'ptr': str(self.ptr),
            'unit_of_measure': self.unit_of_measure,
            'scheme_id': self.scheme_id,
            'buy_qty': self.buy_qty,
            'get_qty': self.get_qty,
            'offer_product_id': self.offer_product_id,
            'offer_product_name': self.offer_product_name,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CatalogProduct':
        return cls(
            product_id=str(data['product_id']),
            name=data['name'],
            category=data.get('category') or '',
            mrp=to_decimal(data.get('mrp')),
            ptr=to_decimal(data.get('ptr')),
            unit_of_measure=data.get('unit_of_measure'),
            scheme_id=data.get('scheme_id'),
            buy_qty=data.get('buy_qty'),
            get_qty=data.get('get_qty'),
            offer_product_id=data.get('offer_product_id'),
            offer_product_name=data.get('offer_product_name'),
        )


@dataclass(frozen=True)
class CatalogScheme:
    scheme_id: int
    scope: SchemeScope = SchemeScope.PRODUCT
    text: str = ''
    min_price: Optional[Decimal] = None

    @property
    def kind(self) -> Optional[SchemeKind]:
        return SchemeKind.from_id(self.scheme_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'scheme_id': self.scheme_id,
            'scope': self.scope.value,
            'text': self.text,
            'min_price': None if self.min_price is None else str(self.min_price),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CatalogScheme':
        min_price = data.get('min_price')
        return cls(
            scheme_id=int(data['scheme_id']),
            scope=SchemeScope(data.get('scope') or SchemeScope.PRODUCT.value),
            text=data.get('text') or '',
            min_price=None if min_price is None else to_decimal(min_price),
        )


@dataclass(frozen=True)
class GiftProduct:
    """Fixed, schemeless product handed out by the order-level scheme."""

    product_id: str = 'order-scheme-bag'
    name: str = 'Traveler Bag'
    category: str = 'Accessories'
    unit_of_measure: str = 'Item'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'name': self.name,
            'category': self.category,
            'unit_of_measure': self.unit_of_measure,
        }


@dataclass(frozen=True)
class CatalogSnapshot:
    """Read-only view of the active catalog for one computation cycle."""

    products: Mapping[str, CatalogProduct] = field(default_factory=dict)
    schemes: Mapping[int, CatalogScheme] = field(default_factory=dict)
    gift: GiftProduct = field(default_factory=GiftProduct)

    @classmethod
    def empty(cls, gift: Optional[GiftProduct] = None) -> 'CatalogSnapshot':
        return cls(gift=gift or GiftProduct())

    @classmethod
    def build(
        cls,
        products: Iterable[CatalogProduct],
        schemes: Iterable[CatalogScheme],
        gift: Optional[GiftProduct] = None,
    ) -> 'CatalogSnapshot':
        return cls(
            products={p.product_id: p for p in products},
            schemes={s.scheme_id: s for s in schemes},
            gift=gift or GiftProduct(),
        )

    @property
    def is_empty(self) -> bool:
        return not self.products and not self.schemes

    def get_product(self, product_id: Optional[str]) -> Optional[CatalogProduct]:
        if product_id is None:
            return None
        return self.products.get(str(product_id))

    def get_scheme(self, scheme_id: Optional[int]) -> Optional[CatalogScheme]:
        if not scheme_id:
            return None
        return self.schemes.get(int(scheme_id))

    @property
    def order_scheme(self) -> Optional[CatalogScheme]:
        return self.schemes.get(int(SchemeKind.ORDER_THRESHOLD))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'products': [p.to_dict() for p in self.products.values()],
            'schemes': [s.to_dict() for s in self.schemes.values()],
            'gift': self.gift.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CatalogSnapshot':
        gift_data = data.get('gift')
        return cls.build(
            products=[CatalogProduct.from_dict(p) for p in data.get('products', [])],
            schemes=[CatalogScheme.from_dict(s) for s in data.get('schemes', [])],
            gift=GiftProduct(**gift_data) if gift_data else None,
        )


@dataclass(frozen=True)
class OrderLine:
    """A regular (user-entered) or free (scheme-derived) order line."""

    product_id: str
    name: str
    quantity: int
    unit_price: Decimal = ZERO
    category: str = ''
    unit_of_measure: Optional[str] = None
    is_free: bool = False
    free_gift_for: Optional[str] = None
    scheme_id: Optional[int] = None

    @property
    def amount(self) -> Decimal:
        return self.quantity * self.unit_price

    @classmethod
    def regular(cls, product: CatalogProduct, quantity: int = 1) -> 'OrderLine':
        return cls(
            product_id=product.product_id,
            name=product.name,
            category=product.category,
            unit_of_measure=product.unit_of_measure,
            quantity=quantity,
            unit_price=product.unit_price,
        )

    @classmethod
    def free(
        cls,
        product_id: str,
        name: str,
        quantity: int,
        scheme_id: int,
        free_gift_for: Optional[str] = None,
        category: str = '',
        unit_of_measure: Optional[str] = None,
    ) -> 'OrderLine':
        return cls(
            product_id=product_id,
            name=name,
            category=category,
            unit_of_measure=unit_of_measure,
            quantity=quantity,
            unit_price=ZERO,
            is_free=True,
            free_gift_for=free_gift_for,
            scheme_id=scheme_id,
        )

    def with_quantity(self, quantity: int) -> 'OrderLine':
        return replace(self, quantity=quantity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'name': self.name,
            'category': self.category,
            'unit_of_measure': self.unit_of_measure,
            'quantity': self.quantity,
            'unit_price': str(self.unit_price),
            'amount': str(self.amount),
            'is_free': self.is_free,
            'free_gift_for': self.free_gift_for,
            'scheme_id': self.scheme_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'OrderLine':
        return cls(
            product_id=str(data['product_id']),
            name=data.get('name') or '',
            category=data.get('category') or '',
            unit_of_measure=data.get('unit_of_measure'),
            quantity=int(data['quantity']),
            unit_price=to_decimal(data.get('unit_price')),
            is_free=bool(data.get('is_free', False)),
            free_gift_for=data.get('free_gift_for'),
            scheme_id=data.get('scheme_id'),
        )
