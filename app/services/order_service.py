"""
Order service - checkout persistence and edit sessions.
Takes the in-memory cart snapshot and stores it as order rows.
"""

import logging
import uuid
from decimal import Decimal
from typing import Dict, List, Optional

from flask import current_app, has_app_context
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import OrderItem, Product, Visit
from app.pricing.cart import OrderCart
from app.pricing.types import (
    CatalogSnapshot, GiftProduct, OrderLine, SchemeChoice, SchemeKind, to_decimal,
)
from app.services.catalog_service import gift_from_config
from app.exceptions import BusinessLogicError, NotFoundError, OrderPersistenceError

logger = logging.getLogger(__name__)


def _bonus_annotation(line: OrderLine, free_lines: List[OrderLine]) -> Dict[str, object]:
    """free_qty / free_product_id / scheme_id earned by a regular line."""
    free_qty = 0
    free_product_id = None
    scheme_id = None
    for free in free_lines:
        if free.free_gift_for != line.product_id:
            continue
        scheme_id = free.scheme_id
        if free.product_id == line.product_id:
            free_qty += free.quantity
        else:
            free_product_id = free.product_id
    return {'free_qty': free_qty, 'free_product_id': free_product_id, 'scheme_id': scheme_id}


def place_order(
    session: Session,
    cart: OrderCart,
    visit_id: Optional[str],
    sales_officer_id: str,
    order_id: Optional[str] = None,
    currency: str = 'INR',
) -> str:
    """
    Persist the cart as an order.

    With `order_id` the existing order is replaced (edit session) and keeps
    its original visit. Returns the order id.
    """
    regular, free = cart.checkout_lines()
    if not regular:
        raise BusinessLogicError('Cannot place an empty order')
    if not sales_officer_id:
        raise BusinessLogicError('sales_officer_id is required')

    is_edit = order_id is not None

    try:
        if is_edit:
            existing = session.query(OrderItem).filter(OrderItem.order_id == order_id).all()
            if not existing:
                raise NotFoundError(f'Order {order_id} not found')
            visit_id = existing[0].visit_id
            session.query(OrderItem).filter(OrderItem.order_id == order_id).delete(
                synchronize_session=False
            )
            session.flush()
        else:
            if not visit_id:
                raise BusinessLogicError('visit_id is required to place an order')
            if session.query(Visit).filter(Visit.visit_id == visit_id).first() is None:
                raise NotFoundError(f'Visit {visit_id} not found')
            order_id = str(uuid.uuid4())

        # line_no keeps receipt order stable, rows share one created_at
        for line_no, line in enumerate(regular, start=1):
            annotation = _bonus_annotation(line, free)
            session.add(OrderItem(
                order_id=order_id,
                line_no=line_no,
                product_id=line.product_id,
                visit_id=visit_id,
                sales_officers_id=sales_officer_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                amount=line.amount.quantize(Decimal('0.01')),
                currency=currency,
                is_free=False,
                **annotation
            ))

        for line_no, line in enumerate(free, start=len(regular) + 1):
            session.add(OrderItem(
                order_id=order_id,
                line_no=line_no,
                product_id=line.product_id,
                visit_id=visit_id,
                sales_officers_id=sales_officer_id,
                quantity=line.quantity,
                unit_price=Decimal('0'),
                amount=Decimal('0'),
                currency=currency,
                is_free=True,
                free_gift_for=line.free_gift_for,
                scheme_id=line.scheme_id,
            ))

        session.commit()
        logger.info(
            "Order %s %s: %d regular lines, %d free lines",
            order_id, 'updated' if is_edit else 'placed', len(regular), len(free)
        )
        return order_id

    except (BusinessLogicError, NotFoundError):
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.exception(f"Error placing order {order_id}: {e}")
        raise OrderPersistenceError(
            'Failed to update order. Please try again.' if is_edit
            else 'Failed to place order. Please try again.'
        ) from e


def get_order_lines(
    session: Session, order_id: str, gift: Optional[GiftProduct] = None
) -> List[OrderLine]:
    """
    Stored lines of an order (regular and free) for receipts.

    The order-level gift has no product row; its display fields come from
    `gift`, or from the app config when not given.
    """
    if gift is None:
        gift = gift_from_config(current_app.config) if has_app_context() else GiftProduct()

    rows = (
        session.query(OrderItem, Product)
        .outerjoin(Product, Product.product_id == OrderItem.product_id)
        .filter(OrderItem.order_id == order_id, OrderItem.is_deleted == False)  # noqa: E712
        .order_by(OrderItem.is_free, OrderItem.created_at, OrderItem.line_no)
        .all()
    )
    lines = []
    for item, product in rows:
        if product is not None:
            name, category, uom = product.name, product.category or '', product.unit_of_measure
        elif item.scheme_id == int(SchemeKind.ORDER_THRESHOLD):
            name, category, uom = gift.name, gift.category, gift.unit_of_measure
        else:
            name, category, uom = item.product_id, '', None

        lines.append(OrderLine(
            product_id=item.product_id,
            name=name,
            category=category,
            unit_of_measure=uom,
            quantity=item.quantity,
            unit_price=to_decimal(item.unit_price),
            is_free=item.is_free,
            free_gift_for=item.free_gift_for,
            scheme_id=item.scheme_id,
        ))
    return lines


def load_order_for_edit(session: Session, order_id: str, catalog: CatalogSnapshot) -> OrderCart:
    """
    Seed a cart from a stored order.

    Only regular rows are used; bonuses are regenerated by the evaluator.
    An offer product recorded on an either/or row becomes an explicit
    choice so the edit session starts from what was originally picked.
    """
    rows = (
        session.query(OrderItem)
        .filter(
            OrderItem.order_id == order_id,
            OrderItem.is_free == False,  # noqa: E712
            OrderItem.is_deleted == False,  # noqa: E712
        )
        .all()
    )
    if not rows:
        raise NotFoundError(f'Order {order_id} not found')

    choices: Dict[str, SchemeChoice] = {}
    for row in rows:
        if row.scheme_id == int(SchemeKind.BUY_GET_EITHER_OR) and row.free_product_id:
            choices[row.product_id] = SchemeChoice.OFFER_PRODUCT

    lines = [line for line in get_order_lines(session, order_id) if not line.is_free]
    logger.info("Loaded order %s for edit: %d lines", order_id, len(lines))
    return OrderCart.from_history(lines, catalog, choices)


def get_last_ordered_quantities(session: Session, shop_id: str, limit: int = 20) -> Dict[str, int]:
    """Most recent ordered quantity per product for a shop."""
    rows = (
        session.query(OrderItem.product_id, OrderItem.quantity)
        .join(Visit, Visit.visit_id == OrderItem.visit_id)
        .filter(
            Visit.shop_id == shop_id,
            OrderItem.is_free == False,  # noqa: E712
            OrderItem.is_deleted == False,  # noqa: E712
        )
        .order_by(OrderItem.created_at.desc())
        .limit(limit)
        .all()
    )
    last_orders: Dict[str, int] = {}
    for product_id, quantity in rows:
        if product_id not in last_orders:
            last_orders[product_id] = quantity
    return last_orders


def get_most_ordered_products(session: Session, shop_id: str, limit: int = 5) -> List[Dict[str, object]]:
    """
    Products a shop orders most often, for the 'Popular' tab.

    Ranked by the number of distinct orders containing the product, then by
    total quantity. Free rows and inactive products are left out.
    """
    frequency = func.count(func.distinct(OrderItem.order_id)).label('frequency')
    quantity = func.sum(OrderItem.quantity).label('quantity')
    rows = (
        session.query(Product.product_id, Product.name, quantity, frequency)
        .join(OrderItem, OrderItem.product_id == Product.product_id)
        .join(Visit, Visit.visit_id == OrderItem.visit_id)
        .filter(
            Visit.shop_id == shop_id,
            OrderItem.is_free == False,  # noqa: E712
            OrderItem.is_deleted == False,  # noqa: E712
            Product.is_active == True,  # noqa: E712
        )
        .group_by(Product.product_id, Product.name)
        .order_by(frequency.desc(), quantity.desc(), Product.name)
        .limit(limit)
        .all()
    )
    return [
        {'product_id': product_id, 'name': name, 'quantity': int(qty), 'frequency': int(freq)}
        for product_id, name, qty, freq in rows
    ]
