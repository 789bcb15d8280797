"""
Integration tests for order persistence and edit sessions.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from app.exceptions import BusinessLogicError, NotFoundError, OrderPersistenceError
from app.models import OrderItem
from app.pricing import GiftProduct, OrderCart, OrderLine, SchemeChoice
from app.services.catalog_service import build_catalog_snapshot
from app.services.order_service import (
    get_last_ordered_quantities, get_most_ordered_products, get_order_lines,
    load_order_for_edit, place_order,
)


@pytest.fixture
def snapshot(session, seeded_catalog):
    return build_catalog_snapshot(session)


def make_cart(snapshot, quantities, choices=None):
    cart = OrderCart(snapshot, choices)
    for product_id, qty in quantities.items():
        for _ in range(qty):
            cart.increment(snapshot.get_product(product_id))
    return cart


def rows_for(session, order_id):
    return session.query(OrderItem).filter_by(order_id=order_id).all()


class TestPlaceOrder:

    def test_regular_and_free_rows_stored(self, session, snapshot, visit):
        cart = make_cart(snapshot, {'prod-c': 10, 'prod-b': 2})

        order_id = place_order(session, cart, visit, 'officer-1')

        rows = rows_for(session, order_id)
        regular = {r.product_id: r for r in rows if not r.is_free}
        free = [r for r in rows if r.is_free]

        assert set(regular) == {'prod-c', 'prod-b'}
        assert regular['prod-c'].quantity == 10
        assert regular['prod-c'].amount == Decimal('200.00')
        assert regular['prod-c'].free_qty == 2
        assert regular['prod-c'].scheme_id == 1
        assert regular['prod-b'].free_qty == 0
        assert regular['prod-b'].scheme_id is None

        assert len(free) == 1
        assert free[0].product_id == 'prod-c'
        assert free[0].quantity == 2
        assert free[0].amount == Decimal('0')
        assert free[0].free_gift_for == 'prod-c'
        assert all(r.visit_id == visit and r.sales_officers_id == 'officer-1' for r in rows)
        assert all(r.currency == 'INR' for r in rows)

    def test_offer_product_recorded_on_regular_row(self, session, snapshot, visit):
        cart = make_cart(snapshot, {'prod-a': 3}, {'prod-a': SchemeChoice.OFFER_PRODUCT})

        order_id = place_order(session, cart, visit, 'officer-1')

        row = session.query(OrderItem).filter_by(order_id=order_id, is_free=False).one()
        assert row.free_product_id == 'prod-b'
        assert row.free_qty == 0
        assert row.scheme_id == 2

    def test_order_gift_stored_as_free_row(self, session, snapshot, visit):
        cart = make_cart(snapshot, {'prod-c': 25})

        order_id = place_order(session, cart, visit, 'officer-1')

        gift = session.query(OrderItem).filter_by(
            order_id=order_id, product_id='order-scheme-bag'
        ).one()
        assert gift.is_free is True
        assert gift.scheme_id == 4
        assert gift.free_gift_for is None

    def test_empty_cart_rejected(self, session, snapshot, visit):
        with pytest.raises(BusinessLogicError):
            place_order(session, OrderCart(snapshot), visit, 'officer-1')

    def test_visit_required(self, session, snapshot):
        cart = make_cart(snapshot, {'prod-b': 1})
        with pytest.raises(BusinessLogicError):
            place_order(session, cart, None, 'officer-1')

    def test_unknown_visit(self, session, snapshot):
        cart = make_cart(snapshot, {'prod-b': 1})
        with pytest.raises(NotFoundError):
            place_order(session, cart, 'no-such-visit', 'officer-1')
        assert session.query(OrderItem).count() == 0

    def test_storage_failure_rolls_back(self, session, snapshot, visit):
        # product_id is NOT NULL in storage
        broken = OrderLine(product_id=None, name='Broken', quantity=1, unit_price=Decimal('1'))
        cart = OrderCart(snapshot, lines=[
            OrderLine.regular(snapshot.get_product('prod-b')), broken,
        ])

        with pytest.raises(OrderPersistenceError):
            place_order(session, cart, visit, 'officer-1')

        assert session.query(OrderItem).count() == 0


class TestEditOrder:

    def test_load_restores_lines_and_choice(self, session, snapshot, visit):
        cart = make_cart(snapshot, {'prod-a': 3, 'prod-b': 1}, {'prod-a': 'offerProduct'})
        order_id = place_order(session, cart, visit, 'officer-1')

        edit_cart = load_order_for_edit(session, order_id, snapshot)

        assert edit_cart.quantity_of('prod-a') == 3
        assert edit_cart.quantity_of('prod-b') == 1
        assert edit_cart.get_choice('prod-a') is SchemeChoice.OFFER_PRODUCT
        assert [(f.product_id, f.quantity) for f in edit_cart.free_lines] == [('prod-b', 1)]

    def test_edit_replaces_rows_and_keeps_visit(self, session, snapshot, visit):
        order_id = place_order(session, make_cart(snapshot, {'prod-c': 5}), visit, 'officer-1')

        edit_cart = load_order_for_edit(session, order_id, snapshot)
        edit_cart.decrement('prod-c')
        edit_cart.increment(snapshot.get_product('prod-b'))

        result = place_order(session, edit_cart, None, 'officer-1', order_id=order_id)

        assert result == order_id
        rows = rows_for(session, order_id)
        assert sorted((r.product_id, r.quantity, r.is_free) for r in rows) == [
            ('prod-b', 1, False),
            ('prod-c', 4, False),
        ]
        assert all(r.visit_id == visit for r in rows)

    def test_edit_unknown_order(self, session, snapshot):
        with pytest.raises(NotFoundError):
            load_order_for_edit(session, 'missing-order', snapshot)

        cart = make_cart(snapshot, {'prod-b': 1})
        with pytest.raises(NotFoundError):
            place_order(session, cart, None, 'officer-1', order_id='missing-order')

    def test_order_lines_include_names(self, session, snapshot, visit):
        order_id = place_order(session, make_cart(snapshot, {'prod-d': 2}), visit, 'officer-1')

        lines = get_order_lines(session, order_id)

        regular = [line for line in lines if not line.is_free]
        assert [(line.name, line.unit_price) for line in regular] == [('Product D', Decimal('30.00'))]
        assert sorted(line.product_id for line in lines if line.is_free) == ['prod-b', 'prod-d']


class TestReceiptLines:

    def test_order_gift_read_back_with_display_fields(self, session, snapshot, visit):
        order_id = place_order(session, make_cart(snapshot, {'prod-c': 25}), visit, 'officer-1')

        gift = [line for line in get_order_lines(session, order_id) if line.scheme_id == 4]

        assert len(gift) == 1
        assert gift[0].product_id == 'order-scheme-bag'
        assert gift[0].name == 'Traveler Bag'
        assert gift[0].category == 'Accessories'
        assert gift[0].unit_of_measure == 'Item'

    def test_order_gift_uses_given_gift_product(self, session, snapshot, visit):
        order_id = place_order(session, make_cart(snapshot, {'prod-c': 25}), visit, 'officer-1')
        bottle = GiftProduct(name='Steel Bottle', category='Merch', unit_of_measure='Piece')

        lines = get_order_lines(session, order_id, gift=bottle)

        assert [line.name for line in lines if line.scheme_id == 4] == ['Steel Bottle']

    def test_lines_keep_checkout_order(self, session, snapshot, visit):
        cart = make_cart(snapshot, {'prod-c': 5, 'prod-b': 1, 'prod-a': 3})
        order_id = place_order(session, cart, visit, 'officer-1')

        lines = get_order_lines(session, order_id)

        assert [line.product_id for line in lines if not line.is_free] == ['prod-c', 'prod-b', 'prod-a']
        assert [line.product_id for line in lines if line.is_free] == [
            line.product_id for line in cart.free_lines
        ]
        assert [r.line_no for r in sorted(rows_for(session, order_id), key=lambda r: r.line_no)] == [
            1, 2, 3, 4, 5,
        ]


def test_most_ordered_products_for_shop(session, snapshot, visit):
    place_order(session, make_cart(snapshot, {'prod-b': 2, 'prod-c': 1}), visit, 'officer-1')
    place_order(session, make_cart(snapshot, {'prod-b': 1}), visit, 'officer-1')
    place_order(session, make_cart(snapshot, {'prod-c': 3, 'prod-a': 3}), visit, 'officer-1')
    session.add(OrderItem(
        order_id='order-legacy', product_id='prod-inactive', visit_id=visit, quantity=50,
        unit_price=Decimal('1'), amount=Decimal('50'),
    ))
    session.commit()

    popular = get_most_ordered_products(session, 'shop-1')

    assert [(p['product_id'], p['frequency'], p['quantity']) for p in popular] == [
        ('prod-c', 2, 4),
        ('prod-b', 2, 3),
        ('prod-a', 1, 3),
    ]
    assert popular[0]['name'] == 'Product C'
    assert get_most_ordered_products(session, 'shop-1', limit=1)[0]['product_id'] == 'prod-c'
    assert get_most_ordered_products(session, 'other-shop') == []


def test_last_ordered_quantities_prefers_latest(session, seeded_catalog, visit):
    session.add_all([
        OrderItem(
            order_id='order-old', product_id='prod-b', visit_id=visit, quantity=4,
            unit_price=Decimal('5'), amount=Decimal('20'), created_at=datetime(2025, 4, 1, 9, 0),
        ),
        OrderItem(
            order_id='order-new', product_id='prod-b', visit_id=visit, quantity=7,
            unit_price=Decimal('5'), amount=Decimal('35'), created_at=datetime(2025, 4, 15, 9, 0),
        ),
        OrderItem(
            order_id='order-new', product_id='prod-b', visit_id=visit, quantity=2,
            is_free=True, free_gift_for='prod-a', scheme_id=2, created_at=datetime(2025, 4, 15, 9, 0),
        ),
        OrderItem(
            order_id='order-old', product_id='prod-c', visit_id=visit, quantity=5,
            unit_price=Decimal('20'), amount=Decimal('100'), created_at=datetime(2025, 4, 1, 9, 0),
        ),
    ])
    session.commit()

    assert get_last_ordered_quantities(session, 'shop-1') == {'prod-b': 7, 'prod-c': 5}
    assert get_last_ordered_quantities(session, 'other-shop') == {}
