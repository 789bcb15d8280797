import pytest
from datetime import datetime
from decimal import Decimal
import uuid

from config import TestingConfig
from app import create_app
from app import database
from app.models import Product, Scheme, Visit
from app.pricing import CatalogProduct, CatalogScheme, CatalogSnapshot, SchemeScope


# Product ids shared by the pure catalog and the seeded database
PRODUCT_A = 'prod-a'  # either/or scheme, offer B
PRODUCT_B = 'prod-b'  # plain product, used as offer
PRODUCT_C = 'prod-c'  # buy 5 get 1
PRODUCT_D = 'prod-d'  # and scheme, offer B, list price only
PRODUCT_E = 'prod-e'  # either/or scheme with a dangling offer


def make_catalog(order_min_price=Decimal('500')):
    """Pure catalog snapshot used by the engine unit tests."""
    products = [
        CatalogProduct(
            product_id=PRODUCT_A, name='Product A', category='Beverages',
            mrp=Decimal('12.00'), ptr=Decimal('10.00'), unit_of_measure='Bottle',
            scheme_id=2, buy_qty=3, get_qty=1, offer_product_id=PRODUCT_B,
            offer_product_name='Product B',
        ),
        CatalogProduct(
            product_id=PRODUCT_B, name='Product B', category='Snacks',
            mrp=Decimal('6.00'), ptr=Decimal('5.00'), unit_of_measure='Pack',
        ),
        CatalogProduct(
            product_id=PRODUCT_C, name='Product C', category='Beverages',
            mrp=Decimal('25.00'), ptr=Decimal('20.00'), unit_of_measure='Can',
            scheme_id=1, buy_qty=5, get_qty=1,
        ),
        CatalogProduct(
            product_id=PRODUCT_D, name='Product D', category='Personal Care',
            mrp=Decimal('30.00'), ptr=Decimal('0'), unit_of_measure='Tube',
            scheme_id=3, buy_qty=2, get_qty=1, offer_product_id=PRODUCT_B,
        ),
        CatalogProduct(
            product_id=PRODUCT_E, name='Product E', category='Snacks',
            mrp=Decimal('8.00'), ptr=Decimal('7.00'),
            scheme_id=2, buy_qty=2, get_qty=1, offer_product_id='ghost-product',
        ),
    ]
    schemes = [
        CatalogScheme(scheme_id=1, scope=SchemeScope.PRODUCT, text='Buy X Get Y'),
        CatalogScheme(scheme_id=2, scope=SchemeScope.PRODUCT, text='Buy X Get Y OR product'),
        CatalogScheme(scheme_id=3, scope=SchemeScope.PRODUCT, text='Buy X Get Y AND product'),
    ]
    if order_min_price is not None:
        schemes.append(CatalogScheme(
            scheme_id=4, scope=SchemeScope.ORDER,
            text='Free traveler bag on orders above 500', min_price=order_min_price,
        ))
    return CatalogSnapshot.build(products, schemes)


@pytest.fixture
def catalog():
    return make_catalog()


@pytest.fixture
def catalog_without_order_scheme():
    return make_catalog(order_min_price=None)


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app(TestingConfig)
    return app


@pytest.fixture(scope='function')
def session(app):
    """Fresh in-memory schema and session per test."""
    database.create_tables()
    session = database.get_session()
    yield session
    session.rollback()
    session.remove()
    database.drop_tables()


@pytest.fixture(scope='function')
def client(app, session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def authenticated_client(client):
    """Client with a logged-in sales officer."""
    with client.session_transaction() as sess:
        sess['user_id'] = 'officer-1'
    return client


@pytest.fixture(scope='function')
def seeded_catalog(session):
    """Schemes and products matching make_catalog(), stored in the DB."""
    session.add_all([
        Scheme(scheme_id=1, scheme_text='Buy X Get Y', scheme_scope='product', is_active=True),
        Scheme(scheme_id=2, scheme_text='Buy X Get Y OR product', scheme_scope='product', is_active=True),
        Scheme(scheme_id=3, scheme_text='Buy X Get Y AND product', scheme_scope='product', is_active=True),
        Scheme(
            scheme_id=4, scheme_text='Free traveler bag on orders above 500',
            scheme_scope='order', scheme_min_price=Decimal('500'), is_active=True,
        ),
    ])
    session.flush()

    session.add(Product(
        product_id=PRODUCT_B, name='Product B', category='Snacks',
        mrp=Decimal('6.00'), ptr=Decimal('5.00'), unit_of_measure='Pack', is_active=True,
    ))
    session.flush()
    session.add_all([
        Product(
            product_id=PRODUCT_A, name='Product A', category='Beverages',
            mrp=Decimal('12.00'), ptr=Decimal('10.00'), unit_of_measure='Bottle',
            product_scheme_id=2, product_scheme_buy_qty=3, product_scheme_get_qty=1,
            product_item_offer_id=PRODUCT_B, is_active=True,
        ),
        Product(
            product_id=PRODUCT_C, name='Product C', category='Beverages',
            mrp=Decimal('25.00'), ptr=Decimal('20.00'), unit_of_measure='Can',
            product_scheme_id=1, product_scheme_buy_qty=5, product_scheme_get_qty=1,
            is_active=True,
        ),
        Product(
            product_id=PRODUCT_D, name='Product D', category='Personal Care',
            mrp=Decimal('30.00'), ptr=None, unit_of_measure='Tube',
            product_scheme_id=3, product_scheme_buy_qty=2, product_scheme_get_qty=1,
            product_item_offer_id=PRODUCT_B, is_active=True,
        ),
        Product(
            product_id='prod-inactive', name='Discontinued', category='Old Stock',
            mrp=Decimal('1.00'), is_active=False,
        ),
    ])
    session.commit()


@pytest.fixture(scope='function')
def visit(session):
    """Create a shop visit to hang orders on."""
    suffix = str(uuid.uuid4())[:8]
    visit = Visit(
        visit_id=f'visit-{suffix}',
        shop_id='shop-1',
        sales_officers_id='officer-1',
        created_at=datetime(2025, 4, 18, 10, 0, 0),
    )
    session.add(visit)
    session.commit()
    return visit.visit_id
