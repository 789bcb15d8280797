"""Orders blueprint - order capture cart and checkout (JSON)."""
from typing import Any, Dict, Optional

from flask import Blueprint, request, session, jsonify, current_app, g, Response

from app.database import get_session
from app.exceptions import BusinessLogicError, NotFoundError
from app.middleware import require_login
from app.pricing import OrderCart, describe_scheme
from app.services import catalog_service, order_service
from app.blueprints.metrics import cart_mutations_total, order_value, orders_placed_total

orders_bp = Blueprint('orders', __name__, url_prefix='/orders')

CART_SESSION_KEY = 'order_cart'
EDIT_SESSION_KEY = 'editing_order_id'


def _load_catalog():
    return catalog_service.load_catalog(get_session(), use_cache=current_app.config.get('CACHE_ENABLED', True))


def get_cart(catalog) -> OrderCart:
    """Rebuild the cart from the session (free lines are re-derived)."""
    return OrderCart.from_dict(session.get(CART_SESSION_KEY), catalog)


def save_cart(cart: OrderCart) -> None:
    session[CART_SESSION_KEY] = cart.to_dict()
    session.modified = True


def _payload() -> Dict[str, Any]:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _required(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not value:
        raise BusinessLogicError(f'Missing {key}')
    return str(value)


def _cart_response(cart: OrderCart, status_code: int = 200) -> Response:
    body = {
        'status': 'ok',
        'lines': [line.to_dict() for line in cart.lines],
        'choices': {pid: choice.value for pid, choice in cart.choices.items()},
        'totals': cart.totals().to_dict(),
        'editing_order_id': session.get(EDIT_SESSION_KEY),
    }
    return jsonify(body), status_code


@orders_bp.route('/catalog', methods=['GET'])
@require_login
def catalog() -> Response:
    """Active products with their scheme text, plus category tabs."""
    snapshot = _load_catalog()
    products = []
    for product in snapshot.products.values():
        item = product.to_dict()
        item['unit_price'] = str(product.unit_price)
        item['has_scheme'] = product.has_scheme
        item['scheme_text'] = describe_scheme(product, snapshot)
        products.append(item)

    order_scheme = snapshot.order_scheme
    return jsonify({
        'status': 'ok',
        'products': products,
        'categories': catalog_service.list_categories(snapshot),
        'order_scheme': order_scheme.to_dict() if order_scheme else None,
    })


@orders_bp.route('/cart', methods=['GET'])
@require_login
def show_cart() -> Response:
    return _cart_response(get_cart(_load_catalog()))


@orders_bp.route('/cart/increment', methods=['POST'])
@require_login
def cart_increment() -> Response:
    payload = _payload()
    product_id = _required(payload, 'product_id')

    snapshot = _load_catalog()
    product = snapshot.get_product(product_id)
    if product is None:
        raise NotFoundError('Product not found')

    cart = get_cart(snapshot)
    line = cart.increment(product)
    save_cart(cart)
    cart_mutations_total.labels(operation='increment').inc()

    current_app.logger.info(
        f"[cart_increment] user_id={g.user_id}, product_id={product_id}, qty={line.quantity}"
    )
    return _cart_response(cart)


@orders_bp.route('/cart/decrement', methods=['POST'])
@require_login
def cart_decrement() -> Response:
    payload = _payload()
    product_id = _required(payload, 'product_id')

    cart = get_cart(_load_catalog())
    cart.decrement(product_id)
    save_cart(cart)
    cart_mutations_total.labels(operation='decrement').inc()

    current_app.logger.info(
        f"[cart_decrement] user_id={g.user_id}, product_id={product_id}, qty={cart.quantity_of(product_id)}"
    )
    return _cart_response(cart)


@orders_bp.route('/cart/choice', methods=['POST'])
@require_login
def cart_choice() -> Response:
    payload = _payload()
    product_id = _required(payload, 'product_id')
    choice = _required(payload, 'choice')

    cart = get_cart(_load_catalog())
    cart.set_choice(product_id, choice)
    save_cart(cart)
    cart_mutations_total.labels(operation='choice').inc()
    return _cart_response(cart)


@orders_bp.route('/cart/clear', methods=['POST'])
@require_login
def cart_clear() -> Response:
    session.pop(CART_SESSION_KEY, None)
    session.pop(EDIT_SESSION_KEY, None)
    return _cart_response(OrderCart(_load_catalog()))


@orders_bp.route('/checkout', methods=['POST'])
@require_login
def checkout() -> Response:
    """Store the cart as a new order, or replace the order being edited."""
    payload = _payload()
    editing_order_id: Optional[str] = session.get(EDIT_SESSION_KEY)
    visit_id = payload.get('visit_id')

    cart = get_cart(_load_catalog())
    order_id = order_service.place_order(
        get_session(),
        cart,
        visit_id=visit_id,
        sales_officer_id=g.user_id,
        order_id=editing_order_id,
        currency=current_app.config.get('ORDER_CURRENCY', 'INR'),
    )
    orders_placed_total.labels(mode='edit' if editing_order_id else 'new').inc()
    order_value.observe(float(cart.subtotal))

    session.pop(CART_SESSION_KEY, None)
    session.pop(EDIT_SESSION_KEY, None)

    return jsonify({
        'status': 'ok',
        'order_id': order_id,
        'message': 'Order updated successfully' if editing_order_id else 'Order placed successfully',
    }), 200 if editing_order_id else 201


@orders_bp.route('/<order_id>', methods=['GET'])
@require_login
def order_detail(order_id: str) -> Response:
    lines = order_service.get_order_lines(get_session(), order_id)
    if not lines:
        raise NotFoundError(f'Order {order_id} not found')
    return jsonify({
        'status': 'ok',
        'order_id': order_id,
        'lines': [line.to_dict() for line in lines],
    })


@orders_bp.route('/<order_id>/edit', methods=['POST'])
@require_login
def edit_order(order_id: str) -> Response:
    """Start an edit session: the stored order becomes the current cart."""
    cart = order_service.load_order_for_edit(get_session(), order_id, _load_catalog())
    save_cart(cart)
    session[EDIT_SESSION_KEY] = order_id
    return _cart_response(cart)


@orders_bp.route('/shops/<shop_id>/last', methods=['GET'])
@require_login
def last_orders(shop_id: str) -> Response:
    quantities = order_service.get_last_ordered_quantities(
        get_session(), shop_id, limit=current_app.config.get('LAST_ORDERS_LIMIT', 20)
    )
    return jsonify({'status': 'ok', 'shop_id': shop_id, 'last_orders': quantities})


@orders_bp.route('/shops/<shop_id>/popular', methods=['GET'])
@require_login
def popular_products(shop_id: str) -> Response:
    """Products backing the 'Popular' category tab for this shop."""
    products = order_service.get_most_ordered_products(
        get_session(), shop_id, limit=current_app.config.get('POPULAR_PRODUCTS_LIMIT', 5)
    )
    return jsonify({'status': 'ok', 'shop_id': shop_id, 'products': products})
