"""Models package - exports all SQLAlchemy models."""
from app.models.scheme import Scheme
from app.models.product import Product
from app.models.visit import Visit
from app.models.order_item import OrderItem

__all__ = [
    'Scheme', 'Product', 'Visit', 'OrderItem',
]
