"""Product model."""
from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


class Product(Base):
    """
    Product model.

    Scheme linkage lives on the product itself: at most one scheme applies
    to a product at a time.
    """

    __tablename__ = 'products'

    product_id = Column(String(36), primary_key=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    mrp = Column(Numeric(10, 2), nullable=False, default=0)  # List price
    ptr = Column(Numeric(10, 2), nullable=True)  # Price to retailer
    unit_of_measure = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Scheme linkage
    product_scheme_id = Column(Integer, ForeignKey('schemes.scheme_id'), nullable=True)
    product_scheme_buy_qty = Column(Integer, nullable=True)
    product_scheme_get_qty = Column(Integer, nullable=True)
    product_item_offer_id = Column(String(36), ForeignKey('products.product_id'), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    scheme = relationship('Scheme', foreign_keys=[product_scheme_id])
    offer_product = relationship('Product', remote_side=[product_id], foreign_keys=[product_item_offer_id])

    def __repr__(self):
        return f"<Product(product_id={self.product_id}, name='{self.name}', scheme_id={self.product_scheme_id})>"

    @property
    def offer_product_name(self):
        """Name of the bonus product, if any."""
        if self.offer_product:
            return self.offer_product.name
        return None
