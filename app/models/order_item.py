"""Order item model - one persisted order line."""
import uuid
from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


class OrderItem(Base):
    """
    Order item.

    Regular rows carry the price and the bonus they earned (free_qty for the
    same product, free_product_id for an offer product). Free rows are stored
    with a zero price and keep free_gift_for / scheme_id for receipts.
    """

    __tablename__ = 'orders'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), nullable=False, index=True)
    line_no = Column(Integer, nullable=False, default=0)  # Position on the receipt
    product_id = Column(String(36), nullable=False)
    visit_id = Column(String(36), ForeignKey('visits.visit_id'), nullable=False, index=True)
    sales_officers_id = Column(String(36), nullable=True)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False, default=0)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default='INR')

    # Scheme provenance
    is_free = Column(Boolean, nullable=False, default=False)
    free_gift_for = Column(String(36), nullable=True)
    scheme_id = Column(Integer, nullable=True)
    free_qty = Column(Integer, nullable=False, default=0)
    free_product_id = Column(String(36), nullable=True)

    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    visit = relationship('Visit')

    def __repr__(self):
        return (
            f"<OrderItem(order_id={self.order_id}, product_id={self.product_id}, "
            f"qty={self.quantity}, is_free={self.is_free})>"
        )
