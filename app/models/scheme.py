"""Scheme model - promotional schemes, keyed by kind."""
from sqlalchemy import Column, Integer, String, Boolean, Numeric
from app.database import Base


class Scheme(Base):
    """
    Scheme model.

    Ids 1-3 are product schemes (buy X get Y, with an OR / AND offer product);
    id 4 is the order-level threshold scheme.
    """

    __tablename__ = 'schemes'

    scheme_id = Column(Integer, primary_key=True, autoincrement=False)
    scheme_text = Column(String, nullable=False, default='')
    scheme_scope = Column(String(10), nullable=False, default='product')  # 'product' or 'order'
    scheme_min_price = Column(Numeric(10, 2), nullable=True)  # Order scope only
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<Scheme(scheme_id={self.scheme_id}, scope='{self.scheme_scope}')>"
