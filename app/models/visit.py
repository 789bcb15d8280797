"""Visit model - a sales officer's visit to a shop."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from app.database import Base


class Visit(Base):
    """Shop visit. Orders hang off a visit, which ties them to a shop."""

    __tablename__ = 'visits'

    visit_id = Column(String(36), primary_key=True)
    shop_id = Column(String(36), nullable=False, index=True)
    sales_officers_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<Visit(visit_id={self.visit_id}, shop_id={self.shop_id})>"
