from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, UniqueConstraint

from ahaar.core.database import Base
from ahaar.utils.clock import utcnow


class MenuItem(Base):
    __tablename__ = "menu_items"
    __table_args__ = (UniqueConstraint("brand_id", "item_name", name="uq_menu_items_brand_name"),)

    id = Column(Integer, primary_key=True)
    item_id = Column(String(64), unique=True, index=True, nullable=False)
    brand_id = Column(String(64), index=True, nullable=False)
    item_name = Column(String(100), nullable=False)
    item_slug = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    discount = Column(Boolean, default=True, nullable=False)
    item_price = Column(Float, nullable=False)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_by = Column(String(64), nullable=True)
    updated_at = Column(DateTime, nullable=True)
