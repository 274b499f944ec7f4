from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from ahaar.core.database import Base
from ahaar.utils.clock import utcnow


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("brand_id", "category", name="uq_categories_brand_category"),)

    id = Column(Integer, primary_key=True)
    category_id = Column(String(64), unique=True, index=True, nullable=False)
    brand_id = Column(String(64), index=True, nullable=False)
    category = Column(String(50), nullable=False)
    category_slug = Column(String(100), nullable=False)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_by = Column(String(64), nullable=True)
    updated_at = Column(DateTime, nullable=True)
