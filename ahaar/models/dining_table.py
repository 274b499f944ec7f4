from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from ahaar.core.database import Base
from ahaar.utils.clock import utcnow


class DiningTable(Base):
    __tablename__ = "dining_tables"
    __table_args__ = (UniqueConstraint("brand_id", "table_name", name="uq_dining_tables_brand_name"),)

    id = Column(Integer, primary_key=True)
    table_id = Column(String(64), unique=True, index=True, nullable=False)
    brand_id = Column(String(64), index=True, nullable=False)
    table_name = Column(String(30), nullable=False)
    table_slug = Column(String(60), nullable=False)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_by = Column(String(64), nullable=True)
    updated_at = Column(DateTime, nullable=True)
