from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from ahaar.core.database import Base
from ahaar.utils.clock import utcnow


class Staff(Base):
    __tablename__ = "staffs"
    __table_args__ = (UniqueConstraint("brand_id", "name", name="uq_staffs_brand_name"),)

    id = Column(Integer, primary_key=True)
    staff_id = Column(String(64), unique=True, index=True, nullable=False)
    brand_id = Column(String(64), index=True, nullable=False)
    name = Column(String(100), nullable=False)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_by = Column(String(64), nullable=True)
    updated_at = Column(DateTime, nullable=True)
