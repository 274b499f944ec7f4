from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from ahaar.core.database import Base
from ahaar.utils.clock import utcnow


class Supplier(Base):
    __tablename__ = "suppliers"
    __table_args__ = (UniqueConstraint("brand_id", "mobile1", name="uq_suppliers_brand_mobile1"),)

    id = Column(Integer, primary_key=True)
    supplier_id = Column(String(64), unique=True, index=True, nullable=False)
    brand_id = Column(String(64), index=True, nullable=False)
    name = Column(String(30), nullable=False)
    company_name = Column(String(30), nullable=True)
    mobile1 = Column(String(11), nullable=False)
    mobile2 = Column(String(11), nullable=True)
    email = Column(String(255), nullable=True)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_by = Column(String(64), nullable=True)
    updated_at = Column(DateTime, nullable=True)
