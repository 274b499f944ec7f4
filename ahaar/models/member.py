from sqlalchemy import Column, DateTime, Float, Integer, String, UniqueConstraint

from ahaar.core.database import Base
from ahaar.utils.clock import utcnow

DEFAULT_MEMBER_DISCOUNT = 10.0


class Member(Base):
    __tablename__ = "members"
    __table_args__ = (UniqueConstraint("brand_id", "mobile", name="uq_members_brand_mobile"),)

    id = Column(Integer, primary_key=True)
    member_id = Column(String(64), unique=True, index=True, nullable=False)
    brand_id = Column(String(64), index=True, nullable=False)
    name = Column(String(100), nullable=False)
    mobile = Column(String(11), nullable=False)
    # percentage applied to discountable items
    discount_value = Column(Float, default=DEFAULT_MEMBER_DISCOUNT, nullable=False)
    total_discount = Column(Float, default=0.0, nullable=False)
    total_spent = Column(Float, default=0.0, nullable=False)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_by = Column(String(64), nullable=True)
    updated_at = Column(DateTime, nullable=True)
