from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String

from ahaar.core.database import Base
from ahaar.utils.clock import utcnow


class Brand(Base):
    __tablename__ = "brands"

    id = Column(Integer, primary_key=True)
    brand_id = Column(String(64), unique=True, index=True, nullable=False)
    brand_name = Column(String(100), nullable=False)
    brand_slug = Column(String(120), nullable=False)

    logo_id = Column(String(255), nullable=True)
    logo_url = Column(String(1024), nullable=True)

    location = Column(String(300), nullable=True)
    sub_district = Column(String(50), nullable=True)
    district = Column(String(50), nullable=True)
    mobile1 = Column(String(11), nullable=True)
    mobile2 = Column(String(11), nullable=True)

    subscription_status = Column(Boolean, default=False, nullable=False)
    subscription_end_time = Column(DateTime, nullable=True)
    previous_payment_amount = Column(Float, nullable=True)
    previous_payment_time = Column(DateTime, nullable=True)
    selected_plan_id = Column(String(64), nullable=True)
    selected_plan_name = Column(String(50), nullable=True)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_by = Column(String(64), nullable=True)
    updated_at = Column(DateTime, nullable=True)
