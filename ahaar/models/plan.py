from sqlalchemy import Column, DateTime, Float, Integer, String, Text

from ahaar.core.database import Base
from ahaar.utils.clock import utcnow


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True)
    plan_id = Column(String(64), unique=True, index=True, nullable=False)
    plan_name = Column(String(20), nullable=False)
    description = Column(String(500), nullable=False)
    duration = Column(String(20), nullable=False, default="monthly")
    price = Column(Float, nullable=False)
    user_limit = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="BDT")
    features = Column(String(500), nullable=False)
    limitations = Column(String(500), nullable=False)
    terms_and_conditions = Column(Text, nullable=False)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class PlanPurchase(Base):
    __tablename__ = "plan_purchases"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False)
    brand_id = Column(String(64), index=True, nullable=False)
    plan_id = Column(String(64), nullable=False)
    amount = Column(Float, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
