from sqlalchemy import JSON, Column, DateTime, Float, Integer, String

from ahaar.core.database import Base
from ahaar.utils.clock import utcnow


class SoldInvoice(Base):
    __tablename__ = "sold_invoices"

    id = Column(Integer, primary_key=True)
    invoice_id = Column(String(64), unique=True, index=True, nullable=False)
    brand_id = Column(String(64), index=True, nullable=False)
    member_id = Column(String(64), index=True, nullable=True)
    member_mobile = Column(String(11), nullable=True)
    served_by = Column(String(100), nullable=False)
    table_name = Column(String(30), nullable=True)
    payment_method = Column(String(30), nullable=False, default="cash")
    # [{"item_id", "item_name", "item_price", "quantity", "discount", "line_total"}]
    items = Column(JSON, nullable=False, default=list)
    sub_total = Column(Float, nullable=False)
    discount = Column(Float, nullable=False, default=0.0)
    total_bill = Column(Float, nullable=False)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True, nullable=False)
