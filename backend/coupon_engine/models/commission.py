from sqlalchemy import Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func

from coupon_engine.core.database import Base


class Commission(Base):
    __tablename__ = "commissions"

    id = Column(Integer, primary_key=True, index=True)
    affiliate_id = Column(String, index=True)
    product_id = Column(String, index=True, nullable=True)
    status = Column(String, index=True)
    amount = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
