from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from coupon_engine.core.database import Base


class EligibilityPolicy(Base):
    __tablename__ = "coupon_eligibility_policies"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(String, index=True, unique=True, nullable=False)
    minimum_cross_product_sales = Column(Integer, nullable=False, default=0)
    requires_plan_name_contains = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
