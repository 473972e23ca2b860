from uuid import uuid4

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from coupon_engine.core.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid4()))
    name = Column(String, nullable=False)
    landing_page_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
