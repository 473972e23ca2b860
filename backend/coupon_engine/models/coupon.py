from enum import Enum
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, Numeric, String, Text, text
from sqlalchemy.sql import func

from coupon_engine.core.database import Base


class CouponKind(str, Enum):
    PERCENTAGE = "percentage"
    DAYS = "days"
    FREE_TRIAL = "free_trial"


class ActivationState(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DELETED = "deleted"


def _new_id() -> str:
    return str(uuid4())


class CouponTemplate(Base):
    __tablename__ = "coupons"

    id = Column(String, primary_key=True, index=True, default=_new_id)
    code = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    kind = Column("type", String, nullable=False, default=CouponKind.PERCENTAGE.value)
    value = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    is_visible_to_affiliates = Column(Boolean, nullable=False, default=True)
    product_id = Column(String, index=True, nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    max_uses = Column(Integer, nullable=True)
    current_uses = Column(Integer, nullable=True, default=0)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class AffiliateCoupon(Base):
    __tablename__ = "affiliate_coupons"
    __table_args__ = (
        Index(
            "ux_affiliate_coupons_live",
            "affiliate_id",
            "coupon_id",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
        Index(
            "ux_affiliate_coupons_live_code",
            "affiliate_id",
            "product_id",
            "custom_code",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )

    id = Column(String, primary_key=True, index=True, default=_new_id)
    affiliate_id = Column(String, index=True, nullable=False)
    coupon_id = Column(String, index=True, nullable=False)
    product_id = Column(String, index=True, nullable=True)
    custom_code = Column(String, index=True, nullable=False)
    custom_code_history = Column(Text, nullable=True)
    username_at_creation = Column(String, nullable=True)
    coupon_code_at_creation = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def state(self) -> ActivationState:
        if self.deleted_at is not None:
            return ActivationState.DELETED
        if self.is_active:
            return ActivationState.ACTIVE
        return ActivationState.INACTIVE
