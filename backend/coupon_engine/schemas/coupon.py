from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class CouponKindIn(str, Enum):
    PERCENTAGE = "percentage"
    DAYS = "days"
    FREE_TRIAL = "free_trial"


class ActivationResponse(BaseModel):
    id: str
    coupon_id: str
    product_id: Optional[str] = None
    custom_code: str
    username_at_creation: Optional[str] = None
    coupon_code_at_creation: Optional[str] = None
    is_active: bool
    state: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EligibilityResponse(BaseModel):
    product_id: Optional[str] = None
    eligible: bool
    unmet_requirements: List[str] = []
    required_sales: int = 0
    cross_product_sales: int = 0
    sales_remaining: int = 0
    required_plan_marker: Optional[str] = None


class CouponBoardItem(BaseModel):
    template_id: str
    code: str
    name: str
    description: Optional[str] = None
    kind: str
    value: float
    is_primary: bool
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    valid_until: Optional[datetime] = None
    resolved_code: str
    link: Optional[str] = None
    link_is_url: bool = False
    is_preview: bool
    state: Optional[str] = None
    activation: Optional[ActivationResponse] = None
    eligibility: EligibilityResponse


class ActivateRequest(BaseModel):
    product_id: Optional[str] = None


class ActivateResponse(BaseModel):
    created: bool
    activation: ActivationResponse
    link: str


class CouponTemplateCreate(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    kind: CouponKindIn = CouponKindIn.PERCENTAGE
    value: float = Field(default=0, ge=0)
    product_id: Optional[str] = None
    is_active: bool = True
    is_primary: bool = False
    is_visible_to_affiliates: bool = True
    valid_until: Optional[datetime] = None
    max_uses: Optional[int] = Field(default=None, ge=0)


class CouponTemplateUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    kind: Optional[CouponKindIn] = None
    value: Optional[float] = Field(default=None, ge=0)
    is_active: Optional[bool] = None
    is_primary: Optional[bool] = None
    is_visible_to_affiliates: Optional[bool] = None
    valid_until: Optional[datetime] = None
    max_uses: Optional[int] = Field(default=None, ge=0)


class CouponTemplateResponse(BaseModel):
    id: str
    code: str
    name: str
    description: Optional[str] = None
    kind: str
    value: float
    product_id: Optional[str] = None
    is_active: bool
    is_primary: bool
    is_visible_to_affiliates: bool
    valid_until: Optional[datetime] = None
    max_uses: Optional[int] = None
    current_uses: Optional[int] = None

    class Config:
        from_attributes = True


class EligibilityPolicyIn(BaseModel):
    minimum_cross_product_sales: Optional[int] = Field(default=None, ge=0)
    requires_plan_name_contains: Optional[str] = None


class EligibilityPolicyResponse(BaseModel):
    product_id: str
    minimum_cross_product_sales: int
    requires_plan_name_contains: Optional[str] = None

    class Config:
        from_attributes = True


class SoftDeleteRequest(BaseModel):
    template_id: Optional[str] = None
