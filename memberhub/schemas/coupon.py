from datetime import datetime
from typing import Literal
from pydantic import Field
from memberhub.schemas.common import ApiModel

DiscountType = Literal["percentage", "fixed"]

class CouponOut(ApiModel):
    id: int
    name: str
    # the public code is "couponId" for the client
    code: str = Field(serialization_alias="couponId")
    discount: float
    discount_type: str
    expiry_date: datetime | None = None
    max_redemptions: int | None = None
    current_redemptions: int
    is_active: bool
    applicable_plans: list[int] | None = None
    created_by: int

class CouponIn(ApiModel):
    name: str = Field(min_length=1)
    code: str = Field(min_length=1, alias="couponId")
    discount: float = Field(ge=0)
    discount_type: DiscountType = "percentage"
    expiry_date: datetime | None = None
    max_redemptions: int | None = Field(default=None, ge=1)
    applicable_plans: list[int] | None = None
    is_active: bool = True

class CouponUpdate(ApiModel):
    name: str | None = None
    code: str | None = Field(default=None, alias="couponId")
    discount: float | None = Field(default=None, ge=0)
    discount_type: DiscountType | None = None
    expiry_date: datetime | None = None
    max_redemptions: int | None = Field(default=None, ge=1)
    applicable_plans: list[int] | None = None
    is_active: bool | None = None

class ValidateCouponIn(ApiModel):
    coupon_code: str
    plan_id: int

class RedeemCouponIn(ApiModel):
    coupon_code: str
