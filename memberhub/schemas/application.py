from datetime import datetime
from typing import Any, Literal
from pydantic import Field
from memberhub.schemas.common import ApiModel

class ApplyIn(ApiModel):
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    referral: str | None = None
    student_id: str | None = None
    plan_id: int
    form_data: dict[str, Any] | None = None
    coupon_code: str | None = None
    coupon_id: int | None = None

class ApplicationPaymentIn(ApiModel):
    application_id: int
    plan_id: int
    amount: float = Field(ge=0)
    payment_method: Literal["card", "crypto"]
    payment_details: dict[str, Any] | None = None

class ApplicationOut(ApiModel):
    id: int
    email: str
    first_name: str
    last_name: str | None = None
    phone: str | None = None
    referral: str | None = None
    student_id: str | None = None
    form_data: dict[str, Any] | None = None
    plan_id: int
    user_id: int | None = None
    status: str
    coupon_id: int | None = None
    coupon_code: str | None = None
    original_amount: float | None = None
    discount_amount: float | None = None
    final_amount: float | None = None
    payment_info: dict[str, Any] | None = None
    created_at: datetime | None = None

class ApproveIn(ApiModel):
    create_user: bool = True
