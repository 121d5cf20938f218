from typing import Literal
from pydantic import Field
from memberhub.schemas.common import ApiModel

RenewalInterval = Literal["monthly", "quarterly", "yearly", "one-time"]

class PlanOut(ApiModel):
    id: int
    name: str
    description: str | None = None
    benefits: str | None = None
    fee: float
    renewal_interval: str
    is_active: bool
    is_public: bool
    max_members: int | None = None
    coupon_id: int | None = None
    digital_card_template_id: int | None = None
    application_form_id: int | None = None
    use_default_form: bool = True
    created_by: int

class PlanIn(ApiModel):
    name: str = Field(min_length=1)
    description: str | None = None
    benefits: str | None = None
    fee: float = Field(ge=0)
    renewal_interval: RenewalInterval = "monthly"
    is_active: bool = True
    is_public: bool = True
    max_members: int | None = None
    coupon_id: int | None = None
    digital_card_template_id: int | None = None
    application_form_id: int | None = None
    use_default_form: bool = True

class PlanUpdate(ApiModel):
    name: str | None = None
    description: str | None = None
    benefits: str | None = None
    fee: float | None = Field(default=None, ge=0)
    renewal_interval: RenewalInterval | None = None
    is_active: bool | None = None
    is_public: bool | None = None
    max_members: int | None = None
    coupon_id: int | None = None
    digital_card_template_id: int | None = None
    application_form_id: int | None = None
    use_default_form: bool | None = None
