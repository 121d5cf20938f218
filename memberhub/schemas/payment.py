from datetime import datetime
from typing import Literal
from pydantic import Field
from memberhub.schemas.common import ApiModel

PaymentMethod = Literal["cash", "bank_transfer", "credit_card", "debit_card", "mobile_payment", "crypto", "other"]
PaymentStatus = Literal["pending", "completed", "failed", "refunded"]

class PaymentOut(ApiModel):
    id: int
    user_id: int
    plan_id: int | None = None
    subscription_id: int | None = None
    amount: float
    payment_method: str
    payment_date: datetime | None = None
    identifier: str | None = None
    reference_number: str | None = None
    status: str
    notes: str | None = None

class PaymentIn(ApiModel):
    user_id: int | None = None
    plan_id: int | None = None
    subscription_id: int | None = None
    amount: float = Field(ge=0)
    payment_method: PaymentMethod
    payment_date: datetime | None = None
    identifier: str | None = None
    reference_number: str | None = None
    notes: str | None = None

class PaymentStatusIn(ApiModel):
    status: PaymentStatus
