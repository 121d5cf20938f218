from datetime import datetime
from typing import Literal
from memberhub.schemas.common import ApiModel

SubscriptionStatus = Literal["pending", "active", "past_due", "cancelled", "expired"]

class SubscriptionOut(ApiModel):
    id: int
    user_id: int
    plan_id: int
    member_number: str
    status: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    renewal_date: datetime | None = None
    auto_renew: bool
    notes: str | None = None

class SubscriptionIn(ApiModel):
    user_id: int
    plan_id: int
    # Generated when omitted
    member_number: str | None = None
    start_date: datetime | None = None
    auto_renew: bool = True
    notes: str | None = None

class SubscriptionUpdate(ApiModel):
    status: SubscriptionStatus | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    renewal_date: datetime | None = None
    auto_renew: bool | None = None
    notes: str | None = None
