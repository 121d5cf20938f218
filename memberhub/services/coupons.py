"""
Coupon eligibility and discount math.

Validation never mutates the coupon; only `redeem_coupon` bumps the
redemption counter.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy.orm import Session

from memberhub.core.errors import CouponRejected
from memberhub.models.coupon import Coupon
from memberhub.models.plan import Plan
from memberhub.utils.dt import as_utc_aware, utcnow

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CouponQuote:
    coupon: Coupon
    original_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.coupon.id,
            "name": self.coupon.name,
            "couponId": self.coupon.code,
            "discount": float(self.coupon.discount),
            "discountType": self.coupon.discount_type,
            "discountAmount": float(self.discount_amount),
            "originalAmount": float(self.original_amount),
            "finalAmount": float(self.final_amount),
        }


def find_coupon_by_code(db: Session, code: str | None) -> Coupon | None:
    if not code:
        return None
    return db.query(Coupon).filter(Coupon.code == code.strip()).first()


def coupon_usability_error(coupon: Coupon, now: datetime | None = None) -> str | None:
    """Why the coupon can't be used right now, or None when it can."""
    now = now or utcnow()
    if not coupon.is_active:
        return "Coupon is inactive"
    expiry = as_utc_aware(coupon.expiry_date)
    if expiry is not None and expiry < now:
        return "Coupon has expired"
    if coupon.max_redemptions is not None and coupon.current_redemptions >= coupon.max_redemptions:
        return "Coupon has reached maximum redemptions"
    return None


def coupon_is_usable(coupon: Coupon, now: datetime | None = None) -> bool:
    return coupon_usability_error(coupon, now) is None


def coupon_applies_to_plan(coupon: Coupon, plan: Plan) -> bool:
    # A plan-associated coupon is exclusive for that plan
    if plan.coupon_id is not None:
        return coupon.id == plan.coupon_id
    if not coupon.applicable_plans:
        return True
    return plan.id in {int(p) for p in coupon.applicable_plans}


def quote_discount(coupon: Coupon, fee: Any) -> CouponQuote:
    original = to_decimal(fee)
    discount = to_decimal(coupon.discount)
    if coupon.discount_type == "percentage":
        discount_amount = to_money(original * discount / 100)
    else:
        discount_amount = to_money(discount)
    final_amount = max(ZERO, original - discount_amount)
    return CouponQuote(
        coupon=coupon,
        original_amount=original,
        discount_amount=discount_amount,
        final_amount=final_amount,
    )


def validate_coupon(coupon: Coupon | None, plan: Plan, now: datetime | None = None) -> CouponQuote:
    """
    Check a coupon against a plan and price it.

    Rules run in order and the first failure wins: the coupon must exist and
    be active, be unexpired, have redemptions left, and apply to the plan.
    """
    if coupon is None:
        raise CouponRejected("Invalid coupon code")

    problem = coupon_usability_error(coupon, now)
    if problem:
        raise CouponRejected(problem)

    if not coupon_applies_to_plan(coupon, plan):
        if plan.coupon_id is not None:
            raise CouponRejected("Coupon code is not valid for the selected plan")
        raise CouponRejected("Coupon does not apply to this plan")

    return quote_discount(coupon, plan.fee)


def redeem_coupon(db: Session, coupon: Coupon) -> Coupon:
    problem = coupon_usability_error(coupon)
    if problem:
        raise CouponRejected(problem)

    coupon.current_redemptions = (coupon.current_redemptions or 0) + 1
    db.commit()
    logger.info("Coupon %s redeemed (%s/%s)", coupon.code, coupon.current_redemptions, coupon.max_redemptions)
    return coupon
