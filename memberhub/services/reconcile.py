"""
Server-side check of the amount a public applicant is about to pay.

The expected amount is rebuilt from live coupon data, in priority order:

1. the plan's associated coupon, when the application used that code
2. the coupon recorded on the application (by id, then by code)
3. the amount frozen on the application at submission, when its coupon
   record can no longer be found
4. the plan fee
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from memberhub.core.config import settings
from memberhub.core.errors import AmountMismatch
from memberhub.models.application import Application
from memberhub.models.coupon import Coupon
from memberhub.models.plan import Plan
from memberhub.services.coupons import (
    ZERO,
    coupon_applies_to_plan,
    coupon_is_usable,
    find_coupon_by_code,
    quote_discount,
    to_decimal,
)

logger = logging.getLogger(__name__)

TOLERANCE = to_decimal(settings.amount_tolerance)

# How the application's coupon reference resolved against live data
COUPON_NONE = "none"
COUPON_APPLIED = "applied"
COUPON_MISSING = "missing"
COUPON_UNUSABLE = "unusable"
COUPON_WRONG_PLAN = "wrong_plan"


@dataclass(frozen=True)
class ExpectedAmount:
    amount: Decimal
    coupon_state: str
    source: str


def references_coupon(application: Application) -> bool:
    return bool(application.coupon_id or application.coupon_code)


def within_tolerance(expected: Decimal, received: Decimal) -> bool:
    return abs(expected - received) <= TOLERANCE


def accept_lower_client_amount(expected: Decimal, client_amount: Decimal, has_coupon_reference: bool) -> bool:
    """
    Trust a lower client-side figure when the application carries a coupon
    the server could not price.

    Only ever lowers the price, never below zero, and never by more than
    100% of the expected amount.
    """
    if not has_coupon_reference:
        return False
    if client_amount < ZERO or client_amount >= expected:
        return False
    if expected <= ZERO:
        return False
    discount_percentage = (expected - client_amount) / expected * 100
    return discount_percentage <= 100


def _plan_coupon_amount(db: Session, application: Application, plan: Plan) -> Decimal | None:
    if plan.coupon_id is None:
        return None
    plan_coupon = db.get(Coupon, plan.coupon_id)
    if plan_coupon is None:
        logger.warning("Plan %s references missing coupon %s", plan.id, plan.coupon_id)
        return None
    if not coupon_is_usable(plan_coupon):
        logger.info("Plan %s coupon %s is no longer usable", plan.id, plan_coupon.code)
        return None
    if not application.coupon_code or application.coupon_code != plan_coupon.code:
        return None
    return quote_discount(plan_coupon, plan.fee).final_amount


def _application_coupon(db: Session, application: Application) -> Coupon | None:
    coupon = None
    if application.coupon_id:
        coupon = db.get(Coupon, application.coupon_id)
    if coupon is None and application.coupon_code:
        coupon = find_coupon_by_code(db, application.coupon_code)
    return coupon


def compute_expected_amount(db: Session, application: Application, plan: Plan) -> ExpectedAmount:
    fee = to_decimal(plan.fee)

    # Priority 1: the plan's own coupon
    amount = _plan_coupon_amount(db, application, plan)
    if amount is not None and amount != fee:
        return ExpectedAmount(amount, COUPON_APPLIED, "plan_coupon")

    if not references_coupon(application):
        # Priority 4: nothing to discount
        return ExpectedAmount(fee, COUPON_NONE, "plan_fee")

    # Priority 2: the coupon recorded on the application
    coupon = _application_coupon(db, application)
    if coupon is not None:
        if not coupon_applies_to_plan(coupon, plan):
            logger.info("Application %s coupon %s does not apply to plan %s", application.id, coupon.code, plan.id)
            return ExpectedAmount(fee, COUPON_WRONG_PLAN, "plan_fee")
        if not coupon_is_usable(coupon):
            logger.info("Application %s coupon %s failed validity checks", application.id, coupon.code)
            return ExpectedAmount(fee, COUPON_UNUSABLE, "plan_fee")
        return ExpectedAmount(quote_discount(coupon, fee).final_amount, COUPON_APPLIED, "application_coupon")

    # A plan with its own coupon accepts no other code, gone or not
    if plan.coupon_id is not None:
        logger.info("Application %s coupon does not match plan %s coupon", application.id, plan.id)
        return ExpectedAmount(fee, COUPON_WRONG_PLAN, "plan_fee")

    # Priority 3: coupon record is gone, trust the amount frozen at submission
    if application.final_amount is not None:
        stored = to_decimal(application.final_amount)
        if abs(stored - fee) > TOLERANCE:
            logger.info(
                "Application %s coupon not found; using stored final amount %s",
                application.id,
                stored,
            )
            return ExpectedAmount(stored, COUPON_MISSING, "stored_final_amount")

    logger.warning("Application %s coupon could not be resolved", application.id)
    return ExpectedAmount(fee, COUPON_MISSING, "plan_fee")


def reconcile_application_payment(
    db: Session,
    application: Application,
    plan: Plan,
    client_amount: Any,
) -> Decimal:
    """Return the amount to charge, or raise AmountMismatch."""
    received = to_decimal(client_amount)
    expected = compute_expected_amount(db, application, plan)

    if within_tolerance(expected.amount, received):
        return received

    # A coupon valid only for other plans yields the plan fee, never a discount,
    # so the lower-amount fallback is closed to it as well
    has_reference = references_coupon(application) and expected.coupon_state != COUPON_WRONG_PLAN
    if accept_lower_client_amount(expected.amount, received, has_reference):
        logger.warning(
            "Application %s: accepting client amount %s below expected %s (coupon %s)",
            application.id,
            received,
            expected.amount,
            application.coupon_code or application.coupon_id,
        )
        return received

    logger.info(
        "Application %s amount mismatch: expected %s (%s), received %s",
        application.id,
        expected.amount,
        expected.source,
        received,
    )
    raise AmountMismatch(expected.amount, received)


def record_application_payment(
    db: Session,
    application: Application,
    amount: Decimal,
    payment_info: dict[str, Any],
) -> Application:
    application.final_amount = amount
    application.payment_info = payment_info
    application.status = "pending"
    db.commit()
    return application
