"""Tests for the application payment reconciler."""

from decimal import Decimal

import pytest

from memberhub.core.errors import AmountMismatch
from memberhub.models.application import Application
from memberhub.services.reconcile import (
    COUPON_APPLIED,
    COUPON_MISSING,
    COUPON_NONE,
    COUPON_UNUSABLE,
    COUPON_WRONG_PLAN,
    accept_lower_client_amount,
    compute_expected_amount,
    reconcile_application_payment,
)


@pytest.fixture
def make_application(db):
    def _make(plan, **kwargs):
        data = {
            "email": "applicant@example.com",
            "first_name": "Ana",
            "last_name": "Lopez",
            "plan_id": plan.id,
            "status": "incomplete",
            "original_amount": plan.fee,
            "discount_amount": 0,
            "final_amount": plan.fee,
        }
        data.update(kwargs)
        application = Application(**data)
        db.add(application)
        db.commit()
        return application

    return _make


# ---------------------------
# trust-the-frontend policy
# ---------------------------

def test_policy_needs_coupon_reference():
    assert not accept_lower_client_amount(Decimal("100"), Decimal("90"), False)
    assert accept_lower_client_amount(Decimal("100"), Decimal("90"), True)


def test_policy_only_lowers_price():
    assert not accept_lower_client_amount(Decimal("100"), Decimal("100"), True)
    assert not accept_lower_client_amount(Decimal("100"), Decimal("120"), True)


def test_policy_boundaries():
    """Client amount must be >= 0 and the implied discount <= 100%."""
    assert accept_lower_client_amount(Decimal("100"), Decimal("0"), True)  # exactly 100%
    assert not accept_lower_client_amount(Decimal("100"), Decimal("-0.01"), True)
    assert not accept_lower_client_amount(Decimal("0"), Decimal("0"), True)


# ---------------------------
# expected amount priorities
# ---------------------------

def test_no_coupon_expects_fee(db, make_plan, make_application):
    plan = make_plan(fee=100)
    expected = compute_expected_amount(db, make_application(plan), plan)
    assert expected.amount == Decimal("100")
    assert expected.coupon_state == COUPON_NONE


def test_plan_coupon_applies(db, make_plan, make_coupon, make_application):
    coupon = make_coupon(code="PLAN20", discount=20)
    plan = make_plan(fee=50, coupon_id=coupon.id)
    application = make_application(plan, coupon_code="PLAN20", coupon_id=coupon.id)

    expected = compute_expected_amount(db, application, plan)
    assert expected.amount == Decimal("40.00")
    assert expected.source == "plan_coupon"


def test_wrong_code_on_plan_with_coupon_expects_fee(db, make_plan, make_coupon, make_application):
    """A code other than the plan's own coupon is ignored, never discounted."""
    plan_coupon = make_coupon(code="PLAN20", discount=20)
    other = make_coupon(code="OTHER50", discount=50)
    plan = make_plan(fee=50, coupon_id=plan_coupon.id)
    application = make_application(plan, coupon_code="OTHER50", coupon_id=other.id, final_amount=25)

    expected = compute_expected_amount(db, application, plan)
    assert expected.amount == Decimal("50")
    assert expected.coupon_state == COUPON_WRONG_PLAN

    with pytest.raises(AmountMismatch):
        reconcile_application_payment(db, application, plan, 25)


def test_unknown_code_on_plan_with_coupon_expects_fee(db, make_plan, make_coupon, make_application):
    plan_coupon = make_coupon(code="PLAN20", discount=20)
    plan = make_plan(fee=50, coupon_id=plan_coupon.id)
    application = make_application(plan, coupon_code="GHOST", final_amount=10)

    expected = compute_expected_amount(db, application, plan)
    assert expected.amount == Decimal("50")
    with pytest.raises(AmountMismatch):
        reconcile_application_payment(db, application, plan, 10)


def test_application_coupon_applies(db, make_plan, make_coupon, make_application):
    coupon = make_coupon(code="SAVE10", discount=10, discount_type="fixed")
    plan = make_plan(fee=30)
    application = make_application(plan, coupon_code="SAVE10")

    expected = compute_expected_amount(db, application, plan)
    assert expected.amount == Decimal("20.00")
    assert expected.coupon_state == COUPON_APPLIED
    assert expected.source == "application_coupon"


def test_missing_coupon_uses_stored_final_amount(db, make_plan, make_application):
    plan = make_plan(fee=30)
    application = make_application(plan, coupon_code="DELETED", final_amount=20, discount_amount=10)

    expected = compute_expected_amount(db, application, plan)
    assert expected.amount == Decimal("20")
    assert expected.coupon_state == COUPON_MISSING
    assert reconcile_application_payment(db, application, plan, 20) == Decimal("20")


def test_expired_coupon_expects_fee(db, make_plan, make_coupon, make_application, yesterday):
    coupon = make_coupon(code="OLD", expiry_date=yesterday)
    plan = make_plan(fee=100)
    application = make_application(plan, coupon_code="OLD", coupon_id=coupon.id, final_amount=90)

    expected = compute_expected_amount(db, application, plan)
    assert expected.amount == Decimal("100")
    assert expected.coupon_state == COUPON_UNUSABLE


# ---------------------------
# tolerance and fallback
# ---------------------------

def test_tolerance_accepts_under_a_cent(db, make_plan, make_application):
    plan = make_plan(fee=100)
    application = make_application(plan)
    assert reconcile_application_payment(db, application, plan, 99.991) == Decimal("99.991")
    assert reconcile_application_payment(db, application, plan, 99.99) == Decimal("99.99")


def test_two_cents_short_without_coupon_rejected(db, make_plan, make_application):
    plan = make_plan(fee=100)
    application = make_application(plan)
    with pytest.raises(AmountMismatch) as exc:
        reconcile_application_payment(db, application, plan, 99.98)
    assert exc.value.status_code == 400
    assert exc.value.error == {"expected": 100.0, "received": 99.98}
    assert "Expected 100.00, received 99.98" in exc.value.message


def test_lower_amount_trusted_with_unusable_coupon(db, make_plan, make_coupon, make_application, yesterday):
    coupon = make_coupon(code="OLD", expiry_date=yesterday)
    plan = make_plan(fee=100)
    application = make_application(plan, coupon_code="OLD", coupon_id=coupon.id, final_amount=90)
    assert reconcile_application_payment(db, application, plan, 90) == Decimal("90")


def test_higher_amount_never_trusted(db, make_plan, make_coupon, make_application):
    make_coupon(code="SAVE10", discount=10, discount_type="fixed")
    plan = make_plan(fee=30)
    application = make_application(plan, coupon_code="SAVE10", final_amount=20)
    with pytest.raises(AmountMismatch):
        reconcile_application_payment(db, application, plan, 30)


def test_free_plan_accepts_zero(db, make_plan, make_application):
    plan = make_plan(fee=0)
    application = make_application(plan)
    assert reconcile_application_payment(db, application, plan, 0) == Decimal("0")


def test_lower_amount_not_trusted_with_coupon_for_other_plan(db, make_plan, make_coupon, make_application):
    """A lower client amount is not trusted when the coupon belongs to another plan."""
    other_plan = make_plan(fee=80)
    coupon = make_coupon(code="ELSEWHERE", discount=50, applicable_plans=[other_plan.id])
    plan = make_plan(fee=100)
    application = make_application(plan, coupon_code="ELSEWHERE", coupon_id=coupon.id, final_amount=50)

    assert compute_expected_amount(db, application, plan).coupon_state == COUPON_WRONG_PLAN
    with pytest.raises(AmountMismatch):
        reconcile_application_payment(db, application, plan, 50)
