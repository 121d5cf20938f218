"""Tests for the payment completion cascade."""

from datetime import datetime, timezone

from memberhub.models.digital_card import DigitalCard
from memberhub.models.payment import Payment
from memberhub.models.subscription import Subscription
from memberhub.services.activation import (
    activate_subscription,
    complete_payment,
    fail_payment,
    find_card_template,
    provision_digital_card,
)
from memberhub.services.member_numbers import generate_member_number, is_valid_member_number
from memberhub.utils.dt import as_utc_aware


def _subscription(db, member, plan, **kwargs):
    data = {
        "user_id": member.id,
        "plan_id": plan.id,
        "member_number": generate_member_number(db),
        "status": "pending",
    }
    data.update(kwargs)
    subscription = Subscription(**data)
    db.add(subscription)
    db.commit()
    return subscription


def _payment(db, member, plan, **kwargs):
    data = {
        "user_id": member.id,
        "plan_id": plan.id,
        "amount": plan.fee,
        "payment_method": "cash",
        "status": "pending",
    }
    data.update(kwargs)
    payment = Payment(**data)
    db.add(payment)
    db.commit()
    return payment


def _issued_cards(db):
    return db.query(DigitalCard).filter(DigitalCard.is_template.is_(False)).all()


def test_member_number_format(db):
    number = generate_member_number(db)
    assert number.startswith("MEM")
    assert len(number) == 9
    assert is_valid_member_number(number)


def test_activation_sets_renewal_window(db, member, make_plan, card_template):
    plan = make_plan(renewal_interval="monthly")
    start = datetime(2024, 1, 31, 9, 0, tzinfo=timezone.utc)
    subscription = _subscription(db, member, plan, start_date=start)

    activated = activate_subscription(db, subscription.id)
    assert activated.status == "active"
    assert as_utc_aware(activated.start_date) == start
    assert as_utc_aware(activated.end_date) == datetime(2024, 2, 29, 9, 0, tzinfo=timezone.utc)
    assert activated.renewal_date == activated.end_date


def test_one_time_plan_has_no_end_date(db, member, make_plan, card_template):
    plan = make_plan(renewal_interval="one-time")
    subscription = _subscription(db, member, plan)

    activated = activate_subscription(db, subscription.id)
    assert activated.status == "active"
    assert activated.start_date is not None
    assert activated.end_date is None


def test_activation_only_from_pending_or_past_due(db, member, make_plan):
    plan = make_plan()
    cancelled = _subscription(db, member, plan, status="cancelled")
    past_due = _subscription(db, member, plan, status="past_due")

    assert activate_subscription(db, cancelled.id).status == "cancelled"
    assert activate_subscription(db, past_due.id).status == "active"


def test_activation_is_idempotent(db, member, make_plan, card_template):
    plan = make_plan()
    subscription = _subscription(db, member, plan)

    first = activate_subscription(db, subscription.id)
    first_end = first.end_date
    second = activate_subscription(db, subscription.id)

    assert second.status == "active"
    assert second.end_date == first_end
    assert len(_issued_cards(db)) == 1


def test_complete_payment_creates_and_activates_subscription(db, member, make_plan, card_template):
    plan = make_plan()
    payment = _payment(db, member, plan)

    subscription = complete_payment(db, payment)

    assert payment.status == "completed"
    assert payment.subscription_id == subscription.id
    assert subscription.status == "active"
    assert subscription.user_id == member.id
    assert is_valid_member_number(subscription.member_number)

    cards = _issued_cards(db)
    assert len(cards) == 1
    assert cards[0].subscription_id == subscription.id
    assert cards[0].organization_name == "Test Club"
    assert cards[0].primary_color == "#112233"


def test_complete_payment_twice_issues_one_card(db, member, make_plan, card_template):
    plan = make_plan()
    payment = _payment(db, member, plan)

    first = complete_payment(db, payment)
    second = complete_payment(db, payment)

    assert second.id == first.id
    assert db.query(Subscription).count() == 1
    assert len(_issued_cards(db)) == 1


def test_complete_payment_reuses_pending_subscription(db, member, make_plan, card_template):
    plan = make_plan()
    existing = _subscription(db, member, plan)
    payment = _payment(db, member, plan)

    subscription = complete_payment(db, payment)
    assert subscription.id == existing.id
    assert db.query(Subscription).count() == 1


def test_complete_payment_without_plan(db, member):
    payment = Payment(user_id=member.id, amount=5, payment_method="cash", status="pending")
    db.add(payment)
    db.commit()

    assert complete_payment(db, payment) is None
    assert payment.status == "completed"


def test_missing_template_does_not_fail_activation(db, member, make_plan):
    plan = make_plan()
    payment = _payment(db, member, plan)

    subscription = complete_payment(db, payment)
    assert subscription.status == "active"
    assert _issued_cards(db) == []


def test_template_lookup_prefers_plan_template(db, owner, member, make_plan, card_template):
    plan = make_plan()
    scoped = DigitalCard(is_template=True, user_id=owner.id, plan_id=plan.id, card_title="Plan card")
    db.add(scoped)
    db.commit()

    assert find_card_template(db, plan).id == scoped.id

    chosen = DigitalCard(is_template=True, user_id=owner.id, card_title="Chosen")
    db.add(chosen)
    db.commit()
    plan.digital_card_template_id = chosen.id
    db.commit()

    assert find_card_template(db, plan).id == chosen.id


def test_provision_is_noop_when_card_exists(db, member, make_plan, card_template):
    plan = make_plan()
    subscription = _subscription(db, member, plan, status="active")

    first = provision_digital_card(db, subscription)
    second = provision_digital_card(db, subscription)
    assert first.id == second.id
    assert len(_issued_cards(db)) == 1


def test_fail_payment_leaves_completed_alone(db, member, make_plan):
    plan = make_plan()
    payment = _payment(db, member, plan)
    complete_payment(db, payment)

    fail_payment(db, payment)
    assert payment.status == "completed"

    pending = _payment(db, member, plan)
    fail_payment(db, pending, status="failed")
    assert pending.status == "failed"


def test_refunded_payment_is_never_completed(db, member, make_plan, card_template):
    plan = make_plan()
    payment = _payment(db, member, plan, status="refunded")

    assert complete_payment(db, payment) is None
    assert payment.status == "refunded"
    assert payment.subscription_id is None
    assert db.query(Subscription).count() == 0
    assert _issued_cards(db) == []

    fail_payment(db, payment)
    assert payment.status == "refunded"


def test_failed_payment_can_still_complete(db, member, make_plan, card_template):
    plan = make_plan()
    payment = _payment(db, member, plan, status="failed")

    subscription = complete_payment(db, payment)
    assert payment.status == "completed"
    assert subscription.status == "active"
