"""
Payment completion: payment -> subscription -> digital card.

Manual status updates, the crypto webhook and the crypto status poll all
end up in `complete_payment`. The payment and subscription transitions are
guarded by conditional UPDATEs so repeated deliveries act once; card
provisioning runs afterwards, is idempotent and never fails the payment.
"""
import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from memberhub.models.digital_card import TEMPLATE_FIELDS, DigitalCard
from memberhub.models.payment import COMPLETABLE_STATUSES, Payment
from memberhub.models.plan import Plan
from memberhub.models.subscription import ACTIVATABLE_STATUSES, Subscription
from memberhub.services.member_numbers import generate_member_number
from memberhub.utils.dt import add_months, as_utc_aware, utcnow

logger = logging.getLogger(__name__)

RENEWAL_MONTHS = {
    "monthly": 1,
    "quarterly": 3,
    "yearly": 12,
}

CARD_DEFAULTS = {
    "card_title": "Membership Card",
    "enable_barcode": True,
    "barcode_type": "qr",
    "primary_color": "#3498db",
    "secondary_color": "#2c3e50",
    "text_color": "#ffffff",
}


def renewal_window(start: datetime, renewal_interval: str | None) -> datetime | None:
    """End of the paid period; None for one-time (non-expiring) plans."""
    months = RENEWAL_MONTHS.get(renewal_interval or "")
    if months is None:
        return None
    return add_months(start, months)


# ---------------------------
# digital cards
# ---------------------------

def find_card_template(db: Session, plan: Plan | None) -> DigitalCard | None:
    if plan is None:
        return None

    if plan.digital_card_template_id:
        template = db.get(DigitalCard, plan.digital_card_template_id)
        if template and template.is_template:
            return template

    base = db.query(DigitalCard).filter(DigitalCard.is_template.is_(True))

    template = base.filter(DigitalCard.plan_id == plan.id).order_by(DigitalCard.id).first()
    if template:
        return template

    # plan creator's general template, then any of theirs
    template = (
        base.filter(DigitalCard.user_id == plan.created_by, DigitalCard.plan_id.is_(None))
        .order_by(DigitalCard.id)
        .first()
    )
    if template:
        return template
    return base.filter(DigitalCard.user_id == plan.created_by).order_by(DigitalCard.id).first()


def _issued_card(db: Session, subscription: Subscription) -> DigitalCard | None:
    return (
        db.query(DigitalCard)
        .filter(
            DigitalCard.is_template.is_(False),
            DigitalCard.user_id == subscription.user_id,
            DigitalCard.subscription_id == subscription.id,
        )
        .first()
    )


def provision_digital_card(db: Session, subscription: Subscription, plan: Plan | None = None) -> DigitalCard | None:
    """Issue the member's card from a template. Best-effort: errors are logged, not raised."""
    try:
        existing = _issued_card(db, subscription)
        if existing:
            return existing

        plan = plan or db.get(Plan, subscription.plan_id)
        template = find_card_template(db, plan)
        if template is None:
            logger.warning(
                "No digital card template for plan %s; subscription %s has no card",
                subscription.plan_id,
                subscription.id,
            )
            return None

        fields = {}
        for name in TEMPLATE_FIELDS:
            value = getattr(template, name)
            fields[name] = CARD_DEFAULTS.get(name) if value is None else value

        card = DigitalCard(
            is_template=False,
            user_id=subscription.user_id,
            plan_id=subscription.plan_id,
            subscription_id=subscription.id,
            barcode_data="member_number",
            is_generated=False,
            **fields,
        )
        db.add(card)
        db.commit()
        logger.info(
            "Digital card %s issued for subscription %s (member %s)",
            card.id,
            subscription.id,
            subscription.member_number,
        )
        return card
    except IntegrityError:
        # another request issued the card first
        db.rollback()
        logger.info("Digital card for subscription %s already issued", subscription.id)
        return _issued_card(db, subscription)
    except Exception:
        db.rollback()
        logger.exception("Digital card provisioning failed for subscription %s", subscription.id)
        return None


# ---------------------------
# subscriptions
# ---------------------------

def _apply_activation(db: Session, subscription: Subscription, plan: Plan | None) -> bool:
    """Compare-and-set pending/past_due -> active. True when this call made the transition."""
    if subscription.status not in ACTIVATABLE_STATUSES:
        return False

    start = as_utc_aware(subscription.start_date) or utcnow()
    end = renewal_window(start, plan.renewal_interval if plan else None)

    result = db.execute(
        update(Subscription)
        .where(
            Subscription.id == subscription.id,
            Subscription.status.in_(ACTIVATABLE_STATUSES),
        )
        .values(status="active", start_date=start, end_date=end, renewal_date=end)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def activate_subscription(db: Session, subscription_id: int) -> Subscription | None:
    db.flush()
    subscription = db.get(Subscription, subscription_id)
    if subscription is None:
        logger.warning("Subscription %s not found for activation", subscription_id)
        return None

    plan = db.get(Plan, subscription.plan_id)
    activated = _apply_activation(db, subscription, plan)
    db.commit()
    db.refresh(subscription)

    if activated:
        logger.info(
            "Subscription %s activated until %s",
            subscription.id,
            subscription.end_date.isoformat() if subscription.end_date else "no expiry",
        )

    if subscription.status == "active":
        provision_digital_card(db, subscription, plan)
    return subscription


def ensure_subscription(db: Session, payment: Payment) -> Subscription | None:
    """The payment's subscription, creating a pending one for plan payments that lack it."""
    if payment.subscription_id:
        return db.get(Subscription, payment.subscription_id)
    if not payment.plan_id:
        return None

    subscription = (
        db.query(Subscription)
        .filter(
            Subscription.user_id == payment.user_id,
            Subscription.plan_id == payment.plan_id,
            Subscription.status.in_(ACTIVATABLE_STATUSES),
        )
        .order_by(Subscription.id.desc())
        .first()
    )
    if subscription is None:
        subscription = Subscription(
            user_id=payment.user_id,
            plan_id=payment.plan_id,
            member_number=generate_member_number(db),
            status="pending",
            notes=f"Created from payment #{payment.id}",
        )
        db.add(subscription)
        db.flush()  # assigns subscription.id without committing
        logger.info("Subscription %s created for payment %s", subscription.id, payment.id)

    payment.subscription_id = subscription.id
    return subscription


def complete_payment(db: Session, payment: Payment) -> Subscription | None:
    """Mark the payment completed and run the activation cascade once."""
    db.flush()
    claimed = db.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.status.in_(COMPLETABLE_STATUSES))
        .values(status="completed")
        .execution_options(synchronize_session=False)
    ).rowcount == 1
    db.refresh(payment)

    if not claimed:
        if payment.status != "completed":
            logger.warning("Payment %s is %s; ignoring completion", payment.id, payment.status)
            return None
        logger.info("Payment %s already completed", payment.id)
        subscription = db.get(Subscription, payment.subscription_id) if payment.subscription_id else None
        if subscription is not None and subscription.status == "active":
            provision_digital_card(db, subscription)
        return subscription

    subscription = ensure_subscription(db, payment)
    if subscription is None:
        db.commit()
        logger.info("Payment %s completed without a plan; nothing to activate", payment.id)
        return None

    plan = db.get(Plan, subscription.plan_id)
    activated = _apply_activation(db, subscription, plan)
    db.commit()
    db.refresh(subscription)
    logger.info(
        "Payment %s completed; subscription %s status=%s (activated=%s)",
        payment.id,
        subscription.id,
        subscription.status,
        activated,
    )

    if subscription.status == "active":
        provision_digital_card(db, subscription, plan)
    return subscription


def fail_payment(db: Session, payment: Payment, status: str = "failed") -> Payment:
    # completed and refunded payments keep their status
    if payment.status in COMPLETABLE_STATUSES:
        payment.status = status
        db.commit()
    return payment
