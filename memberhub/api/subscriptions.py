import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from memberhub.api.deps import get_current_user, get_owned_plan
from memberhub.db.session import get_db
from memberhub.models.digital_card import DigitalCard
from memberhub.models.payment import Payment
from memberhub.models.plan import Plan
from memberhub.models.subscription import SUBSCRIPTION_STATUSES, Subscription
from memberhub.models.user import User
from memberhub.schemas.common import dump
from memberhub.schemas.digital_card import DigitalCardOut
from memberhub.schemas.plan import PlanOut
from memberhub.schemas.subscription import SubscriptionIn, SubscriptionOut, SubscriptionUpdate
from memberhub.services.activation import activate_subscription
from memberhub.services.member_numbers import generate_member_number, is_valid_member_number, member_number_taken

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


def _visible_subscription(db: Session, subscription_id: int, user: User) -> tuple[Subscription, Plan]:
    """Members see their own subscriptions; plan owners see their plans' subscriptions."""
    row = (
        db.query(Subscription, Plan)
        .join(Plan, Plan.id == Subscription.plan_id)
        .filter(Subscription.id == subscription_id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail="Subscription not found")
    subscription, plan = row
    if user.id not in (subscription.user_id, plan.created_by):
        raise HTTPException(status_code=404, detail="Subscription not found")
    return subscription, plan


def _managed_subscription(db: Session, subscription_id: int, user: User) -> Subscription:
    subscription, plan = _visible_subscription(db, subscription_id, user)
    if plan.created_by != user.id:
        raise HTTPException(status_code=403, detail="Only the plan owner can manage this subscription")
    return subscription


@router.get("/my")
def my_subscriptions(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    rows = (
        db.query(Subscription, Plan)
        .join(Plan, Plan.id == Subscription.plan_id)
        .filter(Subscription.user_id == user.id)
        .order_by(Subscription.created_at.desc())
        .all()
    )
    out = []
    for subscription, plan in rows:
        item = dump(SubscriptionOut.model_validate(subscription))
        item["plan"] = dump(PlanOut.model_validate(plan))
        out.append(item)
    return {"success": True, "data": out}


@router.get("")
def list_subscriptions(
    page: int = 1,
    limit: int = 10,
    status: str | None = None,
    plan_id: int | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    page, limit = max(page, 1), min(max(limit, 1), 100)
    q = (
        db.query(Subscription)
        .join(Plan, Plan.id == Subscription.plan_id)
        .join(User, User.id == Subscription.user_id)
        .filter(Plan.created_by == user.id)
    )
    if status:
        if status not in SUBSCRIPTION_STATUSES:
            raise HTTPException(status_code=400, detail="Invalid status filter")
        q = q.filter(Subscription.status == status)
    if plan_id:
        q = q.filter(Subscription.plan_id == plan_id)
    if search:
        like = f"%{search}%"
        q = q.filter(
            Subscription.member_number.ilike(like)
            | User.email.ilike(like)
            | User.first_name.ilike(like)
            | User.last_name.ilike(like)
        )

    total = q.count()
    rows = q.order_by(Subscription.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "success": True,
        "data": {
            "subscriptions": [dump(SubscriptionOut.model_validate(s)) for s in rows],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": (total + limit - 1) // limit,
            },
        },
    }


@router.get("/{subscription_id}")
def get_subscription(subscription_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    subscription, plan = _visible_subscription(db, subscription_id, user)
    cards = (
        db.query(DigitalCard)
        .filter(DigitalCard.subscription_id == subscription.id, DigitalCard.is_template.is_(False))
        .all()
    )
    data = dump(SubscriptionOut.model_validate(subscription))
    data["plan"] = dump(PlanOut.model_validate(plan))
    data["digitalCards"] = [dump(DigitalCardOut.model_validate(c)) for c in cards]
    return {"success": True, "data": data}


@router.post("", status_code=201)
def create_subscription(payload: SubscriptionIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    plan = get_owned_plan(db, payload.plan_id, user)
    if not db.get(User, payload.user_id):
        raise HTTPException(status_code=404, detail="User not found")

    existing = db.query(Subscription.id).filter(
        Subscription.user_id == payload.user_id,
        Subscription.plan_id == plan.id,
        Subscription.status.in_(("active", "past_due")),
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="User already has an active subscription for this plan")

    member_number = (payload.member_number or "").strip().upper()
    if member_number:
        if not is_valid_member_number(member_number):
            raise HTTPException(status_code=400, detail="Invalid member number format")
        if member_number_taken(db, member_number):
            raise HTTPException(status_code=400, detail="Member number already in use")
    else:
        member_number = generate_member_number(db)

    subscription = Subscription(
        user_id=payload.user_id,
        plan_id=plan.id,
        member_number=member_number,
        start_date=payload.start_date,
        auto_renew=payload.auto_renew,
        notes=payload.notes,
        status="pending",
    )
    db.add(subscription)
    db.commit()
    db.refresh(subscription)
    return {
        "success": True,
        "message": "Subscription created successfully",
        "data": dump(SubscriptionOut.model_validate(subscription)),
    }


@router.put("/{subscription_id}")
def update_subscription(
    subscription_id: int,
    payload: SubscriptionUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    subscription = _managed_subscription(db, subscription_id, user)
    changes = payload.model_dump(exclude_unset=True)
    new_status = changes.pop("status", None)

    for k, v in changes.items():
        setattr(subscription, k, v)

    if new_status == "active" and subscription.status != "active":
        # activation goes through the same path as a completed payment
        db.commit()
        subscription = activate_subscription(db, subscription.id)
        if subscription.status != "active":
            raise HTTPException(
                status_code=400,
                detail="Only pending or past due subscriptions can be activated",
            )
    else:
        if new_status:
            subscription.status = new_status
        db.commit()
        db.refresh(subscription)

    return {
        "success": True,
        "message": "Subscription updated successfully",
        "data": dump(SubscriptionOut.model_validate(subscription)),
    }


@router.delete("/{subscription_id}")
def delete_subscription(subscription_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    subscription = _managed_subscription(db, subscription_id, user)
    db.query(DigitalCard).filter(DigitalCard.subscription_id == subscription.id).delete(synchronize_session=False)
    db.query(Payment).filter(Payment.subscription_id == subscription.id).update(
        {Payment.subscription_id: None}, synchronize_session=False
    )
    db.delete(subscription)
    db.commit()
    return {"success": True, "message": "Subscription deleted successfully"}
