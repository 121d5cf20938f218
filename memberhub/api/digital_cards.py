from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from memberhub.api.deps import get_current_user, get_owned_plan
from memberhub.db.session import get_db
from memberhub.models.digital_card import DigitalCard
from memberhub.models.plan import Plan
from memberhub.models.subscription import Subscription
from memberhub.models.user import User
from memberhub.schemas.common import dump
from memberhub.schemas.digital_card import CardTemplateIn, CardTemplateUpdate, DigitalCardOut
from memberhub.schemas.plan import PlanOut
from memberhub.schemas.subscription import SubscriptionOut

router = APIRouter(prefix="/digital-cards", tags=["digital-cards"])


def _owned_template(db: Session, template_id: int, user: User) -> DigitalCard:
    template = (
        db.query(DigitalCard)
        .filter(
            DigitalCard.id == template_id,
            DigitalCard.is_template.is_(True),
            DigitalCard.user_id == user.id,
        )
        .first()
    )
    if not template:
        raise HTTPException(status_code=404, detail="Card template not found")
    return template


def _card_view(db: Session, card: DigitalCard) -> dict:
    """Issued card plus what the member's wallet renders next to it."""
    data = dump(DigitalCardOut.model_validate(card))
    subscription = db.get(Subscription, card.subscription_id) if card.subscription_id else None
    plan = db.get(Plan, card.plan_id) if card.plan_id else None
    data["subscription"] = dump(SubscriptionOut.model_validate(subscription)) if subscription else None
    data["plan"] = dump(PlanOut.model_validate(plan)) if plan else None
    return data


# ---------------------------
# templates (plan owners)
# ---------------------------

@router.get("/templates")
def list_templates(plan_id: int | None = None, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    q = db.query(DigitalCard).filter(DigitalCard.is_template.is_(True), DigitalCard.user_id == user.id)
    if plan_id:
        q = q.filter(DigitalCard.plan_id == plan_id)
    templates = q.order_by(DigitalCard.id).all()
    return {"success": True, "data": [dump(DigitalCardOut.model_validate(t)) for t in templates]}


@router.get("/templates/{template_id}")
def get_template(template_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    template = _owned_template(db, template_id, user)
    return {"success": True, "data": dump(DigitalCardOut.model_validate(template))}


@router.post("/templates", status_code=201)
def create_template(payload: CardTemplateIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    if payload.plan_id:
        get_owned_plan(db, payload.plan_id, user)

    template = DigitalCard(**payload.model_dump(), is_template=True, user_id=user.id)
    db.add(template)
    db.commit()
    db.refresh(template)
    return {
        "success": True,
        "message": "Card template created successfully",
        "data": dump(DigitalCardOut.model_validate(template)),
    }


@router.put("/templates/{template_id}")
def update_template(
    template_id: int,
    payload: CardTemplateUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    template = _owned_template(db, template_id, user)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("plan_id"):
        get_owned_plan(db, changes["plan_id"], user)

    for k, v in changes.items():
        setattr(template, k, v)
    db.commit()
    db.refresh(template)
    return {
        "success": True,
        "message": "Card template updated successfully",
        "data": dump(DigitalCardOut.model_validate(template)),
    }


@router.delete("/templates/{template_id}")
def delete_template(template_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    template = _owned_template(db, template_id, user)
    # plans pointing at it fall back to the next template lookup
    db.query(Plan).filter(Plan.digital_card_template_id == template.id).update(
        {Plan.digital_card_template_id: None}, synchronize_session=False
    )
    db.delete(template)
    db.commit()
    return {"success": True, "message": "Card template deleted successfully"}


# ---------------------------
# issued cards (members)
# ---------------------------

@router.get("/my")
def my_cards(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    cards = (
        db.query(DigitalCard)
        .filter(DigitalCard.is_template.is_(False), DigitalCard.user_id == user.id)
        .order_by(DigitalCard.id.desc())
        .all()
    )
    return {"success": True, "data": [_card_view(db, c) for c in cards]}


@router.get("/subscription/{subscription_id}")
def card_for_subscription(subscription_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    subscription = db.get(Subscription, subscription_id)
    plan = db.get(Plan, subscription.plan_id) if subscription else None
    if not subscription or user.id not in (subscription.user_id, plan.created_by if plan else None):
        raise HTTPException(status_code=404, detail="Subscription not found")

    card = (
        db.query(DigitalCard)
        .filter(DigitalCard.is_template.is_(False), DigitalCard.subscription_id == subscription.id)
        .first()
    )
    if not card:
        raise HTTPException(status_code=404, detail="Digital card not found for this subscription")
    return {"success": True, "data": _card_view(db, card)}
