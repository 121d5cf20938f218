from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from memberhub.api.deps import get_current_user, get_owned_plan
from memberhub.db.session import get_db
from memberhub.models.application_form import ApplicationForm
from memberhub.models.coupon import Coupon
from memberhub.models.digital_card import DigitalCard
from memberhub.models.plan import Plan
from memberhub.models.subscription import Subscription
from memberhub.models.user import User
from memberhub.schemas.common import dump
from memberhub.schemas.plan import PlanIn, PlanOut, PlanUpdate

router = APIRouter(prefix="/plans", tags=["plans"])


def _check_links(
    db: Session,
    user: User,
    coupon_id: int | None,
    template_id: int | None,
    form_id: int | None = None,
) -> None:
    # A plan can only point at the owner's own coupon, card template and form
    if coupon_id is not None:
        coupon = db.get(Coupon, coupon_id)
        if not coupon or coupon.created_by != user.id:
            raise HTTPException(status_code=400, detail="Coupon not found")
    if template_id is not None:
        template = db.get(DigitalCard, template_id)
        if not template or not template.is_template or template.user_id != user.id:
            raise HTTPException(status_code=400, detail="Digital card template not found")
    if form_id is not None:
        form = db.get(ApplicationForm, form_id)
        if not form or form.created_by != user.id:
            raise HTTPException(status_code=400, detail="Application form not found")


@router.get("")
def list_plans(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    plans = db.query(Plan).filter(Plan.created_by == user.id).order_by(Plan.created_at.desc()).all()
    return {"success": True, "data": [dump(PlanOut.model_validate(p)) for p in plans]}


@router.get("/{plan_id}")
def get_plan(plan_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    plan = get_owned_plan(db, plan_id, user)
    return {"success": True, "data": dump(PlanOut.model_validate(plan))}


@router.post("", status_code=201)
def create_plan(payload: PlanIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _check_links(db, user, payload.coupon_id, payload.digital_card_template_id, payload.application_form_id)

    plan = Plan(**payload.model_dump(), created_by=user.id)
    db.add(plan)
    db.commit()
    db.refresh(plan)
    return {"success": True, "message": "Plan created successfully", "data": dump(PlanOut.model_validate(plan))}


@router.put("/{plan_id}")
def update_plan(
    plan_id: int,
    payload: PlanUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    plan = get_owned_plan(db, plan_id, user)
    changes = payload.model_dump(exclude_unset=True)
    _check_links(
        db,
        user,
        changes.get("coupon_id"),
        changes.get("digital_card_template_id"),
        changes.get("application_form_id"),
    )

    for k, v in changes.items():
        setattr(plan, k, v)
    db.commit()
    db.refresh(plan)
    return {"success": True, "message": "Plan updated successfully", "data": dump(PlanOut.model_validate(plan))}


@router.delete("/{plan_id}")
def delete_plan(plan_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    plan = get_owned_plan(db, plan_id, user)

    in_use = db.query(Subscription.id).filter(
        Subscription.plan_id == plan.id,
        Subscription.status.in_(("active", "past_due")),
    ).first()
    if in_use:
        raise HTTPException(status_code=400, detail="Cannot delete a plan with active subscriptions")

    db.delete(plan)
    db.commit()
    return {"success": True, "message": "Plan deleted successfully"}
