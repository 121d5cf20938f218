import logging
import re

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from memberhub.api.deps import get_current_user
from memberhub.core.security import hash_password, temporary_password
from memberhub.db.session import get_db
from memberhub.models.application import APPLICATION_STATUSES, Application
from memberhub.models.payment import Payment
from memberhub.models.plan import Plan
from memberhub.models.subscription import Subscription
from memberhub.models.user import User
from memberhub.schemas.application import ApplicationOut, ApproveIn
from memberhub.schemas.common import dump
from memberhub.schemas.subscription import SubscriptionOut
from memberhub.services.activation import complete_payment
from memberhub.services.member_numbers import generate_member_number

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["applications"])

# how public payment methods are recorded as payments
PAYMENT_METHOD_MAP = {"card": "credit_card", "crypto": "crypto"}


def _owned_application(db: Session, application_id: int, user: User) -> Application:
    application = (
        db.query(Application)
        .join(Plan, Plan.id == Application.plan_id)
        .filter(Application.id == application_id, Plan.created_by == user.id)
        .first()
    )
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    return application


def _unique_username(db: Session, first_name: str, last_name: str | None) -> str:
    base = re.sub(r"[^a-z0-9]", "", f"{first_name}{last_name or ''}".lower()) or "member"
    username = base
    counter = 1
    while db.query(User.id).filter(User.username == username).first():
        username = f"{base}{counter}"
        counter += 1
    return username


@router.get("")
def list_applications(
    page: int = 1,
    limit: int = 10,
    status: str | None = None,
    plan_id: int | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    page, limit = max(page, 1), min(max(limit, 1), 100)
    q = db.query(Application).join(Plan, Plan.id == Application.plan_id).filter(Plan.created_by == user.id)
    if status:
        if status not in APPLICATION_STATUSES:
            raise HTTPException(status_code=400, detail="Invalid status filter")
        q = q.filter(Application.status == status)
    if plan_id:
        q = q.filter(Application.plan_id == plan_id)
    if search:
        like = f"%{search}%"
        q = q.filter(
            Application.email.ilike(like)
            | Application.first_name.ilike(like)
            | Application.last_name.ilike(like)
            | Application.student_id.ilike(like)
        )

    total = q.count()
    rows = q.order_by(Application.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "success": True,
        "data": {
            "applications": [dump(ApplicationOut.model_validate(a)) for a in rows],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": (total + limit - 1) // limit,
            },
        },
    }


@router.get("/{application_id}")
def get_application(application_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    application = _owned_application(db, application_id, user)
    return {"success": True, "data": dump(ApplicationOut.model_validate(application))}


@router.post("/{application_id}/approve")
def approve_application(
    application_id: int,
    payload: ApproveIn | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    application = _owned_application(db, application_id, user)
    if application.status == "approved":
        raise HTTPException(status_code=400, detail="Application is already approved")
    if application.status != "pending":
        raise HTTPException(status_code=400, detail="Only paid (pending) applications can be approved")

    member = db.query(User).filter(User.email == application.email).first()

    create_user = payload.create_user if payload else True
    if not create_user:
        application.status = "approved"
        if member:
            application.user_id = member.id
        db.commit()
        return {"success": True, "message": "Application approved successfully", "data": {
            "application": dump(ApplicationOut.model_validate(application)),
        }}

    credentials = None
    if member is None:
        password = temporary_password()
        member = User(
            email=application.email,
            username=_unique_username(db, application.first_name, application.last_name),
            first_name=application.first_name,
            last_name=application.last_name,
            password_hash=hash_password(password),
        )
        db.add(member)
        db.flush()
        credentials = {"username": member.username, "temporaryPassword": password}

    subscription = Subscription(
        user_id=member.id,
        plan_id=application.plan_id,
        member_number=generate_member_number(db),
        status="pending",
        notes=f"Created from application #{application.id}",
    )
    db.add(subscription)
    db.flush()

    application.status = "approved"
    application.user_id = member.id

    # The applicant already paid on the public form: record it and activate
    payment = None
    info = application.payment_info or {}
    if info:
        payment = Payment(
            user_id=member.id,
            plan_id=application.plan_id,
            subscription_id=subscription.id,
            amount=application.final_amount if application.final_amount is not None else info.get("amount", 0),
            payment_method=PAYMENT_METHOD_MAP.get(info.get("method"), "other"),
            identifier=info.get("transactionId"),
            notes=f"Application #{application.id} payment",
            status="pending",
        )
        db.add(payment)
    db.commit()

    if payment is not None:
        complete_payment(db, payment)
        db.refresh(subscription)

    logger.info(
        "Application %s approved: user %s subscription %s (%s)",
        application.id,
        member.id,
        subscription.id,
        subscription.status,
    )

    return {
        "success": True,
        "message": "Application approved successfully",
        "data": {
            "application": dump(ApplicationOut.model_validate(application)),
            "subscription": dump(SubscriptionOut.model_validate(subscription)),
            "credentials": credentials,
        },
    }


@router.post("/{application_id}/reject")
def reject_application(application_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    application = _owned_application(db, application_id, user)
    if application.status == "approved":
        raise HTTPException(status_code=400, detail="Application is already approved")

    application.status = "rejected"
    db.commit()
    logger.info("Application %s rejected", application.id)
    return {"success": True, "message": "Application rejected successfully"}


@router.delete("/{application_id}")
def delete_application(application_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    application = _owned_application(db, application_id, user)
    db.delete(application)
    db.commit()
    return {"success": True, "message": "Application deleted successfully"}
