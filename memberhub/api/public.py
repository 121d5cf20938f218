import logging
import secrets
import time

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from memberhub.db.session import get_db
from memberhub.models.application import Application
from memberhub.models.application_form import ApplicationForm
from memberhub.models.coupon import Coupon
from memberhub.models.plan import Plan
from memberhub.schemas.application import ApplicationOut, ApplicationPaymentIn, ApplyIn
from memberhub.schemas.common import dump
from memberhub.schemas.coupon import ValidateCouponIn
from memberhub.schemas.plan import PlanOut
from memberhub.services.application_forms import form_data, form_for_plan, latest_form
from memberhub.services.coupons import find_coupon_by_code, to_decimal, validate_coupon
from memberhub.services.reconcile import reconcile_application_payment, record_application_payment
from memberhub.utils.dt import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public", tags=["public"])


def _active_plan(db: Session, plan_id: int) -> Plan | None:
    return db.query(Plan).filter(Plan.id == plan_id, Plan.is_active.is_(True)).first()


def _transaction_id(method: str) -> str:
    prefix = "CRYPTO" if method == "crypto" else "TXN"
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


# Display available membership plans
@router.get("/plans")
def list_public_plans(search: str | None = None, db: Session = Depends(get_db)):
    q = db.query(Plan).filter(Plan.is_active.is_(True), Plan.is_public.is_(True))
    if search:
        like = f"%{search}%"
        q = q.filter(Plan.name.ilike(like) | Plan.description.ilike(like))
    plans = q.order_by(Plan.fee).all()
    return {"success": True, "data": [dump(PlanOut.model_validate(p)) for p in plans]}


@router.get("/plans/{plan_id}")
def get_public_plan(plan_id: int, db: Session = Depends(get_db)):
    plan = _active_plan(db, plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found or not available")
    return {"success": True, "data": dump(PlanOut.model_validate(plan))}


# ---------------------------
# application forms
# ---------------------------

def _published_form_response(form: ApplicationForm | None) -> dict:
    if form is None:
        raise HTTPException(status_code=404, detail="No published application form found")
    return {"success": True, "data": form_data(form)}


@router.get("/application-form")
def get_default_application_form(db: Session = Depends(get_db)):
    form = (
        db.query(ApplicationForm)
        .filter(ApplicationForm.is_published.is_(True))
        .order_by(ApplicationForm.created_at.desc(), ApplicationForm.id.desc())
        .first()
    )
    return _published_form_response(form)


@router.get("/application-form/plan/{form_id}")
def get_plan_application_form(form_id: int, db: Session = Depends(get_db)):
    form = db.get(ApplicationForm, form_id)
    if not form or not form.is_published:
        raise HTTPException(status_code=404, detail="Application form not found")
    return {"success": True, "data": form_data(form)}


# The organization is the owner account that publishes plans and forms
@router.get("/application-form/{organization_id}")
def get_organization_application_form(organization_id: int, db: Session = Depends(get_db)):
    return _published_form_response(latest_form(db, organization_id, published_only=True))


@router.get("/plans/{plan_id}/application-form")
def get_application_form_for_plan(plan_id: int, db: Session = Depends(get_db)):
    plan = _active_plan(db, plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found or not available")
    return _published_form_response(form_for_plan(db, plan))


@router.post("/validate-coupon")
def validate_coupon_for_plan(payload: ValidateCouponIn, db: Session = Depends(get_db)):
    plan = _active_plan(db, payload.plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found or not available")

    quote = validate_coupon(find_coupon_by_code(db, payload.coupon_code), plan)
    return {"success": True, "message": "Coupon is valid", "coupon": quote.as_dict()}


# Submit membership application; it stays incomplete until payment is recorded
@router.post("/apply", status_code=201)
def apply(payload: ApplyIn, db: Session = Depends(get_db)):
    form = payload.form_data or {}
    email = payload.email or form.get("email")
    first_name = payload.first_name or form.get("firstName")
    last_name = payload.last_name or form.get("lastName")
    phone = payload.phone or form.get("phone")

    if not email or not first_name or not last_name:
        raise HTTPException(status_code=400, detail="Email, first name, last name, and plan ID are required")

    plan = _active_plan(db, payload.plan_id)
    if not plan:
        raise HTTPException(status_code=400, detail="Invalid or unavailable plan")

    existing = (
        db.query(Application)
        .filter(Application.email == email, Application.plan_id == plan.id)
        .order_by(Application.id.desc())
        .all()
    )
    if any(a.status != "incomplete" for a in existing):
        raise HTTPException(status_code=400, detail="An application for this plan already exists with this email")
    if existing:
        application = existing[0]
        return JSONResponse(
            status_code=200,
            content={
                "success": True,
                "message": "An incomplete application already exists; continue to payment",
                "isIncomplete": True,
                "data": {
                    "applicationId": application.id,
                    "status": application.status,
                    "planName": plan.name,
                    "application": dump(ApplicationOut.model_validate(application)),
                },
            },
        )

    # Freeze the price the applicant saw
    fee = to_decimal(plan.fee)
    coupon = None
    if payload.coupon_code:
        coupon = find_coupon_by_code(db, payload.coupon_code)
    elif payload.coupon_id:
        coupon = db.get(Coupon, payload.coupon_id)

    if coupon is not None or payload.coupon_code or payload.coupon_id:
        quote = validate_coupon(coupon, plan)
        discount_amount, final_amount = quote.discount_amount, quote.final_amount
    else:
        discount_amount, final_amount = to_decimal(0), fee

    application = Application(
        email=email,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        referral=payload.referral,
        student_id=payload.student_id,
        plan_id=plan.id,
        form_data=payload.form_data,
        status="incomplete",
        coupon_id=coupon.id if coupon else None,
        coupon_code=coupon.code if coupon else None,
        original_amount=fee,
        discount_amount=discount_amount,
        final_amount=final_amount,
    )
    db.add(application)
    db.commit()
    db.refresh(application)
    logger.info(
        "Application %s created for plan %s (coupon=%s, final=%s)",
        application.id,
        plan.id,
        application.coupon_code,
        final_amount,
    )

    return {
        "success": True,
        "message": "Application saved. Complete payment to submit it for review.",
        "isIncomplete": False,
        "data": {
            "applicationId": application.id,
            "status": application.status,
            "planName": plan.name,
            "application": dump(ApplicationOut.model_validate(application)),
        },
    }


@router.post("/application-payment")
def application_payment(payload: ApplicationPaymentIn, db: Session = Depends(get_db)):
    application = db.get(Application, payload.application_id)
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")

    plan = db.get(Plan, payload.plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    if application.plan_id != plan.id:
        raise HTTPException(status_code=400, detail="Application does not belong to this plan")
    if application.status != "incomplete":
        raise HTTPException(status_code=400, detail=f"Application is already {application.status}")

    amount = reconcile_application_payment(db, application, plan, payload.amount)

    transaction_id = _transaction_id(payload.payment_method)
    record_application_payment(
        db,
        application,
        amount,
        {
            "method": payload.payment_method,
            "amount": float(amount),
            "transactionId": transaction_id,
            "paymentDetails": payload.payment_details,
            "processedAt": utcnow().isoformat(),
        },
    )
    logger.info("Application %s paid %s via %s", application.id, amount, payload.payment_method)

    return {
        "success": True,
        "message": "Payment processed successfully",
        "data": {
            "applicationId": application.id,
            "transactionId": transaction_id,
            "status": application.status,
        },
    }
