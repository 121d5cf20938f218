import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from memberhub.api.deps import get_current_user
from memberhub.core.config import settings
from memberhub.db.session import get_db
from memberhub.integrations.crypto_gateway import create_invoice, gateway_name, get_invoice_status
from memberhub.integrations.crypto_webhooks import (
    PAYMENT_COMPLETED,
    PAYMENT_EXPIRED,
    PAYMENT_FAILED,
    parse_webhook_event,
    verify_webhook_signature,
)
from memberhub.models.payment import PAYMENT_STATUSES, Payment
from memberhub.models.plan import Plan
from memberhub.models.subscription import Subscription
from memberhub.models.user import User
from memberhub.schemas.common import dump
from memberhub.schemas.payment import PaymentIn, PaymentOut, PaymentStatusIn
from memberhub.services.activation import complete_payment, fail_payment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


def _plan_owner_id(db: Session, payment: Payment) -> int | None:
    if not payment.plan_id:
        return None
    plan = db.get(Plan, payment.plan_id)
    return plan.created_by if plan else None


def _visible_payment(db: Session, payment_id: int, user: User) -> Payment:
    payment = db.get(Payment, payment_id)
    if not payment or user.id not in (payment.user_id, _plan_owner_id(db, payment)):
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment


def _managed_payment(db: Session, payment_id: int, user: User) -> Payment:
    payment = _visible_payment(db, payment_id, user)
    if _plan_owner_id(db, payment) != user.id:
        raise HTTPException(status_code=403, detail="Only the plan owner can manage this payment")
    return payment


def _payment_data(payment: Payment) -> dict:
    return dump(PaymentOut.model_validate(payment))


# ---------------------------
# crypto gateway webhook (public, signature-checked)
# ---------------------------

def _verify_webhook(request: Request, gateway: str, raw_body: bytes, body: dict) -> None:
    """
    Verify the gateway signature only if its secret is configured;
    sandbox setups often run without one.
    """
    secret = settings.btcpay_webhook_secret if gateway == "btcpay" else settings.nowpayments_ipn_secret
    if not secret:
        logger.warning("%s webhook secret not set; skipping signature verification", gateway)
        return

    ok = verify_webhook_signature(
        gateway,
        secret=secret,
        headers=request.headers,
        raw_body=raw_body,
        payload=body,
    )
    if not ok:
        raise HTTPException(status_code=401, detail="Invalid signature")


@router.post("/crypto/webhook")
async def crypto_webhook(request: Request, gateway: str | None = None, db: Session = Depends(get_db)):
    gateway = (gateway or gateway_name()).lower()
    raw_body = await request.body()
    try:
        body = json.loads(raw_body or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid webhook payload")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    _verify_webhook(request, gateway, raw_body, body)

    event = parse_webhook_event(gateway, body)
    logger.info("Crypto webhook %s: %s invoice=%s", gateway, event["event"], event["invoiceId"])

    if not event["invoiceId"]:
        return {"success": True, "ignored": "no_invoice_id"}

    payment = db.query(Payment).filter(Payment.identifier == event["invoiceId"]).first()
    if not payment:
        return {"success": True, "ignored": "payment_not_found"}

    if event["event"] == PAYMENT_COMPLETED:
        complete_payment(db, payment)
    elif event["event"] in (PAYMENT_EXPIRED, PAYMENT_FAILED):
        fail_payment(db, payment)

    return {"success": True, "event": event["event"], "paymentId": payment.id, "status": payment.status}


# ---------------------------
# payments
# ---------------------------

@router.get("")
def list_payments(
    page: int = 1,
    limit: int = 10,
    status: str | None = None,
    plan_id: int | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    page, limit = max(page, 1), min(max(limit, 1), 100)
    q = (
        db.query(Payment)
        .outerjoin(Plan, Plan.id == Payment.plan_id)
        .filter((Payment.user_id == user.id) | (Plan.created_by == user.id))
    )
    if status:
        if status not in PAYMENT_STATUSES:
            raise HTTPException(status_code=400, detail="Invalid status filter")
        q = q.filter(Payment.status == status)
    if plan_id:
        q = q.filter(Payment.plan_id == plan_id)

    total = q.count()
    rows = q.order_by(Payment.payment_date.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "success": True,
        "data": {
            "payments": [_payment_data(p) for p in rows],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": (total + limit - 1) // limit,
            },
        },
    }


@router.get("/{payment_id}")
def get_payment(payment_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    payment = _visible_payment(db, payment_id, user)
    return {"success": True, "data": _payment_data(payment)}


@router.post("", status_code=201)
def create_payment(payload: PaymentIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    data = payload.model_dump(exclude_unset=True)
    payer_id = data.pop("user_id", None) or user.id

    plan = None
    if payload.plan_id:
        plan = db.get(Plan, payload.plan_id)
        if not plan:
            raise HTTPException(status_code=404, detail="Plan not found")

    # recording a payment for someone else is the plan owner's job
    if payer_id != user.id and (plan is None or plan.created_by != user.id):
        raise HTTPException(status_code=403, detail="Only the plan owner can record payments for other users")

    if payload.subscription_id:
        subscription = db.get(Subscription, payload.subscription_id)
        if not subscription or subscription.user_id != payer_id:
            raise HTTPException(status_code=400, detail="Subscription does not belong to this user")
        if plan and subscription.plan_id != plan.id:
            raise HTTPException(status_code=400, detail="Subscription does not belong to this plan")
        data.setdefault("plan_id", subscription.plan_id)

    payment = Payment(**data, user_id=payer_id, status="pending")
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return {"success": True, "message": "Payment created successfully", "data": _payment_data(payment)}


@router.put("/{payment_id}/status")
def update_payment_status(
    payment_id: int,
    payload: PaymentStatusIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    payment = _managed_payment(db, payment_id, user)

    if payment.status == "refunded" and payload.status != "refunded":
        raise HTTPException(status_code=400, detail="A refunded payment is final")

    if payload.status == "completed":
        complete_payment(db, payment)
    elif payment.status == "completed" and payload.status != "refunded":
        raise HTTPException(status_code=400, detail="A completed payment can only be refunded")
    else:
        payment.status = payload.status
        db.commit()

    db.refresh(payment)
    return {"success": True, "message": "Payment status updated", "data": _payment_data(payment)}


@router.delete("/{payment_id}")
def delete_payment(payment_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    payment = _managed_payment(db, payment_id, user)
    db.delete(payment)
    db.commit()
    return {"success": True, "message": "Payment deleted successfully"}


# ---------------------------
# crypto invoices
# ---------------------------

@router.post("/{payment_id}/crypto/invoice")
async def create_crypto_invoice(
    payment_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    payment = _visible_payment(db, payment_id, user)
    if payment.payment_method != "crypto":
        raise HTTPException(status_code=400, detail="Payment is not a crypto payment")
    if payment.status != "pending":
        raise HTTPException(status_code=400, detail=f"Payment is already {payment.status}")

    plan = db.get(Plan, payment.plan_id) if payment.plan_id else None
    description = f"Membership: {plan.name}" if plan else f"Payment #{payment.id}"

    invoice = await create_invoice(
        float(payment.amount),
        settings.crypto_currency,
        f"payment-{payment.id}",
        description,
    )
    if not invoice.get("invoiceId"):
        raise HTTPException(status_code=502, detail={"message": "Crypto gateway returned no invoice id", "gateway_response": invoice})

    # Store gateway reference (still pending until webhook or poll confirms)
    payment.identifier = invoice["invoiceId"]
    db.commit()
    return {"success": True, "data": invoice}


@router.get("/{payment_id}/crypto/status")
async def poll_crypto_status(
    payment_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    payment = _visible_payment(db, payment_id, user)
    if not payment.identifier:
        raise HTTPException(status_code=400, detail="Payment has no crypto invoice")

    status = await get_invoice_status(payment.identifier)
    if status.get("paid") and payment.status != "completed":
        complete_payment(db, payment)
    elif status.get("status") in ("expired", "failed", "Expired", "Invalid"):
        fail_payment(db, payment)

    return {"success": True, "data": {"payment": _payment_data(payment), "invoice": status}}
