from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from memberhub.api.deps import get_current_user
from memberhub.db.session import get_db
from memberhub.models.coupon import Coupon
from memberhub.models.plan import Plan
from memberhub.models.user import User
from memberhub.schemas.common import dump
from memberhub.schemas.coupon import CouponIn, CouponOut, CouponUpdate, RedeemCouponIn, ValidateCouponIn
from memberhub.services.coupons import find_coupon_by_code, redeem_coupon, validate_coupon
from memberhub.utils.dt import utcnow

router = APIRouter(prefix="/coupons", tags=["coupons"])


def _owned_coupon(db: Session, coupon_id: int, user: User) -> Coupon:
    coupon = db.get(Coupon, coupon_id)
    if not coupon or coupon.created_by != user.id:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return coupon


def _code_taken(db: Session, code: str) -> bool:
    return db.query(Coupon.id).filter(Coupon.code == code).first() is not None


@router.get("")
def list_coupons(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    coupons = db.query(Coupon).filter(Coupon.created_by == user.id).order_by(Coupon.created_at.desc()).all()
    return {"success": True, "coupons": [dump(CouponOut.model_validate(c)) for c in coupons]}


@router.post("", status_code=201)
def create_coupon(payload: CouponIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    code = payload.code.strip()
    if _code_taken(db, code):
        raise HTTPException(status_code=400, detail="Coupon ID already exists")

    data = payload.model_dump()
    data["code"] = code
    coupon = Coupon(**data, current_redemptions=0, created_by=user.id)
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return {"success": True, "message": "Coupon created successfully", "coupon": dump(CouponOut.model_validate(coupon))}


@router.put("/{coupon_id}")
def update_coupon(
    coupon_id: int,
    payload: CouponUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    coupon = _owned_coupon(db, coupon_id, user)
    changes = payload.model_dump(exclude_unset=True)

    new_code = changes.get("code")
    if new_code:
        changes["code"] = new_code = new_code.strip()
        if new_code != coupon.code and _code_taken(db, new_code):
            raise HTTPException(status_code=400, detail="Coupon ID already exists")

    for k, v in changes.items():
        setattr(coupon, k, v)
    db.commit()
    db.refresh(coupon)
    return {"success": True, "message": "Coupon updated successfully", "coupon": dump(CouponOut.model_validate(coupon))}


@router.delete("/{coupon_id}")
def delete_coupon(coupon_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    coupon = _owned_coupon(db, coupon_id, user)

    # detach from plans that used it as their associated coupon
    db.query(Plan).filter(Plan.coupon_id == coupon.id).update({Plan.coupon_id: None}, synchronize_session=False)
    db.delete(coupon)
    db.commit()
    return {"success": True, "message": "Coupon deleted successfully"}


@router.post("/validate")
def validate(payload: ValidateCouponIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    plan = db.get(Plan, payload.plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    quote = validate_coupon(find_coupon_by_code(db, payload.coupon_code), plan)
    return {"success": True, "message": "Coupon is valid", "coupon": quote.as_dict()}


@router.post("/redeem")
def redeem(payload: RedeemCouponIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    coupon = find_coupon_by_code(db, payload.coupon_code)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")

    redeem_coupon(db, coupon)
    return {
        "success": True,
        "message": "Coupon redeemed successfully",
        "coupon": {
            "id": coupon.id,
            "name": coupon.name,
            "couponId": coupon.code,
            "currentRedemptions": coupon.current_redemptions,
        },
    }


@router.get("/stats")
def coupon_stats(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    mine = db.query(Coupon).filter(Coupon.created_by == user.id)
    active = mine.filter(Coupon.is_active.is_(True)).count()
    expired = mine.filter(Coupon.expiry_date.is_not(None), Coupon.expiry_date < utcnow()).count()
    total = mine.count()
    redemptions = (
        db.query(func.coalesce(func.sum(Coupon.current_redemptions), 0))
        .filter(Coupon.created_by == user.id)
        .scalar()
    )
    return {
        "success": True,
        "stats": {
            "activeCoupons": active,
            "expiredCoupons": expired,
            "totalCoupons": total,
            "totalRedemptions": int(redemptions or 0),
        },
    }
