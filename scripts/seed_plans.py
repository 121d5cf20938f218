from sqlalchemy.orm import Session
from memberhub.core.security import hash_password
from memberhub.db.base import Base
from memberhub.db.session import SessionLocal, engine
from memberhub.models.coupon import Coupon
from memberhub.models.digital_card import DigitalCard
from memberhub.models.plan import Plan
from memberhub.models.user import User
import memberhub.models.registry  # noqa: F401

OWNER = {
    "email": "owner@memberhub.local", "username": "owner",
    "first_name": "Demo", "last_name": "Owner",
}
OWNER_PASSWORD = "changeme123"

COUPONS = [
    {"code": "SAVE10", "name": "10% off", "discount": 10, "discount_type": "percentage"},
    {"code": "WELCOME5", "name": "5 off first payment", "discount": 5, "discount_type": "fixed",
      "max_redemptions": 100},
]

PLANS = [
    # Recurring Memberships
    {"name": "Monthly Membership", "fee": 100.00, "renewal_interval": "monthly",
      "description": "Full access, billed monthly"},

    {"name": "Quarterly Membership", "fee": 270.00, "renewal_interval": "quarterly",
      "description": "Full access, billed every three months"},

    {"name": "Annual Membership", "fee": 1000.00, "renewal_interval": "yearly",
      "description": "Full access, billed yearly", "coupon": "SAVE10"},

    # One-Time Memberships
    {"name": "Lifetime Membership", "fee": 2500.00, "renewal_interval": "one-time",
      "description": "Never expires"},
]

CARD_TEMPLATE = {
    "organization_name": "MemberHub Demo", "card_title": "Membership Card",
    "barcode_type": "qr", "primary_color": "#3498db",
    "secondary_color": "#2c3e50", "text_color": "#ffffff",
}

def upsert_owner(db: Session) -> User:
    owner = db.query(User).filter(User.email == OWNER["email"]).first()
    if owner:
        return owner
    owner = User(**OWNER, password_hash=hash_password(OWNER_PASSWORD))
    db.add(owner)
    db.flush()
    return owner

def upsert_coupon(db: Session, owner: User, data: dict) -> Coupon:
    coupon = db.query(Coupon).filter(Coupon.code == data["code"]).first()
    if coupon:
        for k, v in data.items():
            setattr(coupon, k, v)
        return coupon

    coupon = Coupon(**data, created_by=owner.id, current_redemptions=0)
    db.add(coupon)
    db.flush()
    return coupon

def upsert_plan(db: Session, owner: User, data: dict) -> Plan:
    data = dict(data)
    code = data.pop("coupon", None)
    if code:
        data["coupon_id"] = db.query(Coupon.id).filter(Coupon.code == code).scalar()

    plan = db.query(Plan).filter(Plan.name == data["name"], Plan.created_by == owner.id).first()
    if plan:
        for k, v in data.items():
            setattr(plan, k, v)
        return plan

    plan = Plan(**data, created_by=owner.id)
    db.add(plan)
    return plan

def upsert_card_template(db: Session, owner: User) -> DigitalCard:
    template = (
        db.query(DigitalCard)
        .filter(DigitalCard.is_template.is_(True), DigitalCard.user_id == owner.id, DigitalCard.plan_id.is_(None))
        .first()
    )
    if template is None:
        template = DigitalCard(**CARD_TEMPLATE, is_template=True, user_id=owner.id)
        db.add(template)
    return template

def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        owner = upsert_owner(db)
        for data in COUPONS:
            upsert_coupon(db, owner, data)
        for data in PLANS:
            upsert_plan(db, owner, data)
        upsert_card_template(db, owner)
        db.commit()
        print("Seeded coupons:", [c["code"] for c in COUPONS])
        print("Seeded plans:", [p["name"] for p in PLANS])
        print(f"Owner login: {OWNER['email']} / {OWNER_PASSWORD}")
    finally:
        db.close()

if __name__ == "__main__":
    main()
