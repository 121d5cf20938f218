from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from memberhub.db.session import get_db
from memberhub.models.user import User
from memberhub.schemas.auth import RegisterIn, LoginIn, TokenOut
from memberhub.schemas.common import dump
from memberhub.schemas.user import UserOut
from memberhub.core.security import hash_password, verify_password, password_needs_rehash, create_access_token
from memberhub.api.deps import get_current_user

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register", status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    existing = db.query(User).filter(
        (User.email == payload.email) | (User.username == payload.username)
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email or username already registered")

    user = User(
        email=payload.email,
        username=payload.username,
        first_name=payload.first_name,
        last_name=payload.last_name,
        password_hash=hash_password(payload.password),
    )

    db.add(user)
    db.commit()
    db.refresh(user)
    return {"success": True, "user": dump(UserOut.model_validate(user))}


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if password_needs_rehash(user.password_hash):
        user.password_hash = hash_password(payload.password)
        db.commit()

    token = create_access_token(subject=str(user.id))
    return TokenOut(access_token=token)

@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return {"success": True, "user": dump(UserOut.model_validate(current_user))}
