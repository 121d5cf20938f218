from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session

from memberhub.core.security import token_user_id
from memberhub.db.session import get_db
from memberhub.models.plan import Plan
from memberhub.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)

def get_current_user(
        creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
        db: Session = Depends(get_db)
) -> User:
    if creds is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        user_id = token_user_id(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user

def get_owned_plan(db: Session, plan_id: int, user: User) -> Plan:
    """Plan the current user created; 404 if missing, 403 if someone else's."""
    plan = db.get(Plan, plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    if plan.created_by != user.id:
        raise HTTPException(status_code=403, detail="You do not have access to this plan")
    return plan
