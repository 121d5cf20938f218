import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from memberhub.api.deps import get_current_user
from memberhub.db.session import get_db
from memberhub.models.application_form import ApplicationForm
from memberhub.models.plan import Plan
from memberhub.models.user import User
from memberhub.schemas.application_form import ApplicationFormIn, ApplicationFormRef
from memberhub.services.application_forms import form_data, latest_form, merge_fields

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/application-form", tags=["application-forms"])


def _owned_form(db: Session, form_id: int, user: User) -> ApplicationForm:
    form = db.get(ApplicationForm, form_id)
    if not form or form.created_by != user.id:
        raise HTTPException(status_code=404, detail="Form not found or you do not have access to this form.")
    return form


def _target_form(db: Session, ref: ApplicationFormRef | None, user: User) -> ApplicationForm:
    if ref is not None and ref.id is not None:
        return _owned_form(db, ref.id, user)
    form = latest_form(db, user.id)
    if not form:
        raise HTTPException(status_code=404, detail="Application form not found")
    return form


# The owner's organization form; an unsaved default until one is saved
@router.get("")
def get_organization_form(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    form = latest_form(db, user.id)
    if form is None:
        form = ApplicationForm(title="Membership Application", fields=merge_fields([]), is_published=False)
    return {"success": True, "data": form_data(form)}


@router.get("/all")
def list_forms(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    forms = (
        db.query(ApplicationForm)
        .filter(ApplicationForm.created_by == user.id)
        .order_by(ApplicationForm.created_at.desc(), ApplicationForm.id.desc())
        .all()
    )
    return {"success": True, "data": [form_data(f) for f in forms]}


@router.post("")
def save_form(payload: ApplicationFormIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    if payload.id is not None:
        form = _owned_form(db, payload.id, user)
    else:
        form = ApplicationForm(created_by=user.id)
        db.add(form)

    form.title = payload.title
    form.description = payload.description
    form.footer = payload.footer
    form.terms = payload.terms
    form.agreement = payload.agreement
    form.fields = merge_fields(payload.fields)
    # edits go live only when published again
    form.is_published = False
    db.commit()
    db.refresh(form)
    logger.info("Application form %s saved by user %s", form.id, user.id)
    return {"success": True, "message": "Application form saved successfully", "data": form_data(form)}


@router.post("/publish")
def publish_form(
    payload: ApplicationFormRef | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    form = _target_form(db, payload, user)
    form.is_published = True
    db.commit()
    return {"success": True, "message": "Application form published successfully", "data": form_data(form)}


@router.post("/unpublish")
def unpublish_form(
    payload: ApplicationFormRef | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    form = _target_form(db, payload, user)
    form.is_published = False
    db.commit()
    return {"success": True, "message": "Application form unpublished successfully", "data": form_data(form)}


@router.delete("/{form_id}")
def delete_form(form_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    form = _owned_form(db, form_id, user)
    db.query(Plan).filter(Plan.application_form_id == form.id).update(
        {Plan.application_form_id: None}, synchronize_session=False
    )
    db.delete(form)
    db.commit()
    return {"success": True, "message": "Application form deleted successfully"}
