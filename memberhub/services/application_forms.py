"""
Application form builder helpers.

Every saved form carries the four contact fields the apply endpoint reads
(firstName, lastName, email, phone) unless the owner overrides them by name.
Email is collected by the apply flow itself, so it is never shown as a
builder field.
"""
from sqlalchemy.orm import Session

from memberhub.models.application_form import ApplicationForm
from memberhub.models.plan import Plan
from memberhub.schemas.application_form import ApplicationFormOut
from memberhub.schemas.common import dump

DEFAULT_FIELDS = (
    {"name": "firstName", "label": "First Name", "type": "text", "required": True, "order": 1},
    {"name": "lastName", "label": "Last Name", "type": "text", "required": True, "order": 2},
    {"name": "email", "label": "Email Address", "type": "email", "required": True, "order": 3},
    {"name": "phone", "label": "Phone Number", "type": "tel", "required": False, "order": 4},
)


def is_email_field(field: dict) -> bool:
    if str(field.get("name") or "").lower() == "email":
        return True
    return any(str(field.get(k) or "").lower() == "email" for k in ("type", "inputType", "dataType"))


def merge_fields(custom: list[dict] | None) -> list[dict]:
    """Defaults the owner did not override, then the owner's own fields."""
    custom = [dict(f) for f in (custom or []) if not is_email_field(f)]
    names = {f.get("name") for f in custom}
    return [dict(f) for f in DEFAULT_FIELDS if f["name"] not in names] + custom


def visible_fields(form: ApplicationForm) -> list[dict]:
    return [f for f in (form.fields or []) if not is_email_field(f)]


def form_data(form: ApplicationForm) -> dict:
    data = dump(ApplicationFormOut.model_validate(form))
    data["fields"] = visible_fields(form)
    return data


def latest_form(db: Session, owner_id: int, published_only: bool = False) -> ApplicationForm | None:
    q = db.query(ApplicationForm).filter(ApplicationForm.created_by == owner_id)
    if published_only:
        q = q.filter(ApplicationForm.is_published.is_(True))
    return q.order_by(ApplicationForm.created_at.desc(), ApplicationForm.id.desc()).first()


def form_for_plan(db: Session, plan: Plan) -> ApplicationForm | None:
    """Published form an applicant fills in for this plan."""
    if not plan.use_default_form and plan.application_form_id:
        form = db.get(ApplicationForm, plan.application_form_id)
        if form is not None and form.is_published:
            return form
    return latest_form(db, plan.created_by, published_only=True)
