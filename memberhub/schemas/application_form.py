from typing import Any
from pydantic import Field
from memberhub.schemas.common import ApiModel

class ApplicationFormOut(ApiModel):
    id: int | None = None
    title: str
    description: str | None = None
    footer: str | None = None
    terms: str | None = None
    agreement: str | None = None
    fields: list[dict[str, Any]] = []
    is_published: bool = False
    created_by: int | None = None

class ApplicationFormIn(ApiModel):
    # Updates this form when set, creates a new one otherwise
    id: int | None = None
    title: str = Field(default="Membership Application", min_length=1)
    description: str | None = None
    footer: str | None = None
    terms: str | None = None
    agreement: str | None = None
    fields: list[dict[str, Any]] = []

class ApplicationFormRef(ApiModel):
    id: int | None = None
