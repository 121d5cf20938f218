from typing import Literal
from pydantic import Field
from memberhub.schemas.common import ApiModel

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"

class DigitalCardOut(ApiModel):
    id: int
    is_template: bool
    user_id: int | None = None
    plan_id: int | None = None
    subscription_id: int | None = None
    logo: str | None = None
    organization_name: str | None = None
    card_title: str | None = None
    header_text: str | None = None
    footer_text: str | None = None
    enable_barcode: bool
    barcode_type: str
    barcode_data: str
    primary_color: str
    secondary_color: str
    text_color: str
    is_generated: bool

class CardTemplateIn(ApiModel):
    plan_id: int | None = None
    logo: str | None = None
    organization_name: str | None = None
    card_title: str | None = "Membership Card"
    header_text: str | None = None
    footer_text: str | None = None
    enable_barcode: bool = True
    barcode_type: Literal["qr", "code128", "code39"] = "qr"
    barcode_data: Literal["member_number", "user_id", "custom"] = "member_number"
    primary_color: str = Field(default="#3498db", pattern=HEX_COLOR)
    secondary_color: str = Field(default="#2c3e50", pattern=HEX_COLOR)
    text_color: str = Field(default="#ffffff", pattern=HEX_COLOR)

class CardTemplateUpdate(ApiModel):
    plan_id: int | None = None
    logo: str | None = None
    organization_name: str | None = None
    card_title: str | None = None
    header_text: str | None = None
    footer_text: str | None = None
    enable_barcode: bool | None = None
    barcode_type: Literal["qr", "code128", "code39"] | None = None
    barcode_data: Literal["member_number", "user_id", "custom"] | None = None
    primary_color: str | None = Field(default=None, pattern=HEX_COLOR)
    secondary_color: str | None = Field(default=None, pattern=HEX_COLOR)
    text_color: str | None = Field(default=None, pattern=HEX_COLOR)
