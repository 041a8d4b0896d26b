"""
Admin-managed content: pricing plans, service offerings, public page
content, application settings, payment gateway settings and staff roles.
"""
import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Gateway = Literal["mpesa", "stripe", "pesapal", "paystack"]
GatewayEnvironment = Literal["sandbox", "production"]

PAYMENT_GATEWAY_KEY_PREFIX = "payment_gateway:"
SECRET_SETTING_PATTERN = re.compile(r"(secret|passkey|password|private|token)", re.IGNORECASE)


class PricingPlan(BaseModel):
    id: str
    plan_key: str
    name: str
    description: Optional[str] = None
    monthly_price: Decimal = Decimal("0")
    annual_price: Decimal = Decimal("0")
    features: List[str] = Field(default_factory=list)
    badge: Optional[str] = None
    is_highlighted: bool = False
    is_active: bool = True
    sort_order: int = 0

    model_config = ConfigDict(from_attributes=True)

    def to_dict(self) -> dict:
        data = self.model_dump()
        data["monthly_price"] = float(self.monthly_price)
        data["annual_price"] = float(self.annual_price)
        return data


class PricingPlanUpsert(BaseModel):
    plan_key: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    monthly_price: Decimal = Field(Decimal("0"), ge=0)
    annual_price: Decimal = Field(Decimal("0"), ge=0)
    features: List[str] = Field(default_factory=list)
    badge: Optional[str] = None
    is_highlighted: bool = False
    is_active: bool = True
    sort_order: int = 0


class ServiceOffering(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    icon_name: Optional[str] = None
    image_url: Optional[str] = None
    is_featured: bool = False
    is_active: bool = True
    sort_order: int = 0

    model_config = ConfigDict(from_attributes=True)


class ServiceOfferingUpsert(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    icon_name: Optional[str] = None
    image_url: Optional[str] = None
    is_featured: bool = False
    is_active: bool = True
    sort_order: int = 0


class PageContent(BaseModel):
    """One editable block of a public page (public_page_content table)"""
    id: str
    page_name: str
    section_key: str
    content_type: str = "text"
    content_value: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class PageContentUpsert(BaseModel):
    page_name: str = Field(..., min_length=1)
    section_key: str = Field(..., min_length=1)
    content_type: str = "text"
    content_value: Optional[str] = None
    is_active: bool = True


class AppSetting(BaseModel):
    key: str
    value: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AppSettingUpdate(BaseModel):
    value: Optional[str] = None


class PaymentGatewaySettings(BaseModel):
    """Platform-wide gateway configuration edited from the admin panel"""
    gateway: Gateway
    enabled: bool = False
    environment: GatewayEnvironment = "production"
    settings: Dict[str, Any] = Field(default_factory=dict)

    @property
    def storage_key(self) -> str:
        return f"{PAYMENT_GATEWAY_KEY_PREFIX}{self.gateway}"

    def masked(self) -> "PaymentGatewaySettings":
        """Copy with secret-looking values replaced by their last 4 characters"""
        masked_settings = {}
        for key, value in self.settings.items():
            if isinstance(value, str) and value and SECRET_SETTING_PATTERN.search(key):
                masked_settings[key] = f"****{value[-4:]}" if len(value) > 4 else "****"
            else:
                masked_settings[key] = value
        return self.model_copy(update={"settings": masked_settings})


class StaffMember(BaseModel):
    user_id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: str = "user"
    is_active: bool = True
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RoleAssignment(BaseModel):
    role: str = Field(..., min_length=1, max_length=32)

    @field_validator("role")
    @classmethod
    def normalise_role(cls, value: str) -> str:
        return value.strip().lower()
