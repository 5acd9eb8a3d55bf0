# backend/modules/restaurants/schemas/restaurant_schemas.py

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime, date

from ..models.restaurant_models import EarningMode, Scope, PortalRole


class RestaurantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    admin_user_id: Optional[int] = None
    color: Optional[str] = None
    voucher_value: str
    voucher_validity_days: int
    points_per_currency: int
    points_threshold: int
    voucher_earning_mode: str
    visit_threshold: int
    loyalty_scope: str
    voucher_scope: str
    onboarding_status: str
    registration_number: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    onboarding_completed_at: Optional[datetime] = None
    trading_name: Optional[str] = None
    description: Optional[str] = None
    cuisine_type: Optional[str] = None
    website_url: Optional[str] = None
    logo_url: Optional[str] = None
    created_at: datetime


class RestaurantSettingsUpdate(BaseModel):
    """Loyalty settings. Bounds are checked by the config service so that
    every violation is reported at once."""

    voucher_value: Optional[str] = None
    voucher_validity_days: Optional[int] = None
    points_per_currency: Optional[int] = None
    points_threshold: Optional[int] = None
    visit_threshold: Optional[int] = None
    voucher_earning_mode: Optional[EarningMode] = None
    loyalty_scope: Optional[Scope] = None
    voucher_scope: Optional[Scope] = None
    color: Optional[str] = Field(None, max_length=16)


class RestaurantProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    trading_name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    cuisine_type: Optional[str] = Field(None, max_length=100)
    website_url: Optional[str] = Field(None, max_length=255)
    logo_url: Optional[str] = Field(None, max_length=255)


class OnboardingUpdate(BaseModel):
    registration_number: Optional[str] = Field(None, max_length=64)
    street_address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=16)
    contact_name: Optional[str] = Field(None, max_length=100)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=32)


# Branches
class BranchCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    is_default: bool = False


class BranchUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None


class BranchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    is_default: bool
    is_active: bool
    created_at: datetime


# Staff
class PortalUserCreate(BaseModel):
    email: EmailStr
    role: PortalRole = PortalRole.STAFF
    has_all_branch_access: bool = True
    branch_ids: List[int] = Field(default_factory=list)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        if v == PortalRole.OWNER:
            raise ValueError("role must be manager or staff")
        return v


class BranchAccessUpdate(BaseModel):
    has_all_branch_access: bool
    branch_ids: List[int] = Field(default_factory=list)


class PortalUserResponse(BaseModel):
    id: int
    restaurant_id: int
    user_id: int
    role: str
    has_all_branch_access: bool
    branch_ids: List[int]
    email: str
    name: Optional[str] = None
    added_by: Optional[int] = None
    created_at: datetime


class ActivityLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    user_id: Optional[int] = None
    action: str
    target_type: Optional[str] = None
    target_id: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime


# Stats
class RestaurantStats(BaseModel):
    diners_last_30_days: int
    total_spent: float
    vouchers_redeemed: int
    total_registered_diners: int


class RevenuePoint(BaseModel):
    date: date
    amount: float


class RedemptionsByType(BaseModel):
    voucher_type_name: str
    count: int
