# backend/modules/loyalty/schemas/voucher_schemas.py

from typing import List, Optional
from datetime import datetime, timezone
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.voucher_models import (
    VoucherCategory,
    CreditSource,
    RedemptionScope,
    CampaignStatus,
    TargetAudience,
)
from .loyalty_schemas import BalanceResponse


def _as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ========== Vouchers ==========

class VoucherResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    diner_id: int
    restaurant_id: int
    branch_id: Optional[int] = None
    voucher_type_id: Optional[int] = None
    title: str
    category: Optional[str] = None
    code: str
    expiry_date: datetime
    generated_at: datetime
    is_redeemed: bool
    redeemed_at: Optional[datetime] = None
    redeemed_branch_id: Optional[int] = None
    bill_id: Optional[str] = None


class DinerVoucherResponse(BaseModel):
    id: int
    restaurant_id: int
    restaurant_name: str
    branch_id: Optional[int] = None
    voucher_type_id: Optional[int] = None
    title: str
    category: Optional[str] = None
    code: str
    expiry_date: datetime
    generated_at: datetime
    is_redeemed: bool
    redeemed_at: Optional[datetime] = None
    status: str


class PresentationResponse(BaseModel):
    """Short-lived code the diner shows to staff"""
    code: str
    expires_at: datetime
    voucher: VoucherResponse


class RedeemCreditRequest(BaseModel):
    voucher_type_id: int
    branch_id: Optional[int] = None


class VoucherIssueResponse(BaseModel):
    voucher: VoucherResponse
    balance: Optional[BalanceResponse] = None


class RedeemVoucherRequest(BaseModel):
    code: str = Field(..., max_length=32)
    bill_id: Optional[str] = Field(None, max_length=64)
    branch_id: Optional[int] = None


class RedemptionResponse(BaseModel):
    success: bool = True
    message: str
    voucher: VoucherResponse
    diner_id: Optional[int] = None
    diner_name: Optional[str] = None
    used_presented_code: bool


# ========== Voucher Types ==========

class VoucherTypeCreate(BaseModel):
    """
    New reward in the catalogue.

    Cross-field rules (value per category, branch lists, expiry lead time)
    are checked by the voucher type service.
    """
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    reward_details: str = Field(..., min_length=1)
    category: VoucherCategory = VoucherCategory.RAND_VALUE
    earning_mode: CreditSource = CreditSource.POINTS
    points_per_currency_override: Optional[int] = None
    value: Optional[Decimal] = None
    free_item_type: Optional[str] = Field(None, max_length=64)
    free_item_description: Optional[str] = None
    redemption_scope: RedemptionScope = RedemptionScope.ALL_BRANCHES
    redeemable_branch_ids: Optional[List[int]] = None
    credits_cost: int = 1
    validity_days: int = 30
    expires_at: Optional[datetime] = None
    is_active: bool = True

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, v):
        return _as_naive_utc(v)


class VoucherTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    reward_details: Optional[str] = None
    category: Optional[VoucherCategory] = None
    earning_mode: Optional[CreditSource] = None
    points_per_currency_override: Optional[int] = None
    value: Optional[Decimal] = None
    free_item_type: Optional[str] = Field(None, max_length=64)
    free_item_description: Optional[str] = None
    redemption_scope: Optional[RedemptionScope] = None
    redeemable_branch_ids: Optional[List[int]] = None
    credits_cost: Optional[int] = None
    validity_days: Optional[int] = None
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, v):
        return _as_naive_utc(v)


class VoucherTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    name: str
    description: str
    reward_details: str
    category: str
    earning_mode: str
    points_per_currency_override: Optional[int] = None
    value: Optional[Decimal] = None
    free_item_type: Optional[str] = None
    free_item_description: Optional[str] = None
    redemption_scope: str
    redeemable_branch_ids: Optional[List[int]] = None
    credits_cost: int
    validity_days: int
    expires_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime


# ========== Campaigns ==========

class CampaignCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    voucher_title: str = Field(..., min_length=1, max_length=200)
    target_audience: TargetAudience = TargetAudience.ALL
    message: Optional[str] = None
    scheduled_for: Optional[datetime] = None

    @field_validator("scheduled_for")
    @classmethod
    def normalize_schedule(cls, v):
        return _as_naive_utc(v)


class CampaignStatusUpdate(BaseModel):
    status: CampaignStatus


class CampaignResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    name: str
    voucher_title: str
    target_audience: str
    message: Optional[str] = None
    status: str
    scheduled_for: Optional[datetime] = None
    created_at: datetime
