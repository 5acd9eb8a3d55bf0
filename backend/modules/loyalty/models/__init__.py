# backend/modules/loyalty/models/__init__.py

from .loyalty_models import PointsBalance, Transaction, ORGANIZATION_SCOPE_KEY
from .voucher_models import (
    VoucherType,
    Voucher,
    Campaign,
    VoucherCategory,
    CreditSource,
    RedemptionScope,
    VoucherStatus,
    CampaignStatus,
    TargetAudience,
)

__all__ = [
    "PointsBalance",
    "Transaction",
    "ORGANIZATION_SCOPE_KEY",
    "VoucherType",
    "Voucher",
    "Campaign",
    "VoucherCategory",
    "CreditSource",
    "RedemptionScope",
    "VoucherStatus",
    "CampaignStatus",
    "TargetAudience",
]
