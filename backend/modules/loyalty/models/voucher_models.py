# backend/modules/loyalty/models/voucher_models.py

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Numeric,
    Text,
    Boolean,
    JSON,
    Index,
    CheckConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from core.database import Base
from core.mixins import TimestampMixin, utcnow


class VoucherCategory(str, Enum):
    """What a voucher gives the diner"""
    RAND_VALUE = "rand_value"      # Fixed amount off the bill
    PERCENTAGE = "percentage"      # Percentage off the bill
    FREE_ITEM = "free_item"        # A free menu item
    REGISTRATION = "registration"  # Welcome voucher, one per diner


class CreditSource(str, Enum):
    """Which credit counter a voucher type is paid from"""
    POINTS = "points"
    VISITS = "visits"


class RedemptionScope(str, Enum):
    ALL_BRANCHES = "all_branches"
    SPECIFIC_BRANCHES = "specific_branches"


class VoucherStatus(str, Enum):
    ACTIVE = "active"
    REDEEMED = "redeemed"
    EXPIRED = "expired"


class CampaignStatus(str, Enum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"


class TargetAudience(str, Enum):
    ALL = "all"
    VIP = "vip"
    NEW = "new"
    LAPSED = "lapsed"


class VoucherType(Base, TimestampMixin):
    """Reward a restaurant offers in exchange for voucher credits"""
    __tablename__ = "voucher_types"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(
        Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    reward_details = Column(Text, nullable=False)
    category = Column(String(32), nullable=False, default=VoucherCategory.RAND_VALUE.value)
    earning_mode = Column(String(16), nullable=False, default=CreditSource.POINTS.value)
    points_per_currency_override = Column(Integer, nullable=True)
    value = Column(Numeric(10, 2), nullable=True)
    free_item_type = Column(String(64), nullable=True)
    free_item_description = Column(Text, nullable=True)
    redemption_scope = Column(String(32), nullable=False, default=RedemptionScope.ALL_BRANCHES.value)
    redeemable_branch_ids = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    credits_cost = Column(Integer, nullable=False, default=1)
    validity_days = Column(Integer, nullable=False, default=30)
    expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    __table_args__ = (
        CheckConstraint("credits_cost >= 1", name="credits_cost_positive"),
        CheckConstraint("validity_days >= 1", name="validity_days_positive"),
        Index("ix_voucher_types_restaurant_active", "restaurant_id", "is_active"),
    )

    @property
    def is_registration(self) -> bool:
        return self.category == VoucherCategory.REGISTRATION.value

    def is_available(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return bool(self.is_active) and (self.expires_at is None or self.expires_at > now)

    def restricted_branch_ids(self) -> Optional[list]:
        if self.redemption_scope == RedemptionScope.SPECIFIC_BRANCHES.value:
            return list(self.redeemable_branch_ids or [])
        return None

    def __repr__(self):
        return f"<VoucherType(id={self.id}, name='{self.name}', category='{self.category}')>"


class Voucher(Base, TimestampMixin):
    """A single issued voucher held by a diner"""
    __tablename__ = "vouchers"

    id = Column(Integer, primary_key=True, index=True)
    diner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    restaurant_id = Column(
        Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    branch_id = Column(Integer, ForeignKey("branches.id", ondelete="SET NULL"), nullable=True)
    voucher_type_id = Column(
        Integer, ForeignKey("voucher_types.id", ondelete="SET NULL"), nullable=True, index=True
    )
    title = Column(String(200), nullable=False)
    category = Column(String(32), nullable=True)

    # Long-lived code printed on the voucher
    code = Column(String(32), unique=True, nullable=False, index=True)

    expiry_date = Column(DateTime, nullable=False)
    generated_at = Column(DateTime, default=utcnow, nullable=False)
    is_redeemed = Column(Boolean, nullable=False, default=False)
    redeemed_at = Column(DateTime, nullable=True)
    redeemed_branch_id = Column(Integer, ForeignKey("branches.id", ondelete="SET NULL"), nullable=True)
    bill_id = Column(String(64), nullable=True)

    voucher_type = relationship("VoucherType")

    __table_args__ = (
        Index("ix_vouchers_restaurant_bill", "restaurant_id", "bill_id"),
        Index("ix_vouchers_diner_redeemed", "diner_id", "is_redeemed"),
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expiry_date

    def status(self, now: Optional[datetime] = None) -> VoucherStatus:
        if self.is_redeemed:
            return VoucherStatus.REDEEMED
        if self.is_expired(now):
            return VoucherStatus.EXPIRED
        return VoucherStatus.ACTIVE

    def __repr__(self):
        return f"<Voucher(id={self.id}, code='{self.code}', redeemed={self.is_redeemed})>"


class Campaign(Base, TimestampMixin):
    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(
        Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)
    voucher_title = Column(String(200), nullable=False)
    target_audience = Column(String(16), nullable=False, default=TargetAudience.ALL.value)
    message = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default=CampaignStatus.SCHEDULED.value)
    scheduled_for = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Campaign(id={self.id}, name='{self.name}', status='{self.status}')>"
