# backend/tests/factories/loyalty.py

from datetime import timedelta
from decimal import Decimal

from factory import Sequence, LazyFunction

from core.mixins import utcnow
from modules.invitations.models import DinerInvitation, InvitationStatus
from modules.loyalty.models import (
    PointsBalance,
    VoucherType,
    Voucher,
    VoucherCategory,
    CreditSource,
    RedemptionScope,
    ORGANIZATION_SCOPE_KEY,
)
from .base import BaseFactory


class PointsBalanceFactory(BaseFactory):
    class Meta:
        model = PointsBalance

    branch_id = None
    scope_key = ORGANIZATION_SCOPE_KEY
    current_points = 0
    total_points_earned = 0
    points_credits = 0
    current_visits = 0
    total_visits = 0
    visit_credits = 0
    total_voucher_credits_earned = 0
    total_vouchers_generated = 0


class VoucherTypeFactory(BaseFactory):
    class Meta:
        model = VoucherType

    name = Sequence(lambda n: f"R50 off #{n}")
    description = "R50 off your next bill"
    reward_details = "Valid on food only"
    category = VoucherCategory.RAND_VALUE.value
    earning_mode = CreditSource.POINTS.value
    value = Decimal("50.00")
    redemption_scope = RedemptionScope.ALL_BRANCHES.value
    credits_cost = 1
    validity_days = 30
    is_active = True


class VoucherFactory(BaseFactory):
    class Meta:
        model = Voucher

    title = "R50 off"
    category = VoucherCategory.RAND_VALUE.value
    code = Sequence(lambda n: f"TEST-{n:06d}")
    expiry_date = LazyFunction(lambda: utcnow() + timedelta(days=30))
    generated_at = LazyFunction(utcnow)
    is_redeemed = False


class DinerInvitationFactory(BaseFactory):
    class Meta:
        model = DinerInvitation

    phone = Sequence(lambda n: f"0839{n:06d}")
    token = Sequence(lambda n: f"invite-token-{n}")
    status = InvitationStatus.PENDING.value
    expires_at = LazyFunction(lambda: utcnow() + timedelta(days=7))
