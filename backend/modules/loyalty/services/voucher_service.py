# backend/modules/loyalty/services/voucher_service.py

"""
Voucher presentation at the till and redemption by staff.

A diner selecting a voucher gets a fresh short numeric code that is valid
for a few minutes. Staff redeem with that presented code; the long-lived
voucher code is accepted as well unless disabled in settings.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from core.config import settings
from core.error_handling import APIValidationError, ConflictError, ExpiredError, NotFoundError
from core.mixins import utcnow
from modules.auth.models import User
from modules.restaurants.models import Restaurant, Scope
from ..exceptions import (
    VoucherNotFoundError,
    CodeExpiredError,
    VoucherExpiredError,
    AlreadyRedeemedError,
    WrongBranchError,
    WrongRestaurantError,
)
from ..models.voucher_models import Voucher
from .code_generator import presentation_code

logger = logging.getLogger(__name__)


@dataclass
class PresentationResult:
    code: str
    voucher: Voucher
    expires_at: datetime


@dataclass
class RedemptionResult:
    voucher: Voucher
    diner: Optional[User]
    used_presented_code: bool

    @property
    def message(self) -> str:
        return f'Voucher "{self.voucher.title}" redeemed successfully!'


def check_voucher_status(voucher: Voucher, now: Optional[datetime] = None) -> Tuple[bool, Optional[str]]:
    """(valid, reason) for a voucher at the given moment."""
    if voucher.is_redeemed:
        return False, "Voucher has already been redeemed"
    if voucher.is_expired(now):
        return False, "Voucher has expired"
    return True, None


class VoucherService:
    def __init__(self, db: Session):
        self.db = db
        self.presentation_window = timedelta(minutes=settings.voucher_presentation_window_minutes)

    # ========== Diner Side ==========

    def get_diner_vouchers(self, diner_id: int) -> List[Dict[str, Any]]:
        now = utcnow()
        rows = (
            self.db.query(Voucher, Restaurant.name)
            .join(Restaurant, Voucher.restaurant_id == Restaurant.id)
            .filter(Voucher.diner_id == diner_id)
            .order_by(Voucher.generated_at.desc(), Voucher.id.desc())
            .all()
        )
        return [
            {
                "id": voucher.id,
                "restaurant_id": voucher.restaurant_id,
                "restaurant_name": restaurant_name,
                "branch_id": voucher.branch_id,
                "voucher_type_id": voucher.voucher_type_id,
                "title": voucher.title,
                "category": voucher.category,
                "code": voucher.code,
                "expiry_date": voucher.expiry_date,
                "generated_at": voucher.generated_at,
                "is_redeemed": voucher.is_redeemed,
                "redeemed_at": voucher.redeemed_at,
                "status": voucher.status(now).value,
            }
            for voucher, restaurant_name in rows
        ]

    def select_voucher_for_presentation(self, diner_id: int, voucher_id: int) -> PresentationResult:
        """
        Stamp a short-lived code on the diner for the chosen voucher.

        Selecting again replaces the previous code.

        Raises:
            NotFoundError: Voucher doesn't exist or belongs to someone else
            ConflictError: Voucher already redeemed
            ExpiredError: Voucher past its expiry date
        """
        now = utcnow()
        voucher = (
            self.db.query(Voucher)
            .filter(Voucher.id == voucher_id, Voucher.diner_id == diner_id)
            .first()
        )
        if not voucher:
            raise NotFoundError("Voucher", voucher_id)
        if voucher.is_redeemed:
            raise ConflictError(
                "Voucher has already been redeemed", details={"reason": "already_redeemed"}
            )
        if voucher.is_expired(now):
            raise ExpiredError("Voucher has expired", details={"reason": "voucher_expired"})

        diner = self.db.query(User).filter(User.id == diner_id).first()
        if not diner:
            raise NotFoundError("Diner", diner_id)

        diner.active_voucher_id = voucher.id
        diner.active_voucher_code = self._unused_presentation_code(now)
        diner.active_voucher_code_set_at = now
        self.db.commit()
        self.db.refresh(diner)

        logger.info(f"Diner {diner_id} presenting voucher {voucher.id}")
        return PresentationResult(
            code=diner.active_voucher_code,
            voucher=voucher,
            expires_at=now + self.presentation_window,
        )

    def _unused_presentation_code(self, now: datetime) -> str:
        window_start = now - self.presentation_window
        for _ in range(settings.voucher_code_max_attempts):
            code = presentation_code(settings.presentation_code_length)
            in_use = (
                self.db.query(User.id)
                .filter(
                    User.active_voucher_code == code,
                    User.active_voucher_code_set_at >= window_start,
                )
                .first()
            )
            if not in_use:
                return code
        raise ConflictError("Could not generate a presentation code, please try again")

    # ========== Staff Side ==========

    def _resolve_code(self, code: str, now: datetime) -> Tuple[Voucher, Optional[User], bool]:
        """
        Find the voucher behind a code typed in by staff.

        Returns:
            (voucher, presenting diner or None, whether the presented code was used)
        """
        presenter = (
            self.db.query(User)
            .filter(User.active_voucher_code == code)
            .order_by(User.active_voucher_code_set_at.desc())
            .first()
        )
        if presenter and presenter.active_voucher_id:
            set_at = presenter.active_voucher_code_set_at
            if set_at is None or now - set_at > self.presentation_window:
                raise CodeExpiredError(
                    "This code has expired. Ask the diner to select the voucher again.",
                    details={"window_minutes": settings.voucher_presentation_window_minutes},
                )
            voucher = self.db.query(Voucher).filter(Voucher.id == presenter.active_voucher_id).first()
            if voucher:
                return voucher, presenter, True

        if settings.allow_voucher_code_redemption:
            voucher = self.db.query(Voucher).filter(Voucher.code == code.upper()).first()
            if voucher:
                return voucher, None, False

        raise VoucherNotFoundError("Invalid voucher code")

    def allowed_branch_ids(self, voucher: Voucher, restaurant: Restaurant) -> Optional[List[int]]:
        """Branches a voucher may be redeemed at, or None when unrestricted."""
        voucher_type = voucher.voucher_type
        if voucher_type is not None:
            restricted = voucher_type.restricted_branch_ids()
            if restricted is not None:
                return restricted
        if restaurant.voucher_scope == Scope.BRANCH.value and voucher.branch_id is not None:
            return [voucher.branch_id]
        return None

    def redeem_voucher_by_code(
        self,
        restaurant_id: int,
        code: str,
        bill_id: Optional[str] = None,
        branch_id: Optional[int] = None,
    ) -> RedemptionResult:
        """
        Redeem a presented (or voucher) code at a restaurant.

        Every failure raises a RedemptionError subclass with a ``reason``
        and leaves the voucher untouched. The final write is a conditional
        update, so two tills redeeming the same voucher can't both succeed.
        """
        code = (code or "").strip()
        if not code:
            raise APIValidationError("Voucher code is required", errors={"code": "required"})

        restaurant = self.db.query(Restaurant).filter(Restaurant.id == restaurant_id).first()
        if not restaurant:
            raise NotFoundError("Restaurant", restaurant_id)

        now = utcnow()
        voucher, presenter, used_presented_code = self._resolve_code(code, now)

        if voucher.restaurant_id != restaurant_id:
            raise WrongRestaurantError("This voucher is not valid at this restaurant")
        if voucher.is_redeemed:
            raise AlreadyRedeemedError(
                "Voucher has already been redeemed",
                details={"redeemed_at": voucher.redeemed_at.isoformat() if voucher.redeemed_at else None},
            )
        if voucher.is_expired(now):
            raise VoucherExpiredError(
                "Voucher has expired", details={"expiry_date": voucher.expiry_date.isoformat()}
            )

        allowed = self.allowed_branch_ids(voucher, restaurant)
        if allowed is not None and branch_id not in allowed:
            raise WrongBranchError(
                "This voucher cannot be redeemed at this branch",
                details={"branch_id": branch_id, "allowed_branch_ids": allowed},
            )

        updated = (
            self.db.query(Voucher)
            .filter(Voucher.id == voucher.id, Voucher.is_redeemed.is_(False))
            .update(
                {
                    Voucher.is_redeemed: True,
                    Voucher.redeemed_at: now,
                    Voucher.bill_id: bill_id or None,
                    Voucher.redeemed_branch_id: branch_id,
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            self.db.rollback()
            raise AlreadyRedeemedError("Voucher has already been redeemed")

        diner = presenter or self.db.query(User).filter(User.id == voucher.diner_id).first()
        if diner is not None and diner.active_voucher_id == voucher.id:
            diner.clear_presentation()

        self.db.commit()
        self.db.refresh(voucher)

        logger.info(
            f"Redeemed voucher {voucher.id} at restaurant {restaurant_id}"
            f"{f' branch {branch_id}' if branch_id else ''} (bill {bill_id or '-'})"
        )
        return RedemptionResult(voucher=voucher, diner=diner, used_presented_code=used_presented_code)

