# backend/modules/loyalty/services/voucher_type_service.py

from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from core.error_handling import NotFoundError, ConflictError, APIValidationError
from core.mixins import utcnow
from modules.restaurants.models import Branch
from ..models.voucher_models import (
    VoucherType,
    Voucher,
    VoucherCategory,
    RedemptionScope,
)

logger = logging.getLogger(__name__)

MIN_TYPE_LIFETIME = timedelta(days=182)


class VoucherTypeService:
    """Reward catalogue a restaurant offers to its diners"""

    def __init__(self, db: Session):
        self.db = db

    def list_voucher_types(self, restaurant_id: int, active_only: bool = False) -> List[VoucherType]:
        query = self.db.query(VoucherType).filter(VoucherType.restaurant_id == restaurant_id)
        if active_only:
            now = utcnow()
            query = query.filter(VoucherType.is_active.is_(True)).filter(
                (VoucherType.expires_at.is_(None)) | (VoucherType.expires_at > now)
            )
        return query.order_by(VoucherType.created_at, VoucherType.id).all()

    def get_voucher_type(self, restaurant_id: int, voucher_type_id: int) -> VoucherType:
        voucher_type = (
            self.db.query(VoucherType)
            .filter(VoucherType.id == voucher_type_id, VoucherType.restaurant_id == restaurant_id)
            .first()
        )
        if not voucher_type:
            raise NotFoundError("Voucher type", voucher_type_id)
        return voucher_type

    def validate(
        self, restaurant_id: int, data: Dict[str, Any], creating: bool, check_branches: bool = True
    ) -> None:
        """
        Check a full voucher type definition.

        Raises:
            APIValidationError: With every problem found
        """
        errors: Dict[str, str] = {}
        category = data.get("category")

        if data.get("credits_cost") is not None and data["credits_cost"] < 1:
            errors["credits_cost"] = "Credits cost must be at least 1"
        if data.get("validity_days") is not None and data["validity_days"] < 1:
            errors["validity_days"] = "Validity must be at least 1 day"
        if data.get("points_per_currency_override") is not None and not (
            1 <= data["points_per_currency_override"] <= 100
        ):
            errors["points_per_currency_override"] = "Points per currency override must be between 1 and 100"

        expires_at = data.get("expires_at")
        if creating and expires_at is not None and expires_at < utcnow() + MIN_TYPE_LIFETIME:
            errors["expires_at"] = "Expiry date must be at least 6 months in the future"

        value = data.get("value")
        if category == VoucherCategory.PERCENTAGE.value:
            if value is None or not (Decimal("0") < Decimal(value) <= Decimal("100")):
                errors["value"] = "Percentage vouchers need a value between 0 and 100"
        elif category == VoucherCategory.RAND_VALUE.value:
            if value is None or Decimal(value) <= 0:
                errors["value"] = "Rand value vouchers need a positive value"
        elif category == VoucherCategory.FREE_ITEM.value:
            if not (data.get("free_item_description") or "").strip():
                errors["free_item_description"] = "Free item vouchers need an item description"

        if check_branches and data.get("redemption_scope") == RedemptionScope.SPECIFIC_BRANCHES.value:
            branch_ids = data.get("redeemable_branch_ids") or []
            if not branch_ids:
                errors["redeemable_branch_ids"] = "Select at least one branch"
            else:
                valid_ids = {
                    branch_id
                    for (branch_id,) in self.db.query(Branch.id).filter(
                        Branch.restaurant_id == restaurant_id
                    )
                }
                if not set(branch_ids) <= valid_ids:
                    errors["redeemable_branch_ids"] = "One or more branch IDs are invalid for this restaurant"

        if errors:
            raise APIValidationError("Invalid voucher type", errors=errors)

    def _ensure_single_registration_type(
        self, restaurant_id: int, exclude_id: Optional[int] = None
    ) -> None:
        query = self.db.query(VoucherType.id).filter(
            VoucherType.restaurant_id == restaurant_id,
            VoucherType.category == VoucherCategory.REGISTRATION.value,
        )
        if exclude_id is not None:
            query = query.filter(VoucherType.id != exclude_id)
        if query.first():
            raise ConflictError(
                "A registration voucher type already exists for this restaurant",
                details={"restaurant_id": restaurant_id},
            )

    def create_voucher_type(self, restaurant_id: int, data: Dict[str, Any]) -> VoucherType:
        data = self._normalize(data)
        data.setdefault("category", VoucherCategory.RAND_VALUE.value)
        data.setdefault("redemption_scope", RedemptionScope.ALL_BRANCHES.value)

        self.validate(restaurant_id, data, creating=True)
        if data["category"] == VoucherCategory.REGISTRATION.value:
            self._ensure_single_registration_type(restaurant_id)

        if data["redemption_scope"] != RedemptionScope.SPECIFIC_BRANCHES.value:
            data["redeemable_branch_ids"] = None

        voucher_type = VoucherType(restaurant_id=restaurant_id, **data)
        self.db.add(voucher_type)
        self.db.commit()
        self.db.refresh(voucher_type)

        logger.info(f"Created voucher type {voucher_type.id} '{voucher_type.name}' for restaurant {restaurant_id}")
        return voucher_type

    def update_voucher_type(
        self, restaurant_id: int, voucher_type_id: int, updates: Dict[str, Any]
    ) -> VoucherType:
        voucher_type = self.get_voucher_type(restaurant_id, voucher_type_id)
        updates = self._normalize(updates)

        merged = {
            column.name: getattr(voucher_type, column.name)
            for column in VoucherType.__table__.columns
        }
        merged.update(updates)
        # Branch ids are re-checked when the selection changes or the type is reactivated
        check_branches = bool({"redemption_scope", "redeemable_branch_ids"} & updates.keys()) or (
            updates.get("is_active") is True and not voucher_type.is_active
        )
        self.validate(
            restaurant_id, merged, creating="expires_at" in updates, check_branches=check_branches
        )

        if (
            updates.get("category") == VoucherCategory.REGISTRATION.value
            and voucher_type.category != VoucherCategory.REGISTRATION.value
        ):
            self._ensure_single_registration_type(restaurant_id, exclude_id=voucher_type.id)

        if merged.get("redemption_scope") != RedemptionScope.SPECIFIC_BRANCHES.value:
            updates["redeemable_branch_ids"] = None

        for field, value in updates.items():
            setattr(voucher_type, field, value)

        self.db.commit()
        self.db.refresh(voucher_type)
        return voucher_type

    def delete_voucher_type(self, restaurant_id: int, voucher_type_id: int) -> None:
        voucher_type = self.get_voucher_type(restaurant_id, voucher_type_id)

        # Issued vouchers keep their title; detach them from the type
        self.db.query(Voucher).filter(Voucher.voucher_type_id == voucher_type.id).update(
            {Voucher.voucher_type_id: None}, synchronize_session=False
        )
        self.db.delete(voucher_type)
        self.db.commit()
        logger.info(f"Deleted voucher type {voucher_type_id} of restaurant {restaurant_id}")

    @staticmethod
    def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
        return {key: getattr(value, "value", value) for key, value in data.items()}
