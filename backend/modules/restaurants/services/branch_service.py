# backend/modules/restaurants/services/branch_service.py

from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.error_handling import NotFoundError, ConflictError
from modules.loyalty.models import PointsBalance, Voucher, VoucherType, RedemptionScope
from ..models.restaurant_models import Branch, Restaurant

logger = logging.getLogger(__name__)


class BranchService:
    def __init__(self, db: Session):
        self.db = db

    def list_branches(self, restaurant_id: int) -> List[Branch]:
        return (
            self.db.query(Branch)
            .filter(Branch.restaurant_id == restaurant_id)
            .order_by(Branch.id)
            .all()
        )

    def get_branch(self, restaurant_id: int, branch_id: int) -> Branch:
        branch = (
            self.db.query(Branch)
            .filter(Branch.id == branch_id, Branch.restaurant_id == restaurant_id)
            .first()
        )
        if not branch:
            raise NotFoundError("Branch", branch_id)
        return branch

    def get_default_branch(self, restaurant_id: int) -> Optional[Branch]:
        return (
            self.db.query(Branch)
            .filter(Branch.restaurant_id == restaurant_id, Branch.is_default.is_(True))
            .first()
        )

    def validate_branch_ids(self, restaurant_id: int, branch_ids: List[int]) -> bool:
        valid_ids = {branch.id for branch in self.list_branches(restaurant_id)}
        return set(branch_ids) <= valid_ids

    def create_branch(
        self,
        restaurant_id: int,
        name: str,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        is_default: bool = False,
    ) -> Branch:
        if not self.db.query(Restaurant.id).filter(Restaurant.id == restaurant_id).first():
            raise NotFoundError("Restaurant", restaurant_id)

        # The first branch of a restaurant is always its default
        make_default = is_default or self.get_default_branch(restaurant_id) is None

        branch = Branch(
            restaurant_id=restaurant_id,
            name=name,
            address=address,
            phone=phone,
            is_default=False,
            is_active=True,
        )
        self.db.add(branch)
        self.db.flush()

        if make_default:
            self._set_default(restaurant_id, branch.id)

        self.db.commit()
        self.db.refresh(branch)
        logger.info(f"Created branch {branch.id} '{name}' for restaurant {restaurant_id}")
        return branch

    def update_branch(self, restaurant_id: int, branch_id: int, updates: Dict[str, Any]) -> Branch:
        branch = self.get_branch(restaurant_id, branch_id)
        make_default = updates.pop("is_default", None)

        if make_default is False and branch.is_default:
            raise ConflictError(
                "Choose another default branch instead of unsetting the current one"
            )

        for field, value in updates.items():
            setattr(branch, field, value)

        if make_default:
            self._set_default(restaurant_id, branch.id)

        self.db.commit()
        self.db.refresh(branch)
        return branch

    def set_default_branch(self, restaurant_id: int, branch_id: int) -> Branch:
        branch = self.get_branch(restaurant_id, branch_id)
        self._set_default(restaurant_id, branch.id)
        self.db.commit()
        self.db.refresh(branch)
        return branch

    def delete_branch(self, restaurant_id: int, branch_id: int) -> None:
        branch = self.get_branch(restaurant_id, branch_id)
        if branch.is_default:
            raise ConflictError(
                "Cannot delete the default branch", details={"branch_id": branch_id}
            )

        balances = (
            self.db.query(func.count(PointsBalance.id))
            .filter(PointsBalance.scope_key == branch_id)
            .scalar()
        )
        open_vouchers = (
            self.db.query(func.count(Voucher.id))
            .filter(Voucher.branch_id == branch_id, Voucher.is_redeemed.is_(False))
            .scalar()
        )
        if balances or open_vouchers:
            raise ConflictError(
                "Cannot delete a branch that still holds diner balances or unredeemed vouchers",
                details={
                    "branch_id": branch_id,
                    "balances": balances,
                    "unredeemed_vouchers": open_vouchers,
                },
            )

        restricted_types = (
            self.db.query(VoucherType)
            .filter(
                VoucherType.restaurant_id == restaurant_id,
                VoucherType.redemption_scope == RedemptionScope.SPECIFIC_BRANCHES.value,
            )
            .all()
        )
        for voucher_type in restricted_types:
            remaining = [
                bid for bid in (voucher_type.redeemable_branch_ids or []) if bid != branch_id
            ]
            if len(remaining) == len(voucher_type.redeemable_branch_ids or []):
                continue
            voucher_type.redeemable_branch_ids = remaining
            if not remaining:
                voucher_type.is_active = False
                logger.info(
                    f"Deactivated voucher type {voucher_type.id}: its last redeemable branch was deleted"
                )

        self.db.delete(branch)
        self.db.commit()
        logger.info(f"Deleted branch {branch_id} of restaurant {restaurant_id}")

    def _set_default(self, restaurant_id: int, branch_id: int) -> None:
        self.db.query(Branch).filter(
            Branch.restaurant_id == restaurant_id, Branch.id != branch_id
        ).update({Branch.is_default: False}, synchronize_session="fetch")
        self.db.query(Branch).filter(Branch.id == branch_id).update(
            {Branch.is_default: True}, synchronize_session="fetch"
        )
