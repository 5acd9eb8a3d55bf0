# backend/modules/loyalty/services/loyalty_service.py

"""
Core service for loyalty accrual and voucher issuance.
"""

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Any, Dict, List, Optional, Tuple
import logging
import re

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.error_handling import NotFoundError, APIValidationError, ConflictError
from core.mixins import utcnow
from modules.auth.models import User, UserType
from modules.restaurants.models import Restaurant, Branch, Scope
from ..exceptions import (
    InsufficientCreditsError,
    DuplicateRegistrationVoucherError,
    VoucherTypeUnavailableError,
)
from ..models.loyalty_models import PointsBalance, Transaction, ORGANIZATION_SCOPE_KEY
from ..models.voucher_models import (
    VoucherType,
    Voucher,
    VoucherCategory,
    CreditSource,
)
from .code_generator import VoucherCodeGenerator

logger = logging.getLogger(__name__)

PHONE_STRIP_PATTERN = re.compile(r"[\s\-()]")


# ========== Pure Calculations ==========

def parse_amount(value: Any) -> Decimal:
    """
    Convert a spend amount to Decimal.

    Raises:
        APIValidationError: If the value is not a finite, non-negative number
    """
    if isinstance(value, bool) or value is None:
        raise APIValidationError("Amount spent must be a number", errors={"amount_spent": value})
    try:
        amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        raise APIValidationError("Amount spent must be a number", errors={"amount_spent": value})

    if not amount.is_finite():
        raise APIValidationError("Amount spent must be a number", errors={"amount_spent": str(value)})
    if amount < 0:
        raise APIValidationError(
            "Amount spent cannot be negative", errors={"amount_spent": str(value)}
        )
    return amount


def calculate_points_earned(amount_spent: Decimal, points_per_currency: int) -> int:
    """floor(amount * rate), computed in Decimal so cents never round up."""
    points = (Decimal(amount_spent) * Decimal(points_per_currency)).to_integral_value(
        rounding=ROUND_FLOOR
    )
    return int(points)


def bank_credits(current: int, threshold: int) -> Tuple[int, int]:
    """
    Move every full threshold out of a running counter.

    Returns:
        (credits earned, remainder left on the counter)
    """
    if threshold <= 0:
        raise APIValidationError("Threshold must be positive", errors={"threshold": threshold})
    return divmod(current, threshold)


def points_until_next_credit(current_points: int, threshold: int) -> int:
    return max(0, threshold - (current_points % threshold))


def normalize_phone(phone: str) -> str:
    return PHONE_STRIP_PATTERN.sub("", (phone or "").strip())


@dataclass
class TransactionResult:
    transaction: Transaction
    balance: PointsBalance
    points_earned: int
    points_credits_earned: int
    visit_credits_earned: int
    points_until_next_credit: Optional[int]
    visits_until_next_credit: Optional[int]

    @property
    def credits_earned(self) -> int:
        return self.points_credits_earned + self.visit_credits_earned


@dataclass
class VoucherIssueResult:
    voucher: Voucher
    balance: Optional[PointsBalance]


class LoyaltyService:
    """Accrual of points and visits, and conversion of credits into vouchers"""

    def __init__(self, db: Session):
        self.db = db
        self.code_generator = VoucherCodeGenerator(
            exists=self._code_exists,
            length=settings.voucher_code_length,
            max_attempts=settings.voucher_code_max_attempts,
        )

    # ========== Lookups ==========

    def _get_diner(self, diner_id: int) -> User:
        diner = self.db.query(User).filter(User.id == diner_id).first()
        if not diner or diner.user_type != UserType.DINER.value:
            raise NotFoundError("Diner", diner_id)
        return diner

    def _get_restaurant(self, restaurant_id: int) -> Restaurant:
        restaurant = self.db.query(Restaurant).filter(Restaurant.id == restaurant_id).first()
        if not restaurant:
            raise NotFoundError("Restaurant", restaurant_id)
        return restaurant

    def _get_branch(self, restaurant_id: int, branch_id: int) -> Branch:
        branch = (
            self.db.query(Branch)
            .filter(Branch.id == branch_id, Branch.restaurant_id == restaurant_id)
            .first()
        )
        if not branch:
            raise NotFoundError("Branch", branch_id)
        return branch

    def _code_exists(self, code: str) -> bool:
        return self.db.query(Voucher.id).filter(Voucher.code == code).first() is not None

    # ========== Balances ==========

    def resolve_balance_branch_id(
        self, restaurant: Restaurant, branch_id: Optional[int]
    ) -> Optional[int]:
        """
        Branch a balance row is keyed on, or None for the organization row.

        Branch-scoped restaurants fall back to their default branch when the
        caller doesn't name one.
        """
        if restaurant.loyalty_scope != Scope.BRANCH.value:
            return None
        if branch_id is not None:
            return branch_id
        default_branch = restaurant.default_branch
        return default_branch.id if default_branch else None

    def _balance_query(self, diner_id: int, restaurant_id: int, branch_id: Optional[int]):
        return self.db.query(PointsBalance).filter(
            PointsBalance.diner_id == diner_id,
            PointsBalance.restaurant_id == restaurant_id,
            PointsBalance.scope_key == (branch_id or ORGANIZATION_SCOPE_KEY),
        )

    def get_balance(
        self, diner_id: int, restaurant_id: int, branch_id: Optional[int] = None, lock: bool = False
    ) -> Optional[PointsBalance]:
        query = self._balance_query(diner_id, restaurant_id, branch_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get_or_create_balance(
        self, diner_id: int, restaurant_id: int, branch_id: Optional[int] = None
    ) -> PointsBalance:
        """
        Load the balance row locked for update, creating it when missing.

        A concurrent request creating the same row loses on the unique
        constraint; the loser re-reads the winner's row.
        """
        balance = self.get_balance(diner_id, restaurant_id, branch_id, lock=True)
        if balance:
            return balance

        balance = PointsBalance(
            diner_id=diner_id,
            restaurant_id=restaurant_id,
            branch_id=branch_id,
            scope_key=branch_id or ORGANIZATION_SCOPE_KEY,
            current_points=0,
            total_points_earned=0,
            points_credits=0,
            current_visits=0,
            total_visits=0,
            visit_credits=0,
            total_voucher_credits_earned=0,
            total_vouchers_generated=0,
        )
        try:
            with self.db.begin_nested():
                self.db.add(balance)
        except IntegrityError:
            logger.info(
                f"Balance for diner {diner_id} at restaurant {restaurant_id} created concurrently"
            )
            balance = self.get_balance(diner_id, restaurant_id, branch_id, lock=True)
            if balance is None:
                raise
        return balance

    def get_effective_points_rate(self, restaurant: Restaurant) -> int:
        """
        Points per currency unit: the highest override among the restaurant's
        active points-earning voucher types, else the restaurant's own rate.
        """
        override = (
            self.db.query(func.max(VoucherType.points_per_currency_override))
            .filter(
                VoucherType.restaurant_id == restaurant.id,
                VoucherType.is_active.is_(True),
                VoucherType.earning_mode == CreditSource.POINTS.value,
                VoucherType.points_per_currency_override.isnot(None),
            )
            .scalar()
        )
        return int(override) if override else restaurant.points_per_currency

    def get_balances_for_diner(self, diner_id: int) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(PointsBalance, Restaurant, Branch)
            .join(Restaurant, PointsBalance.restaurant_id == Restaurant.id)
            .outerjoin(Branch, PointsBalance.branch_id == Branch.id)
            .filter(PointsBalance.diner_id == diner_id)
            .order_by(Restaurant.name, PointsBalance.scope_key)
            .all()
        )
        return [
            {
                "id": balance.id,
                "diner_id": balance.diner_id,
                "restaurant_id": balance.restaurant_id,
                "branch_id": balance.branch_id,
                "branch_name": branch.name if branch else None,
                "current_points": balance.current_points,
                "total_points_earned": balance.total_points_earned,
                "current_visits": balance.current_visits,
                "total_visits": balance.total_visits,
                "points_credits": balance.points_credits,
                "visit_credits": balance.visit_credits,
                "available_voucher_credits": balance.available_voucher_credits,
                "total_voucher_credits_earned": balance.total_voucher_credits_earned,
                "total_vouchers_generated": balance.total_vouchers_generated,
                "restaurant_name": restaurant.name,
                "restaurant_color": restaurant.color,
                "voucher_earning_mode": restaurant.voucher_earning_mode,
                "points_per_currency": self.get_effective_points_rate(restaurant),
                "points_threshold": restaurant.points_threshold,
                "visit_threshold": restaurant.visit_threshold,
                "points_until_next_credit": points_until_next_credit(
                    balance.current_points, restaurant.points_threshold
                ),
            }
            for balance, restaurant, branch in rows
        ]

    # ========== Accrual ==========

    def apply_points(self, balance: PointsBalance, restaurant: Restaurant, amount: Decimal) -> Tuple[int, int]:
        """
        Add points for a spend and bank whole thresholds as credits.

        Returns:
            (points earned, credits earned)
        """
        points_earned = calculate_points_earned(amount, self.get_effective_points_rate(restaurant))
        balance.total_points_earned += points_earned

        credits, remainder = bank_credits(
            balance.current_points + points_earned, restaurant.points_threshold
        )
        balance.current_points = remainder
        balance.points_credits += credits
        return points_earned, credits

    def apply_visit(self, balance: PointsBalance, restaurant: Restaurant) -> int:
        """Count one visit and bank a visit credit each time the threshold is reached."""
        balance.total_visits += 1
        credits, remainder = bank_credits(balance.current_visits + 1, restaurant.visit_threshold)
        balance.current_visits = remainder
        balance.visit_credits += credits
        return credits

    def record_transaction(
        self,
        diner_id: int,
        restaurant_id: int,
        amount_spent: Any,
        bill_id: Optional[str] = None,
        branch_id: Optional[int] = None,
    ) -> TransactionResult:
        """Record a spend and update the diner's balance.

        The balance row is locked for the duration of the database
        transaction so concurrent spends for the same diner serialize.

        Raises:
            APIValidationError: Negative or non-numeric amount
            NotFoundError: Diner, restaurant or branch doesn't exist
        """
        amount = parse_amount(amount_spent)
        diner = self._get_diner(diner_id)
        restaurant = self._get_restaurant(restaurant_id)
        if branch_id is not None:
            self._get_branch(restaurant_id, branch_id)

        balance_branch_id = self.resolve_balance_branch_id(restaurant, branch_id)

        try:
            balance = self.get_or_create_balance(diner.id, restaurant.id, balance_branch_id)

            points_earned = points_credits = visit_credits = 0
            if restaurant.earns_points:
                points_earned, points_credits = self.apply_points(balance, restaurant, amount)
            if restaurant.earns_visits:
                visit_credits = self.apply_visit(balance, restaurant)
            balance.total_voucher_credits_earned += points_credits + visit_credits

            transaction = Transaction(
                diner_id=diner.id,
                restaurant_id=restaurant.id,
                branch_id=branch_id if branch_id is not None else balance_branch_id,
                bill_id=bill_id or None,
                amount_spent=amount,
                points_earned=points_earned,
                visit_recorded=restaurant.earns_visits,
                transaction_date=utcnow(),
            )
            self.db.add(transaction)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(balance)
        self.db.refresh(transaction)

        if points_credits or visit_credits:
            logger.info(
                f"Diner {diner.id} earned {points_credits} points credit(s) and "
                f"{visit_credits} visit credit(s) at restaurant {restaurant.id}"
            )

        return TransactionResult(
            transaction=transaction,
            balance=balance,
            points_earned=points_earned,
            points_credits_earned=points_credits,
            visit_credits_earned=visit_credits,
            points_until_next_credit=(
                points_until_next_credit(balance.current_points, restaurant.points_threshold)
                if restaurant.earns_points else None
            ),
            visits_until_next_credit=(
                restaurant.visit_threshold - balance.current_visits
                if restaurant.earns_visits else None
            ),
        )

    def record_transaction_by_phone(
        self,
        restaurant_id: int,
        phone: str,
        amount_spent: Any,
        bill_id: Optional[str] = None,
        branch_id: Optional[int] = None,
    ) -> TransactionResult:
        normalized = normalize_phone(phone)
        if not normalized:
            raise APIValidationError("Phone number is required", errors={"phone": phone})

        user = self.db.query(User).filter(User.phone == normalized).first()
        if not user:
            raise NotFoundError("Diner", normalized)
        if user.user_type != UserType.DINER.value:
            raise APIValidationError("This phone number does not belong to a diner account")

        return self.record_transaction(user.id, restaurant_id, amount_spent, bill_id, branch_id)

    def get_diner_transactions(
        self, diner_id: int, restaurant_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        query = (
            self.db.query(Transaction, Restaurant.name)
            .join(Restaurant, Transaction.restaurant_id == Restaurant.id)
            .filter(Transaction.diner_id == diner_id)
        )
        if restaurant_id is not None:
            query = query.filter(Transaction.restaurant_id == restaurant_id)

        return [
            {
                "id": transaction.id,
                "restaurant_id": transaction.restaurant_id,
                "restaurant_name": restaurant_name,
                "branch_id": transaction.branch_id,
                "bill_id": transaction.bill_id,
                "amount_spent": transaction.amount_spent,
                "points_earned": transaction.points_earned,
                "visit_recorded": transaction.visit_recorded,
                "transaction_date": transaction.transaction_date,
            }
            for transaction, restaurant_name in query.order_by(
                Transaction.transaction_date.desc(), Transaction.id.desc()
            )
        ]

    def get_restaurant_transactions(
        self, restaurant_id: int, branch_id: Optional[int] = None, days: int = 30
    ) -> List[Dict[str, Any]]:
        since = utcnow() - timedelta(days=days)
        query = (
            self.db.query(Transaction, User)
            .join(User, Transaction.diner_id == User.id)
            .filter(Transaction.restaurant_id == restaurant_id, Transaction.transaction_date >= since)
        )
        if branch_id is not None:
            query = query.filter(Transaction.branch_id == branch_id)

        return [
            {
                "id": transaction.id,
                "diner_id": transaction.diner_id,
                "diner_name": user.full_name or None,
                "diner_phone": user.phone,
                "branch_id": transaction.branch_id,
                "bill_id": transaction.bill_id,
                "amount_spent": transaction.amount_spent,
                "points_earned": transaction.points_earned,
                "visit_recorded": transaction.visit_recorded,
                "transaction_date": transaction.transaction_date,
            }
            for transaction, user in query.order_by(
                Transaction.transaction_date.desc(), Transaction.id.desc()
            )
        ]

    # ========== Voucher Issuance ==========

    def redeem_voucher_credit(
        self,
        diner_id: int,
        restaurant_id: int,
        voucher_type_id: int,
        branch_id: Optional[int] = None,
    ) -> VoucherIssueResult:
        """
        Spend voucher credits on a voucher type and mint the voucher.

        Credits are taken from the counter matching the type's earning mode.
        Nothing is written when the diner cannot afford the type.

        Raises:
            NotFoundError: Unknown diner, restaurant or voucher type
            VoucherTypeUnavailableError: Type inactive or past its end date
            InsufficientCreditsError: Not enough credits of the right kind
            DuplicateRegistrationVoucherError: Welcome voucher already issued
        """
        diner = self._get_diner(diner_id)
        restaurant = self._get_restaurant(restaurant_id)
        voucher_type = (
            self.db.query(VoucherType)
            .filter(VoucherType.id == voucher_type_id, VoucherType.restaurant_id == restaurant_id)
            .first()
        )
        if not voucher_type:
            raise NotFoundError("Voucher type", voucher_type_id)
        if branch_id is not None:
            self._get_branch(restaurant_id, branch_id)

        if not voucher_type.is_available():
            raise VoucherTypeUnavailableError(
                "This voucher type is no longer available",
                details={"voucher_type_id": voucher_type_id},
            )
        if voucher_type.is_registration and self.has_registration_voucher(diner.id, restaurant.id):
            raise DuplicateRegistrationVoucherError(
                "A welcome voucher has already been issued for this restaurant"
            )

        balance_branch_id = self.resolve_balance_branch_id(restaurant, branch_id)

        try:
            balance = self.get_balance(diner.id, restaurant.id, balance_branch_id, lock=True)
            source = voucher_type.earning_mode
            counter = "visit_credits" if source == CreditSource.VISITS.value else "points_credits"
            available = getattr(balance, counter) if balance else 0

            if available < voucher_type.credits_cost:
                raise InsufficientCreditsError(voucher_type.credits_cost, available, source)

            setattr(balance, counter, available - voucher_type.credits_cost)
            balance.total_vouchers_generated += 1

            voucher = self._mint_voucher(
                diner.id,
                restaurant,
                voucher_type,
                branch_id if branch_id is not None else balance_branch_id,
            )
            self.db.commit()
        except (SQLAlchemyError, InsufficientCreditsError, ConflictError):
            self.db.rollback()
            raise

        self.db.refresh(balance)
        self.db.refresh(voucher)
        logger.info(
            f"Issued voucher {voucher.code} ({voucher_type.name}) to diner {diner.id} "
            f"for {voucher_type.credits_cost} {source} credit(s)"
        )
        return VoucherIssueResult(voucher=voucher, balance=balance)

    def has_registration_voucher(self, diner_id: int, restaurant_id: int) -> bool:
        return (
            self.db.query(Voucher.id)
            .filter(
                Voucher.diner_id == diner_id,
                Voucher.restaurant_id == restaurant_id,
                Voucher.category == VoucherCategory.REGISTRATION.value,
            )
            .first()
            is not None
        )

    def issue_registration_voucher(
        self, diner_id: int, restaurant_id: int, commit: bool = True
    ) -> Optional[Voucher]:
        """Give a newly registered diner the restaurant's welcome voucher, if it has one."""
        voucher_type = (
            self.db.query(VoucherType)
            .filter(
                VoucherType.restaurant_id == restaurant_id,
                VoucherType.category == VoucherCategory.REGISTRATION.value,
                VoucherType.is_active.is_(True),
            )
            .first()
        )
        if not voucher_type or not voucher_type.is_available():
            return None
        if self.has_registration_voucher(diner_id, restaurant_id):
            return None

        restaurant = self._get_restaurant(restaurant_id)
        voucher = self._mint_voucher(diner_id, restaurant, voucher_type, None)

        balance = self.get_balance(diner_id, restaurant_id, None)
        if balance:
            balance.total_vouchers_generated += 1

        if commit:
            self.db.commit()
            self.db.refresh(voucher)
        logger.info(f"Issued welcome voucher {voucher.code} to diner {diner_id}")
        return voucher

    def _mint_voucher(
        self,
        diner_id: int,
        restaurant: Restaurant,
        voucher_type: VoucherType,
        branch_id: Optional[int],
    ) -> Voucher:
        now = utcnow()
        expiry_date = now + timedelta(days=voucher_type.validity_days)
        if voucher_type.expires_at and voucher_type.expires_at < expiry_date:
            expiry_date = voucher_type.expires_at

        # Balance debit is flushed outside the per-code savepoint
        self.db.flush()
        for code in self.code_generator.candidates(restaurant.name):
            voucher = Voucher(
                diner_id=diner_id,
                restaurant_id=restaurant.id,
                branch_id=branch_id,
                voucher_type_id=voucher_type.id,
                title=voucher_type.name,
                category=voucher_type.category,
                code=code,
                expiry_date=expiry_date,
                generated_at=now,
                is_redeemed=False,
            )
            try:
                with self.db.begin_nested():
                    self.db.add(voucher)
            except IntegrityError:
                logger.warning(f"Voucher code collision on {code}, retrying")
                continue
            return voucher

        raise ConflictError("Could not generate a unique voucher code, please try again")
