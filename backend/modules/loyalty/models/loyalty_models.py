# backend/modules/loyalty/models/loyalty_models.py

"""
Points balances and spend transactions
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    ForeignKey,
    DateTime,
    Numeric,
    Index,
    UniqueConstraint,
    CheckConstraint,
)

from core.database import Base
from core.mixins import TimestampMixin, utcnow


ORGANIZATION_SCOPE_KEY = 0


class PointsBalance(Base, TimestampMixin):
    """
    Running loyalty state of one diner at one restaurant.

    ``scope_key`` mirrors ``branch_id`` with 0 standing for the
    organization-wide row, so the unique constraint also holds for
    NULL branches.
    """
    __tablename__ = "points_balances"

    id = Column(Integer, primary_key=True, index=True)
    diner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    restaurant_id = Column(
        Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    branch_id = Column(Integer, ForeignKey("branches.id", ondelete="SET NULL"), nullable=True)
    scope_key = Column(Integer, nullable=False, default=ORGANIZATION_SCOPE_KEY)

    # Points
    current_points = Column(Integer, nullable=False, default=0)
    total_points_earned = Column(Integer, nullable=False, default=0)
    points_credits = Column(Integer, nullable=False, default=0)

    # Visits
    current_visits = Column(Integer, nullable=False, default=0)
    total_visits = Column(Integer, nullable=False, default=0)
    visit_credits = Column(Integer, nullable=False, default=0)

    # Lifetime counters
    total_voucher_credits_earned = Column(Integer, nullable=False, default=0)
    total_vouchers_generated = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("diner_id", "restaurant_id", "scope_key", name="uq_balance_diner_restaurant_scope"),
        CheckConstraint("current_points >= 0", name="current_points_non_negative"),
        CheckConstraint("points_credits >= 0", name="points_credits_non_negative"),
        CheckConstraint("visit_credits >= 0", name="visit_credits_non_negative"),
    )

    @property
    def available_voucher_credits(self) -> int:
        return (self.points_credits or 0) + (self.visit_credits or 0)

    def __repr__(self):
        return (
            f"<PointsBalance(diner_id={self.diner_id}, restaurant_id={self.restaurant_id}, "
            f"branch_id={self.branch_id}, points={self.current_points})>"
        )


class Transaction(Base):
    """A recorded spend at a restaurant. Rows are never updated."""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    diner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    restaurant_id = Column(
        Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    branch_id = Column(Integer, ForeignKey("branches.id", ondelete="SET NULL"), nullable=True)
    bill_id = Column(String(64), nullable=True, index=True)
    amount_spent = Column(Numeric(10, 2), nullable=False)
    points_earned = Column(Integer, nullable=False, default=0)
    visit_recorded = Column(Boolean, nullable=False, default=False)
    transaction_date = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_transactions_restaurant_date", "restaurant_id", "transaction_date"),
        CheckConstraint("amount_spent >= 0", name="amount_spent_non_negative"),
    )

    def __repr__(self):
        return f"<Transaction(id={self.id}, diner_id={self.diner_id}, amount={self.amount_spent})>"
