# backend/modules/restaurants/models/restaurant_models.py

from enum import Enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Boolean,
    Text,
    JSON,
    Table,
    Index,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from core.database import Base
from core.mixins import TimestampMixin, utcnow


class EarningMode(str, Enum):
    """How diners earn voucher credits at a restaurant"""
    POINTS = "points"
    VISITS = "visits"
    BOTH = "both"


class Scope(str, Enum):
    ORGANIZATION = "organization"
    BRANCH = "branch"


class OnboardingStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    ACTIVE = "active"


class PortalRole(str, Enum):
    """Ordered from least to most privileged"""
    STAFF = "staff"
    MANAGER = "manager"
    OWNER = "owner"


class Restaurant(Base, TimestampMixin):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    admin_user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    color = Column(String(16), nullable=True, default="#0f766e")

    # Loyalty configuration
    voucher_value = Column(String(100), nullable=False, default="R50 off your bill")
    voucher_validity_days = Column(Integer, nullable=False, default=30)
    points_per_currency = Column(Integer, nullable=False, default=1)
    points_threshold = Column(Integer, nullable=False, default=1000)
    voucher_earning_mode = Column(String(16), nullable=False, default=EarningMode.POINTS.value)
    visit_threshold = Column(Integer, nullable=False, default=10)
    loyalty_scope = Column(String(16), nullable=False, default=Scope.ORGANIZATION.value)
    voucher_scope = Column(String(16), nullable=False, default=Scope.ORGANIZATION.value)

    # Onboarding
    onboarding_status = Column(String(16), nullable=False, default=OnboardingStatus.DRAFT.value)
    registration_number = Column(String(64), nullable=True)
    street_address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    province = Column(String(100), nullable=True)
    postal_code = Column(String(16), nullable=True)
    contact_name = Column(String(100), nullable=True)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(32), nullable=True)
    onboarding_completed_at = Column(DateTime, nullable=True)

    # Public profile
    trading_name = Column(String(200), nullable=True)
    description = Column(Text, nullable=True)
    cuisine_type = Column(String(100), nullable=True)
    website_url = Column(String(255), nullable=True)
    logo_url = Column(String(255), nullable=True)

    branches = relationship(
        "Branch", back_populates="restaurant", cascade="all, delete-orphan",
        order_by="Branch.id",
    )

    @property
    def earns_points(self) -> bool:
        return self.voucher_earning_mode in (EarningMode.POINTS.value, EarningMode.BOTH.value)

    @property
    def earns_visits(self) -> bool:
        return self.voucher_earning_mode in (EarningMode.VISITS.value, EarningMode.BOTH.value)

    @property
    def default_branch(self):
        return next((b for b in self.branches if b.is_default), None)

    def __repr__(self):
        return f"<Restaurant(id={self.id}, name='{self.name}')>"


class Branch(Base, TimestampMixin):
    __tablename__ = "branches"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(
        Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)
    address = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    restaurant = relationship("Restaurant", back_populates="branches")

    def __repr__(self):
        return f"<Branch(id={self.id}, restaurant_id={self.restaurant_id}, name='{self.name}')>"


portal_user_branches = Table(
    "portal_user_branches",
    Base.metadata,
    Column("portal_user_id", Integer, ForeignKey("portal_users.id", ondelete="CASCADE"), primary_key=True),
    Column("branch_id", Integer, ForeignKey("branches.id", ondelete="CASCADE"), primary_key=True),
)


class PortalUser(Base, TimestampMixin):
    """Staff or manager access granted to an admin account at a restaurant."""

    __tablename__ = "portal_users"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(
        Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(16), nullable=False, default=PortalRole.STAFF.value)
    added_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    has_all_branch_access = Column(Boolean, nullable=False, default=True)

    branches = relationship("Branch", secondary=portal_user_branches, order_by="Branch.id")

    __table_args__ = (
        UniqueConstraint("user_id", "restaurant_id", name="uq_portal_user_restaurant"),
    )

    @property
    def branch_ids(self):
        return [branch.id for branch in self.branches]


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(
        Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(64), nullable=False)
    target_type = Column(String(64), nullable=True)
    target_id = Column(Integer, nullable=True)
    details = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_activity_restaurant_created", "restaurant_id", "created_at"),
    )
