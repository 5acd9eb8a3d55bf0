# backend/modules/auth/models/user_models.py

from enum import Enum

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, JSON, Index

from core.database import Base
from core.mixins import TimestampMixin, utcnow


class UserType(str, Enum):
    DINER = "diner"
    RESTAURANT_ADMIN = "restaurant_admin"


class User(Base, TimestampMixin):
    """Diners and restaurant portal users share one account table."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(32), nullable=True, unique=True, index=True)
    user_type = Column(String(32), nullable=False, default=UserType.DINER.value)
    password_hash = Column(String(255), nullable=True)

    # Demographics collected at registration
    gender = Column(String(32), nullable=True)
    age_range = Column(String(32), nullable=True)
    province = Column(String(64), nullable=True)
    terms_accepted_at = Column(DateTime, nullable=True)

    # Voucher currently shown at the till
    active_voucher_id = Column(
        Integer,
        ForeignKey(
            "vouchers.id",
            use_alter=True,
            name="fk_users_active_voucher_id",
            ondelete="SET NULL",
        ),
        nullable=True,
    )
    active_voucher_code = Column(String(32), nullable=True, index=True)
    active_voucher_code_set_at = Column(DateTime, nullable=True)

    @property
    def is_diner(self) -> bool:
        return self.user_type == UserType.DINER.value

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.name, self.last_name) if part)

    def clear_presentation(self) -> None:
        self.active_voucher_id = None
        self.active_voucher_code = None
        self.active_voucher_code_set_at = None

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', type='{self.user_type}')>"


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token = Column(String(128), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class AccountDeletionRequest(Base):
    __tablename__ = "account_deletion_requests"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token = Column(String(128), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False)
    confirmed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class ArchivedUser(Base):
    """Snapshot of a deleted account, kept for audit."""

    __tablename__ = "archived_users"

    id = Column(Integer, primary_key=True)
    original_user_id = Column(Integer, nullable=False, index=True)
    email = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    user_type = Column(String(32), nullable=False)
    snapshot = Column(JSON, nullable=False, default=dict)
    reason = Column(String(255), nullable=True)
    archived_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_archived_user_email", "email"),)
