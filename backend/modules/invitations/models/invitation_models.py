# backend/modules/invitations/models/invitation_models.py

from enum import Enum

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Index

from core.database import Base
from core.mixins import TimestampMixin


class InvitationStatus(str, Enum):
    PENDING = "pending"
    REGISTERED = "registered"


class DinerInvitation(Base, TimestampMixin):
    """SMS invitation sent by a restaurant to a prospective diner"""
    __tablename__ = "diner_invitations"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(
        Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invited_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    phone = Column(String(32), nullable=False)
    token = Column(String(128), nullable=False, unique=True, index=True)
    status = Column(String(16), nullable=False, default=InvitationStatus.PENDING.value)
    expires_at = Column(DateTime, nullable=False)
    diner_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    consumed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_invitation_restaurant_status", "restaurant_id", "status"),
    )

    def __repr__(self):
        return f"<DinerInvitation(id={self.id}, phone='{self.phone}', status='{self.status}')>"
