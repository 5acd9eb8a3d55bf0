# backend/modules/reconciliation/models/reconciliation_models.py

from enum import Enum

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean
from sqlalchemy.orm import relationship

from core.database import Base
from core.mixins import TimestampMixin, utcnow


class BatchStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ReconciliationBatch(Base, TimestampMixin):
    """One uploaded POS export, matched row by row against vouchers"""
    __tablename__ = "reconciliation_batches"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(
        Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    file_name = Column(String(255), nullable=False)
    total_records = Column(Integer, nullable=False, default=0)
    matched_records = Column(Integer, nullable=False, default=0)
    unmatched_records = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, default=BatchStatus.PENDING.value)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)
    processed_at = Column(DateTime, nullable=True)

    records = relationship(
        "ReconciliationRecord",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="ReconciliationRecord.id",
    )

    def __repr__(self):
        return (
            f"<ReconciliationBatch(id={self.id}, status='{self.status}', "
            f"matched={self.matched_records}/{self.total_records})>"
        )


class ReconciliationRecord(Base):
    __tablename__ = "reconciliation_records"

    id = Column(Integer, primary_key=True, index=True)
    batch_id = Column(
        Integer, ForeignKey("reconciliation_batches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    bill_id = Column(String(64), nullable=False)
    # Raw amount text as exported by the POS
    csv_amount = Column(String(64), nullable=True)
    csv_date = Column(String(64), nullable=True)
    is_matched = Column(Boolean, nullable=False, default=False)
    matched_voucher_id = Column(
        Integer, ForeignKey("vouchers.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(DateTime, default=utcnow, nullable=False)

    batch = relationship("ReconciliationBatch", back_populates="records")
