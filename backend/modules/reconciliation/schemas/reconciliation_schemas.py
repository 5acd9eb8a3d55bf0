# backend/modules/reconciliation/schemas/reconciliation_schemas.py

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List
from datetime import datetime


class CsvRecordIn(BaseModel):
    bill_id: Optional[str] = None
    amount: Optional[str] = None
    date: Optional[str] = None


class ReconciliationUpload(BaseModel):
    """A POS export, either as raw CSV text or as pre-split rows"""

    file_name: str = Field(..., min_length=1, max_length=255)
    csv_content: Optional[str] = None
    records: Optional[List[CsvRecordIn]] = None

    @model_validator(mode="after")
    def require_content(self):
        if not self.csv_content and not self.records:
            raise ValueError("csv_content or records is required")
        return self


class ReconciliationBatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    file_name: str
    total_records: int
    matched_records: int
    unmatched_records: int
    status: str
    uploaded_at: datetime
    processed_at: Optional[datetime] = None


class ReconciliationRecordResponse(BaseModel):
    id: int
    batch_id: int
    bill_id: str
    csv_amount: Optional[str] = None
    csv_date: Optional[str] = None
    is_matched: bool
    matched_voucher_id: Optional[int] = None
    voucher_code: Optional[str] = None
    voucher_title: Optional[str] = None
    redeemed_at: Optional[datetime] = None
    recorded_amount: Optional[str] = None
    user_phone: Optional[str] = None
    variance: Optional[str] = None


class ReconciliationSummary(BaseModel):
    total: int
    matched: int
    unmatched: int


class ReconciliationResultResponse(BaseModel):
    batch: ReconciliationBatchResponse
    records: List[ReconciliationRecordResponse]
    summary: ReconciliationSummary
