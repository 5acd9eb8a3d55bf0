# backend/modules/reconciliation/services/reconciliation_service.py

"""
Match POS bill exports against redeemed vouchers.

Staff upload the bills their POS recorded; every bill id that carries a
redeemed voucher at the restaurant is marked as matched. Batch details
compare the POS amount with the spend recorded through the loyalty app.
"""

import csv
import io
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.error_handling import APIValidationError, NotFoundError
from core.mixins import utcnow
from core.query_logger import log_query_performance
from modules.auth.models import User
from modules.loyalty.models import Transaction, Voucher
from ..models.reconciliation_models import ReconciliationBatch, ReconciliationRecord, BatchStatus

logger = logging.getLogger(__name__)

BILL_ID_COLUMNS = ("bill_id", "billid", "bill id", "invoice_id", "invoiceid", "invoice")
AMOUNT_COLUMNS = ("amount", "total", "value", "bill_amount")
DATE_COLUMNS = ("date", "transaction_date", "bill_date")

_AMOUNT_NOISE = re.compile(r"[R$,\s]")
TWO_PLACES = Decimal("0.01")


def parse_csv(content: str) -> List[Dict[str, Optional[str]]]:
    """
    Split a POS export into ``{bill_id, amount, date}`` rows.

    Header names are matched case-insensitively against common aliases;
    rows without a bill id are dropped.

    Raises:
        APIValidationError: If no bill id column is present
    """
    reader = csv.reader(io.StringIO(content.strip()))
    try:
        headers = [h.strip().strip("'\"").lower() for h in next(reader)]
    except StopIteration:
        return []

    def column(aliases) -> Optional[int]:
        return next((i for i, h in enumerate(headers) if h in aliases), None)

    bill_idx = column(BILL_ID_COLUMNS)
    amount_idx = column(AMOUNT_COLUMNS)
    date_idx = column(DATE_COLUMNS)
    if bill_idx is None:
        raise APIValidationError(
            "CSV must contain a column for Bill ID (e.g. 'bill_id', 'billid', 'invoice_id')",
            errors={"columns": headers},
        )

    def cell(values: List[str], idx: Optional[int]) -> Optional[str]:
        if idx is None or idx >= len(values):
            return None
        return values[idx].strip().strip("'\"") or None

    return [
        {
            "bill_id": cell(values, bill_idx),
            "amount": cell(values, amount_idx),
            "date": cell(values, date_idx),
        }
        for values in reader
        if values
    ]


def normalize_amount(raw: Optional[str]) -> Optional[Decimal]:
    """``"R 1,250.50"`` -> ``Decimal("1250.50")``; None when not a number."""
    if not raw:
        return None
    try:
        amount = Decimal(_AMOUNT_NOISE.sub("", raw))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def calculate_variance(csv_amount: Optional[str], recorded_amount: Optional[Decimal]) -> Optional[str]:
    """POS amount minus recorded spend, two decimals. Positive means the POS shows more."""
    pos_amount = normalize_amount(csv_amount)
    if pos_amount is None or recorded_amount is None:
        return None
    return str((pos_amount - Decimal(recorded_amount)).quantize(TWO_PLACES))


@dataclass
class ReconciliationResult:
    batch: ReconciliationBatch
    records: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "total": self.batch.total_records,
            "matched": self.batch.matched_records,
            "unmatched": self.batch.unmatched_records,
        }


class ReconciliationService:
    def __init__(self, db: Session):
        self.db = db

    def _voucher_for_bill(self, restaurant_id: int, bill_id: str) -> Optional[Voucher]:
        return (
            self.db.query(Voucher)
            .filter(Voucher.restaurant_id == restaurant_id, Voucher.bill_id == bill_id)
            .order_by(Voucher.redeemed_at.desc())
            .first()
        )

    def process_records(
        self, restaurant_id: int, file_name: str, records: Iterable[Dict[str, Any]]
    ) -> ReconciliationResult:
        """
        Create a batch from already split rows and match each bill id.

        Raises:
            APIValidationError: If no row carries a bill id
        """
        rows = []
        for row in records:
            bill_id = str(row.get("bill_id") or "").strip()
            if bill_id:
                rows.append((bill_id, row.get("amount"), row.get("date")))

        if not rows:
            raise APIValidationError("No valid records found in CSV file", errors={"records": "empty"})

        batch = ReconciliationBatch(
            restaurant_id=restaurant_id,
            file_name=file_name,
            total_records=len(rows),
            matched_records=0,
            unmatched_records=0,
            status=BatchStatus.PROCESSING.value,
            uploaded_at=utcnow(),
        )

        try:
            self.db.add(batch)
            self.db.flush()

            matched = 0
            enriched = []
            with log_query_performance(f"reconcile_batch_{batch.id}"):
                for bill_id, amount, bill_date in rows:
                    voucher = self._voucher_for_bill(restaurant_id, bill_id)
                    record = ReconciliationRecord(
                        batch_id=batch.id,
                        bill_id=bill_id,
                        csv_amount=str(amount) if amount not in (None, "") else None,
                        csv_date=str(bill_date) if bill_date not in (None, "") else None,
                        is_matched=voucher is not None,
                        matched_voucher_id=voucher.id if voucher else None,
                    )
                    self.db.add(record)
                    enriched.append((record, voucher))
                    if voucher:
                        matched += 1

            batch.matched_records = matched
            batch.unmatched_records = len(rows) - matched
            batch.status = BatchStatus.COMPLETED.value
            batch.processed_at = utcnow()
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(batch)
        logger.info(
            f"Reconciled batch {batch.id} for restaurant {restaurant_id}: "
            f"{batch.matched_records}/{batch.total_records} matched"
        )
        return ReconciliationResult(
            batch=batch,
            records=[self._serialize(record, voucher) for record, voucher in enriched],
        )

    def process_csv(self, restaurant_id: int, file_name: str, content: str) -> ReconciliationResult:
        return self.process_records(restaurant_id, file_name, parse_csv(content))

    def get_batches(self, restaurant_id: int) -> List[ReconciliationBatch]:
        return (
            self.db.query(ReconciliationBatch)
            .filter(ReconciliationBatch.restaurant_id == restaurant_id)
            .order_by(ReconciliationBatch.uploaded_at.desc(), ReconciliationBatch.id.desc())
            .all()
        )

    def get_batch_details(self, restaurant_id: int, batch_id: int) -> ReconciliationResult:
        batch = (
            self.db.query(ReconciliationBatch)
            .filter(
                ReconciliationBatch.id == batch_id,
                ReconciliationBatch.restaurant_id == restaurant_id,
            )
            .first()
        )
        if not batch:
            raise NotFoundError("Reconciliation batch", batch_id)

        records = []
        for record in batch.records:
            voucher = None
            if record.matched_voucher_id:
                voucher = self.db.query(Voucher).filter(Voucher.id == record.matched_voucher_id).first()

            data = self._serialize(record, voucher)
            transaction = (
                self.db.query(Transaction)
                .filter(
                    Transaction.restaurant_id == restaurant_id,
                    Transaction.bill_id == record.bill_id,
                )
                .order_by(Transaction.transaction_date.desc())
                .first()
            )
            if transaction:
                diner = self.db.query(User).filter(User.id == transaction.diner_id).first()
                data["recorded_amount"] = str(transaction.amount_spent)
                data["user_phone"] = diner.phone if diner else None
                data["variance"] = calculate_variance(record.csv_amount, transaction.amount_spent)
            records.append(data)

        return ReconciliationResult(batch=batch, records=records)

    @staticmethod
    def _serialize(record: ReconciliationRecord, voucher: Optional[Voucher]) -> Dict[str, Any]:
        return {
            "id": record.id,
            "batch_id": record.batch_id,
            "bill_id": record.bill_id,
            "csv_amount": record.csv_amount,
            "csv_date": record.csv_date,
            "is_matched": record.is_matched,
            "matched_voucher_id": record.matched_voucher_id,
            "voucher_code": voucher.code if voucher else None,
            "voucher_title": voucher.title if voucher else None,
            "redeemed_at": voucher.redeemed_at if voucher else None,
            "recorded_amount": None,
            "user_phone": None,
            "variance": None,
        }
