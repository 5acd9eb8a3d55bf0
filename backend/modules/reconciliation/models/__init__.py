from .reconciliation_models import ReconciliationBatch, ReconciliationRecord, BatchStatus

__all__ = ["ReconciliationBatch", "ReconciliationRecord", "BatchStatus"]
