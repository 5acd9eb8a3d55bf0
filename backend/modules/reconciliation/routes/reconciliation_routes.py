# backend/modules/reconciliation/routes/reconciliation_routes.py

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
import logging

from core.database import get_db
from core.auth import AuthUser, require_restaurant_admin
from core.error_handling import handle_api_errors
from core.permissions import check_restaurant_access
from modules.restaurants.services.activity_log_service import ActivityLogService

from ..services.reconciliation_service import ReconciliationService, ReconciliationResult
from ..schemas.reconciliation_schemas import (
    ReconciliationUpload,
    ReconciliationBatchResponse,
    ReconciliationResultResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/restaurants/{restaurant_id}/reconciliation", tags=["Reconciliation"])


def _result_response(result: ReconciliationResult) -> ReconciliationResultResponse:
    return ReconciliationResultResponse(
        batch=ReconciliationBatchResponse.model_validate(result.batch),
        records=result.records,
        summary=result.summary,
    )


@router.post(
    "/upload",
    response_model=ReconciliationResultResponse,
    status_code=status.HTTP_201_CREATED,
)
@handle_api_errors
async def upload_reconciliation(
    restaurant_id: int,
    payload: ReconciliationUpload,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    """
    Match a POS bill export against redeemed vouchers.

    Raises:
        422: No bill id column or no usable rows
    """
    check_restaurant_access(db, current_user, restaurant_id)
    service = ReconciliationService(db)

    if payload.records:
        result = service.process_records(
            restaurant_id, payload.file_name, [r.model_dump() for r in payload.records]
        )
    else:
        result = service.process_csv(restaurant_id, payload.file_name, payload.csv_content)

    ActivityLogService(db).record(
        restaurant_id=restaurant_id,
        action="reconciliation_uploaded",
        user_id=current_user.id,
        target_type="reconciliation_batch",
        target_id=result.batch.id,
        details={"file_name": payload.file_name, **result.summary},
    )
    return _result_response(result)


@router.get("/batches", response_model=List[ReconciliationBatchResponse])
@handle_api_errors
async def list_batches(
    restaurant_id: int,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id)
    return ReconciliationService(db).get_batches(restaurant_id)


@router.get("/batches/{batch_id}", response_model=ReconciliationResultResponse)
@handle_api_errors
async def get_batch(
    restaurant_id: int,
    batch_id: int,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id)
    return _result_response(ReconciliationService(db).get_batch_details(restaurant_id, batch_id))
