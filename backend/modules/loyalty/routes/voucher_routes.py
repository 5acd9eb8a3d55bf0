# backend/modules/loyalty/routes/voucher_routes.py

"""
Staff-facing voucher routes: redemption at the till, the voucher type
catalogue and campaigns.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
import logging

from core.database import get_db
from core.auth import AuthUser, require_restaurant_admin
from core.error_handling import handle_api_errors
from core.permissions import check_restaurant_access, resolve_branch_filter
from modules.restaurants.schemas.restaurant_schemas import RedemptionsByType
from modules.restaurants.services.activity_log_service import ActivityLogService
from modules.restaurants.services.stats_service import StatsService

from ..services.voucher_service import VoucherService
from ..services.voucher_type_service import VoucherTypeService
from ..services.campaign_service import CampaignService
from ..schemas.voucher_schemas import (
    RedeemVoucherRequest,
    RedemptionResponse,
    VoucherResponse,
    VoucherTypeCreate,
    VoucherTypeUpdate,
    VoucherTypeResponse,
    CampaignCreate,
    CampaignStatusUpdate,
    CampaignResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/restaurants/{restaurant_id}", tags=["Vouchers"])


# ========== Redemption ==========


@router.post("/vouchers/redeem", response_model=RedemptionResponse)
@handle_api_errors
async def redeem_voucher(
    restaurant_id: int,
    payload: RedeemVoucherRequest,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    """
    Redeem the code a diner presents at the till.

    Failures carry a ``reason`` in the error details: ``not_found``,
    ``code_expired``, ``voucher_expired``, ``already_redeemed``,
    ``wrong_branch`` or ``wrong_restaurant``.
    """
    access = check_restaurant_access(db, current_user, restaurant_id)
    branch_id = resolve_branch_filter(access, payload.branch_id)

    result = VoucherService(db).redeem_voucher_by_code(
        restaurant_id=restaurant_id,
        code=payload.code,
        bill_id=payload.bill_id,
        branch_id=branch_id,
    )
    voucher = result.voucher

    ActivityLogService(db).record(
        restaurant_id=restaurant_id,
        action="voucher_redeemed",
        user_id=current_user.id,
        target_type="voucher",
        target_id=voucher.id,
        details={
            "code": voucher.code,
            "bill_id": voucher.bill_id,
            "branch_id": branch_id,
            "used_presented_code": result.used_presented_code,
        },
    )

    return RedemptionResponse(
        message=result.message,
        voucher=VoucherResponse.model_validate(voucher),
        diner_id=result.diner.id if result.diner else None,
        diner_name=(result.diner.full_name or None) if result.diner else None,
        used_presented_code=result.used_presented_code,
    )


@router.get("/voucher-redemptions-by-type", response_model=List[RedemptionsByType])
@handle_api_errors
async def get_voucher_redemptions_by_type(
    restaurant_id: int,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    branch_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    access = check_restaurant_access(db, current_user, restaurant_id)
    branch_id = resolve_branch_filter(access, branch_id)
    return StatsService(db).get_voucher_redemptions_by_type(
        restaurant_id, start_date, end_date, branch_id
    )


# ========== Voucher Types ==========


@router.get("/voucher-types", response_model=List[VoucherTypeResponse])
@handle_api_errors
async def list_voucher_types(
    restaurant_id: int,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id)
    return VoucherTypeService(db).list_voucher_types(restaurant_id)


@router.get("/voucher-types/active", response_model=List[VoucherTypeResponse])
@handle_api_errors
async def list_active_voucher_types(
    restaurant_id: int,
    db: Session = Depends(get_db),
):
    """Types a diner can currently spend credits on. Public."""
    return VoucherTypeService(db).list_voucher_types(restaurant_id, active_only=True)


@router.post(
    "/voucher-types",
    response_model=VoucherTypeResponse,
    status_code=status.HTTP_201_CREATED,
)
@handle_api_errors
async def create_voucher_type(
    restaurant_id: int,
    payload: VoucherTypeCreate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    """
    Add a reward to the catalogue. Owners and managers only.

    Raises:
        409: A registration voucher type already exists
        422: Invalid definition
    """
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="manager")
    voucher_type = VoucherTypeService(db).create_voucher_type(restaurant_id, payload.model_dump())

    ActivityLogService(db).record(
        restaurant_id=restaurant_id,
        action="voucher_type_created",
        user_id=current_user.id,
        target_type="voucher_type",
        target_id=voucher_type.id,
        details={"name": voucher_type.name, "category": voucher_type.category},
    )
    return voucher_type


@router.patch("/voucher-types/{voucher_type_id}", response_model=VoucherTypeResponse)
@handle_api_errors
async def update_voucher_type(
    restaurant_id: int,
    voucher_type_id: int,
    payload: VoucherTypeUpdate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="manager")
    updates = payload.model_dump(exclude_unset=True)
    voucher_type = VoucherTypeService(db).update_voucher_type(restaurant_id, voucher_type_id, updates)

    ActivityLogService(db).record(
        restaurant_id=restaurant_id,
        action="voucher_type_updated",
        user_id=current_user.id,
        target_type="voucher_type",
        target_id=voucher_type.id,
        details={"fields": sorted(updates)},
    )
    return voucher_type


@router.delete("/voucher-types/{voucher_type_id}", status_code=status.HTTP_204_NO_CONTENT)
@handle_api_errors
async def delete_voucher_type(
    restaurant_id: int,
    voucher_type_id: int,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="manager")
    VoucherTypeService(db).delete_voucher_type(restaurant_id, voucher_type_id)

    ActivityLogService(db).record(
        restaurant_id=restaurant_id,
        action="voucher_type_deleted",
        user_id=current_user.id,
        target_type="voucher_type",
        target_id=voucher_type_id,
    )


# ========== Campaigns ==========


@router.get("/campaigns", response_model=List[CampaignResponse])
@handle_api_errors
async def list_campaigns(
    restaurant_id: int,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id)
    return CampaignService(db).list_campaigns(restaurant_id)


@router.post("/campaigns", response_model=CampaignResponse, status_code=status.HTTP_201_CREATED)
@handle_api_errors
async def create_campaign(
    restaurant_id: int,
    payload: CampaignCreate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="manager")
    campaign = CampaignService(db).create_campaign(restaurant_id, payload.model_dump())

    ActivityLogService(db).record(
        restaurant_id=restaurant_id,
        action="campaign_created",
        user_id=current_user.id,
        target_type="campaign",
        target_id=campaign.id,
        details={"name": campaign.name, "target_audience": campaign.target_audience},
    )
    return campaign


@router.patch("/campaigns/{campaign_id}/status", response_model=CampaignResponse)
@handle_api_errors
async def update_campaign_status(
    restaurant_id: int,
    campaign_id: int,
    payload: CampaignStatusUpdate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    """
    Raises:
        409: Status would move backwards
    """
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="manager")
    campaign = CampaignService(db).update_status(restaurant_id, campaign_id, payload.status)

    ActivityLogService(db).record(
        restaurant_id=restaurant_id,
        action="campaign_status_updated",
        user_id=current_user.id,
        target_type="campaign",
        target_id=campaign.id,
        details={"status": campaign.status},
    )
    return campaign
