# backend/modules/loyalty/routes/loyalty_routes.py

"""
Routes for recording spend, diner balances and converting credits into vouchers.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from core.database import get_db
from core.auth import AuthUser, get_current_user, require_diner, require_restaurant_admin
from core.error_handling import handle_api_errors, AuthorizationError
from core.permissions import check_restaurant_access, resolve_branch_filter
from modules.restaurants.services.activity_log_service import ActivityLogService

from ..services.loyalty_service import LoyaltyService, TransactionResult
from ..services.voucher_service import VoucherService
from ..schemas.loyalty_schemas import (
    TransactionCreate,
    TransactionByPhoneCreate,
    TransactionResponse,
    TransactionResultResponse,
    BalanceResponse,
    DinerBalanceResponse,
    DinerTransactionList,
    RestaurantTransactionResponse,
)
from ..schemas.voucher_schemas import (
    DinerVoucherResponse,
    PresentationResponse,
    RedeemCreditRequest,
    VoucherIssueResponse,
    VoucherResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Loyalty"])


def _transaction_result(result: TransactionResult) -> TransactionResultResponse:
    return TransactionResultResponse(
        transaction=TransactionResponse.model_validate(result.transaction),
        balance=BalanceResponse.model_validate(result.balance),
        points_earned=result.points_earned,
        credits_earned=result.credits_earned,
        points_credits_earned=result.points_credits_earned,
        visit_credits_earned=result.visit_credits_earned,
        points_until_next_credit=result.points_until_next_credit,
        visits_until_next_credit=result.visits_until_next_credit,
    )


def _log_transaction(db: Session, user: AuthUser, result: TransactionResult) -> None:
    transaction = result.transaction
    ActivityLogService(db).record(
        restaurant_id=transaction.restaurant_id,
        action="transaction_recorded",
        user_id=user.id,
        target_type="transaction",
        target_id=transaction.id,
        details={
            "diner_id": transaction.diner_id,
            "amount_spent": str(transaction.amount_spent),
            "bill_id": transaction.bill_id,
            "credits_earned": result.credits_earned,
        },
    )


# ========== Transactions ==========


@router.post(
    "/transactions",
    response_model=TransactionResultResponse,
    status_code=status.HTTP_201_CREATED,
)
@handle_api_errors
async def record_transaction(
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    """
    Record a diner's spend and bank any credits earned.

    Raises:
        403: No access to the restaurant or branch
        404: Diner, restaurant or branch not found
        422: Invalid amount
    """
    access = check_restaurant_access(db, current_user, payload.restaurant_id)
    branch_id = resolve_branch_filter(access, payload.branch_id)

    result = LoyaltyService(db).record_transaction(
        diner_id=payload.diner_id,
        restaurant_id=payload.restaurant_id,
        amount_spent=payload.amount_spent,
        bill_id=payload.bill_id,
        branch_id=branch_id,
    )
    _log_transaction(db, current_user, result)
    return _transaction_result(result)


@router.post(
    "/restaurants/{restaurant_id}/transactions/record",
    response_model=TransactionResultResponse,
    status_code=status.HTTP_201_CREATED,
)
@handle_api_errors
async def record_transaction_by_phone(
    restaurant_id: int,
    payload: TransactionByPhoneCreate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    """Record a spend for the diner registered with the given phone number."""
    access = check_restaurant_access(db, current_user, restaurant_id)
    branch_id = resolve_branch_filter(access, payload.branch_id)

    result = LoyaltyService(db).record_transaction_by_phone(
        restaurant_id=restaurant_id,
        phone=payload.phone,
        amount_spent=payload.amount_spent,
        bill_id=payload.bill_id,
        branch_id=branch_id,
    )
    _log_transaction(db, current_user, result)
    return _transaction_result(result)


@router.get(
    "/restaurants/{restaurant_id}/transactions",
    response_model=List[RestaurantTransactionResponse],
)
@handle_api_errors
async def get_restaurant_transactions(
    restaurant_id: int,
    branch_id: Optional[int] = Query(None),
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    access = check_restaurant_access(db, current_user, restaurant_id)
    branch_id = resolve_branch_filter(access, branch_id)
    return LoyaltyService(db).get_restaurant_transactions(restaurant_id, branch_id, days)


# ========== Diner ==========


@router.get("/diner/points", response_model=List[DinerBalanceResponse])
@handle_api_errors
async def get_diner_points(
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_diner),
):
    """Balances at every restaurant the diner has visited."""
    return LoyaltyService(db).get_balances_for_diner(current_user.id)


@router.get("/diner/transactions", response_model=DinerTransactionList)
@handle_api_errors
async def get_diner_transactions(
    restaurant_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_diner),
):
    transactions = LoyaltyService(db).get_diner_transactions(current_user.id, restaurant_id)
    return {"transactions": transactions, "total": len(transactions)}


@router.get("/diner/vouchers", response_model=List[DinerVoucherResponse])
@handle_api_errors
async def get_diner_vouchers(
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_diner),
):
    return VoucherService(db).get_diner_vouchers(current_user.id)


@router.post("/diner/vouchers/{voucher_id}/select", response_model=PresentationResponse)
@handle_api_errors
async def select_voucher(
    voucher_id: int,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_diner),
):
    """
    Choose a voucher to show at the till.

    Returns a short numeric code valid for a few minutes. Selecting again
    replaces the previous code.

    Raises:
        404: Voucher not found
        409: Voucher already redeemed
        410: Voucher expired
    """
    result = VoucherService(db).select_voucher_for_presentation(current_user.id, voucher_id)
    return PresentationResponse(
        code=result.code,
        expires_at=result.expires_at,
        voucher=VoucherResponse.model_validate(result.voucher),
    )


@router.post(
    "/diners/{diner_id}/restaurants/{restaurant_id}/redeem-credit",
    response_model=VoucherIssueResponse,
    status_code=status.HTTP_201_CREATED,
)
@handle_api_errors
async def redeem_voucher_credit(
    diner_id: int,
    restaurant_id: int,
    payload: RedeemCreditRequest,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
):
    """
    Spend voucher credits on a voucher type.

    Diners may only spend their own credits; restaurant staff may act for
    a diner at their restaurant.

    Raises:
        404: Diner, restaurant or voucher type not found
        409: Not enough credits, type unavailable or welcome voucher already issued
    """
    if current_user.is_diner:
        if current_user.id != diner_id:
            raise AuthorizationError("You can only redeem your own credits")
        branch_id = payload.branch_id
    else:
        access = check_restaurant_access(db, current_user, restaurant_id)
        branch_id = resolve_branch_filter(access, payload.branch_id)

    result = LoyaltyService(db).redeem_voucher_credit(
        diner_id=diner_id,
        restaurant_id=restaurant_id,
        voucher_type_id=payload.voucher_type_id,
        branch_id=branch_id,
    )

    if not current_user.is_diner:
        ActivityLogService(db).record(
            restaurant_id=restaurant_id,
            action="voucher_issued",
            user_id=current_user.id,
            target_type="voucher",
            target_id=result.voucher.id,
            details={"diner_id": diner_id, "voucher_type_id": payload.voucher_type_id},
        )

    return VoucherIssueResponse(
        voucher=VoucherResponse.model_validate(result.voucher),
        balance=BalanceResponse.model_validate(result.balance) if result.balance else None,
    )
