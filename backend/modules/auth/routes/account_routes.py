# backend/modules/auth/routes/account_routes.py

"""
Password reset and self-service account deletion.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from core.database import get_db
from core.auth import AuthUser, get_current_user
from core.error_handling import handle_api_errors
from core.notification_adapter import NotificationAdapter, get_notification_adapter

from ..services.account_service import AccountService
from ..schemas.account_schemas import (
    ForgotPasswordRequest,
    ResetPasswordRequest,
    ConfirmDeletionRequest,
    MessageResponse,
    DeletionConfirmedResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Accounts"])


@router.post("/auth/forgot-password", response_model=MessageResponse)
@handle_api_errors
async def forgot_password(
    payload: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    notifier: NotificationAdapter = Depends(get_notification_adapter),
):
    """
    Request a password reset link.

    Always answers the same way so callers can't discover which e-mail
    addresses have accounts.
    """
    AccountService(db, notifier).request_password_reset(payload.email)
    return MessageResponse(
        message="If an account exists for that e-mail address, a reset link has been sent."
    )


@router.post("/auth/reset-password", response_model=MessageResponse)
@handle_api_errors
async def reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    """
    Raises:
        404: Unknown token
        409: Token already used
        410: Token expired
    """
    AccountService(db).reset_password(payload.token, payload.new_password)
    return MessageResponse(message="Your password has been reset.")


@router.post("/account/request-deletion", response_model=MessageResponse)
@handle_api_errors
async def request_account_deletion(
    db: Session = Depends(get_db),
    notifier: NotificationAdapter = Depends(get_notification_adapter),
    current_user: AuthUser = Depends(get_current_user),
):
    AccountService(db, notifier).request_account_deletion(current_user.id)
    return MessageResponse(
        message="Check your e-mail to confirm the deletion of your account."
    )


@router.post("/account/confirm-deletion", response_model=DeletionConfirmedResponse)
@handle_api_errors
async def confirm_account_deletion(payload: ConfirmDeletionRequest, db: Session = Depends(get_db)):
    archived = AccountService(db).confirm_account_deletion(payload.token, payload.reason)
    return DeletionConfirmedResponse(
        message="Your account has been deleted.",
        archived_at=archived.archived_at,
    )
