# backend/modules/invitations/routes/invitation_routes.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import logging

from core.database import get_db
from core.auth import AuthUser, require_restaurant_admin, get_password_hash, create_user_token
from core.error_handling import handle_api_errors
from core.notification_adapter import NotificationAdapter, get_notification_adapter
from core.permissions import check_restaurant_access
from modules.restaurants.models import Restaurant
from modules.restaurants.services.activity_log_service import ActivityLogService

from ..services.invitation_service import InvitationService
from ..schemas.invitation_schemas import (
    InvitationCreate,
    InvitationResponse,
    InvitationCreatedResponse,
    InvitationLookupResponse,
    DinerRegistration,
    RegisteredDiner,
    RegistrationResponse,
    RegistrationsPerDay,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Invitations"])


@router.post(
    "/restaurants/{restaurant_id}/diners/invite",
    response_model=InvitationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
@handle_api_errors
async def invite_diner(
    restaurant_id: int,
    payload: InvitationCreate,
    db: Session = Depends(get_db),
    notifier: NotificationAdapter = Depends(get_notification_adapter),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    """
    Send a registration link to a prospective diner.

    Raises:
        409: Phone already registered
        422: Malformed phone number
    """
    check_restaurant_access(db, current_user, restaurant_id)
    result = InvitationService(db, notifier).create_invitation(
        restaurant_id, payload.phone, invited_by=current_user.id
    )

    ActivityLogService(db).record(
        restaurant_id=restaurant_id,
        action="diner_invited",
        user_id=current_user.id,
        target_type="invitation",
        target_id=result.invitation.id,
        details={"sms_sent": result.sms_sent},
    )

    return InvitationCreatedResponse(
        sms_sent=result.sms_sent,
        sms_error=result.sms_error,
        registration_link=result.registration_link,
        invitation=InvitationResponse.model_validate(result.invitation),
        message=result.message,
    )


@router.get("/invitations/{token}", response_model=InvitationLookupResponse)
@handle_api_errors
async def get_invitation(token: str, db: Session = Depends(get_db)):
    invitation = InvitationService(db).get_invitation(token)
    restaurant = db.query(Restaurant).filter(Restaurant.id == invitation.restaurant_id).first()
    return InvitationLookupResponse(
        phone=invitation.phone,
        restaurant_id=invitation.restaurant_id,
        restaurant_name=restaurant.name,
        expires_at=invitation.expires_at,
    )


@router.post(
    "/diners/register",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
)
@handle_api_errors
async def register_diner(payload: DinerRegistration, db: Session = Depends(get_db)):
    """
    Complete registration from an invitation link.

    Raises:
        404: Unknown invitation
        409: Invitation used, e-mail or phone taken, restaurant not active
        410: Invitation expired
    """
    data = payload.model_dump(exclude={"token", "password", "terms_accepted", "privacy_accepted"})
    if payload.password:
        data["password_hash"] = get_password_hash(payload.password)

    result = InvitationService(db).register_diner(payload.token, data)
    return RegistrationResponse(
        user=RegisteredDiner.model_validate(result.user),
        welcome_voucher_code=result.welcome_voucher.code if result.welcome_voucher else None,
        access_token=create_user_token(result.user),
    )


@router.get("/restaurants/{restaurant_id}/invitations", response_model=List[InvitationResponse])
@handle_api_errors
async def list_invitations(
    restaurant_id: int,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id)
    return InvitationService(db).list_invitations(restaurant_id)


@router.get(
    "/restaurants/{restaurant_id}/diner-registrations",
    response_model=List[RegistrationsPerDay],
)
@handle_api_errors
async def list_diner_registrations(
    restaurant_id: int,
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id)
    return InvitationService(db).list_registered_diners(restaurant_id, start, end)
