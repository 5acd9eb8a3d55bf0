# backend/modules/invitations/services/invitation_service.py

"""
SMS invitations and diner self-registration.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional
import logging
import re
import secrets

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.error_handling import APIValidationError, ConflictError, ExpiredError, NotFoundError
from core.mixins import utcnow
from core.notification_adapter import NotificationAdapter, get_notification_adapter
from modules.auth.models import User, UserType
from modules.loyalty.models import Voucher
from modules.loyalty.services.loyalty_service import LoyaltyService, normalize_phone
from modules.restaurants.models import Restaurant, OnboardingStatus
from ..models.invitation_models import DinerInvitation, InvitationStatus

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^[0-9+]+$")
MIN_PHONE_LENGTH = 7


def validate_phone(phone: str) -> str:
    """Normalised phone number, or APIValidationError."""
    normalized = normalize_phone(phone or "")
    if len(normalized) < MIN_PHONE_LENGTH:
        raise APIValidationError(
            "Phone number must be at least 7 digits", errors={"phone": "too_short"}
        )
    if not PHONE_PATTERN.match(normalized):
        raise APIValidationError(
            "Phone number contains invalid characters", errors={"phone": "invalid_characters"}
        )
    return normalized


@dataclass
class InvitationResult:
    invitation: DinerInvitation
    registration_link: str
    sms_sent: bool
    sms_error: Optional[str] = None

    @property
    def message(self) -> str:
        if self.sms_sent:
            return "Invitation sent via SMS to the customer."
        return "Invitation created. Share the registration link with the customer manually."


@dataclass
class RegistrationResult:
    user: User
    invitation: DinerInvitation
    welcome_voucher: Optional[Voucher] = None


class InvitationService:
    def __init__(self, db: Session, notifier: Optional[NotificationAdapter] = None):
        self.db = db
        self.notifier = notifier or get_notification_adapter()

    def _get_restaurant(self, restaurant_id: int) -> Restaurant:
        restaurant = self.db.query(Restaurant).filter(Restaurant.id == restaurant_id).first()
        if not restaurant:
            raise NotFoundError("Restaurant", restaurant_id)
        return restaurant

    @staticmethod
    def registration_path(token: str) -> str:
        return f"/r/{token}"

    def create_invitation(
        self, restaurant_id: int, phone: str, invited_by: Optional[int] = None
    ) -> InvitationResult:
        """
        Invite a diner by SMS.

        A failed SMS never undoes the invitation; the link can be shared
        by hand.

        Raises:
            APIValidationError: Malformed phone number
            NotFoundError: Unknown restaurant
            ConflictError: Phone already belongs to an account
        """
        normalized = validate_phone(phone)
        restaurant = self._get_restaurant(restaurant_id)

        if self.db.query(User.id).filter(User.phone == normalized).first():
            raise ConflictError(
                "A customer with this phone number is already registered",
                details={"phone": normalized},
            )

        invitation = DinerInvitation(
            restaurant_id=restaurant.id,
            invited_by=invited_by,
            phone=normalized,
            token=secrets.token_urlsafe(12),
            status=InvitationStatus.PENDING.value,
            expires_at=utcnow() + timedelta(days=settings.invitation_validity_days),
        )
        self.db.add(invitation)
        self.db.commit()
        self.db.refresh(invitation)

        link = self.registration_path(invitation.token)
        full_link = f"{settings.frontend_base_url.rstrip('/')}{link}"
        sms_sent, sms_error = False, None
        try:
            sms_sent = self.notifier.send_sms(
                normalized,
                f"{restaurant.name} invites you to join their rewards programme: {full_link}",
                invitation_id=invitation.id,
            )
        except Exception as e:
            sms_error = str(e)
            logger.warning(f"Invitation SMS to {normalized} failed: {e}")

        logger.info(f"Created invitation {invitation.id} for restaurant {restaurant.id}")
        return InvitationResult(
            invitation=invitation,
            registration_link=link,
            sms_sent=bool(sms_sent),
            sms_error=sms_error,
        )

    def get_invitation(self, token: str) -> DinerInvitation:
        """
        Look up a usable invitation.

        Raises:
            NotFoundError: Unknown token
            ExpiredError: Invitation past its lifetime
            ConflictError: Already used, or restaurant not accepting registrations
        """
        invitation = self.db.query(DinerInvitation).filter(DinerInvitation.token == token).first()
        if not invitation:
            raise NotFoundError("Invitation", token)
        if utcnow() > invitation.expires_at:
            raise ExpiredError("This invitation link has expired")
        if invitation.status == InvitationStatus.REGISTERED.value:
            raise ConflictError("This invitation has already been used")

        restaurant = self._get_restaurant(invitation.restaurant_id)
        if restaurant.onboarding_status != OnboardingStatus.ACTIVE.value:
            raise ConflictError("This restaurant is not yet accepting registrations")
        return invitation

    def register_diner(self, token: str, data: Dict[str, Any]) -> RegistrationResult:
        """
        Create a diner account from an invitation.

        The new diner gets an organization-wide balance at the inviting
        restaurant and its welcome voucher when one is configured.
        """
        invitation = self.get_invitation(token)
        email = data["email"].strip().lower()

        if self.db.query(User.id).filter(User.email == email).first():
            raise ConflictError("An account with this email already exists")
        if self.db.query(User.id).filter(User.phone == invitation.phone).first():
            raise ConflictError("This phone number is already registered")

        now = utcnow()
        loyalty = LoyaltyService(self.db)
        try:
            user = User(
                email=email,
                name=data.get("name"),
                last_name=data.get("last_name"),
                phone=invitation.phone,
                user_type=UserType.DINER.value,
                password_hash=data.get("password_hash"),
                gender=data.get("gender"),
                age_range=data.get("age_range"),
                province=data.get("province"),
                terms_accepted_at=now,
            )
            self.db.add(user)
            self.db.flush()

            invitation.status = InvitationStatus.REGISTERED.value
            invitation.diner_id = user.id
            invitation.consumed_at = now

            loyalty.get_or_create_balance(user.id, invitation.restaurant_id, None)
            voucher = loyalty.issue_registration_voucher(
                user.id, invitation.restaurant_id, commit=False
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(user)
        logger.info(f"Diner {user.id} registered at restaurant {invitation.restaurant_id}")
        return RegistrationResult(user=user, invitation=invitation, welcome_voucher=voucher)

    def list_invitations(self, restaurant_id: int) -> List[DinerInvitation]:
        return (
            self.db.query(DinerInvitation)
            .filter(DinerInvitation.restaurant_id == restaurant_id)
            .order_by(DinerInvitation.created_at.desc(), DinerInvitation.id.desc())
            .all()
        )

    def list_registered_diners(
        self,
        restaurant_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """Registrations through invitations per day, zero-filled, last 30 days by default."""
        end_date = end_date or utcnow().date()
        start_date = start_date or end_date - timedelta(days=30)
        if end_date < start_date:
            start_date, end_date = end_date, start_date

        consumed = (
            self.db.query(DinerInvitation.consumed_at)
            .filter(
                DinerInvitation.restaurant_id == restaurant_id,
                DinerInvitation.status == InvitationStatus.REGISTERED.value,
                DinerInvitation.consumed_at >= datetime.combine(start_date, time.min),
                DinerInvitation.consumed_at < datetime.combine(end_date + timedelta(days=1), time.min),
            )
            .all()
        )
        counts: Dict[date, int] = {}
        for (consumed_at,) in consumed:
            counts[consumed_at.date()] = counts.get(consumed_at.date(), 0) + 1

        return [
            {"date": day, "count": counts.get(day, 0)}
            for day in (
                start_date + timedelta(days=offset)
                for offset in range((end_date - start_date).days + 1)
            )
        ]
