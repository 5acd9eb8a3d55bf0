# backend/modules/auth/services/account_service.py

"""
Password reset and account deletion.

Tokens are e-mailed in clear and stored as SHA-256 digests.
"""

from datetime import timedelta
from typing import Optional
import hashlib
import logging
import secrets

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.auth import get_password_hash
from core.config import settings
from core.error_handling import APIValidationError, ConflictError, ExpiredError, NotFoundError
from core.mixins import utcnow
from core.notification_adapter import NotificationAdapter, get_notification_adapter
from ..models.user_models import User, PasswordResetToken, AccountDeletionRequest, ArchivedUser

logger = logging.getLogger(__name__)

RESET_TOKEN_BYTES = 32
MIN_PASSWORD_LENGTH = 8


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AccountService:
    def __init__(self, db: Session, notifier: Optional[NotificationAdapter] = None):
        self.db = db
        self.notifier = notifier or get_notification_adapter()

    # ========== Password Reset ==========

    def request_password_reset(self, email: str) -> Optional[str]:
        """
        Issue a reset token and e-mail the link.

        Unknown addresses are ignored so callers can't probe for accounts.
        Returns the clear token, or None when no account matched.
        """
        user = self.db.query(User).filter(User.email == email.strip().lower()).first()
        if not user:
            logger.info("Password reset requested for an unknown e-mail address")
            return None

        token = secrets.token_urlsafe(RESET_TOKEN_BYTES)
        self.db.add(
            PasswordResetToken(
                user_id=user.id,
                token=hash_token(token),
                expires_at=utcnow() + timedelta(minutes=settings.password_reset_token_minutes),
            )
        )
        self.db.commit()

        link = f"{settings.frontend_base_url.rstrip('/')}/reset-password?token={token}"
        if not self.notifier.send_email(
            user.email,
            "Reset your password",
            f"Use this link to choose a new password: {link}\n"
            f"The link expires in {settings.password_reset_token_minutes} minutes.",
        ):
            logger.error(f"Failed to send password reset e-mail to user {user.id}")

        logger.info(f"Password reset token issued for user {user.id}")
        return token

    def _reset_token(self, token: str) -> PasswordResetToken:
        reset = (
            self.db.query(PasswordResetToken)
            .filter(PasswordResetToken.token == hash_token(token))
            .first()
        )
        if not reset:
            raise NotFoundError("Password reset token", "provided")
        if reset.used_at is not None:
            raise ConflictError("This reset link has already been used")
        if utcnow() > reset.expires_at:
            raise ExpiredError("This reset link has expired")
        return reset

    def reset_password(self, token: str, new_password: str) -> User:
        if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
            raise APIValidationError(
                "Password must be at least 8 characters", errors={"new_password": "too_short"}
            )

        reset = self._reset_token(token)
        user = self.db.query(User).filter(User.id == reset.user_id).first()
        if not user:
            raise NotFoundError("User", reset.user_id)

        user.password_hash = get_password_hash(new_password)
        reset.used_at = utcnow()
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"Password reset completed for user {user.id}")
        return user

    # ========== Account Deletion ==========

    def request_account_deletion(self, user_id: int) -> str:
        """
        Start deletion of an account; the confirmation link is e-mailed.

        Raises:
            ConflictError: The account owns a restaurant
        """
        from modules.restaurants.models import Restaurant

        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User", user_id)
        if self.db.query(Restaurant.id).filter(Restaurant.admin_user_id == user.id).first():
            raise ConflictError(
                "Restaurant owners cannot delete their account while they own a restaurant"
            )

        token = secrets.token_urlsafe(RESET_TOKEN_BYTES)
        self.db.add(
            AccountDeletionRequest(
                user_id=user.id,
                token=hash_token(token),
                expires_at=utcnow() + timedelta(hours=settings.account_deletion_token_hours),
            )
        )
        self.db.commit()

        link = f"{settings.frontend_base_url.rstrip('/')}/confirm-deletion?token={token}"
        self.notifier.send_email(
            user.email,
            "Confirm your account deletion",
            f"Follow this link to permanently delete your account: {link}",
        )
        logger.info(f"Account deletion requested for user {user.id}")
        return token

    def confirm_account_deletion(self, token: str, reason: Optional[str] = None) -> ArchivedUser:
        """
        Archive the account and delete it with everything that hangs off it.
        """
        from modules.invitations.models import DinerInvitation
        from modules.loyalty.models import PointsBalance, Transaction, Voucher
        from modules.restaurants.models import ActivityLog, PortalUser

        request = (
            self.db.query(AccountDeletionRequest)
            .filter(AccountDeletionRequest.token == hash_token(token))
            .first()
        )
        if not request:
            raise NotFoundError("Account deletion request", "provided")
        if request.confirmed_at is not None:
            raise ConflictError("This account deletion has already been confirmed")
        if utcnow() > request.expires_at:
            raise ExpiredError("This confirmation link has expired")

        user = self.db.query(User).filter(User.id == request.user_id).first()
        if not user:
            raise NotFoundError("User", request.user_id)

        user_id = user.id
        archived = ArchivedUser(
            original_user_id=user_id,
            email=user.email,
            phone=user.phone,
            user_type=user.user_type,
            snapshot={
                "name": user.name,
                "last_name": user.last_name,
                "gender": user.gender,
                "age_range": user.age_range,
                "province": user.province,
                "created_at": user.created_at.isoformat() if user.created_at else None,
            },
            reason=reason,
            archived_at=utcnow(),
        )

        try:
            self.db.add(archived)
            user.clear_presentation()
            self.db.flush()

            self.db.query(DinerInvitation).filter(DinerInvitation.diner_id == user_id).update(
                {DinerInvitation.diner_id: None}, synchronize_session=False
            )
            self.db.query(DinerInvitation).filter(DinerInvitation.invited_by == user_id).update(
                {DinerInvitation.invited_by: None}, synchronize_session=False
            )
            self.db.query(ActivityLog).filter(ActivityLog.user_id == user_id).update(
                {ActivityLog.user_id: None}, synchronize_session=False
            )
            self.db.query(PortalUser).filter(PortalUser.added_by == user_id).update(
                {PortalUser.added_by: None}, synchronize_session=False
            )
            for portal_user in self.db.query(PortalUser).filter(PortalUser.user_id == user_id):
                self.db.delete(portal_user)

            for model in (PointsBalance, Transaction, Voucher, PasswordResetToken, AccountDeletionRequest):
                column = model.diner_id if hasattr(model, "diner_id") else model.user_id
                self.db.query(model).filter(column == user_id).delete(synchronize_session=False)

            self.db.delete(user)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(archived)
        logger.info(f"User {user_id} deleted and archived as {archived.id}")
        return archived
