from .user_models import (
    User,
    UserType,
    PasswordResetToken,
    AccountDeletionRequest,
    ArchivedUser,
)

__all__ = [
    "User",
    "UserType",
    "PasswordResetToken",
    "AccountDeletionRequest",
    "ArchivedUser",
]
