from .invitation_models import DinerInvitation, InvitationStatus

__all__ = ["DinerInvitation", "InvitationStatus"]
