from .restaurant_models import (
    Restaurant,
    Branch,
    PortalUser,
    ActivityLog,
    portal_user_branches,
    EarningMode,
    Scope,
    OnboardingStatus,
    PortalRole,
)

__all__ = [
    "Restaurant",
    "Branch",
    "PortalUser",
    "ActivityLog",
    "portal_user_branches",
    "EarningMode",
    "Scope",
    "OnboardingStatus",
    "PortalRole",
]
