# backend/core/permissions.py

"""
Restaurant-level access control for portal users.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from .auth import AuthUser
from .error_handling import AuthorizationError, NotFoundError

ROLE_RANK = {"staff": 1, "manager": 2, "owner": 3}


@dataclass
class RestaurantAccess:
    """Caller's role at a restaurant and the branches they may act on"""

    restaurant_id: int
    user_id: int
    role: str
    has_all_access: bool
    branch_ids: List[int] = field(default_factory=list)

    def can_access_branch(self, branch_id: int) -> bool:
        return self.has_all_access or branch_id in self.branch_ids

    def at_least(self, role: str) -> bool:
        return ROLE_RANK[self.role] >= ROLE_RANK[role]


def check_restaurant_access(
    db: Session,
    user: AuthUser,
    restaurant_id: int,
    minimum_role: str = "staff",
) -> RestaurantAccess:
    """
    Resolve the caller's access to a restaurant.

    The restaurant's admin account is the owner; other admin accounts need a
    portal user row granting manager or staff access.

    Raises:
        NotFoundError: If the restaurant doesn't exist
        AuthorizationError: If the caller has no access or too low a role
    """
    from modules.restaurants.models import Restaurant, PortalUser
    from modules.restaurants.services.portal_user_service import PortalUserService

    restaurant = db.query(Restaurant).filter(Restaurant.id == restaurant_id).first()
    if not restaurant:
        raise NotFoundError("Restaurant", restaurant_id)

    if restaurant.admin_user_id == user.id:
        role = "owner"
    else:
        portal_user = (
            db.query(PortalUser)
            .filter(PortalUser.restaurant_id == restaurant_id, PortalUser.user_id == user.id)
            .first()
        )
        if not portal_user:
            raise AuthorizationError("You do not have access to this restaurant")
        role = portal_user.role

    has_all_access, branch_ids = PortalUserService(db).get_accessible_branch_ids(
        user.id, restaurant_id
    )
    access = RestaurantAccess(
        restaurant_id=restaurant_id,
        user_id=user.id,
        role=role,
        has_all_access=has_all_access,
        branch_ids=branch_ids,
    )
    if not access.at_least(minimum_role):
        raise AuthorizationError(f"This action requires the {minimum_role} role or higher")
    return access


def resolve_branch_filter(access: RestaurantAccess, branch_id: Optional[int]) -> Optional[int]:
    """
    Branch a query should be limited to, or None for every branch.

    Users restricted to specific branches are pinned to their first
    assigned branch when they don't ask for one.
    """
    if branch_id is not None:
        if not access.can_access_branch(branch_id):
            raise AuthorizationError("You do not have access to this branch")
        return branch_id

    if access.has_all_access:
        return None

    if not access.branch_ids:
        raise AuthorizationError("You have not been assigned to any branch")
    return access.branch_ids[0]
