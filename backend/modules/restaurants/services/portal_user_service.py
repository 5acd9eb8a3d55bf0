# backend/modules/restaurants/services/portal_user_service.py

from typing import Dict, Any, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from core.error_handling import NotFoundError, ConflictError, APIValidationError
from modules.auth.models import User, UserType
from ..models.restaurant_models import PortalUser, PortalRole, Branch, Restaurant
from .branch_service import BranchService

logger = logging.getLogger(__name__)


class PortalUserService:
    """Staff and manager accounts attached to a restaurant"""

    def __init__(self, db: Session):
        self.db = db
        self.branches = BranchService(db)

    def list_portal_users(self, restaurant_id: int) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(PortalUser, User)
            .join(User, PortalUser.user_id == User.id)
            .filter(PortalUser.restaurant_id == restaurant_id)
            .order_by(PortalUser.created_at)
            .all()
        )
        return [self._serialize(portal_user, user) for portal_user, user in rows]

    def get_portal_user(self, restaurant_id: int, portal_user_id: int) -> PortalUser:
        portal_user = (
            self.db.query(PortalUser)
            .filter(PortalUser.id == portal_user_id, PortalUser.restaurant_id == restaurant_id)
            .first()
        )
        if not portal_user:
            raise NotFoundError("Portal user", portal_user_id)
        return portal_user

    def add_portal_user(
        self,
        restaurant_id: int,
        email: str,
        role: str,
        added_by: int,
        has_all_branch_access: bool = True,
        branch_ids: Optional[List[int]] = None,
    ) -> Dict[str, Any]:
        """
        Grant an existing restaurant admin account access to a restaurant.

        Raises:
            NotFoundError: If no account exists for the email
            APIValidationError: If the account is a diner or a branch id is foreign
            ConflictError: If the user already has access
        """
        branch_ids = branch_ids or []
        role = getattr(role, "value", role)
        if role not in (PortalRole.MANAGER.value, PortalRole.STAFF.value):
            raise APIValidationError("role must be manager or staff")

        user = self.db.query(User).filter(User.email == email.lower()).first()
        if not user:
            raise NotFoundError("User", email)
        if user.user_type != UserType.RESTAURANT_ADMIN.value:
            raise APIValidationError(
                "This email belongs to a diner account, not a restaurant admin"
            )

        restaurant = self.db.query(Restaurant).filter(Restaurant.id == restaurant_id).first()
        if restaurant and restaurant.admin_user_id == user.id:
            raise ConflictError("The restaurant owner already has full access")

        existing = (
            self.db.query(PortalUser)
            .filter(PortalUser.user_id == user.id, PortalUser.restaurant_id == restaurant_id)
            .first()
        )
        if existing:
            raise ConflictError("This user is already a staff member of this restaurant")

        branches = self._resolve_branches(restaurant_id, has_all_branch_access, branch_ids)

        portal_user = PortalUser(
            restaurant_id=restaurant_id,
            user_id=user.id,
            role=role,
            added_by=added_by,
            has_all_branch_access=has_all_branch_access,
        )
        portal_user.branches = branches
        self.db.add(portal_user)
        self.db.commit()
        self.db.refresh(portal_user)

        logger.info(f"Added {role} {user.id} to restaurant {restaurant_id}")
        return self._serialize(portal_user, user)

    def remove_portal_user(self, restaurant_id: int, portal_user_id: int) -> None:
        portal_user = self.get_portal_user(restaurant_id, portal_user_id)
        self.db.delete(portal_user)
        self.db.commit()
        logger.info(f"Removed portal user {portal_user_id} from restaurant {restaurant_id}")

    def update_branch_access(
        self,
        restaurant_id: int,
        portal_user_id: int,
        has_all_branch_access: bool,
        branch_ids: Optional[List[int]] = None,
    ) -> PortalUser:
        portal_user = self.get_portal_user(restaurant_id, portal_user_id)
        portal_user.has_all_branch_access = has_all_branch_access
        portal_user.branches = self._resolve_branches(
            restaurant_id, has_all_branch_access, branch_ids or []
        )
        self.db.commit()
        self.db.refresh(portal_user)
        return portal_user

    def get_accessible_branch_ids(self, user_id: int, restaurant_id: int) -> Tuple[bool, List[int]]:
        """
        Returns:
            (has_all_access, branch_ids) for the user at the restaurant
        """
        restaurant = self.db.query(Restaurant).filter(Restaurant.id == restaurant_id).first()
        all_ids = [branch.id for branch in self.branches.list_branches(restaurant_id)]

        if restaurant and restaurant.admin_user_id == user_id:
            return True, all_ids

        portal_user = (
            self.db.query(PortalUser)
            .filter(PortalUser.user_id == user_id, PortalUser.restaurant_id == restaurant_id)
            .first()
        )
        if not portal_user:
            return False, []
        if portal_user.has_all_branch_access:
            return True, all_ids
        return False, portal_user.branch_ids

    def _resolve_branches(
        self, restaurant_id: int, has_all_branch_access: bool, branch_ids: List[int]
    ) -> List[Branch]:
        if has_all_branch_access or not branch_ids:
            return []
        if not self.branches.validate_branch_ids(restaurant_id, branch_ids):
            raise APIValidationError(
                "One or more branch IDs are invalid for this restaurant",
                errors={"branch_ids": branch_ids},
            )
        return self.db.query(Branch).filter(Branch.id.in_(branch_ids)).all()

    @staticmethod
    def _serialize(portal_user: PortalUser, user: User) -> Dict[str, Any]:
        return {
            "id": portal_user.id,
            "restaurant_id": portal_user.restaurant_id,
            "user_id": portal_user.user_id,
            "role": portal_user.role,
            "has_all_branch_access": portal_user.has_all_branch_access,
            "branch_ids": portal_user.branch_ids,
            "email": user.email,
            "name": user.full_name or None,
            "added_by": portal_user.added_by,
            "created_at": portal_user.created_at,
        }
