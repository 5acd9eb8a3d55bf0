# backend/modules/restaurants/routes/restaurant_routes.py

"""
Restaurant configuration, branches, staff, dashboard stats and activity log.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date, timedelta
import logging

from core.database import get_db
from core.auth import AuthUser, require_restaurant_admin
from core.error_handling import handle_api_errors
from core.mixins import utcnow
from core.permissions import check_restaurant_access, resolve_branch_filter

from ..services.activity_log_service import ActivityLogService
from ..services.branch_service import BranchService
from ..services.config_service import ConfigService
from ..services.portal_user_service import PortalUserService
from ..services.stats_service import StatsService, STATS_WINDOW_DAYS
from ..schemas.restaurant_schemas import (
    RestaurantResponse,
    RestaurantSettingsUpdate,
    RestaurantProfileUpdate,
    OnboardingUpdate,
    BranchCreate,
    BranchUpdate,
    BranchResponse,
    PortalUserCreate,
    BranchAccessUpdate,
    PortalUserResponse,
    ActivityLogResponse,
    RestaurantStats,
    RevenuePoint,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/restaurants", tags=["Restaurants"])


def _log(db: Session, restaurant_id: int, action: str, user: AuthUser, **kwargs) -> None:
    ActivityLogService(db).record(restaurant_id=restaurant_id, action=action, user_id=user.id, **kwargs)


# ========== Restaurants ==========


@router.get("", response_model=List[RestaurantResponse])
@handle_api_errors
async def list_restaurants(db: Session = Depends(get_db)):
    return ConfigService(db).list_restaurants()


@router.get("/{restaurant_id}", response_model=RestaurantResponse)
@handle_api_errors
async def get_restaurant(restaurant_id: int, db: Session = Depends(get_db)):
    return ConfigService(db).get_restaurant(restaurant_id)


@router.patch("/{restaurant_id}/settings", response_model=RestaurantResponse)
@handle_api_errors
async def update_settings(
    restaurant_id: int,
    payload: RestaurantSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    """
    Update loyalty settings. Owners and managers only.

    Raises:
        422: One or more settings out of bounds; every violation is listed
    """
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="manager")
    updates = payload.model_dump(exclude_unset=True)
    restaurant = ConfigService(db).update_restaurant_settings(restaurant_id, updates)
    _log(
        db, restaurant_id, "settings_updated", current_user,
        target_type="restaurant", target_id=restaurant_id,
        details={"fields": sorted(updates)},
    )
    return restaurant


@router.patch("/{restaurant_id}/profile", response_model=RestaurantResponse)
@handle_api_errors
async def update_profile(
    restaurant_id: int,
    payload: RestaurantProfileUpdate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="manager")
    updates = payload.model_dump(exclude_unset=True)
    restaurant = ConfigService(db).update_profile(restaurant_id, updates)
    _log(
        db, restaurant_id, "profile_updated", current_user,
        target_type="restaurant", target_id=restaurant_id,
        details={"fields": sorted(updates)},
    )
    return restaurant


@router.patch("/{restaurant_id}/onboarding", response_model=RestaurantResponse)
@handle_api_errors
async def update_onboarding(
    restaurant_id: int,
    payload: OnboardingUpdate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="owner")
    return ConfigService(db).update_onboarding(restaurant_id, payload.model_dump(exclude_unset=True))


@router.post("/{restaurant_id}/onboarding/submit", response_model=RestaurantResponse)
@handle_api_errors
async def submit_onboarding(
    restaurant_id: int,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    """
    Raises:
        422: Already submitted, or registration number, address or contact missing
    """
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="owner")
    restaurant = ConfigService(db).submit_onboarding(restaurant_id)
    _log(db, restaurant_id, "onboarding_submitted", current_user, target_type="restaurant", target_id=restaurant_id)
    return restaurant


@router.post("/{restaurant_id}/activate", response_model=RestaurantResponse)
@handle_api_errors
async def activate_restaurant(
    restaurant_id: int,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="owner")
    restaurant = ConfigService(db).activate_restaurant(restaurant_id)
    _log(db, restaurant_id, "restaurant_activated", current_user, target_type="restaurant", target_id=restaurant_id)
    return restaurant


# ========== Branches ==========


@router.get("/{restaurant_id}/branches", response_model=List[BranchResponse])
@handle_api_errors
async def list_branches(
    restaurant_id: int,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    access = check_restaurant_access(db, current_user, restaurant_id)
    branches = BranchService(db).list_branches(restaurant_id)
    return [branch for branch in branches if access.can_access_branch(branch.id)]


@router.post(
    "/{restaurant_id}/branches",
    response_model=BranchResponse,
    status_code=status.HTTP_201_CREATED,
)
@handle_api_errors
async def create_branch(
    restaurant_id: int,
    payload: BranchCreate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="owner")
    branch = BranchService(db).create_branch(restaurant_id, **payload.model_dump())
    _log(
        db, restaurant_id, "branch_created", current_user,
        target_type="branch", target_id=branch.id, details={"name": branch.name},
    )
    return branch


@router.patch("/{restaurant_id}/branches/{branch_id}", response_model=BranchResponse)
@handle_api_errors
async def update_branch(
    restaurant_id: int,
    branch_id: int,
    payload: BranchUpdate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    """
    Raises:
        409: Unsetting the default flag on the default branch
    """
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="owner")
    updates = payload.model_dump(exclude_unset=True)
    branch = BranchService(db).update_branch(restaurant_id, branch_id, dict(updates))
    _log(
        db, restaurant_id, "branch_updated", current_user,
        target_type="branch", target_id=branch.id, details={"fields": sorted(updates)},
    )
    return branch


@router.post("/{restaurant_id}/branches/{branch_id}/default", response_model=BranchResponse)
@handle_api_errors
async def set_default_branch(
    restaurant_id: int,
    branch_id: int,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="owner")
    branch = BranchService(db).set_default_branch(restaurant_id, branch_id)
    _log(db, restaurant_id, "default_branch_changed", current_user, target_type="branch", target_id=branch.id)
    return branch


@router.delete("/{restaurant_id}/branches/{branch_id}", status_code=status.HTTP_204_NO_CONTENT)
@handle_api_errors
async def delete_branch(
    restaurant_id: int,
    branch_id: int,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    """
    Raises:
        409: The default branch cannot be deleted
    """
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="owner")
    BranchService(db).delete_branch(restaurant_id, branch_id)
    _log(db, restaurant_id, "branch_deleted", current_user, target_type="branch", target_id=branch_id)


# ========== Stats ==========


@router.get("/{restaurant_id}/stats", response_model=RestaurantStats)
@handle_api_errors
async def get_stats(
    restaurant_id: int,
    branch_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    access = check_restaurant_access(db, current_user, restaurant_id)
    branch_id = resolve_branch_filter(access, branch_id)
    return StatsService(db).get_restaurant_stats(restaurant_id, branch_id)


@router.get("/{restaurant_id}/revenue", response_model=List[RevenuePoint])
@handle_api_errors
async def get_revenue(
    restaurant_id: int,
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    branch_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    """Daily revenue, the last 30 days unless a range is given."""
    access = check_restaurant_access(db, current_user, restaurant_id)
    branch_id = resolve_branch_filter(access, branch_id)

    end = end or utcnow().date()
    start = start or end - timedelta(days=STATS_WINDOW_DAYS)
    return StatsService(db).get_revenue_by_date_range(restaurant_id, start, end, branch_id)


# ========== Staff ==========


@router.get("/{restaurant_id}/portal-users", response_model=List[PortalUserResponse])
@handle_api_errors
async def list_portal_users(
    restaurant_id: int,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="manager")
    return PortalUserService(db).list_portal_users(restaurant_id)


@router.post(
    "/{restaurant_id}/portal-users",
    response_model=PortalUserResponse,
    status_code=status.HTTP_201_CREATED,
)
@handle_api_errors
async def add_portal_user(
    restaurant_id: int,
    payload: PortalUserCreate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    """
    Give an existing restaurant admin account access. Owner only.

    Raises:
        404: No account for the e-mail address
        409: Already a staff member, or the owner
        422: Diner account or foreign branch ids
    """
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="owner")
    portal_user = PortalUserService(db).add_portal_user(
        restaurant_id=restaurant_id,
        email=payload.email,
        role=payload.role,
        added_by=current_user.id,
        has_all_branch_access=payload.has_all_branch_access,
        branch_ids=payload.branch_ids,
    )
    _log(
        db, restaurant_id, "staff_added", current_user,
        target_type="portal_user", target_id=portal_user["id"],
        details={"email": portal_user["email"], "role": portal_user["role"]},
    )
    return portal_user


@router.delete(
    "/{restaurant_id}/portal-users/{portal_user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
@handle_api_errors
async def remove_portal_user(
    restaurant_id: int,
    portal_user_id: int,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="owner")
    PortalUserService(db).remove_portal_user(restaurant_id, portal_user_id)
    _log(db, restaurant_id, "staff_removed", current_user, target_type="portal_user", target_id=portal_user_id)


@router.put(
    "/{restaurant_id}/portal-users/{portal_user_id}/branches",
    response_model=PortalUserResponse,
)
@handle_api_errors
async def update_portal_user_branches(
    restaurant_id: int,
    portal_user_id: int,
    payload: BranchAccessUpdate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="owner")
    service = PortalUserService(db)
    service.update_branch_access(
        restaurant_id, portal_user_id, payload.has_all_branch_access, payload.branch_ids
    )
    _log(
        db, restaurant_id, "staff_branch_access_updated", current_user,
        target_type="portal_user", target_id=portal_user_id,
        details={"has_all_branch_access": payload.has_all_branch_access, "branch_ids": payload.branch_ids},
    )
    return next(p for p in service.list_portal_users(restaurant_id) if p["id"] == portal_user_id)


# ========== Activity Log ==========


@router.get("/{restaurant_id}/activity-logs", response_model=List[ActivityLogResponse])
@handle_api_errors
async def list_activity_logs(
    restaurant_id: int,
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(require_restaurant_admin),
):
    check_restaurant_access(db, current_user, restaurant_id, minimum_role="manager")
    return ActivityLogService(db).list_logs(restaurant_id, limit)
