# backend/modules/restaurants/services/config_service.py

"""
Restaurant configuration: loyalty settings, profile and onboarding.
"""

from typing import Any, Dict, List
import logging

from sqlalchemy.orm import Session

from core.error_handling import NotFoundError, APIValidationError
from core.mixins import utcnow
from ..models.restaurant_models import Restaurant, OnboardingStatus, EarningMode, Scope

logger = logging.getLogger(__name__)

# (field, minimum, maximum, label)
SETTING_BOUNDS = [
    ("voucher_validity_days", 1, 365, "Voucher validity (days)"),
    ("points_per_currency", 1, 100, "Points per currency"),
    ("points_threshold", 100, 10000, "Points threshold"),
    ("visit_threshold", 1, 100, "Visit threshold"),
]

ENUM_SETTINGS = {
    "voucher_earning_mode": EarningMode,
    "loyalty_scope": Scope,
    "voucher_scope": Scope,
}


class ConfigService:
    def __init__(self, db: Session):
        self.db = db

    def get_restaurant(self, restaurant_id: int) -> Restaurant:
        restaurant = self.db.query(Restaurant).filter(Restaurant.id == restaurant_id).first()
        if not restaurant:
            raise NotFoundError("Restaurant", restaurant_id)
        return restaurant

    def list_restaurants(self) -> List[Restaurant]:
        return self.db.query(Restaurant).order_by(Restaurant.name).all()

    # ========== Loyalty Settings ==========

    @staticmethod
    def validate_settings(updates: Dict[str, Any]) -> List[str]:
        """
        Check loyalty settings against their allowed ranges.

        Returns every problem found rather than stopping at the first, so
        the admin can fix the whole form in one go.
        """
        errors = []

        for field, minimum, maximum, label in SETTING_BOUNDS:
            value = updates.get(field)
            if value is None:
                continue
            if value < minimum:
                errors.append(f"{label} must be at least {minimum}")
            elif value > maximum:
                errors.append(f"{label} cannot exceed {maximum:,}")

        if "voucher_value" in updates and updates["voucher_value"] is not None:
            if not str(updates["voucher_value"]).strip():
                errors.append("Voucher value cannot be empty")

        for field, enum_cls in ENUM_SETTINGS.items():
            value = updates.get(field)
            if value is None:
                continue
            allowed = [member.value for member in enum_cls]
            if getattr(value, "value", value) not in allowed:
                errors.append(f"{field} must be one of: {', '.join(allowed)}")

        return errors

    def update_restaurant_settings(self, restaurant_id: int, updates: Dict[str, Any]) -> Restaurant:
        restaurant = self.get_restaurant(restaurant_id)
        updates = {key: value for key, value in updates.items() if value is not None}

        errors = self.validate_settings(updates)
        if errors:
            raise APIValidationError(", ".join(errors), errors={"settings": errors})

        for field, value in updates.items():
            if field == "voucher_value":
                value = value.strip()
            setattr(restaurant, field, getattr(value, "value", value))

        self.db.commit()
        self.db.refresh(restaurant)
        logger.info(f"Updated settings for restaurant {restaurant_id}: {sorted(updates)}")
        return restaurant

    # ========== Profile & Onboarding ==========

    def update_profile(self, restaurant_id: int, updates: Dict[str, Any]) -> Restaurant:
        restaurant = self.get_restaurant(restaurant_id)
        for field, value in updates.items():
            setattr(restaurant, field, value)
        self.db.commit()
        self.db.refresh(restaurant)
        return restaurant

    def update_onboarding(self, restaurant_id: int, updates: Dict[str, Any]) -> Restaurant:
        restaurant = self.get_restaurant(restaurant_id)
        for field, value in updates.items():
            setattr(restaurant, field, value)
        self.db.commit()
        self.db.refresh(restaurant)
        return restaurant

    def submit_onboarding(self, restaurant_id: int) -> Restaurant:
        restaurant = self.get_restaurant(restaurant_id)

        if restaurant.onboarding_status != OnboardingStatus.DRAFT.value:
            raise APIValidationError("Restaurant has already been submitted or is active")

        missing = []
        if not restaurant.registration_number:
            missing.append("registration_number")
        if not restaurant.street_address or not restaurant.city:
            missing.append("address")
        if not (restaurant.contact_name and restaurant.contact_email and restaurant.contact_phone):
            missing.append("contact")
        if missing:
            raise APIValidationError(
                "Onboarding details are incomplete", errors={"missing": missing}
            )

        restaurant.onboarding_status = OnboardingStatus.SUBMITTED.value
        self.db.commit()
        self.db.refresh(restaurant)
        logger.info(f"Restaurant {restaurant_id} submitted for onboarding review")
        return restaurant

    def activate_restaurant(self, restaurant_id: int) -> Restaurant:
        restaurant = self.get_restaurant(restaurant_id)

        if restaurant.onboarding_status != OnboardingStatus.SUBMITTED.value:
            raise APIValidationError("Restaurant must be submitted before activation")

        restaurant.onboarding_status = OnboardingStatus.ACTIVE.value
        restaurant.onboarding_completed_at = utcnow()
        self.db.commit()
        self.db.refresh(restaurant)
        logger.info(f"Restaurant {restaurant_id} activated")
        return restaurant
