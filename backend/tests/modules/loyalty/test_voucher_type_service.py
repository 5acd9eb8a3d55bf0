# backend/tests/modules/loyalty/test_voucher_type_service.py

import pytest
from datetime import timedelta
from decimal import Decimal

from core.error_handling import APIValidationError, ConflictError, NotFoundError
from core.mixins import utcnow
from modules.loyalty.models import (
    Voucher,
    VoucherCategory,
    RedemptionScope,
    CampaignStatus,
    TargetAudience,
)
from modules.loyalty.services.campaign_service import CampaignService
from modules.loyalty.services.voucher_type_service import VoucherTypeService
from tests.factories import (
    UserFactory,
    RestaurantFactory,
    BranchFactory,
    VoucherFactory,
    VoucherTypeFactory,
)


@pytest.fixture
def restaurant(db):
    return RestaurantFactory()


@pytest.fixture
def service(db):
    return VoucherTypeService(db)


def voucher_type_data(**overrides):
    data = {
        "name": "R50 off",
        "description": "R50 off your next bill",
        "reward_details": "Excludes alcohol",
        "category": VoucherCategory.RAND_VALUE,
        "value": Decimal("50"),
        "credits_cost": 1,
        "validity_days": 30,
    }
    data.update(overrides)
    return data


class TestCreateVoucherType:
    def test_create_with_defaults(self, service, restaurant):
        voucher_type = service.create_voucher_type(restaurant.id, voucher_type_data())

        assert voucher_type.id is not None
        assert voucher_type.category == "rand_value"
        assert voucher_type.earning_mode == "points"
        assert voucher_type.redemption_scope == "all_branches"
        assert voucher_type.redeemable_branch_ids is None
        assert voucher_type.is_active is True

    def test_every_problem_is_reported(self, service, restaurant):
        with pytest.raises(APIValidationError) as exc_info:
            service.create_voucher_type(
                restaurant.id,
                voucher_type_data(
                    category=VoucherCategory.PERCENTAGE,
                    value=Decimal("150"),
                    credits_cost=0,
                    validity_days=0,
                    points_per_currency_override=500,
                ),
            )

        errors = exc_info.value.details["validation_errors"]
        assert set(errors) == {
            "value",
            "credits_cost",
            "validity_days",
            "points_per_currency_override",
        }

    @pytest.mark.parametrize(
        "category,extra",
        [
            (VoucherCategory.RAND_VALUE, {"value": Decimal("0")}),
            (VoucherCategory.PERCENTAGE, {"value": None}),
            (VoucherCategory.FREE_ITEM, {"value": None, "free_item_description": "  "}),
        ],
    )
    def test_category_specific_fields(self, service, restaurant, category, extra):
        with pytest.raises(APIValidationError):
            service.create_voucher_type(restaurant.id, voucher_type_data(category=category, **extra))

    def test_free_item_with_description(self, service, restaurant):
        voucher_type = service.create_voucher_type(
            restaurant.id,
            voucher_type_data(
                category=VoucherCategory.FREE_ITEM,
                value=None,
                free_item_type="dessert",
                free_item_description="Any dessert from the menu",
            ),
        )
        assert voucher_type.category == "free_item"

    def test_end_date_needs_six_months_lead_time(self, service, restaurant):
        with pytest.raises(APIValidationError) as exc_info:
            service.create_voucher_type(
                restaurant.id, voucher_type_data(expires_at=utcnow() + timedelta(days=30))
            )
        assert "expires_at" in exc_info.value.details["validation_errors"]

        voucher_type = service.create_voucher_type(
            restaurant.id, voucher_type_data(expires_at=utcnow() + timedelta(days=200))
        )
        assert voucher_type.expires_at is not None

    def test_specific_branches_must_belong_to_restaurant(self, service, restaurant):
        own = BranchFactory(restaurant_id=restaurant.id, is_default=True)
        foreign = BranchFactory(restaurant_id=RestaurantFactory().id)
        specific = RedemptionScope.SPECIFIC_BRANCHES

        with pytest.raises(APIValidationError):
            service.create_voucher_type(
                restaurant.id, voucher_type_data(redemption_scope=specific, redeemable_branch_ids=[])
            )
        with pytest.raises(APIValidationError):
            service.create_voucher_type(
                restaurant.id,
                voucher_type_data(redemption_scope=specific, redeemable_branch_ids=[foreign.id]),
            )

        voucher_type = service.create_voucher_type(
            restaurant.id,
            voucher_type_data(redemption_scope=specific, redeemable_branch_ids=[own.id]),
        )
        assert voucher_type.redeemable_branch_ids == [own.id]

    def test_branch_list_dropped_for_all_branches(self, service, restaurant):
        own = BranchFactory(restaurant_id=restaurant.id, is_default=True)

        voucher_type = service.create_voucher_type(
            restaurant.id, voucher_type_data(redeemable_branch_ids=[own.id])
        )
        assert voucher_type.redeemable_branch_ids is None

    def test_single_registration_type(self, service, restaurant):
        registration = voucher_type_data(category=VoucherCategory.REGISTRATION, value=None)
        service.create_voucher_type(restaurant.id, registration)

        with pytest.raises(ConflictError):
            service.create_voucher_type(restaurant.id, dict(registration, name="Another welcome"))

        other = RestaurantFactory()
        assert service.create_voucher_type(other.id, registration).is_registration


class TestUpdateAndDelete:
    def test_update_merges_with_stored_values(self, service, restaurant):
        voucher_type = VoucherTypeFactory(
            restaurant_id=restaurant.id,
            category=VoucherCategory.PERCENTAGE.value,
            value=Decimal("10"),
        )

        with pytest.raises(APIValidationError):
            service.update_voucher_type(restaurant.id, voucher_type.id, {"value": Decimal("200")})

        updated = service.update_voucher_type(
            restaurant.id, voucher_type.id, {"value": Decimal("25"), "credits_cost": 3}
        )
        assert updated.value == Decimal("25")
        assert updated.credits_cost == 3

    def test_switching_to_all_branches_clears_list(self, service, restaurant):
        branch = BranchFactory(restaurant_id=restaurant.id, is_default=True)
        voucher_type = VoucherTypeFactory(
            restaurant_id=restaurant.id,
            redemption_scope=RedemptionScope.SPECIFIC_BRANCHES.value,
            redeemable_branch_ids=[branch.id],
        )

        updated = service.update_voucher_type(
            restaurant.id, voucher_type.id, {"redemption_scope": RedemptionScope.ALL_BRANCHES}
        )

        assert updated.redemption_scope == "all_branches"
        assert updated.redeemable_branch_ids is None

    def test_cannot_turn_second_type_into_registration(self, service, restaurant):
        VoucherTypeFactory(
            restaurant_id=restaurant.id, category=VoucherCategory.REGISTRATION.value, value=None
        )
        voucher_type = VoucherTypeFactory(restaurant_id=restaurant.id)

        with pytest.raises(ConflictError):
            service.update_voucher_type(
                restaurant.id, voucher_type.id, {"category": VoucherCategory.REGISTRATION}
            )

    def test_delete_detaches_issued_vouchers(self, db, service, restaurant):
        voucher_type = VoucherTypeFactory(restaurant_id=restaurant.id)
        voucher = VoucherFactory(
            diner_id=UserFactory().id,
            restaurant_id=restaurant.id,
            voucher_type_id=voucher_type.id,
        )

        service.delete_voucher_type(restaurant.id, voucher_type.id)

        db.refresh(voucher)
        assert voucher.voucher_type_id is None
        assert db.query(Voucher).count() == 1
        with pytest.raises(NotFoundError):
            service.get_voucher_type(restaurant.id, voucher_type.id)

    def test_active_listing_hides_inactive_and_ended_types(self, service, restaurant):
        live = VoucherTypeFactory(restaurant_id=restaurant.id)
        VoucherTypeFactory(restaurant_id=restaurant.id, is_active=False)
        VoucherTypeFactory(restaurant_id=restaurant.id, expires_at=utcnow() - timedelta(days=1))

        assert [t.id for t in service.list_voucher_types(restaurant.id, active_only=True)] == [live.id]
        assert len(service.list_voucher_types(restaurant.id)) == 3


class TestCampaigns:
    def test_create_is_scheduled(self, db, restaurant):
        campaign = CampaignService(db).create_campaign(
            restaurant.id,
            {"name": "Winter", "voucher_title": "Free soup", "target_audience": TargetAudience.VIP},
        )

        assert campaign.status == "scheduled"
        assert campaign.target_audience == "vip"

    def test_status_only_moves_forward(self, db, restaurant):
        service = CampaignService(db)
        campaign = service.create_campaign(restaurant.id, {"name": "Winter", "voucher_title": "Soup"})

        assert service.update_status(restaurant.id, campaign.id, CampaignStatus.ACTIVE).status == "active"
        with pytest.raises(ConflictError):
            service.update_status(restaurant.id, campaign.id, CampaignStatus.SCHEDULED)
        with pytest.raises(ConflictError):
            service.update_status(restaurant.id, campaign.id, "active")
        assert service.update_status(restaurant.id, campaign.id, "completed").status == "completed"

    def test_campaign_of_another_restaurant(self, db, restaurant):
        service = CampaignService(db)
        campaign = service.create_campaign(restaurant.id, {"name": "Winter", "voucher_title": "Soup"})

        with pytest.raises(NotFoundError):
            service.get_campaign(RestaurantFactory().id, campaign.id)
