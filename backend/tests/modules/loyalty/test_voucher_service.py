# backend/tests/modules/loyalty/test_voucher_service.py

"""
Tests for voucher presentation by diners and redemption at the till.
"""

import pytest
from datetime import timedelta

from core.error_handling import ConflictError, ExpiredError, NotFoundError, APIValidationError
from core.mixins import utcnow
from modules.loyalty.exceptions import (
    AlreadyRedeemedError,
    CodeExpiredError,
    VoucherExpiredError,
    VoucherNotFoundError,
    WrongBranchError,
    WrongRestaurantError,
)
from modules.loyalty.models import RedemptionScope
from modules.loyalty.services.voucher_service import VoucherService, check_voucher_status
from modules.restaurants.models import Scope
from tests.factories import (
    UserFactory,
    RestaurantFactory,
    BranchFactory,
    VoucherFactory,
    VoucherTypeFactory,
)


@pytest.fixture
def diner(db):
    return UserFactory()


@pytest.fixture
def restaurant(db):
    return RestaurantFactory()


@pytest.fixture
def voucher(diner, restaurant):
    return VoucherFactory(diner_id=diner.id, restaurant_id=restaurant.id)


@pytest.fixture
def service(db):
    return VoucherService(db)


class TestVoucherStatus:
    def test_check_voucher_status(self, voucher):
        assert check_voucher_status(voucher) == (True, None)

        voucher.is_redeemed = True
        assert check_voucher_status(voucher) == (False, "Voucher has already been redeemed")

    def test_diner_vouchers_report_status(self, service, diner, restaurant, voucher):
        VoucherFactory(
            diner_id=diner.id,
            restaurant_id=restaurant.id,
            expiry_date=utcnow() - timedelta(days=1),
        )
        VoucherFactory(diner_id=diner.id, restaurant_id=restaurant.id, is_redeemed=True)

        statuses = sorted(v["status"] for v in service.get_diner_vouchers(diner.id))

        assert statuses == ["active", "expired", "redeemed"]


class TestPresentation:
    def test_select_stamps_short_code(self, db, service, diner, voucher):
        result = service.select_voucher_for_presentation(diner.id, voucher.id)

        assert result.code.isdigit()
        assert len(result.code) == 6
        assert result.voucher.id == voucher.id
        db.refresh(diner)
        assert diner.active_voucher_id == voucher.id
        assert diner.active_voucher_code == result.code
        assert result.expires_at - diner.active_voucher_code_set_at == timedelta(minutes=15)

    def test_selecting_again_replaces_previous_voucher(self, db, service, diner, restaurant, voucher):
        other = VoucherFactory(diner_id=diner.id, restaurant_id=restaurant.id)

        service.select_voucher_for_presentation(diner.id, voucher.id)
        service.select_voucher_for_presentation(diner.id, other.id)

        db.refresh(diner)
        assert diner.active_voucher_id == other.id

    def test_cannot_select_someone_elses_voucher(self, service, voucher):
        stranger = UserFactory()
        with pytest.raises(NotFoundError):
            service.select_voucher_for_presentation(stranger.id, voucher.id)

    def test_cannot_select_redeemed_voucher(self, service, diner, restaurant):
        redeemed = VoucherFactory(diner_id=diner.id, restaurant_id=restaurant.id, is_redeemed=True)
        with pytest.raises(ConflictError):
            service.select_voucher_for_presentation(diner.id, redeemed.id)

    def test_cannot_select_expired_voucher(self, service, diner, restaurant):
        expired = VoucherFactory(
            diner_id=diner.id,
            restaurant_id=restaurant.id,
            expiry_date=utcnow() - timedelta(minutes=1),
        )
        with pytest.raises(ExpiredError):
            service.select_voucher_for_presentation(diner.id, expired.id)


class TestRedemption:
    def test_presented_code_redeems_and_clears_presentation(self, db, service, diner, restaurant, voucher):
        presented = service.select_voucher_for_presentation(diner.id, voucher.id)

        result = service.redeem_voucher_by_code(restaurant.id, presented.code, bill_id="POS-1")

        assert result.used_presented_code is True
        assert result.diner.id == diner.id
        assert result.voucher.is_redeemed is True
        assert result.voucher.bill_id == "POS-1"
        assert result.voucher.redeemed_at is not None
        assert "redeemed successfully" in result.message
        db.refresh(diner)
        assert diner.active_voucher_id is None
        assert diner.active_voucher_code is None

    def test_voucher_code_is_accepted_case_insensitively(self, service, restaurant, voucher):
        result = service.redeem_voucher_by_code(restaurant.id, voucher.code.lower())

        assert result.used_presented_code is False
        assert result.voucher.id == voucher.id

    def test_double_redemption_is_rejected(self, db, service, restaurant, voucher):
        first = service.redeem_voucher_by_code(restaurant.id, voucher.code, bill_id="POS-1")
        redeemed_at = first.voucher.redeemed_at

        with pytest.raises(AlreadyRedeemedError) as exc_info:
            service.redeem_voucher_by_code(restaurant.id, voucher.code, bill_id="POS-2")

        assert exc_info.value.details["reason"] == "already_redeemed"
        db.refresh(voucher)
        assert voucher.bill_id == "POS-1"
        assert voucher.redeemed_at == redeemed_at

    def test_presented_code_expires_after_window(self, db, service, diner, restaurant, voucher):
        presented = service.select_voucher_for_presentation(diner.id, voucher.id)
        diner.active_voucher_code_set_at = utcnow() - timedelta(minutes=16)
        db.commit()

        with pytest.raises(CodeExpiredError) as exc_info:
            service.redeem_voucher_by_code(restaurant.id, presented.code)

        assert exc_info.value.details["reason"] == "code_expired"
        db.refresh(voucher)
        assert voucher.is_redeemed is False

    def test_presented_code_valid_inside_window(self, db, service, diner, restaurant, voucher):
        presented = service.select_voucher_for_presentation(diner.id, voucher.id)
        diner.active_voucher_code_set_at = utcnow() - timedelta(minutes=14)
        db.commit()

        result = service.redeem_voucher_by_code(restaurant.id, presented.code)
        assert result.voucher.is_redeemed is True

    def test_expired_voucher(self, service, diner, restaurant):
        expired = VoucherFactory(
            diner_id=diner.id,
            restaurant_id=restaurant.id,
            expiry_date=utcnow() - timedelta(days=1),
        )
        with pytest.raises(VoucherExpiredError):
            service.redeem_voucher_by_code(restaurant.id, expired.code)

    def test_wrong_restaurant(self, service, voucher):
        other = RestaurantFactory()
        with pytest.raises(WrongRestaurantError) as exc_info:
            service.redeem_voucher_by_code(other.id, voucher.code)
        assert exc_info.value.status_code == 403

    def test_unknown_code(self, service, restaurant):
        with pytest.raises(VoucherNotFoundError):
            service.redeem_voucher_by_code(restaurant.id, "NOPE-000000")

    def test_blank_code(self, service, restaurant):
        with pytest.raises(APIValidationError):
            service.redeem_voucher_by_code(restaurant.id, "   ")

    def test_type_restricted_to_specific_branches(self, service, diner, restaurant):
        allowed = BranchFactory(restaurant_id=restaurant.id, is_default=True)
        elsewhere = BranchFactory(restaurant_id=restaurant.id)
        voucher_type = VoucherTypeFactory(
            restaurant_id=restaurant.id,
            redemption_scope=RedemptionScope.SPECIFIC_BRANCHES.value,
            redeemable_branch_ids=[allowed.id],
        )
        voucher = VoucherFactory(
            diner_id=diner.id, restaurant_id=restaurant.id, voucher_type_id=voucher_type.id
        )

        with pytest.raises(WrongBranchError):
            service.redeem_voucher_by_code(restaurant.id, voucher.code, branch_id=elsewhere.id)

        result = service.redeem_voucher_by_code(restaurant.id, voucher.code, branch_id=allowed.id)
        assert result.voucher.redeemed_branch_id == allowed.id

    def test_branch_scoped_vouchers_stay_at_their_branch(self, service, diner):
        restaurant = RestaurantFactory(voucher_scope=Scope.BRANCH.value)
        home = BranchFactory(restaurant_id=restaurant.id, is_default=True)
        away = BranchFactory(restaurant_id=restaurant.id)
        voucher = VoucherFactory(diner_id=diner.id, restaurant_id=restaurant.id, branch_id=home.id)

        with pytest.raises(WrongBranchError):
            service.redeem_voucher_by_code(restaurant.id, voucher.code, branch_id=away.id)
