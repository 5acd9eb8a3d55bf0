# backend/tests/modules/invitations/test_invitation_service.py

from datetime import timedelta

import pytest

from core.error_handling import APIValidationError, ConflictError, ExpiredError, NotFoundError
from core.mixins import utcnow
from core.notification_adapter import LoggingAdapter, NotificationChannel
from modules.invitations.models import DinerInvitation, InvitationStatus
from modules.invitations.services.invitation_service import InvitationService, validate_phone
from modules.loyalty.models import PointsBalance, Voucher, VoucherCategory
from modules.restaurants.models import OnboardingStatus
from tests.factories import (
    UserFactory,
    AdminUserFactory,
    RestaurantFactory,
    DinerInvitationFactory,
    VoucherTypeFactory,
)


class FailingAdapter(LoggingAdapter):
    def send(self, message):
        raise RuntimeError("gateway unavailable")


@pytest.fixture
def restaurant(db):
    return RestaurantFactory(name="Kota King")


def registration_data(**overrides):
    data = {
        "email": "Lerato@Example.com",
        "name": "Lerato",
        "last_name": "Dlamini",
        "gender": "female",
        "age_range": "30-39",
        "province": "Gauteng",
    }
    data.update(overrides)
    return data


class TestPhoneValidation:
    def test_strips_formatting(self):
        assert validate_phone("+27 (82) 555-1234") == "+27825551234"

    def test_too_short(self):
        with pytest.raises(APIValidationError) as exc:
            validate_phone("12 34")
        assert exc.value.details["validation_errors"] == {"phone": "too_short"}

    def test_invalid_characters(self):
        with pytest.raises(APIValidationError) as exc:
            validate_phone("0825551abc")
        assert exc.value.details["validation_errors"] == {"phone": "invalid_characters"}


class TestCreateInvitation:
    def test_sends_sms_with_link(self, db, restaurant, notifier):
        admin = AdminUserFactory()

        result = InvitationService(db, notifier).create_invitation(
            restaurant.id, "082 555 1234", invited_by=admin.id
        )

        invitation = result.invitation
        assert invitation.phone == "0825551234"
        assert invitation.status == InvitationStatus.PENDING.value
        assert invitation.invited_by == admin.id
        assert invitation.expires_at > utcnow() + timedelta(days=6)
        assert result.registration_link == f"/r/{invitation.token}"
        assert result.sms_sent is True

        sms = notifier.sent[-1]
        assert sms.channel == NotificationChannel.SMS
        assert sms.recipient == "0825551234"
        assert "Kota King" in sms.message
        assert invitation.token in sms.message

    def test_sms_failure_keeps_invitation(self, db, restaurant):
        result = InvitationService(db, FailingAdapter()).create_invitation(restaurant.id, "0825551234")

        assert result.sms_sent is False
        assert result.sms_error == "gateway unavailable"
        assert "manually" in result.message
        assert db.query(DinerInvitation).count() == 1

    def test_registered_phone_is_conflict(self, db, restaurant, notifier):
        UserFactory(phone="0825551234")

        with pytest.raises(ConflictError):
            InvitationService(db, notifier).create_invitation(restaurant.id, "082-555-1234")
        assert notifier.sent == []

    def test_unknown_restaurant(self, db, notifier):
        with pytest.raises(NotFoundError):
            InvitationService(db, notifier).create_invitation(999, "0825551234")


class TestGetInvitation:
    def test_valid_invitation(self, db, restaurant):
        invitation = DinerInvitationFactory(restaurant_id=restaurant.id)

        assert InvitationService(db).get_invitation(invitation.token).id == invitation.id

    def test_unknown_token(self, db):
        with pytest.raises(NotFoundError):
            InvitationService(db).get_invitation("nope")

    def test_expired(self, db, restaurant):
        invitation = DinerInvitationFactory(
            restaurant_id=restaurant.id, expires_at=utcnow() - timedelta(minutes=1)
        )
        with pytest.raises(ExpiredError):
            InvitationService(db).get_invitation(invitation.token)

    def test_already_used(self, db, restaurant):
        invitation = DinerInvitationFactory(
            restaurant_id=restaurant.id, status=InvitationStatus.REGISTERED.value
        )
        with pytest.raises(ConflictError):
            InvitationService(db).get_invitation(invitation.token)

    def test_restaurant_not_active(self, db):
        restaurant = RestaurantFactory(onboarding_status=OnboardingStatus.SUBMITTED.value)
        invitation = DinerInvitationFactory(restaurant_id=restaurant.id)

        with pytest.raises(ConflictError):
            InvitationService(db).get_invitation(invitation.token)


class TestRegisterDiner:
    def test_creates_diner_balance_and_welcome_voucher(self, db, restaurant):
        VoucherTypeFactory(
            restaurant_id=restaurant.id,
            name="Welcome drink",
            category=VoucherCategory.REGISTRATION.value,
            value=None,
        )
        invitation = DinerInvitationFactory(restaurant_id=restaurant.id, phone="0825551234")

        result = InvitationService(db).register_diner(invitation.token, registration_data())

        user = result.user
        assert user.email == "lerato@example.com"
        assert user.phone == "0825551234"
        assert user.is_diner
        assert user.terms_accepted_at is not None
        assert result.invitation.status == InvitationStatus.REGISTERED.value
        assert result.invitation.diner_id == user.id
        assert result.invitation.consumed_at is not None

        balance = db.query(PointsBalance).filter(PointsBalance.diner_id == user.id).one()
        assert balance.branch_id is None
        assert balance.total_vouchers_generated == 1
        assert result.welcome_voucher.category == VoucherCategory.REGISTRATION.value
        assert db.query(Voucher).filter(Voucher.diner_id == user.id).count() == 1

    def test_without_welcome_type(self, db, restaurant):
        invitation = DinerInvitationFactory(restaurant_id=restaurant.id)

        result = InvitationService(db).register_diner(invitation.token, registration_data())

        assert result.welcome_voucher is None

    def test_invitation_cannot_be_reused(self, db, restaurant):
        invitation = DinerInvitationFactory(restaurant_id=restaurant.id)
        service = InvitationService(db)
        service.register_diner(invitation.token, registration_data())

        with pytest.raises(ConflictError):
            service.register_diner(invitation.token, registration_data(email="other@example.com"))

    def test_email_taken(self, db, restaurant):
        UserFactory(email="lerato@example.com")
        invitation = DinerInvitationFactory(restaurant_id=restaurant.id)

        with pytest.raises(ConflictError):
            InvitationService(db).register_diner(invitation.token, registration_data())


class TestQueries:
    def test_registrations_per_day(self, db, restaurant):
        service = InvitationService(db)
        service.register_diner(
            DinerInvitationFactory(restaurant_id=restaurant.id).token, registration_data()
        )
        DinerInvitationFactory(restaurant_id=restaurant.id)
        today = utcnow().date()

        counts = service.list_registered_diners(restaurant.id, today - timedelta(days=2), today)

        assert [c["count"] for c in counts] == [0, 0, 1]
        assert counts[-1]["date"] == today

    def test_list_invitations_newest_first(self, db, restaurant):
        first = DinerInvitationFactory(restaurant_id=restaurant.id)
        second = DinerInvitationFactory(restaurant_id=restaurant.id)

        listed = InvitationService(db).list_invitations(restaurant.id)

        assert [i.id for i in listed] == [second.id, first.id]
