# backend/tests/modules/loyalty/test_loyalty_routes.py

"""
API tests for spend recording, diner balances and credit redemption.
"""

import pytest

from modules.auth.models import User
from modules.restaurants.models import ActivityLog, PortalRole
from tests.factories import (
    UserFactory,
    AdminUserFactory,
    RestaurantFactory,
    PortalUserFactory,
    PointsBalanceFactory,
    VoucherTypeFactory,
    VoucherFactory,
)


@pytest.fixture
def restaurant(db):
    return RestaurantFactory()


@pytest.fixture
def owner(db, restaurant):
    return db.get(User, restaurant.admin_user_id)


@pytest.fixture
def diner(db):
    return UserFactory()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestRecordTransaction:
    def test_owner_records_spend(self, db, client, auth_headers, owner, restaurant, diner):
        response = client.post(
            "/api/transactions",
            json={
                "diner_id": diner.id,
                "restaurant_id": restaurant.id,
                "amount_spent": "1200",
                "bill_id": "POS-77",
            },
            headers=auth_headers(owner),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["points_earned"] == 1200
        assert body["credits_earned"] == 1
        assert body["points_until_next_credit"] == 800
        assert body["balance"]["current_points"] == 200
        assert body["balance"]["available_voucher_credits"] == 1
        assert body["transaction"]["bill_id"] == "POS-77"

        log = db.query(ActivityLog).filter(ActivityLog.action == "transaction_recorded").one()
        assert log.user_id == owner.id
        assert log.details["diner_id"] == diner.id

    def test_negative_amount_is_rejected(self, client, auth_headers, owner, restaurant, diner):
        response = client.post(
            "/api/transactions",
            json={"diner_id": diner.id, "restaurant_id": restaurant.id, "amount_spent": "-1"},
            headers=auth_headers(owner),
        )
        assert response.status_code == 422

    def test_requires_token(self, client, restaurant, diner):
        response = client.post(
            "/api/transactions",
            json={"diner_id": diner.id, "restaurant_id": restaurant.id, "amount_spent": "10"},
        )
        assert response.status_code == 401

    def test_diners_cannot_record(self, client, auth_headers, restaurant, diner):
        response = client.post(
            "/api/transactions",
            json={"diner_id": diner.id, "restaurant_id": restaurant.id, "amount_spent": "10"},
            headers=auth_headers(diner),
        )
        assert response.status_code == 403

    def test_admin_of_another_restaurant_is_forbidden(self, client, auth_headers, restaurant, diner):
        outsider = AdminUserFactory()
        response = client.post(
            "/api/transactions",
            json={"diner_id": diner.id, "restaurant_id": restaurant.id, "amount_spent": "10"},
            headers=auth_headers(outsider),
        )
        assert response.status_code == 403

    def test_staff_record_by_phone(self, client, auth_headers, restaurant):
        staff = AdminUserFactory()
        PortalUserFactory(restaurant_id=restaurant.id, user_id=staff.id, role=PortalRole.STAFF.value)
        diner = UserFactory(phone="0825550199")

        response = client.post(
            f"/api/restaurants/{restaurant.id}/transactions/record",
            json={"phone": "082 555 0199", "amount_spent": "250.75"},
            headers=auth_headers(staff),
        )

        assert response.status_code == 201
        assert response.json()["transaction"]["diner_id"] == diner.id
        assert response.json()["points_earned"] == 250

    def test_zero_spend_by_phone_is_recorded(self, client, auth_headers, owner, restaurant):
        diner = UserFactory(phone="0825550123")
        headers = auth_headers(owner)

        response = client.post(
            f"/api/restaurants/{restaurant.id}/transactions/record",
            json={"phone": "0825550123", "amount_spent": "0"},
            headers=headers,
        )
        assert response.status_code == 201
        assert response.json()["transaction"]["diner_id"] == diner.id
        assert response.json()["points_earned"] == 0

        response = client.post(
            f"/api/restaurants/{restaurant.id}/transactions/record",
            json={"phone": "0825550123", "amount_spent": "-5"},
            headers=headers,
        )
        assert response.status_code == 422

    def test_unknown_phone_is_404(self, client, auth_headers, owner, restaurant):
        response = client.post(
            f"/api/restaurants/{restaurant.id}/transactions/record",
            json={"phone": "0119998888", "amount_spent": "10"},
            headers=auth_headers(owner),
        )
        assert response.status_code == 404

    def test_list_restaurant_transactions(self, client, auth_headers, owner, restaurant, diner):
        headers = auth_headers(owner)
        client.post(
            "/api/transactions",
            json={"diner_id": diner.id, "restaurant_id": restaurant.id, "amount_spent": "10"},
            headers=headers,
        )

        response = client.get(f"/api/restaurants/{restaurant.id}/transactions", headers=headers)

        assert response.status_code == 200
        assert [t["diner_id"] for t in response.json()] == [diner.id]


class TestDinerEndpoints:
    def test_points_and_history(self, client, auth_headers, owner, restaurant, diner):
        client.post(
            "/api/transactions",
            json={"diner_id": diner.id, "restaurant_id": restaurant.id, "amount_spent": "300"},
            headers=auth_headers(owner),
        )

        points = client.get("/api/diner/points", headers=auth_headers(diner))
        history = client.get("/api/diner/transactions", headers=auth_headers(diner))

        assert points.status_code == 200
        assert points.json()[0]["current_points"] == 300
        assert points.json()[0]["restaurant_name"] == restaurant.name
        assert history.json()["total"] == 1

    def test_admins_have_no_diner_view(self, client, auth_headers, owner):
        assert client.get("/api/diner/points", headers=auth_headers(owner)).status_code == 403

    def test_redeem_own_credit(self, client, auth_headers, restaurant, diner):
        PointsBalanceFactory(diner_id=diner.id, restaurant_id=restaurant.id, points_credits=1)
        voucher_type = VoucherTypeFactory(restaurant_id=restaurant.id)

        response = client.post(
            f"/api/diners/{diner.id}/restaurants/{restaurant.id}/redeem-credit",
            json={"voucher_type_id": voucher_type.id},
            headers=auth_headers(diner),
        )

        assert response.status_code == 201
        assert response.json()["balance"]["points_credits"] == 0
        assert response.json()["voucher"]["title"] == voucher_type.name

    def test_cannot_spend_another_diners_credit(self, client, auth_headers, restaurant, diner):
        voucher_type = VoucherTypeFactory(restaurant_id=restaurant.id)
        other = UserFactory()

        response = client.post(
            f"/api/diners/{other.id}/restaurants/{restaurant.id}/redeem-credit",
            json={"voucher_type_id": voucher_type.id},
            headers=auth_headers(diner),
        )
        assert response.status_code == 403

    def test_insufficient_credit_reason(self, client, auth_headers, restaurant, diner):
        voucher_type = VoucherTypeFactory(restaurant_id=restaurant.id, credits_cost=3)

        response = client.post(
            f"/api/diners/{diner.id}/restaurants/{restaurant.id}/redeem-credit",
            json={"voucher_type_id": voucher_type.id},
            headers=auth_headers(diner),
        )

        assert response.status_code == 409
        assert response.json()["detail"]["details"]["reason"] == "insufficient_credits"

    def test_owner_issues_voucher_for_diner(self, db, client, auth_headers, owner, restaurant, diner):
        PointsBalanceFactory(diner_id=diner.id, restaurant_id=restaurant.id, points_credits=1)
        voucher_type = VoucherTypeFactory(restaurant_id=restaurant.id)

        response = client.post(
            f"/api/diners/{diner.id}/restaurants/{restaurant.id}/redeem-credit",
            json={"voucher_type_id": voucher_type.id},
            headers=auth_headers(owner),
        )

        assert response.status_code == 201
        assert db.query(ActivityLog).filter(ActivityLog.action == "voucher_issued").count() == 1

    def test_diner_vouchers_and_select(self, client, auth_headers, restaurant, diner):
        voucher = VoucherFactory(diner_id=diner.id, restaurant_id=restaurant.id)

        listing = client.get("/api/diner/vouchers", headers=auth_headers(diner))
        selected = client.post(f"/api/diner/vouchers/{voucher.id}/select", headers=auth_headers(diner))

        assert listing.json()[0]["status"] == "active"
        assert selected.status_code == 200
        assert len(selected.json()["code"]) == 6
        assert selected.json()["voucher"]["id"] == voucher.id
