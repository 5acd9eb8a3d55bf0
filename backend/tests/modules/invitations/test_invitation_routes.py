# backend/tests/modules/invitations/test_invitation_routes.py

import pytest

from modules.auth.models import User
from modules.invitations.models import DinerInvitation
from modules.restaurants.models import ActivityLog
from tests.factories import RestaurantFactory, DinerInvitationFactory, AdminUserFactory


@pytest.fixture
def restaurant(db):
    return RestaurantFactory(name="Shisa Nyama")


@pytest.fixture
def owner(db, restaurant):
    return db.get(User, restaurant.admin_user_id)


def registration_payload(token, **overrides):
    payload = {
        "token": token,
        "email": "sipho@example.com",
        "name": "Sipho",
        "last_name": "Nkosi",
        "gender": "male",
        "age_range": "18-29",
        "province": "KwaZulu-Natal",
        "password": "braai-season-1",
        "terms_accepted": True,
        "privacy_accepted": True,
    }
    payload.update(overrides)
    return payload


class TestInviteRoute:
    def test_invite_sends_sms(self, db, client, auth_headers, notifier, owner, restaurant):
        response = client.post(
            f"/api/restaurants/{restaurant.id}/diners/invite",
            json={"phone": "082 444 5555"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["sms_sent"] is True
        assert body["invitation"]["phone"] == "0824445555"
        assert body["registration_link"] == f"/r/{body['invitation']['token']}"
        assert notifier.sent[-1].recipient == "0824445555"

        log = db.query(ActivityLog).filter(ActivityLog.action == "diner_invited").one()
        assert log.details == {"sms_sent": True}

    def test_bad_phone_is_422(self, client, auth_headers, owner, restaurant):
        response = client.post(
            f"/api/restaurants/{restaurant.id}/diners/invite",
            json={"phone": "12"},
            headers=auth_headers(owner),
        )
        assert response.status_code == 422

    def test_outsider_cannot_invite(self, client, auth_headers, restaurant):
        response = client.post(
            f"/api/restaurants/{restaurant.id}/diners/invite",
            json={"phone": "0824445555"},
            headers=auth_headers(AdminUserFactory()),
        )
        assert response.status_code == 403

    def test_list_invitations(self, client, auth_headers, owner, restaurant):
        DinerInvitationFactory(restaurant_id=restaurant.id)

        response = client.get(
            f"/api/restaurants/{restaurant.id}/invitations", headers=auth_headers(owner)
        )

        assert response.status_code == 200
        assert len(response.json()) == 1


class TestRegistrationRoutes:
    def test_lookup_invitation(self, client, restaurant):
        invitation = DinerInvitationFactory(restaurant_id=restaurant.id, phone="0831234567")

        response = client.get(f"/api/invitations/{invitation.token}")

        assert response.status_code == 200
        assert response.json()["restaurant_name"] == "Shisa Nyama"
        assert response.json()["phone"] == "0831234567"

    def test_lookup_unknown_token(self, client):
        assert client.get("/api/invitations/missing").status_code == 404

    def test_register_returns_token_usable_on_diner_routes(self, db, client, restaurant):
        invitation = DinerInvitationFactory(restaurant_id=restaurant.id)

        response = client.post("/api/diners/register", json=registration_payload(invitation.token))

        assert response.status_code == 201
        body = response.json()
        assert body["user"]["email"] == "sipho@example.com"
        assert body["token_type"] == "bearer"
        assert db.get(DinerInvitation, invitation.id).status == "registered"

        points = client.get(
            "/api/diner/points", headers={"Authorization": f"Bearer {body['access_token']}"}
        )
        assert points.status_code == 200

    def test_terms_must_be_accepted(self, client, restaurant):
        invitation = DinerInvitationFactory(restaurant_id=restaurant.id)

        response = client.post(
            "/api/diners/register",
            json=registration_payload(invitation.token, terms_accepted=False),
        )
        assert response.status_code == 422

    def test_used_invitation_is_conflict(self, client, restaurant):
        invitation = DinerInvitationFactory(restaurant_id=restaurant.id)
        client.post("/api/diners/register", json=registration_payload(invitation.token))

        second = client.post(
            "/api/diners/register",
            json=registration_payload(invitation.token, email="other@example.com"),
        )
        assert second.status_code == 409

    def test_registrations_per_day(self, client, auth_headers, owner, restaurant):
        response = client.get(
            f"/api/restaurants/{restaurant.id}/diner-registrations",
            params={"start": "2024-05-01", "end": "2024-05-03"},
            headers=auth_headers(owner),
        )

        assert response.json() == [
            {"date": "2024-05-01", "count": 0},
            {"date": "2024-05-02", "count": 0},
            {"date": "2024-05-03", "count": 0},
        ]
