# backend/tests/modules/auth/test_account_routes.py

from modules.auth.models import User
from tests.factories import UserFactory, RestaurantFactory


def _token_from(message) -> str:
    return message.message.split("token=", 1)[1].split()[0]


def test_forgot_password_answers_generically(client, notifier):
    UserFactory(email="known@example.com")

    known = client.post("/api/auth/forgot-password", json={"email": "known@example.com"})
    unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert len(notifier.sent) == 1


def test_reset_password_flow(client, notifier):
    UserFactory(email="known@example.com")
    client.post("/api/auth/forgot-password", json={"email": "known@example.com"})
    token = _token_from(notifier.sent[-1])

    mismatch = client.post(
        "/api/auth/reset-password",
        json={"token": token, "new_password": "fresh-pass-1", "confirm_password": "other-pass-1"},
    )
    reset = client.post(
        "/api/auth/reset-password",
        json={"token": token, "new_password": "fresh-pass-1", "confirm_password": "fresh-pass-1"},
    )
    reused = client.post(
        "/api/auth/reset-password",
        json={"token": token, "new_password": "fresh-pass-2", "confirm_password": "fresh-pass-2"},
    )

    assert mismatch.status_code == 422
    assert reset.status_code == 200
    assert reused.status_code == 409


def test_account_deletion_flow(db, client, auth_headers, notifier):
    diner = UserFactory()
    diner_id = diner.id

    requested = client.post("/api/account/request-deletion", headers=auth_headers(diner))
    token = _token_from(notifier.sent[-1])
    confirmed = client.post("/api/account/confirm-deletion", json={"token": token})

    assert requested.status_code == 200
    assert confirmed.status_code == 200
    assert confirmed.json()["archived_at"]
    db.expire_all()
    assert db.get(User, diner_id) is None


def test_owner_deletion_is_conflict(db, client, auth_headers):
    owner = db.get(User, RestaurantFactory().admin_user_id)

    response = client.post("/api/account/request-deletion", headers=auth_headers(owner))

    assert response.status_code == 409


def test_deletion_requires_login(client):
    assert client.post("/api/account/request-deletion").status_code == 401
