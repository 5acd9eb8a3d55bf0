# backend/tests/modules/reconciliation/test_reconciliation_routes.py

import pytest

from core.mixins import utcnow
from modules.auth.models import User
from modules.restaurants.models import ActivityLog
from tests.factories import UserFactory, AdminUserFactory, RestaurantFactory, VoucherFactory


@pytest.fixture
def restaurant(db):
    return RestaurantFactory()


@pytest.fixture
def owner(db, restaurant):
    return db.get(User, restaurant.admin_user_id)


def test_upload_then_browse_batches(db, client, auth_headers, owner, restaurant):
    VoucherFactory(
        diner_id=UserFactory().id,
        restaurant_id=restaurant.id,
        is_redeemed=True,
        redeemed_at=utcnow(),
        bill_id="INV-7",
    )
    headers = auth_headers(owner)
    base = f"/api/restaurants/{restaurant.id}/reconciliation"

    upload = client.post(
        f"{base}/upload",
        json={"file_name": "week.csv", "csv_content": "invoice,amount\nINV-7,99.00\nINV-8,12.00\n"},
        headers=headers,
    )

    assert upload.status_code == 201
    body = upload.json()
    assert body["summary"] == {"total": 2, "matched": 1, "unmatched": 1}
    assert body["batch"]["status"] == "completed"

    log = db.query(ActivityLog).filter(ActivityLog.action == "reconciliation_uploaded").one()
    assert log.details["matched"] == 1

    batches = client.get(f"{base}/batches", headers=headers).json()
    assert [b["file_name"] for b in batches] == ["week.csv"]

    details = client.get(f"{base}/batches/{batches[0]['id']}", headers=headers)
    assert details.status_code == 200
    assert {r["bill_id"] for r in details.json()["records"]} == {"INV-7", "INV-8"}


def test_upload_with_pre_split_records(client, auth_headers, owner, restaurant):
    response = client.post(
        f"/api/restaurants/{restaurant.id}/reconciliation/upload",
        json={"file_name": "manual", "records": [{"bill_id": "A1", "amount": "10"}]},
        headers=auth_headers(owner),
    )

    assert response.status_code == 201
    assert response.json()["records"][0]["csv_amount"] == "10"


def test_upload_requires_content(client, auth_headers, owner, restaurant):
    response = client.post(
        f"/api/restaurants/{restaurant.id}/reconciliation/upload",
        json={"file_name": "empty.csv"},
        headers=auth_headers(owner),
    )
    assert response.status_code == 422


def test_missing_bill_column_is_422(client, auth_headers, owner, restaurant):
    response = client.post(
        f"/api/restaurants/{restaurant.id}/reconciliation/upload",
        json={"file_name": "bad.csv", "csv_content": "amount\n10\n"},
        headers=auth_headers(owner),
    )
    assert response.status_code == 422


def test_outsiders_are_forbidden(client, auth_headers, restaurant):
    response = client.get(
        f"/api/restaurants/{restaurant.id}/reconciliation/batches",
        headers=auth_headers(AdminUserFactory()),
    )
    assert response.status_code == 403
