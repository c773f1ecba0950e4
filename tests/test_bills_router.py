import uuid

import pytest
from fastapi.testclient import TestClient

from billing_service.app.main import app
from shared.core.auth import create_access_token
from shared.utils.app_status_code import AppStatusCode
from shared.utils.enums import UserAccountType

from conftest import make_lease, make_owner


@pytest.fixture()
def client():
    with TestClient(app) as test_client:
        yield test_client


def auth_headers(owner, account_type=UserAccountType.OWNER):
    token = create_access_token({
        "user_id": str(owner.id),
        "name": owner.name,
        "account_type": account_type.value,
    })
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def owner(db):
    owner = make_owner(db)
    make_lease(db, owner, "Alice", 800)
    make_lease(db, owner, "Bob", 650)
    return owner


def test_requires_bearer_token(client):
    assert client.get("/api/bills/all").status_code in (401, 403)

    response = client.get("/api/bills/all", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["status_code"] == AppStatusCode.UNAUTHORIZED


def test_billing_scenario_end_to_end(client, owner):
    headers = auth_headers(owner)

    response = client.post("/api/bills/generate-owner", json={"month": "2025-11"}, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "Success"
    assert body["data"]["bills_generated"] == 2

    repeat = client.post("/api/bills/generate-owner", json={"month": "2025-11"}, headers=headers)
    assert repeat.json()["data"]["bills_skipped"] == 2

    listing = client.get("/api/bills/all", params={"month": "2025-11"}, headers=headers).json()["data"]
    assert listing["total"] == 2
    bill = next(b for b in listing["bills"] if b["total_amount"] == "800.00")
    assert bill["due_date"] == "2025-11-15"
    assert bill["tenant_name"] == "Alice"

    paid = client.put(f"/api/bills/{bill['id']}/pay", headers=headers)
    assert paid.status_code == 200
    assert paid.json()["data"]["bill"]["status"] == "PAID"
    assert paid.json()["data"]["profit"]["total"] == "800.00"

    again = client.put(f"/api/bills/{bill['id']}/pay", headers=headers)
    assert again.status_code == 400
    assert again.json()["status_code"] == AppStatusCode.BILL_ALREADY_PAID

    undone = client.put(f"/api/bills/{bill['id']}/undo", headers=headers)
    assert undone.json()["data"]["profit"]["total"] == "0.00"

    total = client.get("/api/bills/profits/total", headers=headers).json()["data"]
    assert total["total_profit"] == "0.00"


def test_overview_and_detail(client, owner):
    headers = auth_headers(owner)
    client.post("/api/bills/generate-owner", json={"month": "2025-11"}, headers=headers)

    overview = client.get("/api/bills/overview", headers=headers).json()["data"]
    assert overview["totalBills"] == 2
    assert overview["pendingBills"] == 2
    assert overview["totalAmount"] == "1450.00"

    bill_id = client.get("/api/bills/all", headers=headers).json()["data"]["bills"][0]["id"]
    detail = client.get(f"/api/bills/{bill_id}", headers=headers)
    assert detail.status_code == 200
    assert detail.json()["data"]["id"] == bill_id

    missing = client.get(f"/api/bills/{uuid.uuid4()}", headers=headers)
    assert missing.status_code == 404


def test_receipt_sent_endpoint(client, owner):
    headers = auth_headers(owner)
    client.post("/api/bills/generate-owner", json={"month": "2025-11"}, headers=headers)
    bill_id = client.get("/api/bills/all", headers=headers).json()["data"]["bills"][0]["id"]

    response = client.put(f"/api/bills/{bill_id}/receipt-sent", headers=headers)

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "RECEIPT_SENT"


def test_invalid_period_is_rejected(client, owner):
    response = client.post("/api/bills/generate-owner", json={"month": "2025-13"}, headers=auth_headers(owner))

    assert response.status_code == 400
    assert response.json()["status_code"] == AppStatusCode.INVALID_BILLING_PERIOD


def test_monthly_generation_is_super_admin_only(client, db, owner):
    assert client.post("/api/bills/generate-monthly", json={"month": "2025-11"},
                       headers=auth_headers(owner)).status_code == 403

    admin = make_owner(db, name="Admin", email="admin@example.com", super_admin=True)
    response = client.post("/api/bills/generate-monthly", json={"month": "2025-11"},
                           headers=auth_headers(admin, UserAccountType.SUPER_ADMIN))

    assert response.status_code == 200
    assert response.json()["data"]["bills_generated"] == 2

    stats = client.get("/api/bills/generation-stats", params={"month": "2025-11"},
                       headers=auth_headers(admin)).json()["data"]
    assert stats["total_bills"] == 2
    assert stats["total_amount"] == "1450.00"
    assert stats["status_breakdown"] == {"PENDING": 2}
    breakdown = stats["owner_breakdown"][str(owner.id)]
    assert breakdown["owner_name"] == "Owner"
    assert breakdown["bills"] == 2
    assert breakdown["amount"] == "1450.00"


def test_generation_stats_keep_same_named_owners_apart(client, db, owner):
    namesake = make_owner(db, name="Owner", email="namesake@example.com")
    make_lease(db, namesake, "Carol", 900)
    admin = make_owner(db, name="Admin", email="admin@example.com", super_admin=True)
    client.post("/api/bills/generate-monthly", json={"month": "2025-11"},
                headers=auth_headers(admin, UserAccountType.SUPER_ADMIN))

    stats = client.get("/api/bills/generation-stats", params={"month": "2025-11"},
                       headers=auth_headers(admin)).json()["data"]

    assert stats["total_bills"] == 3
    breakdown = stats["owner_breakdown"]
    assert set(breakdown) == {str(owner.id), str(namesake.id)}
    assert breakdown[str(owner.id)]["bills"] == 2
    assert breakdown[str(namesake.id)]["bills"] == 1
    assert breakdown[str(namesake.id)]["amount"] == "900.00"
    assert all(entry["owner_name"] == "Owner" for entry in breakdown.values())


def test_generation_conflict_returns_409(client, owner):
    guard = app.state.scheduler.generation_guard
    guard.try_acquire()
    try:
        response = client.post("/api/bills/generate-owner", json={"month": "2025-11"},
                               headers=auth_headers(owner))
    finally:
        guard.release()

    assert response.status_code == 409
    assert response.json()["status_code"] == AppStatusCode.GENERATION_IN_PROGRESS


def test_scheduler_endpoints(client, db):
    admin = make_owner(db, name="Admin", email="admin@example.com", super_admin=True)
    headers = auth_headers(admin, UserAccountType.SUPER_ADMIN)

    status = client.get("/api/scheduler/status", headers=headers)
    assert status.status_code == 200
    assert status.json()["data"]["initialized"] is False
    assert "monthly_bill_generation" in status.json()["data"]["jobs"]

    triggered = client.post("/api/scheduler/trigger", json={"job": "overdue_bill_check"}, headers=headers)
    assert triggered.status_code == 200
    assert triggered.json()["data"] == {"updated": 0}

    unknown = client.post("/api/scheduler/trigger", json={"job": "nope"}, headers=headers)
    assert unknown.status_code == 400

    assert client.get("/api/scheduler/status",
                      headers=auth_headers(admin, UserAccountType.OWNER)).status_code == 403
