"""API tests through the FastAPI TestClient with the service graph overridden."""

from decimal import Decimal

import pytest
from conftest import (
    CONTRACTOR_A,
    CONTRACTOR_B,
    DEFAULT_RULES,
    USER_ID,
    FakeIdentity,
    FakeNotifier,
    FakeWallet,
)
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from quote_engine.api.deps import get_services
from quote_engine.container import build_services
from quote_engine.db.models import Base, PenaltyRule
from quote_engine.db.session import create_session_factory
from quote_engine.main import app

ADMIN_HEADERS = {"X-Admin-API-Key": "test-admin-key", "X-Admin-Id": "admin-1"}
USER_HEADERS = {"X-User-Id": USER_ID}
CONTRACTOR_HEADERS = {"X-Contractor-Id": CONTRACTOR_A}


@pytest.fixture
def api_services(tmp_path, settings):
    """Services over a database created synchronously for the sync test client."""
    db_path = tmp_path / "api.db"
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)
    with Session(sync_engine) as db:
        db.add_all([PenaltyRule(**data) for data in DEFAULT_RULES])
        db.commit()
    sync_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    return build_services(
        settings,
        session_factory=create_session_factory(engine),
        identity=FakeIdentity(),
        wallet=FakeWallet(),
        notifier=FakeNotifier(),
    )


@pytest.fixture
def client(api_services):
    app.dependency_overrides[get_services] = lambda: api_services
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_request(client, **overrides):
    body = {
        "system_size_kwp": "10",
        "location_address": "12 Palm Street, Riyadh",
        "service_area": "riyadh",
        "contractor_ids": [CONTRACTOR_A, CONTRACTOR_B],
    }
    body.update(overrides)
    response = client.post("/api/quote-requests", json=body, headers=USER_HEADERS)
    assert response.status_code == 201, response.text
    return response.json()


def submit_quote(client, request_id, contractor_id=CONTRACTOR_A, base_price="20000", per_kwp="2000"):
    response = client.post(
        "/api/contractor/quotes",
        json={
            "request_id": request_id,
            "base_price": base_price,
            "price_per_kwp": per_kwp,
            "installation_timeline_days": 30,
            "panel_brand": "Jinko",
        },
        headers={"X-Contractor-Id": contractor_id},
    )
    assert response.status_code == 201, response.text
    return response.json()


def approve(client, quote_id):
    response = client.post(
        f"/api/admin/quotes/{quote_id}/review",
        json={"decision": "approved", "notes": "OK"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200, response.text
    return response.json()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_full_quote_lifecycle(client):
    request = create_request(client)
    assert request["status"] == "contractors_selected"

    quote = submit_quote(client, request["id"])
    assert Decimal(quote["total_user_price"]) == Decimal("22000")
    assert Decimal(quote["commission_amount"]) == Decimal("3000")
    assert quote["admin_status"] == "pending"

    response = client.post(
        f"/api/contractor/assignments/{request['id']}/respond",
        json={"response": "accepted", "notes": "Available next month"},
        headers=CONTRACTOR_HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["request_status"] == "quotes_received"

    # Requester sees nothing until the admin approves
    response = client.get(f"/api/quote-requests/{request['id']}/quotes", headers=USER_HEADERS)
    assert response.json() == []

    approved = approve(client, quote["id"])
    assert approved["admin_status"] == "approved"
    assert approved["reviewed_by"] == "admin-1"

    response = client.get(f"/api/quote-requests/{request['id']}/quotes", headers=USER_HEADERS)
    quotes = response.json()
    assert len(quotes) == 1
    assert quotes[0]["contractor"]["business_name"] == "Sunrise Solar"
    assert "commission_amount" not in quotes[0]["quote"]
    assert Decimal(quotes[0]["quote"]["total_user_price"]) == Decimal("22000")

    response = client.post(
        f"/api/quote-requests/{request['id']}/compare",
        json={"quote_ids": [quote["id"]]},
        headers=USER_HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["views_count"] == 1
    assert response.json()["summary"]["count"] == 1

    response = client.post(
        f"/api/quotes/{quote['id']}/select", json={"reason": "Best value"}, headers=USER_HEADERS
    )
    assert response.status_code == 200
    body = response.json()
    assert body["quote"]["is_selected"] is True
    assert body["request"]["status"] == "quote_selected"

    response = client.get(f"/api/admin/quotes/{quote['id']}/invoice", headers=ADMIN_HEADERS)
    invoice = response.json()
    assert Decimal(invoice["vat_amount"]) == Decimal("3300")
    assert Decimal(invoice["final_total"]) == Decimal("25300")


def test_missing_identity_header(client):
    response = client.post(
        "/api/quote-requests",
        json={"system_size_kwp": "5", "location_address": "x", "service_area": "y"},
    )

    assert response.status_code == 422


def test_business_rule_error_body(client):
    response = client.post(
        "/api/quote-requests",
        json={"system_size_kwp": "0.5", "location_address": "x", "service_area": "y"},
        headers=USER_HEADERS,
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["kind"] == "business_rule"
    assert error["code"] == "SYSTEM_SIZE_TOO_SMALL"


def test_duplicate_quote_conflict(client):
    request = create_request(client)
    submit_quote(client, request["id"])

    response = client.post(
        "/api/contractor/quotes",
        json={
            "request_id": request["id"],
            "base_price": "20000",
            "price_per_kwp": "2000",
            "installation_timeline_days": 30,
        },
        headers=CONTRACTOR_HEADERS,
    )

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "DUPLICATE_QUOTE"


def test_unknown_request_not_found(client):
    response = client.get("/api/quote-requests/999", headers=USER_HEADERS)

    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "not_found"


def test_cancel_request(client):
    request = create_request(client)

    response = client.post(
        f"/api/quote-requests/{request['id']}/cancel",
        json={"reason": "Moved house"},
        headers=USER_HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    response = client.get("/api/quote-requests", headers=USER_HEADERS)
    listing = response.json()
    assert listing["total"] == 1
    assert listing["items"][0]["request"]["cancellation_reason"] == "Moved house"


def test_admin_routes_require_key(client):
    assert client.get("/api/admin/dashboard").status_code == 422

    response = client.get("/api/admin/dashboard", headers={"X-Admin-API-Key": "wrong"})
    assert response.status_code == 403

    response = client.get("/api/admin/dashboard", headers=ADMIN_HEADERS)
    assert response.status_code == 200
    assert response.json()["quotes"]["total"] == 0


def test_admin_review_queue_and_rejection(client):
    request = create_request(client)
    quote = submit_quote(client, request["id"])

    response = client.get("/api/admin/quotes/pending", headers=ADMIN_HEADERS)
    queue = response.json()
    assert queue["total"] == 1
    assert queue["items"][0]["user"]["name"] == "Test User"

    response = client.post(
        f"/api/admin/quotes/{quote['id']}/review",
        json={"decision": "rejected"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "REJECTION_REASON_REQUIRED"

    response = client.post(
        f"/api/admin/quotes/{quote['id']}/review",
        json={"decision": "rejected", "rejection_reason": "Missing warranty"},
        headers=ADMIN_HEADERS,
    )
    assert response.json()["admin_status"] == "rejected"


def test_admin_assignment(client):
    request = create_request(client, contractor_ids=[])

    response = client.post(
        f"/api/admin/quote-requests/{request['id']}/assign",
        json={"contractor_ids": [CONTRACTOR_B]},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200
    assert [a["contractor_id"] for a in response.json()] == [CONTRACTOR_B]

    response = client.get(
        f"/api/admin/quote-requests/{request['id']}/assignments", headers=ADMIN_HEADERS
    )
    assert response.json()[0]["contractor"]["business_name"] == "Desert Power"

    response = client.get("/api/contractor/assignments", headers={"X-Contractor-Id": CONTRACTOR_B})
    assert response.json()["items"][0]["request"]["id"] == request["id"]


def test_pricing_config_routes(client):
    response = client.get("/api/admin/pricing-config", headers=ADMIN_HEADERS)
    assert response.json()["version"] == 0

    response = client.put(
        "/api/admin/pricing-config",
        json={"platform_commission_percent": "12"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200
    assert Decimal(response.json()["platform_commission_percent"]) == Decimal("12")

    response = client.put(
        "/api/admin/pricing-config",
        json={"platform_commission_percent": "80"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "COMMISSION_TOO_HIGH"

    response = client.get("/api/admin/pricing-config/history", headers=ADMIN_HEADERS)
    assert [entry["version"] for entry in response.json()] == [1]


def test_penalty_routes(client):
    request = create_request(client)
    quote = submit_quote(client, request["id"])
    approve(client, quote["id"])
    client.post(f"/api/quotes/{quote['id']}/select", json={}, headers=USER_HEADERS)

    response = client.post(
        "/api/admin/penalties",
        json={
            "contractor_id": CONTRACTOR_A,
            "quote_id": quote["id"],
            "penalty_type": "communication_failure",
            "description": "No response for two weeks",
        },
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 201, response.text
    penalty = response.json()
    assert penalty["status"] == "applied"
    assert Decimal(penalty["amount"]) == Decimal("250")

    response = client.post(
        f"/api/contractor/penalties/{penalty['id']}/dispute",
        json={"reason": "Phone records attached"},
        headers=CONTRACTOR_HEADERS,
    )
    assert response.json()["status"] == "disputed"

    response = client.get("/api/contractor/penalties", headers=CONTRACTOR_HEADERS)
    assert response.json()["total"] == 1

    response = client.get("/api/admin/penalties/statistics", headers=ADMIN_HEADERS)
    assert response.json()["total_count"] == 1

    response = client.post("/api/admin/penalties/check", headers=ADMIN_HEADERS)
    assert response.json() == {"violations_detected": 0, "penalties_applied": 0, "errors": 0}

    response = client.get("/api/admin/penalties/violations", headers=ADMIN_HEADERS)
    assert response.json() == []

    response = client.get("/api/admin/penalties/scheduler", headers=ADMIN_HEADERS)
    assert response.json() == {"running": False, "jobs": []}

    response = client.get(
        "/api/admin/penalties/rules",
        params={"penalty_type": "late_installation"},
        headers=ADMIN_HEADERS,
    )
    assert len(response.json()) == 2


def test_penalty_rule_routes(client):
    response = client.post(
        "/api/admin/penalties/rules",
        json={
            "rule_name": "Missing permits",
            "penalty_type": "documentation_issue",
            "severity_level": "moderate",
            "amount_calculation": "fixed",
            "amount_value": "500",
        },
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 201, response.text
    rule = response.json()

    response = client.patch(
        f"/api/admin/penalties/rules/{rule['id']}",
        json={"is_active": False},
        headers=ADMIN_HEADERS,
    )
    assert response.json()["is_active"] is False


def test_contractor_quote_detail_with_line_items(client):
    request = create_request(client)
    response = client.post(
        "/api/contractor/quotes",
        json={
            "request_id": request["id"],
            "base_price": "20000",
            "price_per_kwp": "2000",
            "installation_timeline_days": 45,
            "line_items": [
                {"item_name": "Panels", "quantity": "20", "unit_price": "750"},
                {"item_name": "Inverter", "quantity": "1", "unit_price": "5000"},
            ],
        },
        headers=CONTRACTOR_HEADERS,
    )
    assert response.status_code == 201, response.text
    quote_id = response.json()["id"]

    response = client.get(f"/api/contractor/quotes/{quote_id}", headers=CONTRACTOR_HEADERS)
    detail = response.json()
    assert [item["item_name"] for item in detail["line_items"]] == ["Panels", "Inverter"]
    assert Decimal(detail["totals"]["total_price"]) == Decimal("20000")

    response = client.get(
        f"/api/contractor/quotes/{quote_id}", headers={"X-Contractor-Id": CONTRACTOR_B}
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "UNAUTHORIZED_ACCESS"


def test_bid_after_acceptance_is_rejected(client):
    request = create_request(client)
    client.post(
        f"/api/contractor/assignments/{request['id']}/respond",
        json={"response": "accepted"},
        headers=CONTRACTOR_HEADERS,
    )

    response = client.post(
        "/api/contractor/quotes",
        json={
            "request_id": request["id"],
            "base_price": "20000",
            "price_per_kwp": "2000",
            "installation_timeline_days": 30,
        },
        headers=CONTRACTOR_HEADERS,
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_REQUEST_STATUS"
