from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from csrf import generate_csrf_token
from database import Base
from main import app, get_db
from models import PaymentRecord
from services import CashLedgerService


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    with TestingSession() as session:
        session.add(
            PaymentRecord(
                id="p1",
                reservation_id="R-1",
                amount=Decimal("50"),
                payment_method="PAYM032",
                submit_on=datetime(2024, 1, 2),
            )
        )
        session.commit()

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_cash_api_create_and_list(client) -> None:
    created = client.post(
        "/api/cash",
        json={
            "transaction_date": "2024-01-03",
            "transaction_type": "bank_deposit",
            "amount": "20.00",
            "description": "Chase",
        },
    )
    assert created.status_code == 201
    assert created.json()["display_type"] == "bank_deposit"
    assert created.json()["transaction_type"] == "withdrawal"

    listing = client.get("/api/cash", params={"direction": "deposit"}).json()
    assert [item["id"] for item in listing["items"]] == ["pr_p1"]
    assert Decimal(listing["balance"]) == Decimal("30")
    assert Decimal(listing["visible_balance"]) == Decimal("50")
    assert listing["failed_sources"] == []


def test_cash_api_rejects_bad_input(client) -> None:
    assert client.get("/api/cash", params={"direction": "sideways"}).status_code == 400
    assert (
        client.get("/api/cash", params={"start": "2024-02-01", "end": "2024-01-01"}).status_code
        == 400
    )
    bad_amount = client.post(
        "/api/cash", json={"transaction_date": "2024-01-03", "amount": "0"}
    )
    assert bad_amount.status_code == 400

    missing = client.put(
        "/api/cash/payment_records/pr_nope",
        json={"transaction_date": "2024-01-03", "amount": "5"},
    )
    assert missing.status_code == 404
    assert client.delete("/api/cash/somewhere/x").status_code == 404


def test_cash_form_requires_csrf(client) -> None:
    form = {"transaction_date": "2024-01-05", "amount": "$1,000", "transaction_type": "deposit"}

    assert client.post("/cash", data=form).status_code == 400

    response = client.post(
        "/cash",
        data={**form, "csrf_token": generate_csrf_token()},
        follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["HX-Trigger"] == "cash-changed"

    listing = client.get("/api/cash").json()
    assert Decimal(listing["balance"]) == Decimal("1050")


def test_payment_history_via_api(client) -> None:
    updated = client.put(
        "/api/cash/payment_records/pr_p1",
        json={"transaction_date": "2024-01-02", "amount": "55", "description": "Adjusted"},
    )
    assert updated.status_code == 200
    assert updated.json()["description"] == "Adjusted"

    history = client.get("/api/cash/payment_records/pr_p1/history").json()
    assert [h["change_type"] for h in history] == ["updated"]
    assert history[0]["new_values"]["amount"] == "55.00"


def test_cash_page_renders(client) -> None:
    response = client.get("/cash")
    assert response.status_code == 200
    assert "예약 결제" in response.text


def test_payment_method_and_pickup_endpoints(client) -> None:
    created = client.post("/api/payment-methods", json={"id": "PAYM032", "method": "Cash"})
    assert created.status_code == 201
    assert created.json()["display_name"] == "PAYM032 - Cash"
    assert client.post("/api/payment-methods", json={"id": "PAYM032", "method": "x"}).status_code == 400

    reset = client.post("/api/payment-methods/reset", json={"reset_type": "daily"})
    assert reset.json() == {"reset_type": "daily", "methods_reset": 1}

    resolved = client.get("/api/pickup/resolve", params={"hotel": "Nowhere"}).json()
    assert resolved["success"] is False


def test_html_screens_render(client) -> None:
    for path in ("/hotels", "/products", "/templates", "/payment-methods", "/attendance"):
        response = client.get(path)
        assert response.status_code == 200, path
        assert 'id="flash"' in response.text


def test_cash_form_rejects_non_finite_amounts(client) -> None:
    token = generate_csrf_token()
    for amount in ("Infinity", "NaN", "1e30"):
        response = client.post(
            "/cash",
            data={"transaction_date": "2024-01-05", "amount": amount, "csrf_token": token},
        )
        assert response.status_code == 400, amount

    listing = client.get("/api/cash").json()
    assert listing["total"] == 1


def test_cash_rows_offer_prefilled_edit_form(client) -> None:
    created = client.post(
        "/api/cash",
        json={
            "transaction_date": "2024-01-03",
            "transaction_type": "bank_deposit",
            "amount": "20.00",
            "description": "Chase",
        },
    ).json()

    page = client.get("/cash", params={"direction": "bank_deposit", "page": "1"}).text

    assert f'hx-post="/cash/cash_transactions/{created["id"]}/edit"' in page
    assert '<option value="bank_deposit" selected>' in page
    assert 'name="description" value="Chase"' in page
    assert 'hx-get="/cash?direction=bank_deposit&amp;page=1"' in page

    response = client.post(
        f"/cash/cash_transactions/{created['id']}/edit",
        data={
            "transaction_date": "2024-01-03",
            "transaction_type": "withdrawal",
            "amount": "25",
            "description": "Chase",
            "csrf_token": generate_csrf_token(),
        },
        headers={"HX-Request": "true"},
    )
    assert response.status_code == 204
    assert response.headers["HX-Trigger"] == "cash-changed"

    listing = client.get("/api/cash").json()
    edited = [item for item in listing["items"] if item["id"] == created["id"]][0]
    assert edited["display_type"] == "withdrawal"
    assert edited["description"] == "Chase"
    assert Decimal(listing["balance"]) == Decimal("25")


def test_failed_delete_reports_reason(client, monkeypatch) -> None:
    token = generate_csrf_token()
    stale = client.post(
        "/cash/cash_transactions/missing/delete",
        data={"csrf_token": token},
        headers={"HX-Request": "true"},
    )
    assert stale.status_code == 404
    assert stale.json()["detail"] == "Cash transaction not found"

    def broken_delete(self, source, transaction_id):
        raise OperationalError("DELETE", {}, Exception("database is locked"))

    monkeypatch.setattr(CashLedgerService, "delete", broken_delete)
    failed = client.post(
        "/cash/payment_records/pr_p1/delete",
        data={"csrf_token": token},
        headers={"HX-Request": "true"},
    )
    assert failed.status_code == 500
    assert "저장하지 못했습니다" in failed.json()["detail"]


def test_non_numeric_paging_is_rejected(client) -> None:
    assert client.get("/cash", params={"page": "two"}).status_code == 400
    assert client.get("/api/cash", params={"limit": "many"}).status_code == 400
    assert client.get("/api/payment-methods", params={"offset": "x"}).status_code == 400
    assert client.get("/api/cash", params={"page": ""}).status_code == 200


def test_balance_label_follows_date_range(client) -> None:
    assert "기간 잔액" not in client.get("/cash").text
    assert "기간 잔액" in client.get("/cash", params={"start": "2024-01-01"}).text
