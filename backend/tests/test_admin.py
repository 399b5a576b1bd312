import pytest

from app.config import get_settings

from conftest import accepted_response, callback_payload


@pytest.fixture
def purchases(client, fake_mpesa):
    for n in range(1, 4):
        fake_mpesa.response = accepted_response(merchant_id=f"m-{n}", checkout_id=f"c-{n}")
        client.post("/api/payment/initiate", json={
            "amount": 10 * n, "phone": "0712345678", "planDescription": "1-Hour",
        })
    client.post("/api/mpesa/callback", json=callback_payload(
        merchant_id="m-1", checkout_id="c-1", amount=10, receipt="R1",
    ))
    client.post("/api/mpesa/callback", json=callback_payload(
        result_code=1032, merchant_id="m-2", checkout_id="c-2",
    ))


def test_list_payments_pages(client, purchases):
    r = client.get("/api/payments", params={"limit": 2, "sort": "amount", "order": -1})
    assert r.status_code == 200
    body = r.json()
    assert body["meta"] == {"total": 3, "page": 1, "limit": 2, "totalPages": 2}
    assert [p["amount"] for p in body["data"]] == [30, 20]

    body = client.get("/api/payments", params={"limit": 2, "page": 2, "sort": "amount"}).json()
    assert [p["amount"] for p in body["data"]] == [10]


def test_list_payments_filters_by_status(client, purchases):
    body = client.get("/api/payments", params={"status": "Completed"}).json()
    assert body["meta"]["total"] == 1
    assert body["data"][0]["receiptNumber"] == "R1"
    assert "raw_callback" not in body["data"][0]


@pytest.mark.parametrize("params", [{"status": "Paid"}, {"sort": "password"}, {"limit": 0}, {"page": 0}])
def test_list_payments_rejects_bad_params(client, params):
    assert client.get("/api/payments", params=params).status_code == 400


def test_summary(client, purchases):
    body = client.get("/api/payments/summary").json()
    assert body["total"] == 3
    assert body["by_status"] == {"Completed": 1, "Cancelled": 1, "Processing": 1}
    assert body["completed_amount"] == 10


def test_admin_token_required_when_configured(client, monkeypatch):
    monkeypatch.setattr(get_settings(), "ADMIN_API_TOKEN", "s3cret")
    assert client.get("/api/payments").status_code == 401
    assert client.get("/api/payments", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.get("/api/payments", headers={"Authorization": "Bearer s3cret"}).status_code == 200


def test_production_without_token_is_closed(client, monkeypatch):
    monkeypatch.setattr(get_settings(), "ENVIRONMENT", "production")
    r = client.get("/api/payments")
    assert r.status_code == 401
    assert r.json() == {"success": False, "message": "Authentication required.", "error": None}
