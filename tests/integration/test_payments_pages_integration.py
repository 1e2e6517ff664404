import time
import httpx
import pytest

PENDING = {
    "paymentRefNo": "PAY-42",
    "amount": "1000",
    "currency": "QAR",
    "gatewayName": "QNB",
    "gatewayTransactionId": None,
    "status": "PENDING",
    "customerEmail": "jane@example.com",
    "customerName": "Jane Doe",
}

def _seed_payment(seed_session, started_at=None, **overrides):
    started_at = time.time() if started_at is None else started_at
    pending = dict(PENDING, startTime=started_at, **overrides)
    seed_session({
        "pendingPayment": pending,
        "activePayment": {"paymentRefNo": pending["paymentRefNo"], "startTime": started_at},
    })

@pytest.fixture(autouse=True)
def no_upstream(monkeypatch):
    def _down(*args, **kwargs):
        raise httpx.ConnectError("upstream down")

    async def _adown(*args, **kwargs):
        raise httpx.ConnectError("upstream down")

    monkeypatch.setattr("portal.payments.repository.submit_gateway_response", _down)
    monkeypatch.setattr("portal.payments.repository.afetch_payment_status", _adown)

def test_gateway_page_renders_auto_submit_form(client, seed_session):
    _seed_payment(seed_session)
    res = client.get("/payment/gateway")
    assert res.status_code == 200
    html = res.text
    assert 'action="https://qnbpay.qnb.com.qa/payment"' in html
    assert 'name="merchantRef" value="PAY-42"' in html
    assert 'name="order_id" value="PAY-42"' in html
    assert 'name="customerEmail" value="jane@example.com"' in html
    assert "form.submit()" in html
    assert res.headers["cache-control"].startswith("no-store")

def test_gateway_page_without_pending_payment(client):
    res = client.get("/payment/gateway")
    assert res.status_code == 404

def test_success_callback_renders_success_and_clears_storage(client, seed_session, read_session):
    _seed_payment(seed_session)
    res = client.get("/payment/success", params={"paymentRefNo": "PAY-42", "status": "CAPTURED"})
    assert res.status_code == 200
    assert 'data-status="SUCCESS"' in res.text
    session = read_session()
    assert "pendingPayment" not in session and "activePayment" not in session

def test_success_callback_json(client, seed_session):
    _seed_payment(seed_session)
    res = client.get(
        "/payment/success",
        params={"orderid": "PAY-42", "result": "APPROVED", "trackid": "TR-1"},
        headers={"accept": "application/json"},
    )
    assert res.status_code == 200
    body = res.json()
    assert body["paymentRefNo"] == "PAY-42"
    assert body["status"] == "SUCCESS"
    assert body["gatewayTransactionId"] == "TR-1"

def test_gateway_post_callback_is_accepted(client, seed_session):
    _seed_payment(seed_session)
    res = client.post(
        "/payment/success",
        data={"merchantRef": "PAY-42", "paymentStatus": "DECLINED"},
        headers={"accept": "application/json"},
    )
    assert res.status_code == 200
    assert res.json()["status"] == "FAILED"

def test_callback_without_reference_routes_to_failure_page(client, seed_session, read_session):
    _seed_payment(seed_session)
    res = client.get("/payment/success", params={"status": "CAPTURED"})
    assert res.status_code == 400
    assert 'data-status="FAILED"' in res.text
    # retour inexploitable: le paiement reste reprenable
    assert read_session()["activePayment"]["paymentRefNo"] == "PAY-42"

def test_failed_route_maps_unknown_to_failed(client, seed_session):
    _seed_payment(seed_session)
    res = client.get("/payment/failed", params={"paymentRefNo": "PAY-42"}, headers={"accept": "application/json"})
    assert res.json()["status"] == "FAILED"

def test_failed_route_keeps_cancelled(client, seed_session):
    _seed_payment(seed_session)
    res = client.get("/payment/failed", params={"paymentRefNo": "PAY-42", "status": "CANCELED"}, headers={"accept": "application/json"})
    assert res.json()["status"] == "CANCELLED"

def test_upstream_status_wins_when_available(client, seed_session, monkeypatch):
    monkeypatch.setattr(
        "portal.payments.repository.submit_gateway_response",
        lambda ref, raw, signature, cc: {"success": True, "data": {"status": "SUCCESS"}},
    )
    _seed_payment(seed_session)
    res = client.get("/payment/success", params={"paymentRefNo": "PAY-42"}, headers={"accept": "application/json"})
    assert res.json()["status"] == "SUCCESS"

def test_active_payment_none(client):
    assert client.get("/api/v1/payments/active").json() == {"active": False, "payment": None}

def test_active_payment_pending_when_upstream_down(client, seed_session):
    _seed_payment(seed_session)
    body = client.get("/api/v1/payments/active").json()
    assert body["active"] is True
    assert body["payment"]["status"] == "PENDING"

def test_active_payment_expired_after_fifteen_minutes(client, seed_session, read_session):
    _seed_payment(seed_session, started_at=time.time() - 16 * 60)
    body = client.get("/api/v1/payments/active").json()
    assert body["active"] is False
    assert body["payment"]["status"] == "EXPIRED"
    assert body["payment"]["recovery"] == "restart_registration"
    session = read_session()
    assert "activePayment" not in session and "pendingPayment" not in session

def test_active_wait_returns_terminal_status(client, seed_session, monkeypatch):
    statuses = iter(["PENDING", "SUCCESS"])

    async def fake_status(ref):
        return {"data": {"status": next(statuses)}}

    monkeypatch.setattr("portal.payments.repository.afetch_payment_status", fake_status)
    monkeypatch.setattr("portal.payments.views.PAYMENT_POLL_INTERVAL_SECONDS", 0)
    _seed_payment(seed_session)
    body = client.get("/api/v1/payments/active/wait", params={"max_wait": 5}).json()
    assert body["active"] is False
    assert body["payment"]["status"] == "SUCCESS"

def test_active_wait_times_out_with_pending(client, seed_session, monkeypatch):
    monkeypatch.setattr("portal.payments.views.PAYMENT_POLL_INTERVAL_SECONDS", 3600)
    _seed_payment(seed_session)
    body = client.get("/api/v1/payments/active/wait", params={"max_wait": 0.2}).json()
    assert body["active"] is True
    assert body["payment"]["status"] == "PENDING"
