def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    data = res.json()
    assert data["ok"] is True
    assert data["active_polls"] == 0
    assert data["rate_limit"]["enabled"] is False

def test_security_headers_allow_gateway_form_action(client):
    res = client.get("/health")
    csp = res.headers["content-security-policy"]
    assert "form-action 'self'" in csp
    assert "https://qnbpay.qnb.com.qa" in csp
    assert res.headers["x-frame-options"] == "DENY"
