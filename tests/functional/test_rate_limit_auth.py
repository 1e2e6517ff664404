import pytest
from portal.auth.models import AuthResult
from portal.errors import AuthError

@pytest.fixture()
def local_rate_limit(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")

def test_login_rate_limit(client, local_rate_limit, monkeypatch):
    monkeypatch.setattr(
        "portal.auth.service.login",
        lambda email, password, country_code=None: AuthResult(False, error="bad", error_kind=AuthError.INVALID_CREDENTIALS),
    )
    payload = {"email": "user@example.com", "password": "password123"}

    # 5 tentatives autorisées dans 60s
    for i in range(5):
        resp = client.post("/api/v1/auth/login", json=payload)
        assert resp.status_code == 401, f"Unexpected status on attempt {i+1}"

    # 6e tentative -> 429
    resp = client.post("/api/v1/auth/login", json=payload)
    assert resp.status_code == 429
