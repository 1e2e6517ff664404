import json
from fastapi import FastAPI, Depends, Request
from fastapi.testclient import TestClient
from starlette.middleware.sessions import SessionMiddleware
from portal.auth.session import TOKEN_KEY, USER_KEY
from portal.utils.security import require_user

def _make_app():
    app = FastAPI()
    app.add_middleware(SessionMiddleware, secret_key="test-secret")

    @app.get("/me")
    def me(user=Depends(require_user)):
        return user

    return app

def test_require_user_rejects_anonymous():
    client = TestClient(_make_app())
    res = client.get("/me")
    assert res.status_code == 401
    assert res.json()["detail"] == "Non authentifié"

def test_require_user_returns_session_user_with_token():
    app = _make_app()

    @app.get("/seed")
    def seed(request: Request):
        request.session[TOKEN_KEY] = "TOKEN-1"
        request.session[USER_KEY] = json.dumps({"id": "7", "email": "jane@example.com", "role": "user"})
        return {"ok": True}

    client = TestClient(app)
    client.get("/seed")
    res = client.get("/me")
    assert res.status_code == 200
    assert res.json() == {"id": "7", "email": "jane@example.com", "role": "user", "token": "TOKEN-1"}
