import os
import time
import pytest
from typing import Any, Dict, Generator
from fastapi import Request
from fastapi.testclient import TestClient

# Désactive l'init fastapi-limiter (évite toute connexion Redis pendant les tests)
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

from portal.app_setup.factory import create_app
from portal.payments.models import PaymentIntent

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "tests/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)

@pytest.fixture()
def app():
    # Une app par test: brouillons d'inscription et tâches de polling isolés
    fastapi_app = create_app()

    async def _seed_session(request: Request):
        request.session.update(await request.json())
        return {"ok": True}

    async def _dump_session(request: Request):
        return dict(request.session)

    fastapi_app.add_api_route("/_test/session", _seed_session, methods=["POST"], include_in_schema=False)
    fastapi_app.add_api_route("/_test/session", _dump_session, methods=["GET"], include_in_schema=False)
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture()
def seed_session(client):
    """Écrit des clés dans la session cookie du client de test."""
    def _seed(values: Dict[str, Any]) -> None:
        res = client.post("/_test/session", json=values)
        assert res.status_code == 200
    return _seed

@pytest.fixture()
def read_session(client):
    def _read() -> Dict[str, Any]:
        return client.get("/_test/session").json()
    return _read

@pytest.fixture()
def make_intent():
    def _make(**overrides) -> PaymentIntent:
        data = {
            "reference_number": "REF-1001",
            "amount": "1000",
            "currency": "QAR",
            "gateway_name": "QNB",
            "started_at": time.time(),
        }
        data.update(overrides)
        return PaymentIntent(**data)
    return _make

@pytest.fixture()
def valid_form() -> Dict[str, str]:
    """Champs multipart d'un formulaire d'inscription valide (captcha à compléter)."""
    return {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "password": "Secret1@x",
        "confirm_password": "Secret1@x",
        "phone_number": "97412345678",
        "user_type": "Individual",
        "address1": "Building 12, Street 5",
        "address2": "",
        "city": "Doha",
        "post_code": "12345",
        "civil_id": "ABC12345",
        "payment_method": "Credit Card",
        "agree_terms": "true",
    }
