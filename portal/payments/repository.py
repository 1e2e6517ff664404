"""
Accès à l'API amont pour la feature 'payments' (inscription avec paiement, statut, retour passerelle).
Les erreurs de transport remontent telles quelles (httpx.HTTPError); la conversion en erreurs
typées est faite par la couche service.
"""
from typing import Any, Dict
import logging
import portal.infra.api_client as api_client

logger = logging.getLogger(__name__)

# module portal.payments.repository
def register_with_payment(form: Dict[str, str], country_code: str) -> Dict[str, Any]:
    """
    POST /users/register-with-payment (application/x-www-form-urlencoded).
    Retour: {success, message, data: {paymentRefNo, amount, currency, gatewayName, ...}}
    Un statut HTTP d'erreur lève httpx.HTTPStatusError après journalisation du message amont.
    """
    resp = api_client.get_client().post(
        "/users/register-with-payment",
        data=form,
        headers={"Country-Code": country_code},
    )
    if resp.is_error:
        logger.warning("payments.repository.register_with_payment status=%s", resp.status_code)
    resp.raise_for_status()
    return resp.json()

def check_email(email: str) -> Dict[str, Any]:
    """POST /users/check-email?email=... -> {success, message, data: bool (disponible)}."""
    resp = api_client.get_client().post("/users/check-email", params={"email": email})
    resp.raise_for_status()
    return resp.json()

async def afetch_payment_status(reference_number: str) -> Dict[str, Any]:
    """GET /payments/{ref}/status -> {data: {paymentRefNo, status, ...}}, utilisé par la boucle de polling."""
    resp = await api_client.get_async_client().get(f"/payments/{reference_number}/status")
    resp.raise_for_status()
    return resp.json()

def submit_gateway_response(reference_number: str, gateway_response: str, signature: str, country_code: str) -> Dict[str, Any]:
    """POST /payments/{ref}/response {gatewayResponse, signature}: transmet le retour brut de la passerelle."""
    resp = api_client.get_client().post(
        f"/payments/{reference_number}/response",
        json={"gatewayResponse": gateway_response, "signature": signature},
        headers={"Country-Code": country_code},
    )
    resp.raise_for_status()
    return resp.json()
