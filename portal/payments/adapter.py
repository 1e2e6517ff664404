"""
Adaptateur passerelle: persiste le PaymentIntent puis déclenche la navigation pleine page.

La construction des paramètres reste pure (gateways.build_redirect_payload); l'effet de
navigation est une redirection 303 vers la page intermédiaire /payment/gateway, qui rend un
formulaire POST auto-soumis vers le domaine de la passerelle.
"""
import logging
from typing import Any, MutableMapping, Optional

from fastapi.responses import RedirectResponse

from portal.config import BASE_URL, PAYMENT_FAILED_PATH, PAYMENT_SUCCESS_PATH
from .gateways import (
    COUNTDOWN_GATEWAYS,
    RedirectContext,
    RedirectPayload,
    build_redirect_params,
    build_redirect_payload,
)
from .models import PaymentIntent
from .storage import PaymentIntentStore

logger = logging.getLogger(__name__)

GATEWAY_PAGE_PATH = "/payment/gateway"


def redirect_context(customer_email: str = "", customer_name: str = "", base_url: Optional[str] = None) -> RedirectContext:
    base = (base_url or BASE_URL).rstrip("/")
    return RedirectContext(
        redirect_url=f"{base}{PAYMENT_SUCCESS_PATH}",
        cancel_url=f"{base}{PAYMENT_FAILED_PATH}",
        customer_email=customer_email or "",
        customer_name=customer_name or "",
    )


class PaymentGatewayAdapter:
    def __init__(self, store: MutableMapping[str, Any], base_url: Optional[str] = None):
        self.intents = PaymentIntentStore(store)
        self.base_url = base_url

    def build_redirect_params(self, intent: PaymentIntent, customer_email: str = "", customer_name: str = ""):
        return build_redirect_params(intent, redirect_context(customer_email, customer_name, self.base_url))

    def build_redirect_payload(self, intent: PaymentIntent, customer_email: str = "", customer_name: str = "") -> RedirectPayload:
        return build_redirect_payload(intent, redirect_context(customer_email, customer_name, self.base_url))

    def redirect(self, intent: PaymentIntent, customer_email: str = "", customer_name: str = "") -> RedirectResponse:
        """Écrit l'intent (pending + active) puis redirige vers la page intermédiaire."""
        self.intents.save(intent, customer_email=customer_email, customer_name=customer_name)
        logger.info("payments.redirect ref=%s gateway=%s", intent.reference_number, intent.gateway_name)
        return RedirectResponse(url=GATEWAY_PAGE_PATH, status_code=303)

    def pending_payload(self) -> Optional[RedirectPayload]:
        """Payload du paiement sur le point de démarrer (lu par /payment/gateway), None sinon."""
        pending = self.intents.load_pending()
        intent = self.intents.pending_intent()
        if intent is None:
            return None
        return self.build_redirect_payload(
            intent,
            customer_email=str(pending.get("customerEmail") or ""),
            customer_name=str(pending.get("customerName") or ""),
        )


def uses_countdown(gateway_name: str) -> bool:
    return gateway_name in COUNTDOWN_GATEWAYS
