"""
Persistance du PaymentIntent dans le stockage de session (cookie signé).

Deux clés, comme côté navigateur:
- pendingPayment: paiement sur le point de démarrer, lu par la page intermédiaire /payment/gateway
- activePayment: paiement reprenable après rechargement, lu par le réconciliateur
Écrit une fois par l'adaptateur passerelle, lu puis effacé par le réconciliateur.
"""
import logging
from typing import Any, Dict, MutableMapping, Optional

from .models import PaymentIntent

logger = logging.getLogger(__name__)

PENDING_KEY = "pendingPayment"
ACTIVE_KEY = "activePayment"


class PaymentIntentStore:
    def __init__(self, store: MutableMapping[str, Any]):
        self._store = store

    def save(self, intent: PaymentIntent, customer_email: str = "", customer_name: str = "") -> None:
        pending = intent.to_dict()
        pending["customerEmail"] = customer_email
        pending["customerName"] = customer_name
        self._store[PENDING_KEY] = pending
        self._store[ACTIVE_KEY] = {"paymentRefNo": intent.reference_number, "startTime": intent.started_at}

    def load_pending(self) -> Optional[Dict[str, Any]]:
        data = self._store.get(PENDING_KEY)
        return data if isinstance(data, dict) else None

    def pending_intent(self) -> Optional[PaymentIntent]:
        return self._read(self.load_pending(), PENDING_KEY)

    def active_intent(self) -> Optional[PaymentIntent]:
        """
        Intent reprenable: la forme complète (pending) si elle correspond à la référence active,
        sinon une forme minimale {référence, heure de départ}.
        """
        active = self._store.get(ACTIVE_KEY)
        if not isinstance(active, dict):
            return None
        pending = self.load_pending()
        if pending and pending.get("paymentRefNo") == active.get("paymentRefNo"):
            return self._read(pending, PENDING_KEY)
        return self._read(active, ACTIVE_KEY)

    def update(self, intent: PaymentIntent) -> None:
        pending = self.load_pending()
        if pending and pending.get("paymentRefNo") == intent.reference_number:
            pending.update(intent.to_dict())
            self._store[PENDING_KEY] = pending

    def clear(self) -> None:
        self._store.pop(PENDING_KEY, None)
        self._store.pop(ACTIVE_KEY, None)

    def _read(self, data: Optional[Dict[str, Any]], key: str) -> Optional[PaymentIntent]:
        if not data:
            return None
        try:
            return PaymentIntent.from_dict(data)
        except (TypeError, ValueError):
            logger.warning("payments.storage unreadable %s, clearing", key)
            self._store.pop(key, None)
            return None
