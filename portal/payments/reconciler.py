"""
Réconciliation du paiement d'inscription.

Deux chemins mènent au même finalize():
- retour passerelle (/payment/success, /payment/failed): parse_callback puis transmission
  du retour brut à l'API amont, dont le statut est préféré quand elle répond
- polling du statut (PollHandle): toutes les PAYMENT_POLL_INTERVAL_SECONDS, jusqu'au premier
  statut terminal ou jusqu'à PAYMENT_TIMEOUT_SECONDS après started_at (EXPIRED)

finalize() efface l'intent persisté, applique le statut terminal et publie un PaymentOutcome
sur le PaymentChannel auquel la page d'inscription est abonnée.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, MutableMapping, Optional
from urllib.parse import urlencode

import httpx

from portal.config import DEFAULT_COUNTRY_CODE, PAYMENT_POLL_INTERVAL_SECONDS, PAYMENT_TIMEOUT_SECONDS
from portal.errors import GatewayCallbackError, PaymentExpired
from . import repository
from .callbacks import canonical_status, parse_callback
from .gateways import generate_signature
from .models import GatewayCallback, PaymentIntent, PaymentOutcome, PaymentStatus
from .storage import PaymentIntentStore

logger = logging.getLogger(__name__)

Subscriber = Callable[[PaymentOutcome], None]
StatusFetcher = Callable[[str], Awaitable[Dict[str, Any]]]


class PaymentChannel:
    """Canal typé: les abonnés reçoivent chaque PaymentOutcome publié, le temps de leur abonnement."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)
        return lambda: self.unsubscribe(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def publish(self, outcome: PaymentOutcome) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(outcome)
            except Exception:
                logger.exception("payments.channel subscriber failed ref=%s", outcome.reference_number)


class PollHandle:
    """Tâche de polling: peut être attendue (await handle) ou annulée (handle.cancel())."""

    def __init__(self, task: "asyncio.Task[Optional[PaymentOutcome]]"):
        self._task = task

    def __await__(self):
        return self._task.__await__()

    def cancel(self) -> None:
        self._task.cancel()

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled()

    def add_done_callback(self, fn: Callable[["PollHandle"], None]) -> None:
        self._task.add_done_callback(lambda _task: fn(self))


def status_from_body(body: Any) -> PaymentStatus:
    """Statut canonique d'une réponse amont {data: {status}} (ou {status} à plat)."""
    if not isinstance(body, dict):
        return PaymentStatus.UNKNOWN
    data = body.get("data") if isinstance(body.get("data"), dict) else body
    raw = data.get("status") or data.get("paymentStatus")
    status, _ = canonical_status(str(raw) if raw else None)
    return status


class PaymentReconciler:
    def __init__(
        self,
        store: MutableMapping[str, Any],
        channel: Optional[PaymentChannel] = None,
        fetch_status: Optional[StatusFetcher] = None,
        submit_response: Optional[Callable[..., Dict[str, Any]]] = None,
        now: Callable[[], float] = time.time,
        interval: float = PAYMENT_POLL_INTERVAL_SECONDS,
        timeout: float = PAYMENT_TIMEOUT_SECONDS,
        country_code: str = DEFAULT_COUNTRY_CODE,
    ):
        self.intents = PaymentIntentStore(store)
        self.channel = channel or PaymentChannel()
        self.fetch_status = fetch_status or repository.afetch_payment_status
        self.submit_response = submit_response or repository.submit_gateway_response
        self.now = now
        self.interval = interval
        self.timeout = timeout
        self.country_code = country_code

    # --- retour passerelle ---

    def reconcile_callback(self, query: Mapping[str, Any], raw: Optional[str] = None, failure_route: bool = False) -> PaymentOutcome:
        """
        Traite un retour passerelle. Lève GatewayCallbackError si aucune référence n'est présente.
        Un statut non terminal sur la route de succès laisse l'intent actif (le polling prend le relais).
        """
        callback = parse_callback(query)
        if callback is None:
            raise GatewayCallbackError()

        intent = self.intents.active_intent()
        if intent is None or intent.reference_number != callback.payment_ref_no:
            if intent is not None:
                logger.warning(
                    "payments.callback ref mismatch stored=%s callback=%s",
                    intent.reference_number, callback.payment_ref_no,
                )
            intent = PaymentIntent(reference_number=callback.payment_ref_no, amount="", currency="", gateway_name="")
        if callback.transaction_id:
            intent.gateway_transaction_id = callback.transaction_id

        status = callback.status
        upstream = self._forward(callback, raw if raw is not None else urlencode(dict(query), doseq=True))
        if upstream is not None and upstream != PaymentStatus.UNKNOWN:
            status = upstream
        if failure_route and not status.is_terminal:
            status = PaymentStatus.FAILED

        if not status.is_terminal:
            intent.transition(status)
            self.intents.update(intent)
            logger.info("payments.callback ref=%s still %s", intent.reference_number, intent.status.value)
            return PaymentOutcome(intent.reference_number, intent.status, intent=intent, callback=callback)
        return self.finalize(intent, status, callback=callback, message=callback.error_message)

    def _forward(self, callback: GatewayCallback, raw: str) -> Optional[PaymentStatus]:
        ref = callback.payment_ref_no
        try:
            body = self.submit_response(ref, raw, generate_signature(raw, ref), self.country_code)
        except (httpx.HTTPError, ValueError):
            logger.warning("payments.callback upstream response failed ref=%s", ref, exc_info=True)
            return None
        return status_from_body(body)

    # --- polling ---

    async def check_active(self) -> Optional[PaymentOutcome]:
        """
        Une vérification de statut pour l'intent reprenable.
        None si aucun paiement n'est actif; EXPIRED (et effacé) si le délai est dépassé.
        """
        intent = self.intents.active_intent()
        if intent is None:
            return None
        if intent.expired(self.timeout, self.now()):
            return self.finalize(intent, PaymentStatus.EXPIRED, message=PaymentExpired.message)
        try:
            body = await self.fetch_status(intent.reference_number)
        except (httpx.HTTPError, ValueError):
            logger.warning("payments.poll status check failed ref=%s", intent.reference_number, exc_info=True)
            return PaymentOutcome(intent.reference_number, intent.status, intent=intent)
        status = status_from_body(body)
        if status.is_terminal:
            return self.finalize(intent, status)
        return PaymentOutcome(intent.reference_number, intent.status, intent=intent)

    async def poll(self) -> Optional[PaymentOutcome]:
        while True:
            outcome = await self.check_active()
            if outcome is None or outcome.status.is_terminal:
                return outcome
            await asyncio.sleep(self.interval)

    def start_polling(self) -> PollHandle:
        return PollHandle(asyncio.get_running_loop().create_task(self.poll()))

    # --- issue ---

    def finalize(
        self,
        intent: PaymentIntent,
        status: PaymentStatus,
        callback: Optional[GatewayCallback] = None,
        message: Optional[str] = None,
    ) -> PaymentOutcome:
        self.intents.clear()
        intent.transition(status)
        outcome = PaymentOutcome(intent.reference_number, intent.status, intent=intent, callback=callback, message=message)
        logger.info("payments.finalize ref=%s status=%s", intent.reference_number, intent.status.value)
        self.channel.publish(outcome)
        return outcome


def register_poll_handle(state: Any, handle: PollHandle) -> None:
    """Enregistre la tâche sur app.state pour l'annuler au shutdown."""
    handles = getattr(state, "poll_handles", None)
    if handles is None:
        handles = set()
        state.poll_handles = handles
    handles.add(handle)
    handle.add_done_callback(handles.discard)


def cancel_poll_handles(state: Any) -> int:
    handles = getattr(state, "poll_handles", None) or set()
    count = 0
    for handle in list(handles):
        if not handle.done:
            handle.cancel()
            count += 1
    handles.clear()
    return count
