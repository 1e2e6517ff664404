"""
Cas d'usage 'registration': validation, captcha, avertissement passerelle puis initiation du paiement.

Ordre imposé:
1) submit(draft): validation exhaustive + captcha. Un brouillon valide est mis de côté
   (PendingDrafts, côté serveur) sous un ticket gardé en session; l'avertissement est renvoyé.
2) accept(ticket): initiate_payment puis redirection via PaymentGatewayAdapter.
   cancel(ticket): abandonne le brouillon, sans appel réseau.
Un échec d'initiation ne persiste aucun PaymentIntent et conserve le brouillon.
"""
import logging
import secrets
import threading
import time
from typing import Any, Callable, Dict, MutableMapping, Optional, Tuple

import httpx
from fastapi import Request
from fastapi.responses import RedirectResponse

from portal.config import DEFAULT_COUNTRY_CODE
from portal.errors import (
    CaptchaMismatch,
    GatewayInitiationError,
    RegistrationNotFound,
    UpstreamUnavailable,
    ValidationError,
)
from portal.payments import repository as payments_repo
from portal.payments.adapter import PaymentGatewayAdapter
from portal.payments.models import PaymentIntent, PaymentOutcome
from . import captcha
from .models import RegistrationDraft
from .validators import validate_draft

logger = logging.getLogger(__name__)

TICKET_KEY = "registration_ticket"
DRAFT_TTL_SECONDS = 30 * 60

DISCLAIMER: Dict[str, Any] = {
    "title": "Avertissement: redirection vers un site de paiement tiers",
    "paragraphs": [
        "À votre demande, vous allez être redirigé vers le site de paiement d'un tiers "
        "(banque) sur lequel vous pourrez régler les frais d'inscription.",
        "Nous ne garantissons ni l'exactitude ni l'exhaustivité des informations et services "
        "proposés sur le site tiers.",
        "Vous accédez à ce site uniquement pour le paiement de vos frais d'inscription; "
        "l'usage des services qui y sont proposés se fait à vos propres risques.",
        "Tout litige relatif au traitement du paiement doit être réglé directement avec la banque.",
    ],
    "accept_label": "Autoriser",
    "cancel_label": "Annuler l'inscription",
}


class PendingDrafts:
    """Brouillons validés en attente d'acceptation de l'avertissement, indexés par ticket."""

    def __init__(self, ttl_seconds: float = DRAFT_TTL_SECONDS, now: Callable[[], float] = time.time):
        self._items: Dict[str, Tuple[float, RegistrationDraft]] = {}
        self._lock = threading.Lock()
        self._ttl = ttl_seconds
        self._now = now

    def put(self, draft: RegistrationDraft) -> str:
        ticket = secrets.token_urlsafe(16)
        with self._lock:
            self._purge()
            self._items[ticket] = (self._now(), draft)
        return ticket

    def get(self, ticket: str) -> Optional[RegistrationDraft]:
        with self._lock:
            self._purge()
            item = self._items.get(ticket or "")
        return item[1] if item else None

    def pop(self, ticket: str) -> Optional[RegistrationDraft]:
        with self._lock:
            item = self._items.pop(ticket or "", None)
        return item[1] if item else None

    def __len__(self) -> int:
        return len(self._items)

    def _purge(self) -> None:
        limit = self._now() - self._ttl
        for key in [k for k, (created, _) in self._items.items() if created < limit]:
            del self._items[key]


class RegistrationCoordinator:
    def __init__(
        self,
        store: MutableMapping[str, Any],
        drafts: PendingDrafts,
        adapter: Optional[PaymentGatewayAdapter] = None,
        country_code: Optional[str] = None,
    ):
        self._store = store
        self._drafts = drafts
        self.adapter = adapter or PaymentGatewayAdapter(store)
        self.country_code = country_code or DEFAULT_COUNTRY_CODE

    def submit(self, draft: RegistrationDraft) -> Dict[str, Any]:
        """
        Valide tous les champs puis le captcha.
        - erreurs de champ: ValidationError (le captcha en échec y figure aussi)
        - captcha seul en échec: CaptchaMismatch
        Dans les deux cas un captcha erroné est régénéré. Aucun brouillon n'est conservé.
        """
        errors = validate_draft(draft)
        captcha_ok = "captcha" in errors or captcha.verify(self._store, draft.captcha)
        if not captcha_ok:
            captcha.generate(self._store)
            errors["captcha"] = CaptchaMismatch.message
            if len(errors) == 1:
                logger.info("registration.submit captcha mismatch email=%s", draft.email)
                raise CaptchaMismatch()
        if errors:
            logger.info("registration.submit invalid fields=%s", sorted(errors))
            raise ValidationError(errors)

        self.cancel()
        ticket = self._drafts.put(draft)
        self._store[TICKET_KEY] = ticket
        logger.info("registration.submit parked email=%s", draft.email)
        return {"ticket": ticket, "disclaimer": DISCLAIMER}

    def accept(self, ticket: str) -> RedirectResponse:
        """Acceptation de l'avertissement: initie le paiement puis redirige vers la passerelle."""
        draft = self._parked(ticket)
        intent = self.initiate_payment(draft)
        self._drafts.pop(ticket)
        self._store.pop(TICKET_KEY, None)
        self._store.pop(captcha.CAPTCHA_KEY, None)
        return self.adapter.redirect(intent, customer_email=draft.email, customer_name=draft.name)

    def cancel(self, ticket: Optional[str] = None) -> None:
        """Abandon de l'inscription: aucun état ne subsiste, aucun appel réseau."""
        ticket = ticket or self._store.get(TICKET_KEY)
        if ticket:
            self._drafts.pop(ticket)
        self._store.pop(TICKET_KEY, None)

    def initiate_payment(self, draft: RegistrationDraft) -> PaymentIntent:
        """POST /users/register-with-payment; GatewayInitiationError sur tout échec."""
        country_code = draft.country_code or self.country_code
        try:
            body = payments_repo.register_with_payment(self.to_payment_form(draft), country_code)
        except httpx.HTTPStatusError as e:
            raise GatewayInitiationError(_upstream_message(e.response)) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("registration.initiate_payment failed: %s", e.__class__.__name__)
            raise GatewayInitiationError() from e

        if not isinstance(body, dict) or not body.get("success"):
            message = body.get("message") if isinstance(body, dict) else None
            raise GatewayInitiationError(message or None)
        data = body.get("data")
        try:
            intent = PaymentIntent.from_dict(data)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("registration.initiate_payment no payment reference in response")
            raise GatewayInitiationError("Réponse de paiement sans référence") from e
        logger.info("registration.initiate_payment ref=%s gateway=%s", intent.reference_number, intent.gateway_name)
        return intent

    def to_payment_form(self, draft: RegistrationDraft) -> Dict[str, str]:
        return draft.to_payment_form()

    def on_payment_outcome(self, outcome: PaymentOutcome) -> None:
        """Abonné du PaymentChannel: une issue terminale clôt l'inscription en cours."""
        if outcome.status.is_terminal:
            self.cancel()
            logger.info("registration.payment_outcome ref=%s status=%s", outcome.reference_number, outcome.status.value)

    def _parked(self, ticket: str) -> RegistrationDraft:
        if not ticket or ticket != self._store.get(TICKET_KEY):
            raise RegistrationNotFound()
        draft = self._drafts.get(ticket)
        if draft is None:
            self._store.pop(TICKET_KEY, None)
            raise RegistrationNotFound()
        return draft


def _upstream_message(resp: httpx.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return None
    return body.get("message") if isinstance(body, dict) else None


def check_email_availability(email: str) -> bool:
    """True si l'email n'est pas encore utilisé (POST /users/check-email)."""
    try:
        body = payments_repo.check_email(email)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("registration.check_email failed: %s", e.__class__.__name__)
        raise UpstreamUnavailable() from e
    return bool(body.get("data")) if isinstance(body, dict) else False


def get_pending_drafts(request: Request) -> PendingDrafts:
    drafts = getattr(request.app.state, "pending_drafts", None)
    if drafts is None:
        drafts = PendingDrafts()
        request.app.state.pending_drafts = drafts
    return drafts


def get_coordinator(request: Request) -> RegistrationCoordinator:
    """Dépendance FastAPI: coordinateur par requête, adossé à request.session."""
    return RegistrationCoordinator(request.session, get_pending_drafts(request))
