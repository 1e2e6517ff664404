import asyncio
import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.concurrency import run_in_threadpool

from portal.config import PAYMENT_POLL_INTERVAL_SECONDS, PAYMENT_TIMEOUT_SECONDS
from portal.errors import RECOVERY_RESTART_REGISTRATION, GatewayCallbackError, PaymentExpired
from portal.registration.service import get_coordinator
from portal.utils.templates import templates
from .adapter import PaymentGatewayAdapter, uses_countdown
from .models import PaymentOutcome, PaymentStatus
from .reconciler import PaymentChannel, PaymentReconciler, register_poll_handle

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Payments"])
api_router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

COUNTDOWN_SECONDS = 3
NO_STORE = "no-store, no-cache, must-revalidate, max-age=0"

# module portal.payments.views
def get_reconciler(request: Request) -> PaymentReconciler:
    """Réconciliateur par requête; la page d'inscription est abonnée au canal le temps de la requête."""
    channel = PaymentChannel()
    channel.subscribe(get_coordinator(request).on_payment_outcome)
    return PaymentReconciler(
        request.session,
        channel,
        interval=PAYMENT_POLL_INTERVAL_SECONDS,
        timeout=PAYMENT_TIMEOUT_SECONDS,
    )

def outcome_to_dict(outcome: PaymentOutcome) -> Dict[str, Any]:
    callback = outcome.callback
    data: Dict[str, Any] = {
        "paymentRefNo": outcome.reference_number,
        "status": outcome.status.value,
        "terminal": outcome.status.is_terminal,
        "message": outcome.message,
    }
    if outcome.intent is not None:
        data["gatewayName"] = outcome.intent.gateway_name
        data["gatewayTransactionId"] = outcome.intent.gateway_transaction_id
    if callback is not None:
        data["rawStatus"] = callback.raw_status
        data["errorCode"] = callback.error_code
    if outcome.status == PaymentStatus.EXPIRED:
        data["recovery"] = RECOVERY_RESTART_REGISTRATION
    return data

def _wants_json(request: Request) -> bool:
    accept = (request.headers.get("accept") or "").lower()
    return "application/json" in accept and "text/html" not in accept

def _render_result(
    request: Request,
    outcome: Optional[PaymentOutcome],
    message: Optional[str] = None,
    code: Optional[str] = None,
    status_code: int = 200,
):
    if _wants_json(request):
        content = outcome_to_dict(outcome) if outcome else {"detail": message, "code": code, "recovery": RECOVERY_RESTART_REGISTRATION}
        return JSONResponse(content, status_code=status_code)
    resp = templates.TemplateResponse(
        "payment_result.html",
        {
            "request": request,
            "outcome": outcome,
            "status": outcome.status.value if outcome else PaymentStatus.FAILED.value,
            "message": message or (outcome.message if outcome else None),
            "code": code,
        },
        status_code=status_code,
    )
    resp.headers["Cache-Control"] = NO_STORE
    return resp

async def _callback_params(request: Request) -> Tuple[Dict[str, str], str]:
    """Paramètres de retour passerelle: query string, complétée par le formulaire si POST."""
    params: Dict[str, str] = dict(request.query_params)
    raw = request.url.query
    if request.method == "POST":
        form = await request.form()
        params.update({k: v for k, v in form.items() if isinstance(v, str)})
        raw = urlencode(params)
    return params, raw

async def _handle_callback(request: Request, reconciler: PaymentReconciler, failure_route: bool):
    params, raw = await _callback_params(request)
    try:
        outcome = await run_in_threadpool(reconciler.reconcile_callback, params, raw, failure_route)
    except GatewayCallbackError as e:
        # page d'échec terminale, sans nouvelle tentative
        message = params.get("error") if failure_route and params.get("error") else e.message
        return _render_result(request, None, message=message, code=e.code, status_code=e.status_code)
    return _render_result(request, outcome)

@router.get("/payment/gateway", response_class=HTMLResponse, name="payment_gateway")
def payment_gateway(request: Request):
    """
    Page intermédiaire: formulaire POST auto-soumis vers la passerelle.
    Compte à rebours pour QNB/CCAvenue, soumission immédiate sinon; bouton manuel en secours.
    """
    adapter = PaymentGatewayAdapter(request.session)
    intent = adapter.intents.pending_intent()
    payload = adapter.pending_payload()
    if intent is None or payload is None:
        return _render_result(
            request, None,
            message="Aucun paiement en attente, veuillez recommencer l'inscription",
            code="no_pending_payment",
            status_code=404,
        )
    resp = templates.TemplateResponse("gateway.html", {
        "request": request,
        "payload": payload,
        "intent": intent,
        "countdown": COUNTDOWN_SECONDS if uses_countdown(intent.gateway_name) else 0,
    })
    resp.headers["Cache-Control"] = NO_STORE
    return resp

@router.api_route("/payment/success", methods=["GET", "POST"], response_class=HTMLResponse, name="payment_success")
async def payment_success(request: Request, reconciler: PaymentReconciler = Depends(get_reconciler)):
    return await _handle_callback(request, reconciler, failure_route=False)

@router.api_route("/payment/failed", methods=["GET", "POST"], response_class=HTMLResponse, name="payment_failed")
async def payment_failed(request: Request, reconciler: PaymentReconciler = Depends(get_reconciler)):
    return await _handle_callback(request, reconciler, failure_route=True)

@api_router.get("/active")
async def active_payment(reconciler: PaymentReconciler = Depends(get_reconciler)):
    """Une vérification de statut du paiement reprenable (page rechargée)."""
    outcome = await reconciler.check_active()
    if outcome is None:
        return {"active": False, "payment": None}
    return {"active": not outcome.status.is_terminal, "payment": outcome_to_dict(outcome)}

@api_router.get("/active/wait")
async def wait_active_payment(request: Request, max_wait: float = 25.0, reconciler: PaymentReconciler = Depends(get_reconciler)):
    """
    Attente longue: polling jusqu'au premier statut terminal, au plus max_wait secondes.
    La tâche est enregistrée sur l'app pour être annulée au shutdown.
    """
    handle = reconciler.start_polling()
    register_poll_handle(request.app.state, handle)
    try:
        outcome = await asyncio.wait_for(_wait(handle), timeout=max(0.0, min(max_wait, 60.0)))
    except asyncio.TimeoutError:
        handle.cancel()
        intent = reconciler.intents.active_intent()
        if intent is None:
            return {"active": False, "payment": None}
        return {"active": True, "payment": outcome_to_dict(PaymentOutcome(intent.reference_number, intent.status, intent=intent))}
    if outcome is None:
        return {"active": False, "payment": None}
    if outcome.status == PaymentStatus.EXPIRED and not outcome.message:
        outcome.message = PaymentExpired.message
    return {"active": not outcome.status.is_terminal, "payment": outcome_to_dict(outcome)}

async def _wait(handle):
    return await handle
