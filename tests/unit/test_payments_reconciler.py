import asyncio
import httpx
import pytest
from portal.errors import GatewayCallbackError
from portal.payments.models import PaymentStatus
from portal.payments.reconciler import (
    PaymentChannel,
    PaymentReconciler,
    cancel_poll_handles,
    register_poll_handle,
    status_from_body,
)
from portal.payments.storage import ACTIVE_KEY, PENDING_KEY, PaymentIntentStore

class _Clock:
    def __init__(self, t=10_000.0):
        self.t = t

    def __call__(self):
        return self.t

def _status(value):
    async def _fetch(ref):
        return {"success": True, "data": {"paymentRefNo": ref, "status": value}}
    return _fetch

def _sequence(values, calls=None):
    it = iter(values)

    async def _fetch(ref):
        if calls is not None:
            calls.append(ref)
        value = next(it)
        if isinstance(value, Exception):
            raise value
        return {"data": {"status": value}}
    return _fetch

def _no_upstream(*args):
    raise httpx.ConnectError("down")

def _reconciler(store, **kw):
    kw.setdefault("submit_response", _no_upstream)
    kw.setdefault("fetch_status", _status("PENDING"))
    kw.setdefault("interval", 0)
    return PaymentReconciler(store, **kw)

def _persist(store, intent):
    PaymentIntentStore(store).save(intent)

# --- retour passerelle ---

def test_success_callback_finalizes_and_publishes(make_intent):
    store = {}
    _persist(store, make_intent())
    channel = PaymentChannel()
    received = []
    channel.subscribe(received.append)
    rec = _reconciler(store, channel=channel)

    outcome = rec.reconcile_callback({"paymentRefNo": "REF-1001", "status": "CAPTURED", "trackid": "TR-1"})

    assert outcome.status == PaymentStatus.SUCCESS
    assert outcome.intent.gateway_transaction_id == "TR-1"
    assert received == [outcome]
    assert PENDING_KEY not in store and ACTIVE_KEY not in store

def test_missing_reference_raises_callback_error(make_intent):
    store = {}
    _persist(store, make_intent())
    with pytest.raises(GatewayCallbackError):
        _reconciler(store).reconcile_callback({"status": "CAPTURED"})
    # rien n'est effacé sur un retour inexploitable
    assert ACTIVE_KEY in store

def test_upstream_status_is_preferred(make_intent):
    store = {}
    _persist(store, make_intent())
    sent = {}

    def submit(ref, raw, signature, country_code):
        sent.update(ref=ref, raw=raw, signature=signature, country_code=country_code)
        return {"success": True, "data": {"status": "FAILED"}}

    outcome = _reconciler(store, submit_response=submit).reconcile_callback(
        {"paymentRefNo": "REF-1001", "status": "SUCCESS"}, raw="paymentRefNo=REF-1001&status=SUCCESS"
    )
    assert outcome.status == PaymentStatus.FAILED
    assert sent["ref"] == "REF-1001"
    assert sent["raw"] == "paymentRefNo=REF-1001&status=SUCCESS"
    assert sent["country_code"] == "DOHA"

def test_failure_route_maps_non_terminal_to_failed(make_intent):
    store = {}
    _persist(store, make_intent())
    outcome = _reconciler(store).reconcile_callback({"orderid": "REF-1001"}, failure_route=True)
    assert outcome.status == PaymentStatus.FAILED
    assert store == {}

def test_non_terminal_success_callback_keeps_intent_active(make_intent):
    store = {}
    _persist(store, make_intent())
    outcome = _reconciler(store).reconcile_callback({"paymentRefNo": "REF-1001", "status": "PENDING", "transactionId": "T9"})
    assert outcome.status == PaymentStatus.PENDING
    assert store[ACTIVE_KEY]["paymentRefNo"] == "REF-1001"
    assert store[PENDING_KEY]["gatewayTransactionId"] == "T9"

def test_callback_without_stored_intent_uses_callback_reference():
    store = {}
    outcome = _reconciler(store).reconcile_callback({"merchantRef": "R-77", "result": "APPROVED"})
    assert outcome.reference_number == "R-77"
    assert outcome.status == PaymentStatus.SUCCESS

def test_failing_subscriber_does_not_break_publication(make_intent):
    store = {}
    _persist(store, make_intent())
    channel = PaymentChannel()
    received = []

    def _boom(outcome):
        raise RuntimeError("subscriber bug")

    channel.subscribe(_boom)
    unsubscribe = channel.subscribe(received.append)
    _reconciler(store, channel=channel).reconcile_callback({"paymentRefNo": "REF-1001", "status": "CAPTURED"})
    assert len(received) == 1
    unsubscribe()
    channel.publish(received[0])
    assert len(received) == 1

# --- polling ---

@pytest.mark.asyncio
async def test_expired_intent_is_reported_and_cleared(make_intent):
    clock = _Clock()
    store = {}
    _persist(store, make_intent(started_at=clock.t - 16 * 60))
    calls = []
    rec = _reconciler(store, now=clock, fetch_status=_sequence(["PENDING"], calls))

    outcome = await rec.check_active()

    assert outcome.status == PaymentStatus.EXPIRED
    assert outcome.message
    assert store == {}
    assert calls == []

@pytest.mark.asyncio
async def test_check_active_without_payment():
    assert await _reconciler({}).check_active() is None

@pytest.mark.asyncio
async def test_transient_errors_are_tolerated(make_intent):
    store = {}
    _persist(store, make_intent())
    rec = _reconciler(store, fetch_status=_sequence([httpx.ConnectError("down")]))
    outcome = await rec.check_active()
    assert outcome.status == PaymentStatus.PENDING
    assert ACTIVE_KEY in store

@pytest.mark.asyncio
async def test_polling_stops_on_first_terminal_status(make_intent):
    store = {}
    _persist(store, make_intent())
    calls = []
    fetch = _sequence(["PENDING", httpx.ConnectError("blip"), "PENDING", "COMPLETED", "FAILED"], calls)
    rec = _reconciler(store, fetch_status=fetch)

    handle = rec.start_polling()
    outcome = await handle

    assert outcome.status == PaymentStatus.SUCCESS
    assert len(calls) == 4
    assert handle.done
    assert store == {}

@pytest.mark.asyncio
async def test_polling_times_out_with_expired(make_intent):
    clock = _Clock()
    store = {}
    _persist(store, make_intent(started_at=clock.t))
    calls = []

    async def fetch(ref):
        calls.append(ref)
        clock.t += 5 * 60
        return {"data": {"status": "PENDING"}}

    outcome = await _reconciler(store, now=clock, fetch_status=fetch).poll()
    assert outcome.status == PaymentStatus.EXPIRED
    assert len(calls) == 4
    assert store == {}

@pytest.mark.asyncio
async def test_poll_handle_can_be_cancelled(make_intent):
    store = {}
    _persist(store, make_intent())
    rec = _reconciler(store, interval=3600)
    handle = rec.start_polling()
    await asyncio.sleep(0)
    handle.cancel()
    with pytest.raises(asyncio.CancelledError):
        await handle
    assert handle.cancelled
    assert ACTIVE_KEY in store

@pytest.mark.asyncio
async def test_registered_handles_are_cancelled_on_teardown(make_intent):
    class _State:
        pass

    state = _State()
    store = {}
    _persist(store, make_intent())
    handle = _reconciler(store, interval=3600).start_polling()
    register_poll_handle(state, handle)
    await asyncio.sleep(0)
    assert cancel_poll_handles(state) == 1
    with pytest.raises(asyncio.CancelledError):
        await handle
    assert state.poll_handles == set()

def test_status_from_body():
    assert status_from_body({"data": {"status": "captured"}}) == PaymentStatus.SUCCESS
    assert status_from_body({"status": "DECLINED"}) == PaymentStatus.FAILED
    assert status_from_body({"data": {}}) == PaymentStatus.UNKNOWN
    assert status_from_body(None) == PaymentStatus.UNKNOWN
