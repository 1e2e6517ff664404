from portal.payments.models import PaymentStatus
from portal.payments.storage import ACTIVE_KEY, PENDING_KEY, PaymentIntentStore

def test_save_writes_pending_and_active(make_intent):
    store = {}
    intent = make_intent(started_at=1000.0)
    PaymentIntentStore(store).save(intent, customer_email="jane@example.com", customer_name="Jane Doe")
    assert store[PENDING_KEY]["paymentRefNo"] == "REF-1001"
    assert store[PENDING_KEY]["customerName"] == "Jane Doe"
    assert store[ACTIVE_KEY] == {"paymentRefNo": "REF-1001", "startTime": 1000.0}

def test_active_intent_prefers_matching_pending(make_intent):
    store = {}
    intents = PaymentIntentStore(store)
    intents.save(make_intent(started_at=1000.0))
    active = intents.active_intent()
    assert active.gateway_name == "QNB"
    assert active.started_at == 1000.0

def test_active_intent_minimal_form():
    store = {ACTIVE_KEY: {"paymentRefNo": "R-7", "startTime": 50.0}}
    active = PaymentIntentStore(store).active_intent()
    assert active.reference_number == "R-7"
    assert active.amount == ""
    assert active.started_at == 50.0

def test_unreadable_entry_is_cleared():
    store = {ACTIVE_KEY: {"startTime": 1.0}}
    assert PaymentIntentStore(store).active_intent() is None
    assert ACTIVE_KEY not in store

def test_update_and_clear(make_intent):
    store = {}
    intents = PaymentIntentStore(store)
    intent = make_intent()
    intents.save(intent)
    intent.gateway_transaction_id = "GT-5"
    intents.update(intent)
    assert store[PENDING_KEY]["gatewayTransactionId"] == "GT-5"
    intents.clear()
    intents.clear()
    assert store == {}
    assert intents.active_intent() is None
    assert intents.pending_intent() is None

def test_pending_status_round_trips(make_intent):
    store = {}
    intents = PaymentIntentStore(store)
    intents.save(make_intent())
    assert intents.pending_intent().status == PaymentStatus.PENDING
