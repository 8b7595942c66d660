"""
Tests del webhook de pago confirmado
"""
import json
import pytest
from fastapi import status

from careconnect.config import get_settings
from careconnect.schemas.payment import PaymentConfirmed
from careconnect.webhook_security import SIGNATURE_HEADER, compute_hmac_sha256, constant_time_compare
from conftest import PROVIDER_ID, REQUESTER_ID, TUESDAY

def _post(client, payload, signature=None, raw=None):
    body = raw if raw is not None else json.dumps(payload).encode()
    if signature is None:
        signature = compute_hmac_sha256(get_settings().payment_webhook_secret, body)
    return client.post("/payments/confirmed", content=body,
                       headers={SIGNATURE_HEADER: signature, "Content-Type": "application/json"})

@pytest.fixture
def pending_id(client, auth, provider_setup):
    r = client.post("/bookings", headers=auth(REQUESTER_ID), json={
        "provider_id": PROVIDER_ID, "plan_id": provider_setup, "dates": [TUESDAY],
        "start_time": "14:00", "duration_hours": 3,
    })
    assert r.status_code == status.HTTP_201_CREATED
    return r.json()[0]["id"]

@pytest.fixture
def accepted_id(client, auth, pending_id):
    r = client.post(f"/bookings/{pending_id}/accept", headers=auth(PROVIDER_ID))
    assert r.status_code == 200
    return pending_id

def test_signature_helpers():
    sig = compute_hmac_sha256("secreto", b"{}")
    assert len(sig) == 64
    assert constant_time_compare(sig, compute_hmac_sha256("secreto", b"{}"))
    assert not constant_time_compare(sig, compute_hmac_sha256("otro", b"{}"))
    assert not constant_time_compare("", sig)

def test_payment_confirms_booking(client, store, accepted_id):
    r = _post(client, {"booking_id": accepted_id, "transaction_id": "txn_42"})
    assert r.status_code == 200
    assert r.json()["status"] == "confirmed"
    assert store.notifications_for(PROVIDER_ID)[-1]["type"] == "payment_confirmed"

def test_missing_signature(client, accepted_id):
    r = client.post("/payments/confirmed", json={"booking_id": accepted_id})
    assert r.status_code == status.HTTP_401_UNAUTHORIZED

def test_wrong_signature(client, store, accepted_id):
    r = _post(client, {"booking_id": accepted_id}, signature="0" * 64)
    assert r.status_code == status.HTTP_401_UNAUTHORIZED
    booking = next(iter(store.bookings.values()))
    assert booking["status"] == "waiting_payment"

def test_signature_covers_body(client, accepted_id):
    signed_for = json.dumps({"booking_id": "6500000000000000000000ff"}).encode()
    signature = compute_hmac_sha256(get_settings().payment_webhook_secret, signed_for)
    r = _post(client, {"booking_id": accepted_id}, signature=signature)
    assert r.status_code == status.HTTP_401_UNAUTHORIZED

def test_payment_twice_is_a_conflict(client, accepted_id):
    assert _post(client, {"booking_id": accepted_id}).status_code == 200
    r = _post(client, {"booking_id": accepted_id})
    assert r.status_code == status.HTTP_409_CONFLICT

def test_payment_for_pending_booking_is_a_conflict(client, pending_id):
    r = _post(client, {"booking_id": pending_id})
    assert r.status_code == status.HTTP_409_CONFLICT

def test_payment_for_unknown_booking(client):
    r = _post(client, {"booking_id": "6500000000000000000000ff"})
    assert r.status_code == status.HTTP_404_NOT_FOUND

def test_invalid_payload(client):
    r = _post(client, None, raw=b'{"booking_id": "123"}')
    assert r.status_code == 422

def test_payment_schema_validation():
    from pydantic import ValidationError

    with pytest.raises(ValidationError):
        PaymentConfirmed(booking_id="123")
    assert PaymentConfirmed(booking_id="507f1f77bcf86cd799439011").transaction_id is None
