"""
Tests for the settlement provider callback (POST /webhooks/v1/settlement/callback)
"""

import json
import time

import pytest

from paychain.core.transactions.models import TransactionStatus
from paychain.services.ledger import TransactionLedger
from paychain.utils.webhook_security import SIGNATURE_HEADER, TIMESTAMP_HEADER, compute_hmac_signature

from conftest import CALLBACK_SECRET

CALLBACK_URL = "/webhooks/v1/settlement/callback"


def signed_post(client, payload, secret=CALLBACK_SECRET, timestamp=None):
    body = json.dumps(payload).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: compute_hmac_signature(body, secret),
    }
    if timestamp is not None:
        headers[TIMESTAMP_HEADER] = str(timestamp)
    return client.post(CALLBACK_URL, content=body, headers=headers)


@pytest.fixture
def live_transaction_id(client, live_account) -> str:
    _, live_key = live_account
    response = client.post(
        "/api/v1/charge",
        json={"amount": 10000, "phone": "0712345678"},
        headers={"X-Api-Key": live_key},
    )
    return response.json()["transaction_id"]


def current_status(db_session, transaction_id):
    db_session.expire_all()
    return TransactionLedger(db_session).get(transaction_id)


def test_success_callback_settles(client, db_session, live_transaction_id, dispatcher):
    response = signed_post(
        client,
        {
            "transaction_id": live_transaction_id,
            "status": "SUCCESS",
            "provider_ref": "QGH7XK2L9P",
            "provider_event_id": "evt_1",
        },
        timestamp=int(time.time()),
    )

    assert response.status_code == 200
    assert response.json() == {
        "status": "accepted",
        "transaction_id": live_transaction_id,
        "transaction_status": "SUCCESS",
    }
    transaction = current_status(db_session, live_transaction_id)
    assert transaction.status == TransactionStatus.SUCCESS
    assert transaction.provider_ref == "QGH7XK2L9P"
    assert transaction.meta["provider_event_id"] == "evt_1"
    assert transaction.completed_at is not None
    assert dispatcher.resolved == [live_transaction_id]


def test_duplicate_callback_is_noop(client, db_session, live_transaction_id, dispatcher):
    signed_post(client, {"transaction_id": live_transaction_id, "status": "SUCCESS", "provider_ref": "REF_1"})
    completed_at = current_status(db_session, live_transaction_id).completed_at

    response = signed_post(client, {"transaction_id": live_transaction_id, "status": "FAILED", "failure_reason": "late"})

    assert response.status_code == 200
    assert response.json()["status"] == "duplicate"
    assert response.json()["transaction_status"] == "SUCCESS"
    transaction = current_status(db_session, live_transaction_id)
    assert transaction.status == TransactionStatus.SUCCESS
    assert transaction.provider_ref == "REF_1"
    assert transaction.completed_at == completed_at
    assert "failure_reason" not in transaction.meta
    assert dispatcher.resolved == [live_transaction_id]


def test_failed_callback_records_reason(client, db_session, live_transaction_id):
    response = signed_post(
        client,
        {"transaction_id": live_transaction_id, "status": "FAILED", "failure_reason": "insufficient_funds"},
    )

    assert response.json()["transaction_status"] == "FAILED"
    transaction = current_status(db_session, live_transaction_id)
    assert transaction.meta["failure_reason"] == "insufficient_funds"
    assert transaction.provider_ref is None


@pytest.mark.parametrize("secret", ["wrong-secret", ""])
def test_bad_signature_rejected(client, db_session, live_transaction_id, secret):
    body = json.dumps({"transaction_id": live_transaction_id, "status": "SUCCESS"}).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    if secret:
        headers[SIGNATURE_HEADER] = compute_hmac_signature(body, secret)

    response = client.post(CALLBACK_URL, content=body, headers=headers)

    assert response.status_code == 401
    assert response.json()["error"]["code"] in ("WEBHOOK_INVALID_SIGNATURE", "WEBHOOK_MISSING_HEADER")
    assert current_status(db_session, live_transaction_id).status == TransactionStatus.PENDING


def test_stale_timestamp_rejected(client, db_session, live_transaction_id):
    response = signed_post(
        client,
        {"transaction_id": live_transaction_id, "status": "SUCCESS"},
        timestamp=int(time.time()) - 3600,
    )

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "WEBHOOK_TIMESTAMP_SKEW"
    assert current_status(db_session, live_transaction_id).status == TransactionStatus.PENDING


def test_unknown_transaction(client, db_session):
    response = signed_post(client, {"transaction_id": "txn_000000000000000000000000", "status": "SUCCESS"})
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TRANSACTION_NOT_FOUND"


def test_sandbox_transaction_refused(client, db_session, sandbox_account):
    created = client.post(
        "/api/v1/charge",
        json={"amount": 10000, "phone": "0712345678"},
        headers={"X-Api-Key": sandbox_account.sandbox_api_key},
    ).json()

    response = signed_post(client, {"transaction_id": created["transaction_id"], "status": "SUCCESS"})

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "SANDBOX_TRANSACTION"
    assert current_status(db_session, created["transaction_id"]).status == TransactionStatus.PENDING


@pytest.mark.parametrize("payload", [
    {"transaction_id": "txn_x", "status": "HELD"},
    {"status": "SUCCESS"},
])
def test_invalid_payload(client, db_session, payload):
    response = signed_post(client, payload)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_PAYLOAD"
