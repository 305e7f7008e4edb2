"""
Web deposit tests - STK Push started from the web app
"""

import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from zyra.models import Transaction, TransactionStatus, TransactionType
from zyra.services.payments.exceptions import PaymentProviderError

STK_PUSH_URL = "/api/v1/mpesa/stk-push"
ALICE = "+254712345678"


def test_deposit_creates_pending_transaction(client: TestClient, make_user, payments, db_session):
    alice = make_user(ALICE)

    response = client.post(STK_PUSH_URL, json={"amount": 100, "phone": "0712345678", "userId": str(alice.id)})

    assert response.status_code == 202
    data = response.json()
    assert data["checkout_request_id"] == "ws_CO_191220191020363925"
    payments.initiate_deposit.assert_called_once_with(100, "0712345678", alice.public_key)

    transaction = db_session.query(Transaction).one()
    assert str(transaction.id) == data["transaction_id"]
    assert transaction.user_id == alice.id
    assert transaction.type == TransactionType.DEPOSIT
    assert transaction.status == TransactionStatus.PENDING
    assert transaction.amount == Decimal("100")
    assert transaction.merchant_request_id == "29115-34620561-1"
    assert transaction.checkout_request_id == "ws_CO_191220191020363925"


@pytest.mark.parametrize("body", [
    {"phone": ALICE, "userId": "x"},
    {"amount": 100, "userId": "x"},
    {"amount": 100, "phone": ALICE},
])
def test_missing_fields(client: TestClient, payments, body):
    response = client.post(STK_PUSH_URL, json=body)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "MISSING_FIELDS"
    payments.initiate_deposit.assert_not_called()


def test_non_positive_amount(client: TestClient, make_user, payments):
    alice = make_user(ALICE)

    response = client.post(STK_PUSH_URL, json={"amount": 0, "phone": ALICE, "userId": str(alice.id)})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_DEPOSIT_AMOUNT"
    payments.initiate_deposit.assert_not_called()


@pytest.mark.parametrize("user_id", [str(uuid.uuid4()), "not-a-uuid"])
def test_unknown_user(client: TestClient, payments, user_id):
    response = client.post(STK_PUSH_URL, json={"amount": 100, "phone": ALICE, "userId": user_id})

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "USER_NOT_FOUND"
    payments.initiate_deposit.assert_not_called()


def test_provider_failure_records_nothing(client: TestClient, make_user, payments, db_session):
    alice = make_user(ALICE)
    payments.initiate_deposit.side_effect = PaymentProviderError("Invalid Access Token", response_code="404.001.03")

    response = client.post(STK_PUSH_URL, json={"amount": 100, "phone": ALICE, "userId": str(alice.id)})

    assert response.status_code == 502
    assert response.json()["error"]["code"] == "PAYMENT_PROVIDER_FAILED"
    assert db_session.query(Transaction).count() == 0


def test_completed_by_provider_callback(client: TestClient, make_user, ledger, db_session):
    alice = make_user(ALICE)
    client.post(STK_PUSH_URL, json={"amount": 100, "phone": ALICE, "userId": str(alice.id)})

    response = client.post(
        "/webhooks/v1/mpesa/callback",
        params={"secret": "test-callback-secret"},
        json={"Body": {"stkCallback": {
            "MerchantRequestID": "29115-34620561-1",
            "CheckoutRequestID": "ws_CO_191220191020363925",
            "ResultCode": 0,
            "ResultDesc": "The service request is processed successfully.",
            "CallbackMetadata": {"Item": [{"Name": "MpesaReceiptNumber", "Value": "NLJ7RT61SV"}]},
        }}},
    )

    assert response.status_code == 200
    transaction = db_session.query(Transaction).one()
    db_session.refresh(transaction)
    assert transaction.status == TransactionStatus.SUCCESS
    ledger.fund_test_account.assert_called_once_with(alice.public_key)
