"""
Deposit completion tests - STK Push callbacks applied exactly once
"""

from decimal import Decimal

import pytest

from zyra.infrastructure.settings import get_settings
from zyra.models import AuditLog, Transaction, TransactionStatus
from zyra.services.deposit_completion import DepositCallback, DepositCompletionHandler
from zyra.services.ledger.exceptions import LedgerError
from zyra.services.messaging.exceptions import MessagingError
from zyra.services.outcomes import CallbackStatus

ALICE = "+254712345678"
MERCHANT_ID = "29115-34620561-1"
CHECKOUT_ID = "ws_CO_191220191020363925"


@pytest.fixture
def handler(store, ledger, messenger):
    return DepositCompletionHandler(store, ledger, messenger, get_settings())


@pytest.fixture
def pending_deposit(store, make_user):
    user = make_user(ALICE)
    return store.create_pending_deposit(
        user,
        Decimal("100"),
        merchant_request_id=MERCHANT_ID,
        checkout_request_id=CHECKOUT_ID,
    )


def success_callback(**overrides) -> DepositCallback:
    values = dict(
        merchant_request_id=MERCHANT_ID,
        checkout_request_id=CHECKOUT_ID,
        result_code=0,
        result_desc="The service request is processed successfully.",
        metadata=[
            ("Amount", 100),
            ("MpesaReceiptNumber", "NLJ7RT61SV"),
            ("PhoneNumber", 254712345678),
        ],
    )
    values.update(overrides)
    return DepositCallback(**values)


class TestSuccessfulCallback:

    def test_completes_funds_and_credits(self, handler, pending_deposit, ledger, messenger, db_session):
        user = pending_deposit.user
        public_key = user.public_key

        outcome = handler.handle(success_callback())

        assert outcome.status == CallbackStatus.SUCCESS
        assert outcome.http_status == 200
        assert outcome.transaction_id == pending_deposit.id

        db_session.refresh(pending_deposit)
        db_session.refresh(user)
        assert pending_deposit.status == TransactionStatus.SUCCESS
        assert pending_deposit.mpesa_receipt_number == "NLJ7RT61SV"
        assert pending_deposit.result_code == 0
        assert user.balance == Decimal("10000")

        ledger.fund_test_account.assert_called_once_with(public_key)
        messenger.send_text.assert_called_once_with(
            ALICE, "Congratulations! Your account has been funded with 10000 XLM."
        )

        audit = db_session.query(AuditLog).filter(AuditLog.action == "DEPOSIT_COMPLETED").one()
        assert audit.actor == "MPESA"
        assert audit.entity_id == pending_deposit.id

    def test_match_on_checkout_request_id_alone(self, handler, pending_deposit, db_session):
        outcome = handler.handle(success_callback(merchant_request_id=None))

        assert outcome.status == CallbackStatus.SUCCESS
        db_session.refresh(pending_deposit)
        assert pending_deposit.status == TransactionStatus.SUCCESS

    def test_second_callback_is_a_no_op(self, handler, pending_deposit, ledger, messenger, db_session):
        user = pending_deposit.user

        first = handler.handle(success_callback())
        second = handler.handle(success_callback())

        assert first.status == CallbackStatus.SUCCESS
        assert second.status == CallbackStatus.DUPLICATE
        assert second.http_status == 200

        db_session.refresh(user)
        assert user.balance == Decimal("10000")
        assert ledger.fund_test_account.call_count == 1
        assert messenger.send_text.call_count == 1

    def test_notification_failure_does_not_undo_credit(self, handler, pending_deposit, messenger, db_session):
        user = pending_deposit.user
        messenger.send_text.side_effect = MessagingError()

        outcome = handler.handle(success_callback())

        assert outcome.status == CallbackStatus.SUCCESS
        db_session.refresh(user)
        assert user.balance == Decimal("10000")


class TestFailedCallback:

    def test_non_zero_result_marks_failed_without_credit(self, handler, pending_deposit, ledger, messenger, db_session):
        user = pending_deposit.user

        outcome = handler.handle(success_callback(
            result_code=1032,
            result_desc="Request cancelled by user",
            metadata=[],
        ))

        assert outcome.status == CallbackStatus.FAILED
        assert outcome.http_status == 200
        db_session.refresh(pending_deposit)
        db_session.refresh(user)
        assert pending_deposit.status == TransactionStatus.FAILED
        assert pending_deposit.result_code == 1032
        assert pending_deposit.result_desc == "Request cancelled by user"
        assert user.balance == Decimal("0")
        ledger.fund_test_account.assert_not_called()
        messenger.send_text.assert_not_called()

    def test_success_after_failure_is_duplicate(self, handler, pending_deposit, db_session):
        handler.handle(success_callback(result_code=1, metadata=[]))

        outcome = handler.handle(success_callback())

        assert outcome.status == CallbackStatus.DUPLICATE
        db_session.refresh(pending_deposit)
        assert pending_deposit.status == TransactionStatus.FAILED


class TestUnmatchedAndFailingCallbacks:

    def test_unknown_correlation_ids_are_acknowledged(self, handler, pending_deposit, ledger):
        outcome = handler.handle(success_callback(
            merchant_request_id="unknown",
            checkout_request_id="unknown",
        ))

        assert outcome.status == CallbackStatus.IGNORED
        assert outcome.http_status == 200
        assert outcome.transaction_id is None
        ledger.fund_test_account.assert_not_called()

    def test_faucet_failure_rolls_back_to_pending(self, handler, pending_deposit, ledger, messenger, db_session):
        user = pending_deposit.user
        ledger.fund_test_account.side_effect = LedgerError("Faucet returned 400")

        outcome = handler.handle(success_callback())

        assert outcome.status == CallbackStatus.ERROR
        assert outcome.http_status == 500
        db_session.refresh(pending_deposit)
        db_session.refresh(user)
        assert pending_deposit.status == TransactionStatus.PENDING
        assert user.balance == Decimal("0")
        messenger.send_text.assert_not_called()

    def test_redelivery_after_faucet_failure_completes(self, handler, pending_deposit, ledger, db_session):
        user = pending_deposit.user
        ledger.fund_test_account.side_effect = [LedgerError("Faucet returned 502"), None]

        assert handler.handle(success_callback()).status == CallbackStatus.ERROR
        assert handler.handle(success_callback()).status == CallbackStatus.SUCCESS

        db_session.refresh(user)
        assert user.balance == Decimal("10000")
        assert db_session.query(Transaction).count() == 1
