"""
Deposit completion - applies M-Pesa STK Push callbacks to pending deposits
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from zyra.core.transactions.models import TransactionStatus
from zyra.infrastructure.settings import Settings, get_settings
from zyra.services.account_store import AccountLedgerStore
from zyra.services.ledger.exceptions import LedgerError
from zyra.services.ledger.stellar_client import StellarLedgerClient
from zyra.services.messaging.exceptions import MessagingError
from zyra.services.messaging.whatsapp_client import WhatsAppClient
from zyra.services.outcomes import CallbackOutcome, CallbackStatus
from zyra.utils.metrics import record_deposit_callback

logger = logging.getLogger(__name__)

RECEIPT_METADATA_NAME = "MpesaReceiptNumber"
SUCCESS_RESULT_CODE = 0


@dataclass(frozen=True)
class DepositCallback:
    merchant_request_id: Optional[str]
    checkout_request_id: Optional[str]
    result_code: int
    result_desc: Optional[str] = None
    metadata: List[Tuple[str, Any]] = field(default_factory=list)

    def metadata_value(self, name: str) -> Optional[Any]:
        for item_name, value in self.metadata:
            if item_name == name:
                return value
        return None


class DepositCompletionHandler:
    """
    Transitions a PENDING deposit to SUCCESS or FAILED exactly once.

    Success path, in one database transaction: claim the row, fund the
    account from the ledger faucet, credit DEPOSIT_TOPUP_AMOUNT. The
    notification is sent after commit.
    """

    def __init__(
        self,
        store: AccountLedgerStore,
        ledger: StellarLedgerClient,
        messenger: WhatsAppClient,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.ledger = ledger
        self.messenger = messenger
        self.settings = settings or get_settings()

    def handle(self, callback: DepositCallback) -> CallbackOutcome:
        outcome = self._handle(callback)
        record_deposit_callback(outcome.status.value)
        return outcome

    def _handle(self, callback: DepositCallback) -> CallbackOutcome:
        transaction = self.store.find_deposit_by_correlation(
            callback.merchant_request_id,
            callback.checkout_request_id,
        )
        if transaction is None:
            logger.warning(
                f"Deposit callback matched no transaction: merchant_request_id={callback.merchant_request_id}, "
                f"checkout_request_id={callback.checkout_request_id}"
            )
            return CallbackOutcome(CallbackStatus.IGNORED, "Transaction not found, but callback acknowledged")

        if transaction.is_terminal:
            logger.info(f"Duplicate deposit callback ignored: transaction_id={transaction.id}, status={transaction.status.value}")
            return CallbackOutcome(CallbackStatus.DUPLICATE, "Callback already processed", transaction_id=transaction.id)

        if callback.result_code == SUCCESS_RESULT_CODE:
            return self._complete(transaction, callback)
        return self._fail(transaction, callback)

    def _complete(self, transaction, callback: DepositCallback) -> CallbackOutcome:
        receipt = callback.metadata_value(RECEIPT_METADATA_NAME)
        receipt = str(receipt) if receipt is not None else None
        user = transaction.user
        topup = Decimal(self.settings.DEPOSIT_TOPUP_AMOUNT)

        try:
            claimed = self.store.claim_pending_deposit(
                transaction.id,
                TransactionStatus.SUCCESS,
                result_code=callback.result_code,
                result_desc=callback.result_desc,
                receipt_number=receipt,
            )
            if not claimed:
                self.store.rollback()
                logger.info(f"Deposit already completed by a concurrent callback: transaction_id={transaction.id}")
                return CallbackOutcome(CallbackStatus.DUPLICATE, "Callback already processed", transaction_id=transaction.id)

            # Testnet funding; production must source real funds here
            self.ledger.fund_test_account(user.public_key)

            self.store.credit_balance(user.id, topup)
            self.store.add_audit(
                actor="MPESA",
                actor_user_id=user.id,
                action="DEPOSIT_COMPLETED",
                entity_type="Transaction",
                entity_id=transaction.id,
                before={"status": TransactionStatus.PENDING.value},
                after={"status": TransactionStatus.SUCCESS.value, "credited": topup, "receipt": receipt},
            )
            self.store.commit()
        except LedgerError as e:
            self.store.rollback()
            logger.error(f"Deposit funding failed: transaction_id={transaction.id}, error={e.message}")
            return CallbackOutcome(CallbackStatus.ERROR, "Failed to fund account", transaction_id=transaction.id)
        except SQLAlchemyError as e:
            self.store.rollback()
            logger.error(f"Deposit completion could not be persisted: transaction_id={transaction.id}, error={e}")
            return CallbackOutcome(CallbackStatus.ERROR, "Failed to record deposit", transaction_id=transaction.id)

        logger.info(
            f"Deposit completed: transaction_id={transaction.id}, user_id={user.id}, "
            f"credited={topup}, receipt={receipt}"
        )

        try:
            self.messenger.send_text(
                user.phone,
                f"Congratulations! Your account has been funded with {topup} {self.settings.BALANCE_UNIT}.",
            )
        except MessagingError as e:
            logger.error(f"Deposit notification failed: transaction_id={transaction.id}, error={e.message}")

        return CallbackOutcome(CallbackStatus.SUCCESS, "Callback handled successfully", transaction_id=transaction.id)

    def _fail(self, transaction, callback: DepositCallback) -> CallbackOutcome:
        try:
            claimed = self.store.claim_pending_deposit(
                transaction.id,
                TransactionStatus.FAILED,
                result_code=callback.result_code,
                result_desc=callback.result_desc,
            )
            if not claimed:
                self.store.rollback()
                return CallbackOutcome(CallbackStatus.DUPLICATE, "Callback already processed", transaction_id=transaction.id)
            self.store.commit()
        except SQLAlchemyError as e:
            self.store.rollback()
            logger.error(f"Deposit failure could not be persisted: transaction_id={transaction.id}, error={e}")
            return CallbackOutcome(CallbackStatus.ERROR, "Failed to record deposit", transaction_id=transaction.id)

        logger.warning(
            f"Deposit failed: transaction_id={transaction.id}, result_code={callback.result_code}, "
            f"result_desc={callback.result_desc}"
        )
        return CallbackOutcome(CallbackStatus.FAILED, "Callback handled successfully", transaction_id=transaction.id)
