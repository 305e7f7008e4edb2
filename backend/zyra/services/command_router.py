"""
Command router - executes one classified WhatsApp command per inbound message
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from zyra.core.users.models import User
from zyra.infrastructure.settings import Settings, get_settings
from zyra.services.account_store import AccountLedgerStore, SecretDecryptionError
from zyra.services.commands import (
    BalanceCommand,
    Command,
    DepositCommand,
    MalformedCommand,
    SendCommand,
    UnrecognizedCommand,
    VerifyCommand,
    DEPOSIT_USAGE,
    SEND_USAGE,
    classify,
)
from zyra.services.ledger.exceptions import LedgerError
from zyra.services.ledger.stellar_client import StellarLedgerClient
from zyra.services.messaging.exceptions import MessagingError
from zyra.services.messaging.whatsapp_client import WhatsAppClient
from zyra.services.outcomes import CommandOutcome, OutcomeKind
from zyra.services.payments.exceptions import PaymentProviderError
from zyra.services.payments.mpesa_client import MpesaClient
from zyra.services.phone import normalize_phone
from zyra.utils.metrics import record_command

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Your account has been verified successfully!\n\n"
    f"To deposit money, send: {DEPOSIT_USAGE}\n"
    f"To send money, send: {SEND_USAGE}"
)
WELCOME_BUTTONS = (
    ("deposit", "Deposit"),
    ("send", "Send"),
    ("balance", "Balance"),
)


class CommandRouter:
    """
    Classifies an inbound chat message and runs the matching command.

    Every collaborator is injected; the router holds no module-level clients.
    handle() never raises for expected failures: it returns a CommandOutcome
    whose kind tells the webhook layer how to answer the platform.
    """

    def __init__(
        self,
        store: AccountLedgerStore,
        ledger: StellarLedgerClient,
        payments: MpesaClient,
        messenger: WhatsAppClient,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.ledger = ledger
        self.payments = payments
        self.messenger = messenger
        self.settings = settings or get_settings()

    def handle(self, from_phone: str, text: str) -> CommandOutcome:
        phone = normalize_phone(from_phone)
        command = classify(text)

        outcome = self.dispatch(phone, command)
        record_command(command.name, outcome.kind.value)
        logger.info(
            f"Command handled: command={command.name}, from={phone}, "
            f"outcome={outcome.kind.value}, code={outcome.code}"
        )

        # Refused requests from known accounts are explained in the chat.
        # Malformed commands are answered with the 400 outcome only.
        if outcome.kind in (OutcomeKind.CLIENT_ERROR, OutcomeKind.NOT_FOUND) and not isinstance(command, MalformedCommand):
            if self.store.get_user_by_phone(phone) is not None:
                self._notify(phone, outcome.message)

        return outcome

    def dispatch(self, phone: str, command: Command) -> CommandOutcome:
        if isinstance(command, VerifyCommand):
            return self._verify(phone, command)
        if isinstance(command, DepositCommand):
            return self._deposit(phone, command)
        if isinstance(command, SendCommand):
            return self._send(phone, command)
        if isinstance(command, BalanceCommand):
            return self._balance(phone)
        if isinstance(command, MalformedCommand):
            code = "INVALID_DEPOSIT_AMOUNT" if command.keyword == "deposit" else "INVALID_SEND_COMMAND"
            return CommandOutcome.client_error(code, command.reason)
        if isinstance(command, UnrecognizedCommand):
            logger.info(f"No command matched: from={phone}")
            return CommandOutcome.ignored("UNRECOGNIZED_COMMAND", "No command matched")
        raise TypeError(f"Unsupported command: {command!r}")

    # ------------------------------------------------------------------ verify

    def _verify(self, phone: str, command: VerifyCommand) -> CommandOutcome:
        user = self.store.get_user_by_verification_code(command.code, phone)
        if user is None:
            # Silent: replying would reveal whether the code exists
            logger.info(f"Verification code did not match any account: from={phone}")
            return CommandOutcome.ignored("VERIFICATION_CODE_NOT_FOUND", "Verification code not recognised")

        self.store.mark_whatsapp_verified(user)
        logger.info(f"WhatsApp verified: user_id={user.id}, phone={phone}")

        try:
            self.messenger.send_buttons(phone, WELCOME_MESSAGE, WELCOME_BUTTONS)
        except MessagingError as e:
            logger.error(f"Welcome message failed: user_id={user.id}, error={e.message}")
            return CommandOutcome.dependency_failure("MESSAGING_FAILED", e.message)

        return CommandOutcome.completed("WHATSAPP_VERIFIED", "Account verified")

    # ----------------------------------------------------------------- deposit

    def _deposit(self, phone: str, command: DepositCommand) -> CommandOutcome:
        if command.amount is None:
            return self._reply(
                phone,
                f"How much would you like to deposit? Reply with: {DEPOSIT_USAGE}",
                code="DEPOSIT_AMOUNT_REQUESTED",
            )

        user = self.store.get_user_by_phone(phone)
        if user is None:
            return CommandOutcome.not_found("USER_NOT_FOUND", "User not found")

        try:
            initiation = self.payments.initiate_deposit(command.amount, phone, user.public_key)
        except PaymentProviderError as e:
            logger.error(f"Deposit initiation failed: user_id={user.id}, amount={command.amount}, error={e.message}")
            return CommandOutcome.dependency_failure(
                "PAYMENT_PROVIDER_FAILED",
                "Failed to initiate STK Push",
                retryable=True,
            )

        transaction = self.store.create_pending_deposit(
            user,
            Decimal(command.amount),
            merchant_request_id=initiation.merchant_request_id,
            checkout_request_id=initiation.checkout_request_id,
        )
        logger.info(
            f"Deposit pending: user_id={user.id}, transaction_id={transaction.id}, amount={command.amount}"
        )

        message = (
            f"STK Push initiated for {command.amount} {self.settings.DEPOSIT_CURRENCY}. "
            "Check your phone to complete the transaction."
        )
        try:
            self.messenger.send_text(phone, message)
        except MessagingError as e:
            logger.error(f"Deposit confirmation failed: transaction_id={transaction.id}, error={e.message}")
            return CommandOutcome.dependency_failure("MESSAGING_FAILED", e.message, transaction_id=transaction.id)

        return CommandOutcome.completed("DEPOSIT_INITIATED", message, transaction_id=transaction.id)

    # -------------------------------------------------------------------- send

    def _send(self, phone: str, command: SendCommand) -> CommandOutcome:
        if command.amount is None:
            return self._reply(phone, f"To send money, reply with: {SEND_USAGE}", code="SEND_USAGE")

        sender = self.store.get_user_by_phone(phone)
        if sender is None:
            return CommandOutcome.not_found("SENDER_NOT_FOUND", "Sender not found")

        recipient = self.store.get_user_by_phone(command.recipient)
        if recipient is None:
            return CommandOutcome.not_found("RECIPIENT_NOT_FOUND", "Recipient not found")

        if recipient.id == sender.id:
            return CommandOutcome.client_error("SELF_TRANSFER", "You cannot send money to yourself")

        amount = command.amount
        if Decimal(sender.balance) < amount:
            return CommandOutcome.client_error("INSUFFICIENT_BALANCE", "Insufficient balance")

        try:
            secret = self.store.decrypt_secret(sender)
        except SecretDecryptionError as e:
            logger.error(str(e))
            return CommandOutcome.dependency_failure("CREDENTIAL_UNAVAILABLE", "Transfer could not be signed", retryable=True)

        try:
            receipt = self.ledger.transfer(sender.public_key, recipient.public_key, amount, secret)
        except LedgerError as e:
            logger.error(
                f"Ledger transfer failed: sender_id={sender.id}, recipient_id={recipient.id}, "
                f"amount={amount}, code={e.code}, tx_hash={e.tx_hash}, error={e.message}"
            )
            # An accepted transaction may still land on chain
            return CommandOutcome.dependency_failure(e.code, "Transfer failed", retryable=not e.accepted)

        try:
            transaction = self.store.record_send(sender, recipient, amount, receipt.tx_hash)
        except SQLAlchemyError as e:
            logger.critical(
                f"Ledger transfer confirmed but local balances not updated: tx_hash={receipt.tx_hash}, "
                f"sender_id={sender.id}, recipient_id={recipient.id}, amount={amount}, error={e}"
            )
            return CommandOutcome.dependency_failure("PERSISTENCE_FAILED", "Transfer could not be recorded")

        logger.info(
            f"Send completed: transaction_id={transaction.id}, sender_id={sender.id}, "
            f"recipient_id={recipient.id}, amount={amount}, tx_hash={receipt.tx_hash}"
        )

        delivered = self._notify(phone, f"Successfully sent {amount} to {recipient.phone}")
        delivered = self._notify(recipient.phone, f"You have received {amount} from {sender.phone}") and delivered
        if not delivered:
            return CommandOutcome.dependency_failure(
                "MESSAGING_FAILED",
                "Transfer completed but a notification could not be delivered",
                transaction_id=transaction.id,
            )

        return CommandOutcome.completed("SEND_COMPLETED", f"Sent {amount} to {recipient.phone}", transaction_id=transaction.id)

    # ----------------------------------------------------------------- balance

    def _balance(self, phone: str) -> CommandOutcome:
        user: Optional[User] = self.store.get_user_by_phone(phone)
        if user is None:
            return CommandOutcome.not_found("USER_NOT_FOUND", "User not found")

        # Locally stored balance, not the authoritative chain balance
        balance = Decimal(user.balance)
        return self._reply(phone, f"Your balance is {balance:.2f} {self.settings.BALANCE_UNIT}", code="BALANCE_REPORTED")

    # ----------------------------------------------------------------- helpers

    def _reply(self, phone: str, message: str, code: str) -> CommandOutcome:
        try:
            self.messenger.send_text(phone, message)
        except MessagingError as e:
            logger.error(f"Reply failed: to={phone}, code={code}, error={e.message}")
            return CommandOutcome.dependency_failure("MESSAGING_FAILED", e.message, retryable=True)
        return CommandOutcome.completed(code, message)

    def _notify(self, phone: str, message: str) -> bool:
        """Best-effort chat message; failures are logged and reported as False"""
        try:
            self.messenger.send_text(phone, message)
        except MessagingError as e:
            logger.error(f"Notification failed: to={phone}, error={e.message}")
            return False
        return True
