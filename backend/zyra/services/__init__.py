"""
Services layer - Application business logic
"""

from zyra.services.phone import normalize_phone
from zyra.services.commands import classify
from zyra.services.outcomes import CommandOutcome, CallbackOutcome, OutcomeKind, CallbackStatus
from zyra.services.account_store import AccountLedgerStore
from zyra.services.command_router import CommandRouter
from zyra.services.deposit_completion import DepositCallback, DepositCompletionHandler
from zyra.services.registration import RegistrationError, register_user

__all__ = [
    # Pure helpers
    "normalize_phone",
    "classify",
    # Outcomes
    "CommandOutcome",
    "CallbackOutcome",
    "OutcomeKind",
    "CallbackStatus",
    # Persistence
    "AccountLedgerStore",
    # Command and callback handling
    "CommandRouter",
    "DepositCallback",
    "DepositCompletionHandler",
    # Registration
    "register_user",
    "RegistrationError",
]
