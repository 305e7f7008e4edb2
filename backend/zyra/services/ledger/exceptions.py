"""
Ledger-related exceptions
"""

from typing import Optional


class LedgerError(Exception):
    """
    Raised when a ledger (Stellar / Soroban) operation fails.

    `accepted` is True when the network took the transaction for inclusion,
    in which case it may still land on chain. It defaults to whether a hash
    is known.
    """

    def __init__(
        self,
        message: str = "Ledger operation failed",
        tx_hash: Optional[str] = None,
        accepted: Optional[bool] = None,
    ):
        self.code = "LEDGER_FAILED"
        self.message = message
        self.tx_hash = tx_hash
        self.accepted = tx_hash is not None if accepted is None else accepted
        super().__init__(self.message)


class LedgerTimeoutError(LedgerError):
    """Raised when a submitted transaction is not confirmed within the polling budget"""

    def __init__(self, message: str = "Ledger confirmation timed out", tx_hash: Optional[str] = None):
        super().__init__(message, tx_hash=tx_hash, accepted=True)
        self.code = "LEDGER_TIMEOUT"
