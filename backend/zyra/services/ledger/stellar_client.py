"""
Stellar / Soroban ledger client - balances and transfers on the payments contract
"""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
from typing import Callable, Optional

import httpx
from stellar_sdk import Account, Keypair, SorobanServer, TransactionBuilder, scval
from stellar_sdk import xdr as stellar_xdr
from stellar_sdk.exceptions import SdkError
from stellar_sdk.soroban_rpc import GetTransactionStatus, SendTransactionStatus

from zyra.infrastructure.settings import Settings, get_settings
from zyra.services.ledger.exceptions import LedgerError, LedgerTimeoutError
from zyra.utils.metrics import record_ledger_confirmation

logger = logging.getLogger(__name__)

# The payments contract stores amounts as i128 with 7 decimals (stroops)
STELLAR_DECIMALS = 7
STROOPS_PER_UNIT = Decimal(10) ** STELLAR_DECIMALS

# Simulation errors the contract raises for an address it has never seen
_UNKNOWN_HOLDER_ERRORS = ("UnreachableCodeReached", "InvalidAction", "not initialized")


@dataclass(frozen=True)
class LedgerKeypair:
    public_key: str
    secret: str


@dataclass(frozen=True)
class LedgerReceipt:
    tx_hash: str


def to_stroops(amount: Decimal) -> int:
    """Convert a decimal amount to contract units, truncating beyond 7 decimals"""
    return int((Decimal(amount) * STROOPS_PER_UNIT).to_integral_value(rounding=ROUND_DOWN))


def from_stroops(value: int) -> Decimal:
    return Decimal(value) / STROOPS_PER_UNIT


class StellarLedgerClient:
    """
    Ledger client for the Soroban payments contract.

    Confirmation of submitted transactions is polled at
    LEDGER_CONFIRMATION_INTERVAL_SECONDS until a terminal status appears, at most
    LEDGER_CONFIRMATION_MAX_ATTEMPTS times and never past
    LEDGER_CONFIRMATION_DEADLINE_SECONDS; exhausting either limit raises
    LedgerTimeoutError.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        server: Optional[SorobanServer] = None,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self.server = server or SorobanServer(self.settings.STELLAR_RPC_URL)
        self._http = http_client or httpx.Client(timeout=self.settings.HTTP_TIMEOUT_SECONDS)
        self._sleep = sleep
        self._clock = clock

    @property
    def contract_id(self) -> str:
        if not self.settings.STELLAR_PAYMENTS_CONTRACT_ID:
            raise LedgerError("STELLAR_PAYMENTS_CONTRACT_ID is not configured")
        return self.settings.STELLAR_PAYMENTS_CONTRACT_ID

    @staticmethod
    def create_keypair() -> LedgerKeypair:
        """Generate a fresh ledger keypair"""
        keypair = Keypair.random()
        return LedgerKeypair(public_key=keypair.public_key, secret=keypair.secret)

    def get_balance(self, address: str) -> Decimal:
        """
        Read the contract balance of `address` through a simulated call.

        Simulation needs a source account but no signature, so a throwaway
        account with sequence 0 is used. Addresses the contract has never seen
        report a zero balance.
        """
        source = Account(Keypair.random().public_key, 0)
        try:
            tx = (
                TransactionBuilder(source, self.settings.STELLAR_NETWORK_PASSPHRASE, self.settings.STELLAR_BASE_FEE)
                .append_invoke_contract_function_op(
                    contract_id=self.contract_id,
                    function_name="balance",
                    parameters=[scval.to_address(address)],
                )
                .set_timeout(self.settings.STELLAR_TX_TIMEOUT_SECONDS)
                .build()
            )
            simulation = self.server.simulate_transaction(tx)
        except (SdkError, ValueError) as e:
            logger.error(f"Balance simulation failed: address={address}, error={e}")
            raise LedgerError(f"Balance query failed: {e}") from e

        if simulation.error:
            if any(marker in simulation.error for marker in _UNKNOWN_HOLDER_ERRORS):
                logger.info(f"No contract balance for address={address}, reporting 0")
                return Decimal("0")
            logger.error(f"Balance simulation error: address={address}, error={simulation.error}")
            raise LedgerError(f"Balance query failed: {simulation.error}")

        if not simulation.results:
            raise LedgerError("Balance query returned no result")

        result = stellar_xdr.SCVal.from_xdr(simulation.results[0].xdr)
        return from_stroops(scval.from_int128(result))

    def transfer(self, from_address: str, to_address: str, amount: Decimal, secret: str) -> LedgerReceipt:
        """
        Transfer `amount` between two contract holders and wait for confirmation.

        Raises:
            LedgerError: submission rejected or transaction failed on chain
            LedgerTimeoutError: not confirmed within the polling budget
        """
        stroops = to_stroops(amount)
        if stroops <= 0:
            raise LedgerError("Transfer amount must be greater than 0")

        logger.info(f"Ledger transfer: from={from_address}, to={to_address}, amount={amount} ({stroops} stroops)")
        try:
            keypair = Keypair.from_secret(secret)
            source = self.server.load_account(keypair.public_key)
            tx = (
                TransactionBuilder(source, self.settings.STELLAR_NETWORK_PASSPHRASE, self.settings.STELLAR_BASE_FEE)
                .append_invoke_contract_function_op(
                    contract_id=self.contract_id,
                    function_name="transfer",
                    parameters=[
                        scval.to_address(from_address),
                        scval.to_address(to_address),
                        scval.to_int128(stroops),
                    ],
                )
                .set_timeout(self.settings.STELLAR_TX_TIMEOUT_SECONDS)
                .build()
            )
            tx = self.server.prepare_transaction(tx)
            tx.sign(keypair)
            response = self.server.send_transaction(tx)
        except (SdkError, ValueError) as e:
            logger.error(f"Ledger transfer submission failed: from={from_address}, error={e}")
            raise LedgerError(f"Transfer submission failed: {e}") from e

        if response.status == SendTransactionStatus.ERROR:
            logger.error(f"Ledger transfer rejected: hash={response.hash}, result={response.error_result_xdr}")
            raise LedgerError("Transfer rejected by the network", tx_hash=response.hash, accepted=False)
        if response.status == SendTransactionStatus.TRY_AGAIN_LATER:
            raise LedgerError("Network busy, transfer not accepted", tx_hash=response.hash, accepted=False)

        self._wait_for_confirmation(response.hash)
        logger.info(f"Ledger transfer confirmed: hash={response.hash}")
        return LedgerReceipt(tx_hash=response.hash)

    def _wait_for_confirmation(self, tx_hash: str) -> None:
        started = self._clock()
        deadline = started + self.settings.LEDGER_CONFIRMATION_DEADLINE_SECONDS
        max_attempts = self.settings.LEDGER_CONFIRMATION_MAX_ATTEMPTS
        interval = self.settings.LEDGER_CONFIRMATION_INTERVAL_SECONDS

        for attempt in range(1, max_attempts + 1):
            try:
                result = self.server.get_transaction(tx_hash)
            except SdkError as e:
                raise LedgerError(f"Confirmation lookup failed: {e}", tx_hash=tx_hash) from e

            if result.status == GetTransactionStatus.SUCCESS:
                record_ledger_confirmation(self._clock() - started)
                return
            if result.status == GetTransactionStatus.FAILED:
                logger.error(f"Ledger transaction failed: hash={tx_hash}")
                raise LedgerError("Transfer failed on chain", tx_hash=tx_hash)

            if attempt == max_attempts or self._clock() + interval > deadline:
                break
            self._sleep(interval)

        logger.error(f"Ledger confirmation timed out: hash={tx_hash}, elapsed={self._clock() - started:.1f}s")
        raise LedgerTimeoutError(tx_hash=tx_hash)

    def fund_test_account(self, address: str) -> None:
        """
        Fund `address` from the testnet faucet (Friendbot).

        Testnet only: production deposits must be backed by real funds.
        """
        try:
            response = self._http.get(self.settings.STELLAR_FRIENDBOT_URL, params={"addr": address})
        except httpx.HTTPError as e:
            raise LedgerError(f"Faucet request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Faucet funding failed: address={address}, status={response.status_code}, body={response.text}")
            raise LedgerError(f"Faucet returned {response.status_code}")

        logger.info(f"Faucet funded address={address}")
