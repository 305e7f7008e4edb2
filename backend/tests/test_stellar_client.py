"""
Stellar ledger client tests - bounded confirmation polling, balances and faucet
"""

from decimal import Decimal
from unittest.mock import Mock

import httpx
import pytest
from stellar_sdk import Account, Keypair, SorobanServer, scval
from stellar_sdk.soroban_rpc import GetTransactionStatus, SendTransactionStatus

from zyra.infrastructure.settings import Settings
from zyra.services.ledger.exceptions import LedgerError, LedgerTimeoutError
from zyra.services.ledger.stellar_client import StellarLedgerClient, from_stroops, to_stroops

# Native asset contract on testnet
CONTRACT_ID = "CDLZFC3SYJYDZT7K67VZ75HPJVIEUVNIXF47ZG2FB2RMQQVU2HHGCYSC"
TX_HASH = "e" * 64


class FakeClock:
    """Monotonic clock advanced only by the fake sleep"""

    def __init__(self):
        self.now = 1000.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_settings(**overrides) -> Settings:
    values = dict(
        STELLAR_PAYMENTS_CONTRACT_ID=CONTRACT_ID,
        LEDGER_CONFIRMATION_MAX_ATTEMPTS=5,
        LEDGER_CONFIRMATION_INTERVAL_SECONDS=1.0,
        LEDGER_CONFIRMATION_DEADLINE_SECONDS=45.0,
    )
    values.update(overrides)
    return Settings(**values)


def tx_status(status):
    return Mock(status=status)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def server():
    server = Mock(spec=SorobanServer)
    server.load_account.side_effect = lambda public_key: Account(public_key, 1)
    server.prepare_transaction.side_effect = lambda tx: tx
    server.send_transaction.return_value = Mock(
        status=SendTransactionStatus.PENDING,
        hash=TX_HASH,
        error_result_xdr=None,
    )
    server.get_transaction.return_value = tx_status(GetTransactionStatus.SUCCESS)
    return server


def make_client(server, clock, http_client=None, **overrides) -> StellarLedgerClient:
    return StellarLedgerClient(
        settings=make_settings(**overrides),
        server=server,
        http_client=http_client or httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200))),
        sleep=clock.sleep,
        clock=clock,
    )


def test_stroop_conversion():
    assert to_stroops(Decimal("10")) == 100_000_000
    assert to_stroops(Decimal("0.00000019")) == 1
    assert from_stroops(1_234_567_890) == Decimal("123.456789")


class TestTransfer:

    def test_confirmed_transfer_returns_hash(self, server, clock):
        sender = Keypair.random()
        recipient = Keypair.random()
        client = make_client(server, clock)

        receipt = client.transfer(sender.public_key, recipient.public_key, Decimal("10"), sender.secret)

        assert receipt.tx_hash == TX_HASH
        server.load_account.assert_called_once_with(sender.public_key)
        signed = server.send_transaction.call_args[0][0]
        assert len(signed.signatures) == 1
        server.get_transaction.assert_called_once_with(TX_HASH)

    def test_rejected_submission(self, server, clock):
        sender = Keypair.random()
        server.send_transaction.return_value = Mock(
            status=SendTransactionStatus.ERROR,
            hash=TX_HASH,
            error_result_xdr="AAAAAAAAAGT////7AAAAAA==",
        )
        client = make_client(server, clock)

        with pytest.raises(LedgerError) as exc_info:
            client.transfer(sender.public_key, Keypair.random().public_key, Decimal("1"), sender.secret)

        assert not isinstance(exc_info.value, LedgerTimeoutError)
        assert exc_info.value.tx_hash == TX_HASH
        assert exc_info.value.accepted is False
        server.get_transaction.assert_not_called()

    def test_busy_network_is_not_accepted(self, server, clock):
        sender = Keypair.random()
        server.send_transaction.return_value = Mock(
            status=SendTransactionStatus.TRY_AGAIN_LATER,
            hash=TX_HASH,
            error_result_xdr=None,
        )
        client = make_client(server, clock)

        with pytest.raises(LedgerError) as exc_info:
            client.transfer(sender.public_key, Keypair.random().public_key, Decimal("1"), sender.secret)

        assert exc_info.value.accepted is False
        server.get_transaction.assert_not_called()

    def test_non_positive_amount_is_refused(self, server, clock):
        sender = Keypair.random()
        client = make_client(server, clock)

        with pytest.raises(LedgerError):
            client.transfer(sender.public_key, Keypair.random().public_key, Decimal("0"), sender.secret)

        server.send_transaction.assert_not_called()

    def test_missing_contract_id(self, server, clock):
        sender = Keypair.random()
        client = make_client(server, clock, STELLAR_PAYMENTS_CONTRACT_ID="")

        with pytest.raises(LedgerError):
            client.transfer(sender.public_key, Keypair.random().public_key, Decimal("1"), sender.secret)


class TestConfirmationPolling:

    def test_pending_then_success(self, server, clock):
        server.get_transaction.side_effect = [
            tx_status(GetTransactionStatus.NOT_FOUND),
            tx_status(GetTransactionStatus.NOT_FOUND),
            tx_status(GetTransactionStatus.SUCCESS),
        ]
        client = make_client(server, clock)

        client._wait_for_confirmation(TX_HASH)

        assert server.get_transaction.call_count == 3
        assert clock.sleeps == [1.0, 1.0]

    def test_failed_on_chain(self, server, clock):
        server.get_transaction.return_value = tx_status(GetTransactionStatus.FAILED)
        client = make_client(server, clock)

        with pytest.raises(LedgerError) as exc_info:
            client._wait_for_confirmation(TX_HASH)

        assert not isinstance(exc_info.value, LedgerTimeoutError)
        assert exc_info.value.tx_hash == TX_HASH
        assert exc_info.value.accepted is True

    def test_gives_up_after_max_attempts(self, server, clock):
        server.get_transaction.return_value = tx_status(GetTransactionStatus.NOT_FOUND)
        client = make_client(server, clock, LEDGER_CONFIRMATION_MAX_ATTEMPTS=5)

        with pytest.raises(LedgerTimeoutError) as exc_info:
            client._wait_for_confirmation(TX_HASH)

        assert exc_info.value.code == "LEDGER_TIMEOUT"
        assert exc_info.value.tx_hash == TX_HASH
        assert server.get_transaction.call_count == 5
        assert len(clock.sleeps) == 4

    def test_gives_up_at_deadline(self, server, clock):
        server.get_transaction.return_value = tx_status(GetTransactionStatus.NOT_FOUND)
        client = make_client(
            server,
            clock,
            LEDGER_CONFIRMATION_MAX_ATTEMPTS=30,
            LEDGER_CONFIRMATION_INTERVAL_SECONDS=10.0,
            LEDGER_CONFIRMATION_DEADLINE_SECONDS=25.0,
        )

        with pytest.raises(LedgerTimeoutError):
            client._wait_for_confirmation(TX_HASH)

        # Polls at t=0, 10 and 20; sleeping again would pass the deadline
        assert server.get_transaction.call_count == 3
        assert sum(clock.sleeps) <= 25.0


class TestBalance:

    def test_balance_from_simulation(self, server, clock):
        server.simulate_transaction.return_value = Mock(
            error=None,
            results=[Mock(xdr=scval.to_int128(1_234_567_890).to_xdr())],
        )
        client = make_client(server, clock)

        assert client.get_balance(Keypair.random().public_key) == Decimal("123.456789")

    def test_unknown_holder_reports_zero(self, server, clock):
        server.simulate_transaction.return_value = Mock(
            error="HostError: Error(WasmVm, InvalidAction) UnreachableCodeReached",
            results=None,
        )
        client = make_client(server, clock)

        assert client.get_balance(Keypair.random().public_key) == Decimal("0")

    def test_other_simulation_errors_raise(self, server, clock):
        server.simulate_transaction.return_value = Mock(error="HostError: Error(Budget, ExceededLimit)", results=None)
        client = make_client(server, clock)

        with pytest.raises(LedgerError):
            client.get_balance(Keypair.random().public_key)


class TestFaucet:

    def test_funds_address(self, server, clock):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"hash": TX_HASH})

        address = Keypair.random().public_key
        client = make_client(server, clock, http_client=httpx.Client(transport=httpx.MockTransport(handler)))

        client.fund_test_account(address)

        assert len(requests) == 1
        assert requests[0].url.params["addr"] == address

    def test_faucet_error_raises(self, server, clock):
        transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"detail": "createAccountAlreadyExist"}))
        client = make_client(server, clock, http_client=httpx.Client(transport=transport))

        with pytest.raises(LedgerError):
            client.fund_test_account(Keypair.random().public_key)
