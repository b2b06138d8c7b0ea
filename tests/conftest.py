"""Shared pytest fixtures for hermes-deployments tests."""

import json
import threading
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
import requests
import responses
import rlp
from eth_account import Account
from eth_utils import keccak, to_bytes, to_checksum_address, to_hex

from hermes_deployments.artifacts import HardhatArtifacts
from hermes_deployments.encoding import derive_create2_address, derive_create_address
from hermes_deployments.executor import DeploymentExecutor
from hermes_deployments.ledger import DeploymentLedger
from hermes_deployments.networks import NetworkRegistry
from hermes_deployments.signers import LocalAccountSigner
from hermes_deployments.types import NetworkProfile, PollingPolicy, RetryPolicy
from hermes_deployments.verification import VerificationSubmitter

RPC_URL = "http://rpc.test/"
EXPLORER_URL = "https://explorer.test/v2/api"
CHAIN_ID = 11155420

# Hardhat's first default account
PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEPLOYER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

OWNER = "0xd44390C5f4e3558Be11BbDEb9c3193b6f4DFf8c4"
SALT_ARG = "0x0000000000000000000000000000000000000000000000000000000000000001"
CONSTRUCTOR_ARGS = [OWNER, OWNER, OWNER, SALT_ARG]

FAST_RETRY = RetryPolicy(max_attempts=3, initial_backoff=0, max_backoff=0)
FAST_POLL = PollingPolicy(interval=0, timeout=10, max_attempts=3)


class FakeChain:
    """
    JSON-RPC node emulator for responses callbacks.

    Transactions are mined on submission unless ``mine`` is False. Failures
    are injected per method with ``fail()``: an int is an HTTP status, a dict
    is a JSON-RPC error object, an exception is raised as a connection
    failure, and "lost" accepts the transaction but answers 503.
    """

    def __init__(self, chain_id: int = CHAIN_ID):
        self.chain_id = chain_id
        self.mine = True
        self.revert = False
        self.estimate_revert = False
        self.after_send: Optional[Callable[[], None]] = None

        self.calls: List[str] = []
        self.sent: List[str] = []
        self.nonces: Dict[str, int] = defaultdict(int)
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.receipts: Dict[str, Dict[str, Any]] = {}
        self.pending: Dict[str, Dict[str, Any]] = {}
        self.block = 1000

        self._failures: Dict[str, List[Any]] = defaultdict(list)
        self._lock = threading.Lock()

    def fail(self, method: str, *failures: Any) -> None:
        self._failures[method].extend(failures)

    def count(self, method: str) -> int:
        return self.calls.count(method)

    def mine_pending(self) -> None:
        with self._lock:
            self.receipts.update(self.pending)
            self.pending.clear()

    def callback(self, request):
        payload = json.loads(request.body)
        method = payload["method"]

        with self._lock:
            self.calls.append(method)
            failure = self._failures[method].pop(0) if self._failures[method] else None

            if isinstance(failure, Exception):
                raise failure
            if isinstance(failure, int):
                return (failure, {}, "")
            if isinstance(failure, dict):
                return self._reply(payload, error=failure)

            try:
                result = getattr(self, method)(payload.get("params", []))
            except _RpcFault as fault:
                return self._reply(payload, error=fault.error)

        if method == "eth_sendRawTransaction" and self.after_send is not None:
            self.after_send()
        if failure == "lost":
            return (503, {}, "")
        return self._reply(payload, result=result)

    @staticmethod
    def _reply(payload, result=None, error=None):
        body: Dict[str, Any] = {"jsonrpc": "2.0", "id": payload["id"]}
        if error is not None:
            body["error"] = error
        else:
            body["result"] = result
        return (200, {}, json.dumps(body))

    def eth_chainId(self, params):
        return hex(self.chain_id)

    def eth_getTransactionCount(self, params):
        return hex(self.nonces[params[0].lower()])

    def eth_estimateGas(self, params):
        if self.estimate_revert:
            raise _RpcFault({"code": 3, "message": "execution reverted: already initialized"})
        return hex(3_000_000)

    def eth_gasPrice(self, params):
        return hex(1_000_000_000)

    def eth_sendRawTransaction(self, params):
        raw = to_bytes(hexstr=params[0])
        transaction_hash = to_hex(keccak(raw))

        if transaction_hash in self.pending:
            raise _RpcFault({"code": -32000, "message": "already known"})

        sender = Account.recover_transaction(params[0]).lower()
        fields = rlp.decode(raw)
        nonce = int.from_bytes(fields[0], "big")
        to, data = fields[3], fields[5]

        if nonce < self.nonces[sender]:
            raise _RpcFault({"code": -32000, "message": "nonce too low"})

        self.nonces[sender] = nonce + 1
        self.sent.append(transaction_hash)
        self.transactions[transaction_hash] = {
            "hash": transaction_hash,
            "from": to_checksum_address(sender),
            "nonce": hex(nonce),
            "gas": hex(int.from_bytes(fields[2], "big")),
            "gasPrice": hex(int.from_bytes(fields[1], "big")),
            "to": to_checksum_address(to) if to else None,
            "input": to_hex(data),
        }

        if not to:
            address = derive_create_address(sender, nonce)
        else:
            address = derive_create2_address(to_hex(to), data[:32], data[32:])

        self.block += 1
        receipt = {
            "transactionHash": transaction_hash,
            "blockNumber": hex(self.block),
            "gasUsed": hex(1_234_567),
            "status": "0x0" if self.revert else "0x1",
            # Creation through the CREATE2 proxy is a call: no contractAddress
            "contractAddress": address if not to and not self.revert else None,
        }
        if self.mine:
            self.receipts[transaction_hash] = receipt
        else:
            self.pending[transaction_hash] = receipt
        return transaction_hash

    def eth_getTransactionByHash(self, params):
        return self.transactions.get(params[0])

    def eth_getTransactionReceipt(self, params):
        return self.receipts.get(params[0])

    def contract_address(self, transaction_hash: str) -> Optional[str]:
        return self.receipts[transaction_hash]["contractAddress"]


class _RpcFault(Exception):
    def __init__(self, error: Dict[str, Any]):
        super().__init__(error["message"])
        self.error = error


def connection_refused() -> requests.ConnectionError:
    return requests.ConnectionError("Connection refused")


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def artifacts(fixtures_dir: Path) -> HardhatArtifacts:
    """Artifact store over the fixture Hardhat project."""
    return HardhatArtifacts(fixtures_dir / "artifacts")


@pytest.fixture
def network() -> NetworkProfile:
    """opSepolia profile pointing at the mocked node and explorer."""
    return NetworkProfile(
        name="opSepolia",
        rpc_url=RPC_URL,
        chain_id=CHAIN_ID,
        explorer_api_url=EXPLORER_URL,
        explorer_api_key="test-api-key",
        browser_url="https://sepolia-optimism.etherscan.io/",
    )


@pytest.fixture
def local_network() -> NetworkProfile:
    """Profile without an explorer."""
    return NetworkProfile(name="hardhat", rpc_url="http://127.0.0.1:8545/", chain_id=31337)


@pytest.fixture
def registry(network: NetworkProfile, local_network: NetworkProfile) -> NetworkRegistry:
    return NetworkRegistry([network, local_network])


@pytest.fixture
def temp_ledger_dir(tmp_path: Path) -> Path:
    """Create a temporary ledger directory for tests."""
    ledger_dir = tmp_path / ".hermes-deployments"
    ledger_dir.mkdir(parents=True, exist_ok=True)
    return ledger_dir


@pytest.fixture
def ledger(temp_ledger_dir: Path) -> DeploymentLedger:
    return DeploymentLedger(temp_ledger_dir / "ledger.json")


@pytest.fixture
def signer() -> LocalAccountSigner:
    return LocalAccountSigner(PRIVATE_KEY)


@pytest.fixture
def mocked_http():
    """Intercept every HTTP request made through requests."""
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def chain(mocked_http) -> FakeChain:
    """Fake JSON-RPC node served at RPC_URL."""
    fake = FakeChain()
    mocked_http.add_callback(
        responses.POST, RPC_URL, callback=fake.callback, content_type="application/json"
    )
    return fake


@pytest.fixture
def executor(
    ledger: DeploymentLedger, signer: LocalAccountSigner, artifacts: HardhatArtifacts
) -> DeploymentExecutor:
    """Executor with zero backoff and a three-poll receipt budget."""
    return DeploymentExecutor(
        ledger,
        signer,
        artifacts=artifacts,
        retry_policy=FAST_RETRY,
        polling_policy=FAST_POLL,
    )


@pytest.fixture
def submitter(registry: NetworkRegistry) -> VerificationSubmitter:
    """Submitter with zero backoff and a three-poll status budget."""
    return VerificationSubmitter(
        registry, retry_policy=FAST_RETRY, polling_policy=FAST_POLL
    )
