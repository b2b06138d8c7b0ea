"""Data types and dataclasses for hermes-deployments library."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .constants import (
    DEFAULT_GAS_MARGIN_PERCENT,
    DEFAULT_GAS_PRICE_MULTIPLIER_PERCENT,
    DEFAULT_INITIAL_BACKOFF,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_BACKOFF,
    DEFAULT_RECEIPT_MAX_POLLS,
    DEFAULT_RECEIPT_POLL_INTERVAL,
    DEFAULT_RECEIPT_TIMEOUT,
)


class DeploymentStatus(Enum):
    """
    Lifecycle of a deployment record.

    Value strings define de/serialization law in the ledger file.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class VerificationStatus(Enum):
    """
    Lifecycle of an explorer verification request.

    VERIFIED, ALREADY_VERIFIED and FAILED are terminal.
    """

    NOT_SUBMITTED = "not-submitted"
    PENDING = "pending"
    VERIFIED = "verified"
    ALREADY_VERIFIED = "already-verified"
    FAILED = "failed"

    @property
    def is_success(self) -> bool:
        return self in (VerificationStatus.VERIFIED, VerificationStatus.ALREADY_VERIFIED)


@dataclass(frozen=True)
class NetworkProfile:
    """Connection and explorer settings for one network."""

    name: str  # e.g., "opSepolia"
    rpc_url: str
    chain_id: int  # Also the explorer's chain mapping
    explorer_api_url: str = ""
    explorer_api_key: str = ""
    browser_url: str = ""  # Explorer UI, for human-facing links

    def __repr__(self) -> str:
        # Keep API keys out of logs and tracebacks
        return (
            f"NetworkProfile(name={self.name!r}, rpc_url={self.rpc_url!r}, "
            f"chain_id={self.chain_id})"
        )

    def address_url(self, address: str) -> str:
        return f"{self.browser_url.rstrip('/')}/address/{address}"


@dataclass(frozen=True)
class DeploymentIntent:
    """One logical request to deploy a contract on a network."""

    contract_name: str
    constructor_args: Tuple[Any, ...]
    network: NetworkProfile
    gas_limit: Optional[int] = None  # Overrides the estimate when set
    salt: Optional[str] = None  # 32-byte hex, selects CREATE2 placement


@dataclass(frozen=True)
class DeploymentRecord:
    """Outcome of a deployment attempt, as stored in the ledger."""

    # Required fields
    intent_key: str  # 0x-prefixed keccak of the canonical intent
    network: str  # Network name
    contract_name: str
    constructor_args: List[Any]  # Canonical, JSON-safe
    status: DeploymentStatus

    # Filled in as the deployment progresses
    address: Optional[str] = None  # Checksummed
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    deployer: Optional[str] = None
    nonce: Optional[int] = None
    gas_used: Optional[int] = None
    salt: Optional[str] = None
    error: Optional[str] = None
    verification_status: VerificationStatus = VerificationStatus.NOT_SUBMITTED
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["verification_status"] = self.verification_status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentRecord":
        return cls(
            intent_key=data["intent_key"],
            network=data["network"],
            contract_name=data["contract_name"],
            constructor_args=list(data.get("constructor_args", [])),
            status=DeploymentStatus(data["status"]),
            address=data.get("address"),
            transaction_hash=data.get("transaction_hash"),
            block_number=data.get("block_number"),
            deployer=data.get("deployer"),
            nonce=data.get("nonce"),
            gas_used=data.get("gas_used"),
            salt=data.get("salt"),
            error=data.get("error"),
            verification_status=VerificationStatus(
                data.get("verification_status", VerificationStatus.NOT_SUBMITTED.value)
            ),
            updated_at=data.get("updated_at", ""),
        )


@dataclass(frozen=True)
class ContractArtifact:
    """Compiler output needed to deploy a contract."""

    contract_name: str
    source_name: str  # e.g., "contracts/HermesProxyFactory.sol"
    abi: List[Dict[str, Any]]
    bytecode: str  # 0x-prefixed creation bytecode


@dataclass(frozen=True)
class SourceBundle:
    """Sources and compiler settings needed to verify a contract."""

    contract_name: str
    source_name: str
    compiler_version: str  # Etherscan form, e.g. "v0.8.24+commit.e11b9ed9"
    standard_input: Dict[str, Any]  # solc standard-JSON input
    abi: List[Dict[str, Any]]

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.source_name}:{self.contract_name}"


@dataclass
class VerificationRequest:
    """A verification submission and its progress at the explorer."""

    address: str
    network: str
    source_bundle: SourceBundle
    encoded_constructor_args: str  # Hex, no 0x prefix
    status: VerificationStatus = VerificationStatus.NOT_SUBMITTED
    guid: Optional[str] = None  # Explorer submission identifier
    message: Optional[str] = None  # Last explorer answer


@dataclass(frozen=True)
class GasPolicy:
    """Gas limit and price policy for contract creation."""

    margin_percent: int = DEFAULT_GAS_MARGIN_PERCENT
    price_multiplier_percent: int = DEFAULT_GAS_PRICE_MULTIPLIER_PERCENT
    max_gas_limit: Optional[int] = None

    def limit_for(self, estimate: int) -> int:
        limit = estimate * (100 + self.margin_percent) // 100
        if self.max_gas_limit is not None:
            limit = min(limit, self.max_gas_limit)
        return limit

    def price_for(self, node_price: int) -> int:
        return node_price * self.price_multiplier_percent // 100


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for transient failures."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF
    max_backoff: float = DEFAULT_MAX_BACKOFF


@dataclass(frozen=True)
class PollingPolicy:
    """Fixed-interval polling bounded by both a deadline and a poll count."""

    interval: float = DEFAULT_RECEIPT_POLL_INTERVAL
    timeout: float = DEFAULT_RECEIPT_TIMEOUT
    max_attempts: int = DEFAULT_RECEIPT_MAX_POLLS


@dataclass
class DeploymentResult:
    """What run_deployment hands back to its caller."""

    address: str
    verified: bool
    record: DeploymentRecord
    verification: Optional[VerificationRequest] = field(default=None)
