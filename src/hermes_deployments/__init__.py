"""
hermes-deployments: Python library for deploying and verifying Hermes smart contracts
"""

from importlib.metadata import PackageNotFoundError, version

from .artifacts import HardhatArtifacts
from .deployments import run_deployment
from .exceptions import (
    AddressMismatchError,
    ArtifactError,
    ArtifactNotFoundError,
    DeploymentCancelledError,
    DeploymentError,
    ExecutionRevertedError,
    InsufficientFundsError,
    InvalidIntentError,
    LedgerConflictError,
    LedgerLockTimeoutError,
    NetworkMismatchError,
    RecordNotConfirmedError,
    SigningError,
    SubmissionError,
    TransportError,
    UnknownNetworkError,
    VerificationError,
    VerificationMismatchError,
    VerificationRejectedError,
    VerificationTimeoutError,
)
from .executor import DeploymentExecutor
from .ledger import DeploymentLedger
from .networks import NetworkRegistry, get_registry
from .signers import LocalAccountSigner, SignerProvider
from .types import (
    DeploymentIntent,
    DeploymentRecord,
    DeploymentResult,
    DeploymentStatus,
    GasPolicy,
    NetworkProfile,
    PollingPolicy,
    RetryPolicy,
    VerificationStatus,
)
from .verification import VerificationSubmitter

try:
    __version__ = version("hermes-deployments")
except PackageNotFoundError:
    __version__ = None

__all__ = [
    "run_deployment",
    "DeploymentExecutor",
    "DeploymentLedger",
    "HardhatArtifacts",
    "LocalAccountSigner",
    "NetworkRegistry",
    "SignerProvider",
    "VerificationSubmitter",
    "get_registry",
    "DeploymentIntent",
    "DeploymentRecord",
    "DeploymentResult",
    "DeploymentStatus",
    "GasPolicy",
    "NetworkProfile",
    "PollingPolicy",
    "RetryPolicy",
    "VerificationStatus",
    "DeploymentError",
    "UnknownNetworkError",
    "NetworkMismatchError",
    "ArtifactNotFoundError",
    "ArtifactError",
    "InvalidIntentError",
    "SigningError",
    "TransportError",
    "SubmissionError",
    "InsufficientFundsError",
    "ExecutionRevertedError",
    "AddressMismatchError",
    "LedgerConflictError",
    "LedgerLockTimeoutError",
    "RecordNotConfirmedError",
    "DeploymentCancelledError",
    "VerificationError",
    "VerificationRejectedError",
    "VerificationMismatchError",
    "VerificationTimeoutError",
]
