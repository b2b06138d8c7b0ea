"""Custom exception classes for hermes-deployments library."""

from typing import Any, Optional


class DeploymentError(Exception):
    """Base exception for deployment-related errors."""

    pass


class UnknownNetworkError(DeploymentError, ValueError):
    """Raised when requested network is not in the registry."""

    pass


class NetworkMismatchError(DeploymentError, ValueError):
    """Raised when an RPC endpoint reports a chain id other than its profile's."""

    pass


class ArtifactNotFoundError(DeploymentError, FileNotFoundError):
    """Raised when a compiled contract artifact or its build info is missing."""

    pass


class ArtifactError(DeploymentError, ValueError):
    """Raised when a compiled contract artifact cannot be used as-is."""

    pass


class InvalidIntentError(DeploymentError, ValueError):
    """Raised when constructor arguments or salt of an intent are malformed."""

    pass


class SigningError(DeploymentError):
    """Raised when the signing backend cannot sign a transaction."""

    pass


class TransportError(DeploymentError, ConnectionError):
    """
    Raised on transient RPC failures (unreachable node, timeout, 429/5xx).

    Retryable. When the failure happened after signing, ``transaction_hash``
    and ``nonce`` identify the transaction that may or may not have reached
    the node.
    """

    def __init__(
        self,
        message: str = "",
        transaction_hash: Optional[str] = None,
        nonce: Optional[int] = None,
    ):
        super().__init__(message)
        self.transaction_hash = transaction_hash
        self.nonce = nonce


class NonceTooLowError(TransportError):
    """Raised when the node rejects a transaction whose nonce is already taken."""

    pass


class ReceiptTimeoutError(TransportError, TimeoutError):
    """Raised when a broadcast transaction is not mined within the polling budget."""

    pass


class RpcResponseError(DeploymentError, ValueError):
    """Raised when a JSON-RPC call returns an error object."""

    def __init__(self, message: str = "", code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class SubmissionError(DeploymentError):
    """Raised when the node rejects a transaction as malformed (fatal)."""

    pass


class InsufficientFundsError(SubmissionError):
    """Raised when the deployer cannot pay for the transaction (fatal)."""

    pass


class ExecutionRevertedError(DeploymentError):
    """Raised when contract creation reverts in the EVM (fatal, deterministic)."""

    pass


class AddressMismatchError(DeploymentError):
    """Raised when a receipt reports a contract address other than the derived one."""

    pass


class LedgerConflictError(DeploymentError, ValueError):
    """Raised when a ledger write would overwrite a settled deployment."""

    pass


class LedgerCorruptedError(DeploymentError, ValueError):
    """Raised when the ledger file exists but cannot be parsed."""

    pass


class LedgerLockTimeoutError(DeploymentError, TimeoutError):
    """Raised when another process holds an intent lock past the caller's timeout."""

    pass


class RecordNotConfirmedError(DeploymentError, ValueError):
    """Raised when verification is requested for a deployment that is not confirmed."""

    pass


class DeploymentCancelledError(DeploymentError):
    """Raised when the caller's cancellation signal interrupts polling."""

    pass


class VerificationError(DeploymentError):
    """Base exception for explorer verification errors."""

    pass


class ExplorerUnavailableError(VerificationError):
    """
    Raised on transient explorer failures (rate limiting, 5xx, not yet indexed).

    Retried within the verification budget; surfaces as
    VerificationTimeoutError once the budget is spent.
    """

    pass


class VerificationRejectedError(VerificationError):
    """Raised when the explorer definitively refuses a verification request."""

    pass


class VerificationMismatchError(VerificationRejectedError):
    """Raised when the explorer reports that compiled bytecode does not match."""

    pass


class VerificationTimeoutError(VerificationError, TimeoutError):
    """Raised when the explorer gives no final answer within the retry budget."""

    pass
