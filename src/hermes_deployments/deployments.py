"""Main API for hermes-deployments library."""

import logging
import threading
from typing import Any, Dict, Optional, Sequence

from .artifacts import HardhatArtifacts
from .exceptions import VerificationError
from .executor import DeploymentExecutor
from .ledger import DeploymentLedger
from .networks import NetworkRegistry, get_registry
from .signers import LocalAccountSigner, SignerProvider
from .types import DeploymentIntent, DeploymentResult, VerificationStatus
from .verification import VerificationSubmitter

logger = logging.getLogger(__name__)


def run_deployment(
    contract_name: str,
    constructor_args: Sequence[Any],
    network_name: str,
    *,
    gas_limit: Optional[int] = None,
    salt: Optional[str] = None,
    verify: bool = True,
    compiler_settings: Optional[Dict[str, Any]] = None,
    registry: Optional[NetworkRegistry] = None,
    ledger: Optional[DeploymentLedger] = None,
    signer: Optional[SignerProvider] = None,
    artifacts: Optional[HardhatArtifacts] = None,
    executor: Optional[DeploymentExecutor] = None,
    submitter: Optional[VerificationSubmitter] = None,
    cancel_event: Optional[threading.Event] = None,
) -> DeploymentResult:
    """
    Deploy a contract (at most once) and verify its source at the explorer.

    Safe to re-run: a deployment already confirmed in the ledger is reused,
    and a contract already verified is not submitted again.

    Args:
        contract_name: Contract to deploy (artifact name)
        constructor_args: Constructor arguments, in ABI order
        network_name: Target network (e.g., "opSepolia")
        gas_limit: Fixed gas limit; estimated with a margin when None
        salt: 32-byte hex salt; deploys through the CREATE2 proxy when set
        verify: Whether to submit the source for verification
        compiler_settings: solc settings overriding those of the build info
        registry: Network registry (defaults to the process-wide one)
        ledger: Deployment ledger (defaults to ./.hermes-deployments/ledger.json);
                ignored when an executor is given, whose ledger is used
        signer: Signing identity (defaults to $PRIVATE_KEY)
        artifacts: Compiled contracts (defaults to ./artifacts)
        executor: Deployment executor (built from the above when None)
        submitter: Verification submitter (built from the registry when None)
        cancel_event: Caller's cancellation signal

    Returns:
        DeploymentResult with the contract address and verification outcome

    Raises:
        UnknownNetworkError: If the network is not configured
        DeploymentError: If deployment or verification fails
    """
    registry = registry or get_registry()
    network = registry.resolve(network_name)

    if executor is None:
        ledger = ledger or DeploymentLedger()
        artifacts = artifacts or HardhatArtifacts()
        executor = DeploymentExecutor(
            ledger, signer or LocalAccountSigner.from_env(), artifacts=artifacts
        )
    else:
        # Verification outcomes go where the executor records deployments
        ledger = executor.ledger
        artifacts = artifacts or executor.artifacts

    intent = DeploymentIntent(
        contract_name=contract_name,
        constructor_args=tuple(constructor_args),
        network=network,
        gas_limit=gas_limit,
        salt=salt,
    )
    record = executor.deploy(intent, cancel_event=cancel_event)

    if not verify:
        return DeploymentResult(address=record.address, verified=False, record=record)

    if record.verification_status.is_success:
        logger.info(
            "%s at %s already verified on %s", contract_name, record.address, network.name
        )
        return DeploymentResult(address=record.address, verified=True, record=record)

    submitter = submitter or VerificationSubmitter(registry)
    try:
        request = submitter.verify(
            record,
            artifacts.source_bundle(contract_name),
            compiler_settings=compiler_settings,
            cancel_event=cancel_event,
        )
    except VerificationError:
        # The deployment stays confirmed; a rerun only retries verification
        ledger.record_verification(network.name, record.intent_key, VerificationStatus.FAILED)
        raise

    record = ledger.record_verification(network.name, record.intent_key, request.status)
    return DeploymentResult(
        address=record.address, verified=True, record=record, verification=request
    )
