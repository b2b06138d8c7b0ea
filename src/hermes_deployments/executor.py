"""Contract deployment executor for hermes-deployments library."""

import logging
import threading
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from eth_utils import to_bytes, to_checksum_address, to_hex

from .artifacts import HardhatArtifacts
from .constants import DETERMINISTIC_DEPLOYER
from .encoding import (
    build_init_code,
    canonicalize_arg,
    compute_intent_key,
    derive_create2_address,
    derive_create_address,
    encode_constructor_args,
    normalize_salt,
)
from .exceptions import (
    AddressMismatchError,
    DeploymentError,
    ExecutionRevertedError,
    NetworkMismatchError,
    NonceTooLowError,
    ReceiptTimeoutError,
    RpcResponseError,
    SigningError,
    SubmissionError,
    TransportError,
)
from .ledger import DeploymentLedger
from .retry import poll, raise_if_cancelled, retrying
from .rpc import RpcClient, is_revert
from .signers import SignerProvider
from .types import (
    DeploymentIntent,
    DeploymentRecord,
    DeploymentStatus,
    GasPolicy,
    NetworkProfile,
    PollingPolicy,
    RetryPolicy,
)

logger = logging.getLogger(__name__)


class DeploymentExecutor:
    """Deploys a contract at most once per deployment intent."""

    def __init__(
        self,
        ledger: DeploymentLedger,
        signer: SignerProvider,
        artifacts: Optional[HardhatArtifacts] = None,
        gas_policy: Optional[GasPolicy] = None,
        retry_policy: Optional[RetryPolicy] = None,
        polling_policy: Optional[PollingPolicy] = None,
        rpc_factory: Callable[[str], RpcClient] = RpcClient,
    ):
        """
        Initialize the executor.

        Args:
            ledger: Ledger used for idempotency and outcome records
            signer: Signing identity
            artifacts: Compiled contracts (defaults to ./artifacts)
            gas_policy: Gas limit margin and price policy
            retry_policy: Backoff for transient RPC failures
            polling_policy: Receipt polling bounds
            rpc_factory: Builds an RPC client from a URL
        """
        self._ledger = ledger
        self._signer = signer
        self._artifacts = artifacts or HardhatArtifacts()
        self._gas_policy = gas_policy or GasPolicy()
        self._retry_policy = retry_policy or RetryPolicy()
        self._polling_policy = polling_policy or PollingPolicy()
        self._rpc_factory = rpc_factory
        self._clients: Dict[str, RpcClient] = {}

    @property
    def ledger(self) -> DeploymentLedger:
        return self._ledger

    @property
    def artifacts(self) -> HardhatArtifacts:
        return self._artifacts

    def _rpc(self, network: NetworkProfile) -> RpcClient:
        if network.name not in self._clients:
            self._clients[network.name] = self._rpc_factory(network.rpc_url)
        return self._clients[network.name]

    def deploy(
        self, intent: DeploymentIntent, cancel_event: Optional[threading.Event] = None
    ) -> DeploymentRecord:
        """
        Deploy the intent's contract unless the ledger already has it.

        Args:
            intent: What to deploy, where
            cancel_event: Caller's cancellation signal; interrupts polling but
                          never an already-broadcast transaction

        Returns:
            Confirmed DeploymentRecord

        Raises:
            TransportError: If the node stays unreachable past the retry budget
            ReceiptTimeoutError: If the transaction is not mined in time
                                 (record stays pending)
            DeploymentCancelledError: If cancelled while waiting (record stays pending)
            ExecutionRevertedError: If contract creation reverts (record failed)
            InsufficientFundsError, SubmissionError, SigningError: On fatal
                                 submission failures (record failed)
        """
        intent_key = compute_intent_key(intent)
        network = intent.network

        with self._ledger.lock(network.name, intent_key):
            existing = self._ledger.get(network.name, intent_key)

            if existing is not None and existing.status is DeploymentStatus.CONFIRMED:
                logger.info(
                    "%s already deployed on %s at %s (intent %s)",
                    intent.contract_name,
                    network.name,
                    existing.address,
                    intent_key,
                )
                return existing

            if existing is not None and existing.status is DeploymentStatus.PENDING:
                resumed = self._resume_pending(intent, existing, cancel_event)
                if resumed is not None:
                    return resumed

            return self._deploy_new(intent, intent_key, cancel_event)

    def _resume_pending(
        self,
        intent: DeploymentIntent,
        record: DeploymentRecord,
        cancel_event: Optional[threading.Event],
    ) -> Optional[DeploymentRecord]:
        """
        Re-check chain state for a transaction broadcast by an earlier run.

        Returns:
            The settled record, or None if the transaction was dropped and a
            new attempt is needed
        """
        rpc = self._rpc(intent.network)
        logger.info(
            "Resuming pending deployment of %s on %s (tx %s)",
            intent.contract_name,
            intent.network.name,
            record.transaction_hash,
        )

        receipt = rpc.get_transaction_receipt(record.transaction_hash)
        if receipt is None:
            if rpc.get_transaction(record.transaction_hash) is None:
                logger.warning(
                    "Transaction %s is unknown to the node; marking it dropped",
                    record.transaction_hash,
                )
                self._ledger.put(
                    replace(
                        record,
                        status=DeploymentStatus.FAILED,
                        error="transaction dropped before inclusion",
                    )
                )
                return None
            receipt = self._wait_for_receipt(intent, record, cancel_event)

        return self._finalize(intent, record, receipt)

    def _deploy_new(
        self,
        intent: DeploymentIntent,
        intent_key: str,
        cancel_event: Optional[threading.Event],
    ) -> DeploymentRecord:
        network = intent.network
        rpc = self._rpc(network)

        salt = normalize_salt(intent.salt) if intent.salt is not None else None
        record = DeploymentRecord(
            intent_key=intent_key,
            network=network.name,
            contract_name=intent.contract_name,
            constructor_args=canonicalize_arg(list(intent.constructor_args)),
            status=DeploymentStatus.PENDING,
            salt=salt,
        )

        try:
            artifact = self._artifacts.load(intent.contract_name)
            init_code = build_init_code(
                artifact.bytecode,
                encode_constructor_args(artifact.abi, intent.constructor_args),
            )
            sender = self._signer.current_address(network)
            record = replace(record, deployer=sender)

            base_tx: Dict[str, Any] = {"value": 0, "chainId": network.chain_id}
            if salt is None:
                # Contract creation: no recipient
                base_tx["data"] = to_hex(init_code)
            else:
                base_tx["to"] = DETERMINISTIC_DEPLOYER
                base_tx["data"] = to_hex(to_bytes(hexstr=salt) + init_code)

            self._prepare_gas(intent, rpc, sender, base_tx)
            record = self._broadcast(network, rpc, record, base_tx, cancel_event)
        except (
            TransportError,
            RpcResponseError,
            SubmissionError,
            SigningError,
            ExecutionRevertedError,
        ) as e:
            if not self._may_have_landed(network, intent_key):
                self._ledger.put(
                    replace(record, status=DeploymentStatus.FAILED, error=str(e))
                )
            raise

        logger.info(
            "Deploying %s on %s from %s (nonce %d, tx %s)",
            intent.contract_name,
            network.name,
            record.deployer,
            record.nonce,
            record.transaction_hash,
        )

        receipt = self._wait_for_receipt(intent, record, cancel_event)
        return self._finalize(intent, record, receipt, init_code)

    def _may_have_landed(self, network: NetworkProfile, intent_key: str) -> bool:
        """Check whether this attempt left a signed transaction pending in the ledger."""
        current = self._ledger.get(network.name, intent_key)
        return (
            current is not None
            and current.status is DeploymentStatus.PENDING
            and current.transaction_hash is not None
        )

    def _prepare_gas(
        self,
        intent: DeploymentIntent,
        rpc: RpcClient,
        sender: str,
        base_tx: Dict[str, Any],
    ) -> None:
        """Check the chain id and fill in gas limit and price."""
        network = intent.network

        for attempt in retrying(self._retry_policy, (TransportError,)):
            with attempt:
                chain_id = rpc.chain_id()
                if chain_id != network.chain_id:
                    raise NetworkMismatchError(
                        f"RPC endpoint for {network.name} reports chain id {chain_id}, "
                        f"expected {network.chain_id}"
                    )

                if intent.gas_limit is not None:
                    gas_limit = intent.gas_limit
                else:
                    call = {"from": sender, "data": base_tx["data"]}
                    if "to" in base_tx:
                        call["to"] = base_tx["to"]
                    try:
                        estimate = rpc.estimate_gas(call)
                    except RpcResponseError as e:
                        if is_revert(e):
                            raise ExecutionRevertedError(
                                f"{intent.contract_name} constructor reverts on "
                                f"{network.name}: {e}"
                            ) from e
                        raise
                    gas_limit = self._gas_policy.limit_for(estimate)

                gas_price = self._gas_policy.price_for(rpc.gas_price())

        base_tx["gas"] = gas_limit
        base_tx["gasPrice"] = gas_price

    def _broadcast(
        self,
        network: NetworkProfile,
        rpc: RpcClient,
        record: DeploymentRecord,
        base_tx: Dict[str, Any],
        cancel_event: Optional[threading.Event],
    ) -> DeploymentRecord:
        """
        Sign and submit, retrying transient failures with backoff.

        The nonce is kept across transport failures, so a resubmission is the
        same signed transaction and cannot create a second contract. A signed
        transaction whose fate is unknown is written to the ledger as pending
        before anything else happens, so whatever interrupts this attempt, a
        later run checks the chain before sending again.

        Returns:
            Pending DeploymentRecord carrying the transaction hash and nonce
        """
        unsent = record
        nonce: Optional[int] = None

        for attempt in retrying(self._retry_policy, (TransportError,)):
            with attempt:
                raise_if_cancelled(cancel_event, "submitting deployment")
                if nonce is None:
                    nonce = rpc.get_transaction_count(record.deployer, "pending")

                try:
                    transaction_hash = self._signer.sign_and_submit(
                        network, dict(base_tx, nonce=nonce)
                    )
                except NonceTooLowError as e:
                    # An earlier attempt of ours may have landed with this nonce
                    if e.transaction_hash and rpc.get_transaction(e.transaction_hash) is not None:
                        transaction_hash = e.transaction_hash
                    else:
                        if record.transaction_hash is not None:
                            # Another transaction took the nonce; ours can never be mined
                            self._ledger.put(
                                replace(record, status=DeploymentStatus.FAILED, error=str(e))
                            )
                            record = unsent
                        nonce = None
                        raise
                except TransportError as e:
                    if e.transaction_hash is not None:
                        record = self._ledger.put(
                            replace(
                                unsent,
                                transaction_hash=e.transaction_hash,
                                nonce=e.nonce if e.nonce is not None else nonce,
                                error=str(e),
                            )
                        )
                    raise

                return self._ledger.put(
                    replace(unsent, transaction_hash=transaction_hash, nonce=nonce)
                )

        # Unreachable: retrying() re-raises once attempts run out
        raise DeploymentError("Retry loop ended without result")

    def _wait_for_receipt(
        self,
        intent: DeploymentIntent,
        record: DeploymentRecord,
        cancel_event: Optional[threading.Event],
    ) -> Dict[str, Any]:
        rpc = self._rpc(intent.network)

        def check() -> Optional[Dict[str, Any]]:
            try:
                receipt = rpc.get_transaction_receipt(record.transaction_hash)
            except TransportError as e:
                logger.warning("Receipt lookup failed, will poll again: %s", e)
                return None
            # Some nodes return a receipt skeleton before inclusion
            if receipt is None or receipt.get("blockNumber") is None:
                return None
            return receipt

        return poll(
            check,
            self._polling_policy,
            ReceiptTimeoutError,
            f"waiting for transaction {record.transaction_hash} on {intent.network.name}",
            cancel_event,
        )

    def _finalize(
        self,
        intent: DeploymentIntent,
        record: DeploymentRecord,
        receipt: Dict[str, Any],
        init_code: Optional[bytes] = None,
    ) -> DeploymentRecord:
        block_number = int(receipt["blockNumber"], 16)
        gas_used = int(receipt["gasUsed"], 16) if receipt.get("gasUsed") else None

        if int(receipt.get("status", "0x1"), 16) == 0:
            self._ledger.put(
                replace(
                    record,
                    status=DeploymentStatus.FAILED,
                    block_number=block_number,
                    gas_used=gas_used,
                    error="execution reverted",
                )
            )
            raise ExecutionRevertedError(
                f"Deployment of {intent.contract_name} on {intent.network.name} "
                f"reverted in block {block_number} (tx {record.transaction_hash}, "
                f"intent {record.intent_key})"
            )

        address = self._derive_address(intent, record, init_code)
        receipt_address = receipt.get("contractAddress")
        if receipt_address and to_checksum_address(receipt_address) != address:
            message = (
                f"Receipt of {record.transaction_hash} reports contract "
                f"{receipt_address}, derived {address}"
            )
            self._ledger.put(
                replace(
                    record,
                    status=DeploymentStatus.FAILED,
                    block_number=block_number,
                    gas_used=gas_used,
                    error=message,
                )
            )
            raise AddressMismatchError(
                f"{message} ({intent.contract_name} on {intent.network.name}, "
                f"intent {record.intent_key})"
            )

        confirmed = self._ledger.put(
            replace(
                record,
                status=DeploymentStatus.CONFIRMED,
                address=address,
                block_number=block_number,
                gas_used=gas_used,
            )
        )
        logger.info(
            "%s deployed on %s at %s (block %d)",
            intent.contract_name,
            intent.network.name,
            address,
            block_number,
        )
        return confirmed

    def _derive_address(
        self,
        intent: DeploymentIntent,
        record: DeploymentRecord,
        init_code: Optional[bytes],
    ) -> str:
        if record.salt is None:
            return derive_create_address(record.deployer, record.nonce)

        if init_code is None:
            # Resumed run: rebuild from the artifact
            artifact = self._artifacts.load(intent.contract_name)
            init_code = build_init_code(
                artifact.bytecode,
                encode_constructor_args(artifact.abi, intent.constructor_args),
            )
        return derive_create2_address(DETERMINISTIC_DEPLOYER, record.salt, init_code)
