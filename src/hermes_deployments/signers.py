"""Signer providers for hermes-deployments library."""

import logging
import os
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from eth_account import Account
from eth_utils import to_hex

from .constants import DEFAULT_PRIVATE_KEY_ENV
from .exceptions import (
    InsufficientFundsError,
    NonceTooLowError,
    RpcResponseError,
    SigningError,
    SubmissionError,
    TransportError,
)
from .rpc import RpcClient
from .types import NetworkProfile

logger = logging.getLogger(__name__)


class SignerProvider(Protocol):
    """Signing identity used to broadcast deployments."""

    def current_address(self, network: NetworkProfile) -> str:
        """Checksummed address that signs transactions on the network."""
        ...

    def sign_and_submit(self, network: NetworkProfile, transaction: Dict[str, Any]) -> str:
        """Sign a transaction, broadcast it and return its hash."""
        ...


def _classify_rejection(error: RpcResponseError, transaction_hash: str) -> Exception:
    """Map a node's rejection of eth_sendRawTransaction to an error kind."""
    message = str(error).lower()

    if "insufficient funds" in message:
        # Reported verbatim: the node's message carries balance and cost
        return InsufficientFundsError(str(error))
    if "nonce too low" in message:
        return NonceTooLowError(str(error), transaction_hash=transaction_hash)
    if "replacement transaction underpriced" in message:
        # Another transaction holds this nonce in the pool; ours was not accepted
        return NonceTooLowError(str(error))
    return SubmissionError(str(error))


def _already_known(error: RpcResponseError) -> bool:
    message = str(error).lower()
    return "already known" in message or "known transaction" in message


class LocalAccountSigner:
    """
    Signs with a local private key (eth_account) and submits over JSON-RPC.

    The key stays inside this object: there is no accessor for it and it is
    kept out of repr().
    """

    def __init__(
        self,
        private_key: str,
        network_keys: Optional[Mapping[str, str]] = None,
        rpc_factory: Callable[[str], RpcClient] = RpcClient,
    ):
        """
        Initialize the signer.

        Args:
            private_key: Default hex private key
            network_keys: Per-network keys overriding the default
            rpc_factory: Builds an RPC client from a URL

        Raises:
            SigningError: If a key is malformed
        """
        try:
            self._default = Account.from_key(private_key)
            self._accounts = {
                name: Account.from_key(key) for name, key in (network_keys or {}).items()
            }
        except Exception as e:
            # Do not chain: the original message may echo key material
            raise SigningError(f"Invalid private key: {type(e).__name__}") from None
        self._rpc_factory = rpc_factory
        self._clients: Dict[str, RpcClient] = {}

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        variable: str = DEFAULT_PRIVATE_KEY_ENV,
    ) -> "LocalAccountSigner":
        """
        Build a signer from $PRIVATE_KEY and optional $PRIVATE_KEY_<NETWORK> overrides.

        Args:
            environ: Environment to read (defaults to os.environ)
            variable: Name of the default key variable

        Raises:
            SigningError: If no default key is set
        """
        if environ is None:
            environ = os.environ

        private_key = environ.get(variable)
        if not private_key:
            raise SigningError(f"Signing key required: set ${variable}")

        prefix = f"{variable}_"
        network_keys = {
            name[len(prefix):]: value
            for name, value in environ.items()
            if name.startswith(prefix) and value
        }
        return cls(private_key, network_keys=network_keys)

    def __repr__(self) -> str:
        return f"LocalAccountSigner(address={self._default.address})"

    def _account_for(self, network: NetworkProfile):
        return self._accounts.get(
            network.name, self._accounts.get(network.name.upper(), self._default)
        )

    def _client_for(self, network: NetworkProfile) -> RpcClient:
        if network.name not in self._clients:
            self._clients[network.name] = self._rpc_factory(network.rpc_url)
        return self._clients[network.name]

    def current_address(self, network: NetworkProfile) -> str:
        return self._account_for(network).address

    def sign_and_submit(self, network: NetworkProfile, transaction: Dict[str, Any]) -> str:
        """
        Sign a transaction with the network's key and broadcast it.

        Signing is deterministic, so resubmitting the same transaction yields
        the same hash; the node answering "already known" counts as success.

        Args:
            network: Target network
            transaction: Transaction fields (nonce, gas, gasPrice, chainId, data[, to])

        Returns:
            0x-prefixed transaction hash

        Raises:
            SigningError: If the transaction cannot be signed
            TransportError: If the node is unreachable (retryable)
            NonceTooLowError: If the nonce is already used (retryable)
            InsufficientFundsError: If the balance cannot cover gas (fatal)
            SubmissionError: If the node rejects the transaction (fatal)
        """
        account = self._account_for(network)
        try:
            signed = account.sign_transaction(transaction)
        except (TypeError, ValueError, KeyError) as e:
            raise SigningError(f"Cannot sign transaction for {network.name}: {e}") from e

        transaction_hash = to_hex(signed.hash)
        client = self._client_for(network)

        try:
            client.send_raw_transaction(to_hex(signed.raw_transaction))
        except TransportError as e:
            raise TransportError(
                str(e), transaction_hash=transaction_hash, nonce=transaction.get("nonce")
            ) from e
        except RpcResponseError as e:
            if _already_known(e):
                logger.info("Transaction %s already known to the node", transaction_hash)
                return transaction_hash
            raise _classify_rejection(e, transaction_hash) from e

        logger.info("Submitted transaction %s on %s", transaction_hash, network.name)
        return transaction_hash
