"""JSON-RPC client for hermes-deployments library."""

import itertools
import logging
from typing import Any, Dict, List, Optional

import requests

from .constants import DEFAULT_HTTP_TIMEOUT
from .exceptions import RpcResponseError, TransportError

logger = logging.getLogger(__name__)

# Status codes worth retrying: rate limiting and server-side failures
_TRANSIENT_STATUS = frozenset({408, 429, 500, 502, 503, 504})


class RpcClient:
    """Minimal Ethereum JSON-RPC client over HTTP."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.rpc_url = rpc_url
        self._timeout = timeout
        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Perform a JSON-RPC call.

        Args:
            method: RPC method name (e.g., "eth_chainId")
            params: Positional parameters

        Returns:
            The "result" member of the response (may be None)

        Raises:
            TransportError: If the node is unreachable, times out or answers 429/5xx
            RpcResponseError: If the node returns a JSON-RPC error object
        """
        try:
            response = self._session.post(
                self.rpc_url,
                json={
                    "jsonrpc": "2.0",
                    "method": method,
                    "params": params or [],
                    "id": next(self._ids),
                },
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"Network error during RPC call {method}: {e}") from e

        # Check for HTTP errors
        if response.status_code in _TRANSIENT_STATUS:
            raise TransportError(
                f"RPC request {method} failed with status {response.status_code}"
            )
        if response.status_code != 200:
            raise RpcResponseError(
                f"RPC request {method} failed with status {response.status_code}: "
                f"{response.text[:200]}",
                code=response.status_code,
            )

        try:
            result = response.json()
        except ValueError as e:
            raise TransportError(f"Malformed RPC response to {method}: {e}") from e

        # Check for RPC errors
        if "error" in result:
            error = result["error"] or {}
            raise RpcResponseError(
                f"RPC error in {method}: {error.get('message', error)}",
                code=error.get("code"),
                data=error.get("data"),
            )

        return result.get("result")

    def chain_id(self) -> int:
        return int(self.call("eth_chainId"), 16)

    def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return int(self.call("eth_getTransactionCount", [address, block]), 16)

    def estimate_gas(self, transaction: Dict[str, Any]) -> int:
        return int(self.call("eth_estimateGas", [transaction]), 16)

    def gas_price(self) -> int:
        return int(self.call("eth_gasPrice"), 16)

    def send_raw_transaction(self, raw_transaction: str) -> str:
        return self.call("eth_sendRawTransaction", [raw_transaction])

    def get_transaction(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        return self.call("eth_getTransactionByHash", [transaction_hash])

    def get_transaction_receipt(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        return self.call("eth_getTransactionReceipt", [transaction_hash])


def is_revert(error: RpcResponseError) -> bool:
    """Check whether an RPC error reports an EVM revert (e.g. from eth_estimateGas)."""
    return error.code == 3 or "execution reverted" in str(error).lower()
