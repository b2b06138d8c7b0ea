"""Block-explorer source verification for hermes-deployments library."""

import json
import logging
import threading
from typing import Any, Dict, Optional, Tuple

import requests

from .constants import (
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_VERIFY_MAX_POLLS,
    DEFAULT_VERIFY_POLL_INTERVAL,
    DEFAULT_VERIFY_TIMEOUT,
)
from .encoding import encode_constructor_args
from .exceptions import (
    ExplorerUnavailableError,
    RecordNotConfirmedError,
    VerificationError,
    VerificationMismatchError,
    VerificationRejectedError,
    VerificationTimeoutError,
)
from .networks import NetworkRegistry, get_registry
from .retry import poll, raise_if_cancelled, retrying
from .types import (
    DeploymentRecord,
    DeploymentStatus,
    NetworkProfile,
    PollingPolicy,
    RetryPolicy,
    SourceBundle,
    VerificationRequest,
    VerificationStatus,
)

logger = logging.getLogger(__name__)

_TRANSIENT_STATUS = frozenset({408, 429, 500, 502, 503, 504})

# Explorer answers that mean "ask again later"
_TRANSIENT_RESULTS = (
    "rate limit",
    "unable to locate contractcode",  # Explorer has not indexed the contract yet
    "try again later",
)


def _is_already_verified(result: str) -> bool:
    return "already verified" in result.lower()


class VerificationSubmitter:
    """Submits contract sources to an Etherscan-compatible explorer API."""

    def __init__(
        self,
        registry: Optional[NetworkRegistry] = None,
        session: Optional[requests.Session] = None,
        retry_policy: Optional[RetryPolicy] = None,
        polling_policy: Optional[PollingPolicy] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ):
        """
        Initialize the submitter.

        Args:
            registry: Network registry (defaults to the process-wide one)
            session: HTTP session
            retry_policy: Backoff for transient failures while submitting
            polling_policy: Status polling bounds
            timeout: HTTP timeout in seconds
        """
        self._registry = registry or get_registry()
        self._session = session or requests.Session()
        self._retry_policy = retry_policy or RetryPolicy()
        self._polling_policy = polling_policy or PollingPolicy(
            interval=DEFAULT_VERIFY_POLL_INTERVAL,
            timeout=DEFAULT_VERIFY_TIMEOUT,
            max_attempts=DEFAULT_VERIFY_MAX_POLLS,
        )
        self._timeout = timeout

    def verify(
        self,
        record: DeploymentRecord,
        source_bundle: SourceBundle,
        compiler_settings: Optional[Dict[str, Any]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> VerificationRequest:
        """
        Verify a deployed contract's source at the network's explorer.

        Args:
            record: Confirmed deployment
            source_bundle: Sources and compiler version
            compiler_settings: solc settings replacing those in the bundle's input
            cancel_event: Caller's cancellation signal

        Returns:
            VerificationRequest in VERIFIED or ALREADY_VERIFIED state

        Raises:
            RecordNotConfirmedError: If the deployment is not confirmed
            VerificationError: If the network has no explorer API configured
            VerificationMismatchError: If the explorer cannot reproduce the bytecode
            VerificationRejectedError: If the explorer refuses the request
            VerificationTimeoutError: If the explorer stays busy past the budget
        """
        if record.status is not DeploymentStatus.CONFIRMED:
            raise RecordNotConfirmedError(
                f"Cannot verify {record.contract_name} on {record.network}: "
                f"deployment is {record.status.value} (intent {record.intent_key})"
            )

        network = self._registry.resolve(record.network)
        if not network.explorer_api_url or not network.explorer_api_key:
            raise VerificationError(
                f"No explorer API URL/key configured for network '{network.name}'"
            )

        request = VerificationRequest(
            address=record.address,
            network=network.name,
            source_bundle=source_bundle,
            encoded_constructor_args=encode_constructor_args(
                source_bundle.abi, record.constructor_args
            ).hex(),
        )

        standard_input = source_bundle.standard_input
        if compiler_settings is not None:
            standard_input = dict(standard_input, settings=compiler_settings)

        try:
            self._submit(network, request, standard_input, cancel_event)
            if request.status is VerificationStatus.PENDING:
                self._wait_for_result(network, request, cancel_event)
        except VerificationError:
            request.status = VerificationStatus.FAILED
            raise

        logger.info(
            "%s on %s: %s (%s)",
            request.address,
            network.name,
            request.status.value,
            network.address_url(request.address),
        )
        return request

    def _call(
        self, network: NetworkProfile, method: str, payload: Dict[str, Any]
    ) -> Tuple[str, str]:
        """
        Call the explorer API.

        Returns:
            Tuple of (status, result) from the explorer's JSON envelope

        Raises:
            ExplorerUnavailableError: On transient failures
            VerificationRejectedError: On other HTTP errors
        """
        params = {"chainid": network.chain_id}
        try:
            if method == "POST":
                response = self._session.post(
                    network.explorer_api_url, params=params, data=payload, timeout=self._timeout
                )
            else:
                response = self._session.get(
                    network.explorer_api_url,
                    params={**params, **payload},
                    timeout=self._timeout,
                )
        except requests.RequestException as e:
            raise ExplorerUnavailableError(f"Network error calling explorer: {e}") from e

        if response.status_code in _TRANSIENT_STATUS:
            raise ExplorerUnavailableError(
                f"Explorer request failed with status {response.status_code}"
            )
        if response.status_code != 200:
            raise VerificationRejectedError(
                f"Explorer request failed with status {response.status_code}: "
                f"{response.text[:200]}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ExplorerUnavailableError(f"Malformed explorer response: {e}") from e

        status = str(body.get("status", "0"))
        result = str(body.get("result", ""))
        if any(marker in result.lower() for marker in _TRANSIENT_RESULTS):
            raise ExplorerUnavailableError(result)
        return status, result

    def _submit(
        self,
        network: NetworkProfile,
        request: VerificationRequest,
        standard_input: Dict[str, Any],
        cancel_event: Optional[threading.Event],
    ) -> None:
        bundle = request.source_bundle
        payload = {
            "apikey": network.explorer_api_key,
            "module": "contract",
            "action": "verifysourcecode",
            "contractaddress": request.address,
            "sourceCode": json.dumps(standard_input),
            "codeformat": "solidity-standard-json-input",
            "contractname": bundle.fully_qualified_name,
            "compilerversion": bundle.compiler_version,
            # Misspelling is part of the Etherscan API
            "constructorArguements": request.encoded_constructor_args,
        }

        try:
            for attempt in retrying(self._retry_policy, (ExplorerUnavailableError,)):
                with attempt:
                    raise_if_cancelled(cancel_event, "submitting verification")
                    status, result = self._call(network, "POST", payload)
        except ExplorerUnavailableError as e:
            raise VerificationTimeoutError(
                f"Explorer for {network.name} unavailable while submitting "
                f"{request.address}: {e}"
            ) from e

        request.message = result
        if status == "1":
            request.guid = result
            request.status = VerificationStatus.PENDING
            logger.info("Submitted verification of %s (guid %s)", request.address, result)
        elif _is_already_verified(result):
            request.status = VerificationStatus.ALREADY_VERIFIED
        else:
            raise VerificationRejectedError(
                f"Explorer rejected verification of {bundle.contract_name} at "
                f"{request.address} on {network.name}: {result}"
            )

    def _wait_for_result(
        self,
        network: NetworkProfile,
        request: VerificationRequest,
        cancel_event: Optional[threading.Event],
    ) -> None:
        payload = {
            "apikey": network.explorer_api_key,
            "module": "contract",
            "action": "checkverifystatus",
            "guid": request.guid,
        }

        def check() -> Optional[VerificationStatus]:
            try:
                _, result = self._call(network, "GET", payload)
            except ExplorerUnavailableError as e:
                logger.warning("Verification status check failed, will poll again: %s", e)
                return None

            request.message = result
            lowered = result.lower()
            if _is_already_verified(result):
                return VerificationStatus.ALREADY_VERIFIED
            if lowered.startswith("pass"):
                return VerificationStatus.VERIFIED
            if "pending" in lowered or "queue" in lowered:
                return None
            raise VerificationMismatchError(
                f"Verification of {request.source_bundle.contract_name} at "
                f"{request.address} on {network.name} failed: {result}"
            )

        request.status = poll(
            check,
            self._polling_policy,
            VerificationTimeoutError,
            f"waiting for verification of {request.address} on {network.name}",
            cancel_event,
        )
