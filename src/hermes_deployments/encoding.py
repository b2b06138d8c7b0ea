"""Intent keys, constructor encoding and contract address derivation."""

import json
import re
from typing import Any, Dict, List, Mapping, Sequence, Union

import rlp
from eth_abi import encode as abi_encode
from eth_abi.exceptions import EncodingError
from eth_utils import keccak, to_bytes, to_checksum_address, to_hex

from .exceptions import InvalidIntentError
from .types import DeploymentIntent

_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")
_ARRAY_RE = re.compile(r"^(.*)\[(\d*)\]$")
_FIXED_BYTES_RE = re.compile(r"^bytes(\d+)$")


def canonicalize_arg(value: Any) -> Any:
    """
    Convert a constructor argument to its canonical JSON-safe form.

    Hex strings (addresses, hashes) are lower-cased so checksummed and
    lower-case spellings of the same value produce the same intent key.

    Raises:
        InvalidIntentError: If the value has no canonical form
    """
    if isinstance(value, (bytes, bytearray)):
        return to_hex(bytes(value))
    if isinstance(value, str):
        return value.lower() if _HEX_RE.match(value) else value
    if isinstance(value, (bool, int)):
        return value
    if isinstance(value, (list, tuple)):
        return [canonicalize_arg(v) for v in value]
    if isinstance(value, Mapping):
        return {str(k): canonicalize_arg(v) for k, v in value.items()}
    raise InvalidIntentError(f"Unsupported constructor argument type: {type(value).__name__}")


def normalize_salt(salt: Union[str, bytes]) -> str:
    """
    Normalize a CREATE2 salt to 0x-prefixed lower-case 32-byte hex.

    Raises:
        InvalidIntentError: If the salt is not exactly 32 bytes
    """
    try:
        raw = bytes(salt) if isinstance(salt, (bytes, bytearray)) else to_bytes(hexstr=salt)
    except (TypeError, ValueError) as e:
        raise InvalidIntentError(f"CREATE2 salt is not hex: {salt!r}") from e
    if len(raw) != 32:
        raise InvalidIntentError(f"CREATE2 salt must be 32 bytes, got {len(raw)}")
    return to_hex(raw)


def compute_intent_key(intent: DeploymentIntent) -> str:
    """
    Compute the idempotency key of a deployment intent.

    The key is the keccak256 of a canonical JSON document made of the
    contract name, constructor arguments and network name (plus the salt when
    CREATE2 placement is requested). Gas settings do not take part.

    Args:
        intent: Deployment intent

    Returns:
        0x-prefixed hex digest
    """
    document: Dict[str, Any] = {
        "contract": intent.contract_name,
        "args": canonicalize_arg(list(intent.constructor_args)),
        "network": intent.network.name,
    }
    if intent.salt is not None:
        document["salt"] = normalize_salt(intent.salt)

    encoded = json.dumps(document, sort_keys=True, separators=(",", ":"))
    return to_hex(keccak(text=encoded))


def _abi_type(param: Mapping[str, Any]) -> str:
    """Flatten an ABI parameter into an eth_abi type string (tuples expanded)."""
    param_type = param["type"]
    if param_type.startswith("tuple"):
        inner = ",".join(_abi_type(c) for c in param.get("components", []))
        return f"({inner}){param_type[len('tuple'):]}"
    return param_type


def _coerce(param: Mapping[str, Any], value: Any) -> Any:
    """Convert JSON-friendly values (hex strings, numeric strings) to eth_abi inputs."""
    param_type = param["type"]

    array_match = _ARRAY_RE.match(param_type)
    if array_match:
        element = dict(param, type=array_match.group(1))
        return [_coerce(element, v) for v in value]

    if param_type == "tuple":
        components = param.get("components", [])
        if isinstance(value, Mapping):
            value = [value[c["name"]] for c in components]
        return tuple(_coerce(c, v) for c, v in zip(components, value))

    if param_type.startswith("bytes") and isinstance(value, (str, bytes, bytearray)):
        raw = to_bytes(hexstr=value) if isinstance(value, str) else bytes(value)
        fixed = _FIXED_BYTES_RE.match(param_type)
        # eth_abi would right-pad a short value silently
        if fixed and len(raw) != int(fixed.group(1)):
            raise InvalidIntentError(
                f"{param.get('name') or param_type} must be {fixed.group(1)} bytes, got {len(raw)}"
            )
        return raw
    if param_type.startswith(("uint", "int")) and isinstance(value, str):
        return int(value, 0)
    if param_type == "address" and isinstance(value, str):
        return to_checksum_address(value)
    return value


def encode_constructor_args(abi: List[Dict[str, Any]], args: Sequence[Any]) -> bytes:
    """
    ABI-encode constructor arguments.

    Args:
        abi: Contract ABI
        args: Constructor arguments, in declaration order

    Returns:
        Encoded arguments (empty when the constructor takes none)

    Raises:
        InvalidIntentError: If the arguments do not match the constructor
    """
    constructor = next((item for item in abi if item.get("type") == "constructor"), None)
    inputs = constructor.get("inputs", []) if constructor else []

    if len(args) != len(inputs):
        raise InvalidIntentError(
            f"Constructor expects {len(inputs)} arguments, got {len(args)}"
        )
    if not inputs:
        return b""

    types = [_abi_type(p) for p in inputs]
    try:
        values = [_coerce(p, v) for p, v in zip(inputs, args)]
        return abi_encode(types, values)
    except InvalidIntentError:
        raise
    except (EncodingError, TypeError, ValueError) as e:
        raise InvalidIntentError(
            f"Cannot encode constructor arguments as ({','.join(types)}): {e}"
        ) from e


def build_init_code(bytecode: str, encoded_args: bytes) -> bytes:
    """Concatenate creation bytecode and encoded constructor arguments."""
    return to_bytes(hexstr=bytecode) + encoded_args


def derive_create_address(sender: str, nonce: int) -> str:
    """
    Derive the address of a contract created by a plain CREATE.

    address = keccak256(rlp([sender, nonce]))[12:]

    Args:
        sender: Deployer address
        nonce: Deployer's transaction count when the creation was sent

    Returns:
        Checksummed contract address
    """
    encoded = rlp.encode([to_bytes(hexstr=sender), nonce])
    return to_checksum_address(keccak(encoded)[12:])


def derive_create2_address(deployer: str, salt: Union[str, bytes], init_code: bytes) -> str:
    """
    Derive the address of a contract created by CREATE2 (EIP-1014).

    address = keccak256(0xff ++ deployer ++ salt ++ keccak256(init_code))[12:]

    Args:
        deployer: Address of the contract executing CREATE2
        salt: 32-byte salt
        init_code: Creation bytecode including constructor arguments

    Returns:
        Checksummed contract address
    """
    preimage = (
        b"\xff"
        + to_bytes(hexstr=deployer)
        + to_bytes(hexstr=normalize_salt(salt))
        + keccak(init_code)
    )
    return to_checksum_address(keccak(preimage)[12:])
