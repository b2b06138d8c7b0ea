"""Network profile registry for hermes-deployments library."""

import json
import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from dotenv import load_dotenv

from .constants import DEFAULT_API_KEY_ENV, NETWORK_CONFIG
from .exceptions import UnknownNetworkError
from .types import NetworkProfile

logger = logging.getLogger(__name__)

_registry: Optional["NetworkRegistry"] = None


def _profile_from_config(
    name: str, config: Mapping[str, Any], environ: Mapping[str, str]
) -> NetworkProfile:
    """
    Build a profile from one NETWORK_CONFIG-shaped entry.

    Environment variables win over the configured values:
    - config["rpc_env"] overrides the RPC URL
    - config["api_key_env"], then $ETHERSCAN_API_KEY, supply the explorer key
    """
    rpc_url = config.get("rpc_url", "")
    rpc_env = config.get("rpc_env")
    if rpc_env and environ.get(rpc_env):
        rpc_url = environ[rpc_env]

    api_key = config.get("explorer_api_key", "")
    api_key_env = config.get("api_key_env")
    if api_key_env and environ.get(api_key_env):
        api_key = environ[api_key_env]
    elif not api_key and config.get("explorer_api_url"):
        api_key = environ.get(DEFAULT_API_KEY_ENV, "")

    return NetworkProfile(
        name=name,
        rpc_url=rpc_url,
        chain_id=int(config["chain_id"]),
        explorer_api_url=config.get("explorer_api_url", ""),
        explorer_api_key=api_key,
        browser_url=config.get("browser_url", ""),
    )


class NetworkRegistry:
    """Read-only lookup of network profiles by name."""

    def __init__(self, profiles: Iterable[NetworkProfile]):
        by_name: Dict[str, NetworkProfile] = {}
        for profile in profiles:
            if profile.name in by_name:
                raise ValueError(f"Duplicate network profile '{profile.name}'")
            by_name[profile.name] = profile
        self._profiles = MappingProxyType(by_name)

    @classmethod
    def from_config(
        cls,
        config: Optional[Mapping[str, Mapping[str, Any]]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "NetworkRegistry":
        """
        Build a registry from a NETWORK_CONFIG-shaped mapping.

        Args:
            config: Mapping of network name -> settings (defaults to NETWORK_CONFIG)
            environ: Environment used for overrides (defaults to os.environ)

        Returns:
            NetworkRegistry with one profile per configured network
        """
        if config is None:
            config = NETWORK_CONFIG
        if environ is None:
            environ = os.environ

        return cls(
            _profile_from_config(name, network_config, environ)
            for name, network_config in config.items()
        )

    @classmethod
    def from_file(
        cls, path: Union[Path, str], environ: Optional[Mapping[str, str]] = None
    ) -> "NetworkRegistry":
        """
        Build a registry from a JSON file with the same shape as NETWORK_CONFIG.

        Args:
            path: Path to the JSON file
            environ: Environment used for overrides (defaults to os.environ)

        Returns:
            NetworkRegistry with one profile per network in the file
        """
        with open(path) as f:
            config = json.load(f)
        return cls.from_config(config, environ)

    def resolve(self, name: str) -> NetworkProfile:
        """
        Get the profile of a network.

        Args:
            name: Network name (e.g., "opSepolia")

        Returns:
            NetworkProfile for the network

        Raises:
            UnknownNetworkError: If the network is not configured
        """
        try:
            return self._profiles[name]
        except KeyError:
            raise UnknownNetworkError(
                f"Network '{name}' is not configured "
                f"(known networks: {', '.join(sorted(self._profiles)) or 'none'})"
            ) from None

    def has_network(self, name: str) -> bool:
        return name in self._profiles

    def names(self) -> List[str]:
        return sorted(self._profiles)


def get_registry() -> NetworkRegistry:
    """
    Get the process-wide registry, building it on first use.

    Loads a .env file from the working directory (if any) before reading
    environment overrides. The registry is never rebuilt afterwards.

    Returns:
        The shared NetworkRegistry
    """
    global _registry
    if _registry is None:
        load_dotenv()
        _registry = NetworkRegistry.from_config()
        logger.debug("Loaded network registry: %s", ", ".join(_registry.names()))
    return _registry
