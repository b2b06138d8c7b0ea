"""Compiler artifact parsers for hermes-deployments library."""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .exceptions import ArtifactError, ArtifactNotFoundError
from .paths import get_default_artifacts_dir
from .types import ContractArtifact, SourceBundle

# Placeholder solc leaves in bytecode for libraries that still need linking
_LIBRARY_PLACEHOLDER = "__$"


def parse_hardhat_artifact(file_path: Path) -> ContractArtifact:
    """
    Parse a Hardhat contract artifact JSON file.

    Args:
        file_path: Path to artifacts/<source>/<Contract>.json

    Returns:
        ContractArtifact with name, source name, ABI and creation bytecode

    Raises:
        ArtifactError: If bytecode is empty (abstract contract or interface)
                       or still contains unlinked library placeholders
    """
    with open(file_path) as f:
        data = json.load(f)

    bytecode = data.get("bytecode", "")
    if not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode

    if bytecode == "0x":
        raise ArtifactError(
            f"Artifact {file_path} has no bytecode; abstract contracts and "
            "interfaces cannot be deployed"
        )
    if _LIBRARY_PLACEHOLDER in bytecode:
        raise ArtifactError(f"Artifact {file_path} has unlinked library references")

    return ContractArtifact(
        contract_name=data["contractName"],
        source_name=data["sourceName"],
        abi=data["abi"],
        bytecode=bytecode,
    )


def parse_build_info(
    file_path: Path, source_name: str, contract_name: str, abi: Optional[list] = None
) -> SourceBundle:
    """
    Parse a Hardhat build-info file into a verification bundle.

    Args:
        file_path: Path to artifacts/build-info/<hash>.json
        source_name: Source unit of the contract (e.g., "contracts/Foo.sol")
        contract_name: Contract name inside the source unit
        abi: Contract ABI (read from the build output when omitted)

    Returns:
        SourceBundle with solc standard-JSON input and Etherscan compiler version

    Raises:
        ArtifactError: If the build info does not contain the source unit
    """
    with open(file_path) as f:
        data = json.load(f)

    standard_input: Dict[str, Any] = data["input"]
    if source_name not in standard_input.get("sources", {}):
        raise ArtifactError(f"Build info {file_path} does not compile {source_name}")

    if abi is None:
        contracts = data.get("output", {}).get("contracts", {})
        try:
            abi = contracts[source_name][contract_name]["abi"]
        except KeyError:
            raise ArtifactError(
                f"Build info {file_path} has no output for {source_name}:{contract_name}"
            ) from None

    # Etherscan expects the long form, e.g. v0.8.24+commit.e11b9ed9
    long_version = data.get("solcLongVersion") or data["solcVersion"]

    return SourceBundle(
        contract_name=contract_name,
        source_name=source_name,
        compiler_version=f"v{long_version}",
        standard_input=standard_input,
        abi=abi,
    )


class HardhatArtifacts:
    """Locates and parses Hardhat compilation output for contracts by name."""

    def __init__(self, artifacts_dir: Optional[Union[Path, str]] = None):
        """
        Initialize the artifact store.

        Args:
            artifacts_dir: Hardhat artifacts directory (defaults to ./artifacts)
        """
        if artifacts_dir is None:
            artifacts_dir = get_default_artifacts_dir()
        self._root = Path(artifacts_dir)

    def artifact_path(self, contract_name: str) -> Path:
        """
        Find the artifact file of a contract.

        Args:
            contract_name: Contract name (e.g., "HermesProxyFactory")

        Returns:
            Path to the contract's artifact JSON

        Raises:
            ArtifactNotFoundError: If no artifact exists, or the name is ambiguous
        """
        # build-info and .dbg.json files never match <Name>.json inside <Source>.sol/
        matches = [
            path
            for path in self._root.glob(f"**/{contract_name}.json")
            if path.parent.name.endswith(".sol")
        ]

        if not matches:
            raise ArtifactNotFoundError(
                f"No artifact for contract '{contract_name}' under {self._root}. "
                "Compile the contracts first (npx hardhat compile)."
            )
        if len(matches) > 1:
            sources = ", ".join(sorted(str(p.relative_to(self._root)) for p in matches))
            raise ArtifactNotFoundError(
                f"Contract name '{contract_name}' is ambiguous: {sources}"
            )
        return matches[0]

    def load(self, contract_name: str) -> ContractArtifact:
        """Load the deployable artifact of a contract."""
        return parse_hardhat_artifact(self.artifact_path(contract_name))

    def source_bundle(self, contract_name: str) -> SourceBundle:
        """
        Load the verification bundle of a contract.

        Follows the buildInfo pointer in <Contract>.dbg.json.

        Raises:
            ArtifactNotFoundError: If the debug file or build info is missing
        """
        artifact_path = self.artifact_path(contract_name)
        artifact = parse_hardhat_artifact(artifact_path)

        dbg_path = artifact_path.with_name(f"{contract_name}.dbg.json")
        if not dbg_path.exists():
            raise ArtifactNotFoundError(f"Debug file not found at {dbg_path}")

        with open(dbg_path) as f:
            build_info_ref = json.load(f)["buildInfo"]

        build_info_path = (dbg_path.parent / build_info_ref).resolve()
        if not build_info_path.exists():
            raise ArtifactNotFoundError(f"Build info not found at {build_info_path}")

        return parse_build_info(
            build_info_path, artifact.source_name, artifact.contract_name, artifact.abi
        )
