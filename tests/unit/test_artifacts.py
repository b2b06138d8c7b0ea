"""Unit tests for Hardhat artifact parsing."""

import json
from pathlib import Path

import pytest

from hermes_deployments.artifacts import HardhatArtifacts, parse_hardhat_artifact
from hermes_deployments.exceptions import ArtifactError, ArtifactNotFoundError


def write_artifact(root: Path, source: str, name: str, bytecode: str) -> Path:
    path = root / "contracts" / source / f"{name}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(
            {
                "contractName": name,
                "sourceName": f"contracts/{source}",
                "abi": [],
                "bytecode": bytecode,
            }
        )
    )
    return path


class TestParseHardhatArtifact:
    """Test the parse_hardhat_artifact function."""

    def test_parses_fixture(self, artifacts: HardhatArtifacts):
        """Test parsing the HermesProxyFactory artifact."""
        artifact = parse_hardhat_artifact(artifacts.artifact_path("HermesProxyFactory"))

        assert artifact.contract_name == "HermesProxyFactory"
        assert artifact.source_name == "contracts/HermesProxyFactory.sol"
        assert artifact.bytecode.startswith("0x6080")
        constructor = [item for item in artifact.abi if item["type"] == "constructor"]
        assert [i["type"] for i in constructor[0]["inputs"]] == [
            "address",
            "address",
            "address",
            "bytes32",
        ]

    def test_adds_hex_prefix(self, tmp_path: Path):
        """Test that bytecode without 0x gets the prefix."""
        path = write_artifact(tmp_path, "Plain.sol", "Plain", "6080")

        assert parse_hardhat_artifact(path).bytecode == "0x6080"

    def test_rejects_interfaces(self, tmp_path: Path):
        """Test that artifacts without bytecode cannot be deployed."""
        path = write_artifact(tmp_path, "IHermes.sol", "IHermes", "0x")

        with pytest.raises(ArtifactError, match="no bytecode"):
            parse_hardhat_artifact(path)

    def test_rejects_unlinked_libraries(self, tmp_path: Path):
        """Test that library placeholders are reported."""
        bytecode = "0x6080__$1234567890abcdef1234567890abcdef12$__6080"
        path = write_artifact(tmp_path, "Linked.sol", "Linked", bytecode)

        with pytest.raises(ArtifactError, match="unlinked"):
            parse_hardhat_artifact(path)


class TestHardhatArtifacts:
    """Test artifact lookup by contract name."""

    def test_load(self, artifacts: HardhatArtifacts):
        """Test loading an artifact by contract name."""
        assert artifacts.load("HermesProxyFactory").contract_name == "HermesProxyFactory"

    def test_missing_contract(self, artifacts: HardhatArtifacts):
        """Test that unknown contracts raise ArtifactNotFoundError."""
        with pytest.raises(ArtifactNotFoundError, match="npx hardhat compile"):
            artifacts.load("HermesRouter")

    def test_missing_artifacts_dir(self, tmp_path: Path):
        """Test that a missing artifacts directory is reported like a missing contract."""
        with pytest.raises(FileNotFoundError):
            HardhatArtifacts(tmp_path / "artifacts").load("HermesProxyFactory")

    def test_ambiguous_name(self, tmp_path: Path):
        """Test that a contract name defined in two sources is rejected."""
        write_artifact(tmp_path, "A.sol", "Token", "0x6080")
        write_artifact(tmp_path, "B.sol", "Token", "0x6080")

        with pytest.raises(ArtifactNotFoundError, match="ambiguous"):
            HardhatArtifacts(tmp_path).load("Token")

    def test_dbg_file_not_mistaken_for_artifact(self, artifacts: HardhatArtifacts):
        """Test that <Name>.dbg.json is skipped when locating artifacts."""
        path = artifacts.artifact_path("HermesProxyFactory")

        assert path.name == "HermesProxyFactory.json"


class TestSourceBundle:
    """Test verification bundles built from build-info files."""

    def test_source_bundle(self, artifacts: HardhatArtifacts):
        """Test following the dbg file to the build info."""
        bundle = artifacts.source_bundle("HermesProxyFactory")

        assert bundle.compiler_version == "v0.8.24+commit.e11b9ed9"
        assert bundle.fully_qualified_name == (
            "contracts/HermesProxyFactory.sol:HermesProxyFactory"
        )
        assert "contracts/HermesProxyFactory.sol" in bundle.standard_input["sources"]
        assert bundle.standard_input["settings"]["viaIR"] is True
        assert bundle.standard_input["settings"]["optimizer"]["runs"] == 800

    def test_bundle_abi_matches_artifact(self, artifacts: HardhatArtifacts):
        """Test that the bundle carries the artifact's ABI."""
        assert (
            artifacts.source_bundle("HermesProxyFactory").abi
            == artifacts.load("HermesProxyFactory").abi
        )

    def test_missing_dbg_file(self, tmp_path: Path):
        """Test that artifacts without debug file cannot be verified."""
        write_artifact(tmp_path, "Plain.sol", "Plain", "0x6080")

        with pytest.raises(ArtifactNotFoundError, match="Debug file"):
            HardhatArtifacts(tmp_path).source_bundle("Plain")

    def test_missing_build_info(self, tmp_path: Path):
        """Test that a dangling buildInfo reference is reported."""
        path = write_artifact(tmp_path, "Plain.sol", "Plain", "0x6080")
        path.with_name("Plain.dbg.json").write_text(
            json.dumps({"buildInfo": "../../build-info/missing.json"})
        )

        with pytest.raises(ArtifactNotFoundError, match="Build info"):
            HardhatArtifacts(tmp_path).source_bundle("Plain")

    def test_build_info_without_source(self, tmp_path: Path):
        """Test that a build info compiling other sources is rejected."""
        path = write_artifact(tmp_path, "Plain.sol", "Plain", "0x6080")
        build_info = tmp_path / "build-info" / "abc.json"
        build_info.parent.mkdir()
        build_info.write_text(
            json.dumps(
                {
                    "solcVersion": "0.8.24",
                    "input": {"sources": {"contracts/Other.sol": {"content": ""}}},
                }
            )
        )
        path.with_name("Plain.dbg.json").write_text(
            json.dumps({"buildInfo": "../../build-info/abc.json"})
        )

        with pytest.raises(ArtifactError, match="does not compile"):
            HardhatArtifacts(tmp_path).source_bundle("Plain")
