"""Unit tests for path helper functions."""

from pathlib import Path

import pytest

from hermes_deployments.paths import (
    get_default_artifacts_dir,
    get_default_ledger_dir,
    get_ledger_path,
)


class TestGetDefaultLedgerDir:
    """Test the get_default_ledger_dir function."""

    def test_returns_path_in_working_directory(self, tmp_path: Path, monkeypatch):
        """Test that default ledger dir is in the current working directory."""
        monkeypatch.chdir(tmp_path)
        ledger_dir = get_default_ledger_dir()

        assert isinstance(ledger_dir, Path)
        assert ledger_dir.name == ".hermes-deployments"
        assert ledger_dir.parent == tmp_path

    def test_returns_absolute_path(self):
        """Test that returned path is absolute."""
        assert get_default_ledger_dir().is_absolute()

    def test_consistent_across_calls(self):
        """Test that multiple calls return the same path."""
        assert get_default_ledger_dir() == get_default_ledger_dir()


class TestGetLedgerPath:
    """Test the get_ledger_path function."""

    def test_default_path(self, tmp_path: Path, monkeypatch):
        """Test that the default ledger is ./.hermes-deployments/ledger.json."""
        monkeypatch.chdir(tmp_path)

        assert get_ledger_path() == tmp_path / ".hermes-deployments" / "ledger.json"

    def test_custom_ledger_root(self, tmp_path: Path):
        """Test that a custom ledger directory is honored."""
        custom_dir = tmp_path / "custom_ledger"

        assert get_ledger_path(custom_dir) == custom_dir / "ledger.json"

    def test_custom_root_as_string(self, tmp_path: Path):
        """Test that a string ledger root is accepted."""
        ledger_path = get_ledger_path(str(tmp_path))

        assert isinstance(ledger_path, Path)
        assert ledger_path == tmp_path / "ledger.json"

    def test_relative_root_made_absolute(self, tmp_path: Path, monkeypatch):
        """Test that a relative ledger root resolves against the working directory."""
        monkeypatch.chdir(tmp_path)
        ledger_path = get_ledger_path("state")

        assert ledger_path.is_absolute()
        assert ledger_path == tmp_path / "state" / "ledger.json"

    def test_does_not_create_directories(self, tmp_path: Path):
        """Test that the function only computes paths."""
        custom_dir = tmp_path / "not_created"
        get_ledger_path(custom_dir)

        assert not custom_dir.exists()


class TestGetDefaultArtifactsDir:
    """Test the get_default_artifacts_dir function."""

    @pytest.mark.parametrize("subdir", ["project", "nested/project"])
    def test_artifacts_under_working_directory(self, tmp_path: Path, monkeypatch, subdir):
        """Test that artifacts are looked up in ./artifacts."""
        workdir = tmp_path / subdir
        workdir.mkdir(parents=True)
        monkeypatch.chdir(workdir)

        assert get_default_artifacts_dir() == workdir / "artifacts"
