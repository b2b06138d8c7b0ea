"""Path management utilities for hermes-deployments library."""

from pathlib import Path
from typing import Optional, Union


def get_default_ledger_dir() -> Path:
    """
    Get default ledger directory (current working directory).

    Returns:
        Path to ./.hermes-deployments
    """
    return Path.cwd() / ".hermes-deployments"


def get_ledger_path(ledger_root: Optional[Union[Path, str]] = None) -> Path:
    """
    Get ledger file path.

    Args:
        ledger_root: Custom ledger directory (defaults to ./.hermes-deployments)

    Returns:
        Path to ledger.json inside the ledger directory
    """
    if ledger_root is None:
        ledger_root = get_default_ledger_dir()
    else:
        ledger_root = Path(ledger_root).absolute()

    return ledger_root / "ledger.json"


def get_default_artifacts_dir() -> Path:
    """
    Get default Hardhat artifacts directory.

    Returns:
        Path to ./artifacts
    """
    return Path.cwd() / "artifacts"
