"""Durable deployment ledger for hermes-deployments library."""

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from filelock import FileLock, Timeout

from .exceptions import LedgerConflictError, LedgerCorruptedError, LedgerLockTimeoutError
from .paths import get_ledger_path
from .types import DeploymentRecord, DeploymentStatus, VerificationStatus

logger = logging.getLogger(__name__)

# Thread locks are shared by every ledger instance pointing at the same file;
# file locks next to the ledger extend them to other processes
_registry_lock = threading.Lock()
_file_locks: Dict[Path, threading.RLock] = {}
_key_locks: Dict[Tuple[Path, str, str], threading.Lock] = {}


def _file_lock(path: Path) -> threading.RLock:
    with _registry_lock:
        return _file_locks.setdefault(path, threading.RLock())


def _key_lock(path: Path, network: str, intent_key: str) -> threading.Lock:
    with _registry_lock:
        return _key_locks.setdefault((path, network, intent_key), threading.Lock())


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _check_transition(existing: DeploymentRecord, new: DeploymentRecord) -> None:
    """
    Reject writes that would overwrite a settled outcome.

    Raises:
        LedgerConflictError: If the write is not allowed
    """
    where = f"intent {existing.intent_key} on {existing.network}"

    match existing.status:
        case DeploymentStatus.CONFIRMED:
            if new.status is not DeploymentStatus.CONFIRMED or new.address != existing.address:
                raise LedgerConflictError(
                    f"{where} is already confirmed at {existing.address}; refusing to "
                    f"record {new.status.value} deployment at {new.address}"
                )
        case DeploymentStatus.PENDING:
            if new.transaction_hash != existing.transaction_hash:
                raise LedgerConflictError(
                    f"{where} has unresolved pending transaction "
                    f"{existing.transaction_hash}; refusing to record "
                    f"transaction {new.transaction_hash}"
                )
        case DeploymentStatus.FAILED:
            # A new attempt may replace a failed one, but a mined failure stays failed
            if (
                existing.block_number is not None
                and new.transaction_hash == existing.transaction_hash
                and new.status is not DeploymentStatus.FAILED
            ):
                raise LedgerConflictError(
                    f"{where}: transaction {existing.transaction_hash} already failed"
                )


class DeploymentLedger:
    """
    Maps (network, intent key) to the outcome of the latest deployment attempt.

    Backed by a JSON file that is re-read on every access and replaced
    atomically on every write, so a confirmed record is visible to every
    reader (and every process) as soon as put() returns.
    """

    def __init__(self, ledger_path: Optional[Union[Path, str]] = None):
        """
        Initialize the ledger.

        Args:
            ledger_path: Path to ledger.json
                         If None, uses ./.hermes-deployments/ledger.json
        """
        if ledger_path is None:
            ledger_path = get_ledger_path()
        self.path = Path(ledger_path).absolute()
        self._write_lock = FileLock(str(self.path.with_name(self.path.name + ".lock")))

    def _load(self) -> Dict[str, Any]:
        try:
            with open(self.path) as f:
                data = json.load(f)
        except FileNotFoundError:
            return {"metadata": {}, "networks": {}}
        except json.JSONDecodeError as e:
            # Never treat a damaged ledger as empty: that would redeploy everything
            raise LedgerCorruptedError(f"Ledger file {self.path} is corrupted: {e}") from e

        data.setdefault("metadata", {})
        data.setdefault("networks", {})
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        data["metadata"]["updated_at"] = _now()

        # Write next to the target and swap in, so readers never see a partial file
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @contextmanager
    def _writing(self) -> Iterator[None]:
        """Serialize read-check-write cycles across threads and processes."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with _file_lock(self.path), self._write_lock:
            yield

    @contextmanager
    def lock(self, network: str, intent_key: str, timeout: float = -1) -> Iterator[None]:
        """
        Serialize deployments of one intent.

        Holding this lock from the idempotency check until the outcome is
        recorded guarantees that two callers cannot both broadcast, whether
        they run in this process or another one.

        Args:
            network: Network name
            intent_key: Intent key
            timeout: Seconds to wait for another holder; negative waits forever

        Raises:
            LedgerLockTimeoutError: If another holder keeps the lock past timeout
        """
        lock_dir = self.path.parent / f"{self.path.name}.locks"
        lock_dir.mkdir(parents=True, exist_ok=True)
        process_lock = FileLock(str(lock_dir / f"{network}.{intent_key}.lock"))

        thread_lock = _key_lock(self.path, network, intent_key)
        busy = f"Intent {intent_key} on {network} is being deployed by another caller"

        if not thread_lock.acquire(timeout=timeout):
            raise LedgerLockTimeoutError(busy)
        try:
            try:
                process_lock.acquire(timeout=timeout)
            except Timeout as e:
                raise LedgerLockTimeoutError(busy) from e
            try:
                yield
            finally:
                process_lock.release()
        finally:
            thread_lock.release()

    def get(self, network: str, intent_key: str) -> Optional[DeploymentRecord]:
        """
        Get the record of an intent.

        Args:
            network: Network name
            intent_key: Intent key

        Returns:
            DeploymentRecord, or None if the intent was never attempted
        """
        with _file_lock(self.path):
            entry = self._load()["networks"].get(network, {}).get(intent_key)
        return DeploymentRecord.from_dict(entry) if entry is not None else None

    def records(self, network: str) -> List[DeploymentRecord]:
        """Get every record of a network."""
        with _file_lock(self.path):
            entries = self._load()["networks"].get(network, {})
        return [DeploymentRecord.from_dict(entry) for entry in entries.values()]

    def put(self, record: DeploymentRecord) -> DeploymentRecord:
        """
        Store a record, replacing the previous one for its intent.

        Args:
            record: Record to store

        Returns:
            The stored record (with updated_at set)

        Raises:
            LedgerConflictError: If the write would overwrite a confirmed
                                 deployment or revert a settled state
        """
        with self._writing():
            data = self._load()
            network_records = data["networks"].setdefault(record.network, {})

            entry = network_records.get(record.intent_key)
            if entry is not None:
                _check_transition(DeploymentRecord.from_dict(entry), record)

            stored = replace(record, updated_at=_now())
            network_records[record.intent_key] = stored.to_dict()
            self._save(data)

        logger.debug(
            "Ledger: %s %s -> %s", record.network, record.intent_key, record.status.value
        )
        return stored

    def record_verification(
        self, network: str, intent_key: str, status: VerificationStatus
    ) -> DeploymentRecord:
        """
        Store the verification outcome of a confirmed deployment.

        Raises:
            KeyError: If the intent has no record
        """
        with self._writing():
            record = self.get(network, intent_key)
            if record is None:
                raise KeyError(f"No ledger record for intent {intent_key} on {network}")
            return self.put(replace(record, verification_status=status))
