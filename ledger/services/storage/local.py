"""
Local Storage Implementations

- InMemoryLedgerStore: keeps the blob in the process (tests, throwaway sessions)
- JsonFileLedgerStore: one UTF-8 JSON file on disk

The JSON file is replaced atomically: the new document is written next to
it and renamed over it, so a crash mid-write leaves the previous version.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledger.services.storage.interface import LedgerStoreInterface, StorageError


class InMemoryLedgerStore(LedgerStoreInterface):
    """Keeps the serialized document in memory."""

    def __init__(self, blob: Optional[str] = None):
        self._blob = blob
        self.write_count = 0

    def read_blob(self) -> Optional[str]:
        return self._blob

    def write_blob(self, blob: str) -> None:
        self._blob = blob
        self.write_count += 1


class JsonFileLedgerStore(LedgerStoreInterface):
    """
    Stores the document as a JSON file.

    Parent directories are created on first write.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read_blob(self) -> Optional[bytes]:
        if not self._path.exists():
            return None
        try:
            return self._path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read ledger file {self._path}: {e}") from e

    def write_blob(self, blob: str) -> None:
        try:
            self._write_atomically(blob)
        except OSError as e:
            raise StorageError(f"Failed to write ledger file {self._path}: {e}") from e

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _write_atomically(self, blob: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(blob)
            os.replace(tmp_name, self._path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
