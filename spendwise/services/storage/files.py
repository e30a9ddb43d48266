"""
File Storage Implementation

Each blob is one UTF-8 text file named after its key inside a data directory.

TRADEOFFS:
- One writer per directory (single actor, no locking)
- Writes are atomic per blob (temp file + rename) but the four blobs are
  not written as one transaction
- Reads happen once per session, so no caching layer
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from spendwise.services.storage.interface import (
    BlobStorageInterface,
    StorageError,
    StorageWriteError,
)


_SAFE_KEY = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_SUFFIX = ".blob"


class FileBlobStorage(BlobStorageInterface):
    """
    Directory-backed blob storage.

    The directory is created on first write.
    """

    def __init__(self, directory: Path):
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise StorageError(f"Invalid blob key: {key!r}")
        return self._directory / f"{key}{_SUFFIX}"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read '{key}': {e}") from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, max=1),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    def _write_atomic(self, path: Path, value: str) -> None:
        """Write to a temp file in the same directory, then rename over the target."""
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{path.name}.",
                delete=False,
            ) as handle:
                temp_name = handle.name
                handle.write(value)
            os.replace(temp_name, path)
        except (OSError, UnicodeEncodeError):
            if temp_name is not None:
                Path(temp_name).unlink(missing_ok=True)
            raise

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self._write_atomic(path, value)
        except (OSError, UnicodeEncodeError) as e:
            raise StorageWriteError(f"Failed to write '{key}': {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageWriteError(f"Failed to delete '{key}': {e}") from e

    def keys(self) -> list[str]:
        if not self._directory.is_dir():
            return []
        return sorted(p.name[: -len(_SUFFIX)] for p in self._directory.glob(f"*{_SUFFIX}"))
