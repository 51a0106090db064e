"""File-backed key-value persistence."""

import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

from nutriscan.services.queue import Persistence

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


@dataclass
class FilePersistence(Persistence):
    """Stores each key as a file, replaced atomically on save."""

    directory: Path

    @classmethod
    def create(cls, directory: str | Path) -> "FilePersistence":
        """Create the storage directory if needed and return the store."""
        path = Path(directory)
        path.mkdir(parents=True, exist_ok=True)
        return cls(directory=path)

    def load(self, key: str) -> bytes | None:
        """Return the file contents for a key, or None when missing."""
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError:
            return None

    def save(self, key: str, data: bytes) -> None:
        """Write to a temp file, fsync it and rename it over the old file."""
        target = self._path(key)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.directory, prefix=f".{key}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid persistence key: {key!r}")
        return self.directory / f"{key}.json"
