"""Persistent run state: the hosts inventory and the success audit log."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from .config import Defaults
from .errors import PersistenceError
from .inventory import HostRecord, strip_host

logger = logging.getLogger(__name__)


class InventoryStore:
    """Owns the raw inventory text and rewrites the file as hosts succeed.

    All retirements go through one lock, so concurrent host tasks never
    interleave their read-modify-write of the text or the file rewrite.
    """

    def __init__(self, path: str | Path, text: str, defaults: Defaults | None = None):
        self.path = Path(path)
        self.defaults = defaults or Defaults()
        self._text = text
        self._lock = asyncio.Lock()

    @classmethod
    def open(cls, path: str | Path, defaults: Defaults | None = None) -> InventoryStore:
        """Read the inventory file and take ownership of its content."""
        path = Path(path)
        return cls(path, path.read_text(), defaults)

    @property
    def text(self) -> str:
        return self._text

    async def retire(self, host: HostRecord) -> bool:
        """Remove ``host``'s line and rewrite the inventory file.

        Returns False when the line is no longer present. Raises
        PersistenceError if the file cannot be rewritten; the in-memory text
        keeps the removal so a later rewrite still drops the line.
        """
        async with self._lock:
            text, removed = strip_host(self._text, host, self.defaults)
            if not removed:
                logger.debug("%s not found in cluster %r", host.label, host.cluster)
                return False

            self._text = text
            try:
                await asyncio.to_thread(_atomic_write, self.path, text)
            except OSError as e:
                raise PersistenceError(f"Cannot rewrite {self.path}: {e}") from e

        logger.debug("Retired %s from cluster %r", host.label, host.cluster)
        return True


def _atomic_write(path: Path, text: str) -> None:
    """Write ``text`` to a temporary file beside ``path`` and move it into place."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class AuditLog:
    """Append-only record of successful host/credential runs."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def append(self, host: HostRecord, credential: str, output: bytes) -> None:
        """Append ``user@address credential output`` with newlines removed."""
        summary = output.decode(errors="replace").replace("\n", "")
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(f"{host.label} {credential} {summary}\n")
