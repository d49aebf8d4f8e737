"""Credential catalog discovery."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .errors import CredentialStoreError

logger = logging.getLogger(__name__)


def list_credentials(store: str | Path) -> list[str]:
    """List credential file names in ``store``.

    Names are returned in filesystem enumeration order, not sorted; every host
    tries them in this same order. Subdirectories are skipped. An unreadable
    store yields an empty catalog and a warning, so each host task will fail
    instead of the whole run aborting.
    """
    try:
        return _scan(Path(store))
    except CredentialStoreError as e:
        logger.warning("%s", e)
        return []


def _scan(store: Path) -> list[str]:
    try:
        with os.scandir(store) as entries:
            names = [entry.name for entry in entries if not entry.is_dir()]
    except OSError as e:
        raise CredentialStoreError(f"Cannot read credential store {store}: {e}") from e

    logger.debug("Found %d credentials in %s", len(names), store)
    return names
