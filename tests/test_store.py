"""Tests for inventory persistence and the audit log."""

import asyncio
import io
from pathlib import Path
from unittest.mock import patch

import pytest

from clustercmd import store
from clustercmd.config import Defaults
from clustercmd.errors import PersistenceError
from clustercmd.inventory import parse_inventory
from clustercmd.store import AuditLog, InventoryStore


@pytest.mark.asyncio
async def test_retire_rewrites_file(tmp_path: Path, defaults: Defaults) -> None:
    path = tmp_path / "hosts"
    path.write_text("web:\nalice@10.0.0.1 ~/.ssh/k1\nbob@10.0.0.2\n")
    store = InventoryStore.open(path, defaults)
    host = parse_inventory(store.text, defaults).hosts("web")[0]

    assert await store.retire(host) is True

    assert path.read_text() == "web:\nbob@10.0.0.2\n"
    assert store.text == path.read_text()
    # No temporary files left beside the inventory
    assert sorted(p.name for p in tmp_path.iterdir()) == ["hosts"]


@pytest.mark.asyncio
async def test_retire_twice_is_noop(tmp_path: Path, defaults: Defaults) -> None:
    path = tmp_path / "hosts"
    path.write_text("web:\n10.0.0.1\n")
    store = InventoryStore.open(path, defaults)
    host = parse_inventory(store.text, defaults).hosts("web")[0]

    assert await store.retire(host) is True
    assert await store.retire(host) is False
    assert path.read_text() == "web:\n"


@pytest.mark.asyncio
async def test_concurrent_retirements(tmp_path: Path, defaults: Defaults) -> None:
    """K concurrent retirements leave exactly the non-retired hosts."""
    lines = [f"10.0.1.{i}" for i in range(20)]
    path = tmp_path / "hosts"
    path.write_text("web:\n" + "\n".join(lines) + "\ndb:\n10.0.2.1\n")
    store = InventoryStore.open(path, defaults)
    hosts = parse_inventory(store.text, defaults).hosts("web")
    retired = hosts[::2]

    results = await asyncio.gather(*(store.retire(h) for h in retired))

    assert all(results)
    remaining = parse_inventory(path.read_text(), defaults)
    assert remaining.hosts("web") == tuple(h for h in hosts if h not in retired)
    assert [h.host for h in remaining.hosts("db")] == ["10.0.2.1"]


@pytest.mark.asyncio
async def test_rewrite_failure_raises_persistence_error(tmp_path: Path, defaults: Defaults) -> None:
    path = tmp_path / "hosts"
    path.write_text("web:\n10.0.0.1\n10.0.0.2\n")
    store = InventoryStore.open(path, defaults)
    first, second = parse_inventory(store.text, defaults).hosts("web")

    with patch("clustercmd.store.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(PersistenceError, match="disk full"):
            await store.retire(first)

    # File untouched, temp file cleaned up
    assert path.read_text() == "web:\n10.0.0.1\n10.0.0.2\n"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["hosts"]

    # The next successful rewrite still drops the earlier host
    await store.retire(second)
    assert path.read_text() == "web:\n"


def test_audit_log_appends(tmp_path: Path, defaults: Defaults) -> None:
    host = parse_inventory("web:\nalice@10.0.0.1\n", defaults).hosts("web")[0]
    audit = AuditLog(tmp_path / "succ.txt")

    audit.append(host, "k1", b"hi\n")
    audit.append(host, "k2", b"line one\nline two\n")

    assert (tmp_path / "succ.txt").read_text() == (
        "alice@10.0.0.1:22 k1 hi\nalice@10.0.0.1:22 k2 line oneline two\n"
    )


def test_audit_log_is_utf8_under_ascii_locale(
    tmp_path: Path, defaults: Defaults, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Non-ASCII output is written as UTF-8 whatever the locale encoding is."""

    def ascii_locale_open(file, mode="r", *args, encoding=None, **kwargs):
        return io.open(file, mode, *args, encoding=encoding or "ascii", **kwargs)

    monkeypatch.setattr(store, "open", ascii_locale_open, raising=False)
    host = parse_inventory("web:\nalice@10.0.0.1\n", defaults).hosts("web")[0]
    audit = AuditLog(tmp_path / "succ.txt")

    audit.append(host, "k1", b"caf\xc3\xa9 \xff\n")

    assert (tmp_path / "succ.txt").read_text(encoding="utf-8") == (
        "alice@10.0.0.1:22 k1 café �\n"
    )
