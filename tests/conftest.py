"""Shared fixtures for clustercmd tests."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from clustercmd.config import Defaults, Settings
from clustercmd.errors import AuthError
from clustercmd.inventory import HostRecord
from clustercmd.ssh import RemoteResult


class FakeConnector:
    """Connector that accepts a fixed set of credential names.

    ``outputs`` maps a host label to the bytes its command prints;
    ``exit_status`` maps a host label to a non-zero exit status.
    """

    def __init__(
        self,
        accept: set[str] | None = None,
        outputs: dict[str, bytes] | None = None,
        exit_status: dict[str, int] | None = None,
        delay: float = 0.0,
        errors: dict[str, Exception] | None = None,
    ):
        self.accept = accept or set()
        self.outputs = outputs or {}
        self.exit_status = exit_status or {}
        self.delay = delay
        self.errors = errors or {}
        self.calls: list[tuple[str, str, str]] = []

    async def run(
        self, host: HostRecord, credential: Path, command: str, timeout: float
    ) -> RemoteResult:
        self.calls.append((host.label, credential.name, command))
        if self.delay:
            await asyncio.sleep(self.delay)
        if credential.name in self.errors:
            raise self.errors[credential.name]
        if credential.name not in self.accept:
            raise AuthError(f"{host.label}: authentication failed with {credential.name}")
        return RemoteResult(
            output=self.outputs.get(host.label, b"hi\n"),
            exit_status=self.exit_status.get(host.label, 0),
        )

    def attempts_for(self, label: str) -> list[str]:
        return [cred for host, cred, _ in self.calls if host == label]


@pytest.fixture
def defaults(tmp_path: Path) -> Defaults:
    """Defaults that do not depend on the environment."""
    return Defaults(user="deploy", ssh_key=tmp_path / "id_rsa")


@pytest.fixture
def settings(tmp_path: Path, defaults: Defaults) -> Settings:
    """Settings rooted in a temporary directory."""
    certs = tmp_path / "certs"
    certs.mkdir()
    return Settings(
        hosts_file=tmp_path / "hosts",
        certs_dir=certs,
        audit_log=tmp_path / "succ.txt",
        log_dir=tmp_path / "logs",
        no_logs=True,
        timeout=5.0,
        defaults=defaults,
    )


@pytest.fixture
def fake_connector_cls() -> type[FakeConnector]:
    """The FakeConnector class, for tests that build or subclass one."""
    return FakeConnector
