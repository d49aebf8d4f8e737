"""Remote command execution over SSH."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import asyncssh

from .errors import AuthError, TransportError
from .inventory import HostRecord


@dataclass(frozen=True)
class RemoteResult:
    """Combined output and exit status of a remote command."""

    output: bytes
    exit_status: int


class Connector(Protocol):
    """Opens an authenticated session and runs one command.

    Implementations raise AuthError when the credential is rejected or
    unusable and TransportError for any other failure to get a session.
    A command that runs and exits non-zero is a normal RemoteResult.
    """

    async def run(
        self, host: HostRecord, credential: Path, command: str, timeout: float
    ) -> RemoteResult: ...


class SSHConnector:
    """Connector backed by asyncssh, public-key auth only."""

    async def run(
        self, host: HostRecord, credential: Path, command: str, timeout: float
    ) -> RemoteResult:
        try:
            key = asyncssh.read_private_key(str(credential))
        except (asyncssh.KeyImportError, asyncssh.KeyEncryptionError, OSError) as e:
            raise AuthError(f"cannot load key {credential}: {e}") from e

        try:
            async with asyncssh.connect(
                host.host,
                port=host.port,
                username=host.user,
                client_keys=[key],
                agent_path=None,
                preferred_auth="publickey",
                known_hosts=None,  # Host keys are not verified
                connect_timeout=timeout,
            ) as conn:
                result = await conn.run(
                    command, check=False, stderr=asyncssh.STDOUT, encoding=None
                )
        except asyncssh.PermissionDenied as e:
            raise AuthError(f"{host.label}: authentication failed: {e.reason}") from e
        except asyncssh.Error as e:
            raise TransportError(f"{host.label}: SSH error: {e}") from e
        except (OSError, asyncio.TimeoutError) as e:
            raise TransportError(f"{host.label}: connection error: {e}") from e

        output = result.stdout or b""
        if isinstance(output, str):
            output = output.encode()
        exit_status = result.returncode if result.returncode is not None else 0
        return RemoteResult(output=output, exit_status=exit_status)
