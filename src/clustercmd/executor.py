"""Per-host execution engine for clustercmd."""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Sequence, Union

from .config import Settings
from .errors import AttemptError, PersistenceError, RemoteExitError, TransportError
from .inventory import HostRecord
from .signals import CancellationController
from .ssh import Connector, SSHConnector
from .store import AuditLog, InventoryStore

logger = logging.getLogger(__name__)


class HostStatus(Enum):
    """Status of a host's execution."""

    PENDING = "pending"
    CONNECTING = "connecting"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Success:
    """A session was established and the command ran."""

    host: HostRecord
    credential: str
    output: bytes
    exit_status: int = 0

    @property
    def remote_error(self) -> RemoteExitError | None:
        if self.exit_status == 0:
            return None
        return RemoteExitError(self.host.label, self.exit_status)


@dataclass(frozen=True)
class Failure:
    """Every credential was tried and none produced a session."""

    host: HostRecord
    error: Exception


Outcome = Union[Success, Failure]


@dataclass
class HostState:
    """Runtime state for a host."""

    host: HostRecord
    status: HostStatus = HostStatus.PENDING
    attempt: int = 0
    credential: str = ""
    error_message: str = ""
    log_file: Path | None = None


# Type alias for output callback
OutputCallback = Callable[[int, str], None]  # (host_index, line) -> None
StatusCallback = Callable[[int, HostStatus], None]  # (host_index, status) -> None


class Executor:
    """Runs one command on every host of a cluster, one task per host."""

    def __init__(
        self,
        settings: Settings,
        hosts: Sequence[HostRecord],
        credentials: Sequence[str],
        command: str,
        store: InventoryStore,
        audit: AuditLog,
        controller: CancellationController,
        connector: Connector | None = None,
        on_output: OutputCallback | None = None,
        on_status: StatusCallback | None = None,
        enable_logging: bool = True,
    ):
        self.settings = settings
        self.hosts = list(hosts)
        self.credentials = list(credentials)
        self.command = command
        self.store = store
        self.audit = audit
        self.controller = controller
        self.connector = connector or SSHConnector()
        self.on_output = on_output
        self.on_status = on_status
        self.enable_logging = enable_logging and not settings.no_logs
        self.states: list[HostState] = []
        self._tasks: list[asyncio.Task] = []
        self._closer: asyncio.Task | None = None
        self._log_dir: Path | None = None

    def _setup_logging(self) -> None:
        """Set up log directory with timestamp."""
        if not self.enable_logging or not self.hosts:
            return
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self._log_dir = self.settings.log_dir / timestamp
        self._log_dir.mkdir(parents=True, exist_ok=True)

        # Copy the settings file to the log directory
        if self.settings.source_path and self.settings.source_path.exists():
            shutil.copy(self.settings.source_path, self._log_dir / "clustercmd.yaml")

    def _log_name(self, index: int, host: HostRecord) -> str:
        # The index keeps duplicate inventory lines in separate files
        name = f"{index:02d}_{host.user}@{host.host}_{host.port}"
        return name.replace(":", "_").replace("/", "_") + ".log"

    def _emit_output(self, index: int, line: str) -> None:
        """Emit a trace line for a host."""
        state = self.states[index]
        if state.log_file:
            with open(state.log_file, "a", encoding="utf-8") as f:
                f.write(line + "\n")

        if self.on_output:
            self.on_output(index, line)

    def _emit_status(self, index: int, status: HostStatus) -> None:
        """Emit status change for a host."""
        self.states[index].status = status
        if self.on_status:
            self.on_status(index, status)

    def start(self) -> asyncio.Queue:
        """Spawn one task per host and return the outcome queue.

        The queue receives one Success or Failure per finished host and a
        final ``None`` once every task has returned.
        """
        self._setup_logging()

        self.states = []
        for index, host in enumerate(self.hosts):
            log_file = None
            if self._log_dir:
                log_file = self._log_dir / self._log_name(index, host)
            self.states.append(HostState(host=host, log_file=log_file))

        queue: asyncio.Queue = asyncio.Queue()
        self._tasks = [
            asyncio.create_task(self._run_host(i, queue)) for i in range(len(self.hosts))
        ]
        self._closer = asyncio.create_task(self._close(queue))
        return queue

    async def _close(self, queue: asyncio.Queue) -> None:
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for index, result in enumerate(results):
            if isinstance(result, Exception):
                host = self.hosts[index]
                logger.error("Task for %s crashed: %r", host.label, result)
                self._emit_status(index, HostStatus.FAILED)
                await queue.put(Failure(host, result))
        await queue.put(None)

    async def wait(self) -> None:
        """Wait for every host task to return."""
        if self._closer:
            await self._closer

    async def _run_host(self, index: int, queue: asyncio.Queue) -> None:
        outcome = await self.run_host(index)
        if outcome is not None:
            await queue.put(outcome)

    async def run_host(self, index: int) -> Outcome | None:
        """Try each credential on one host until a session succeeds.

        Returns None if cancellation stopped the task before it finished.
        """
        state = self.states[index]
        host = state.host
        last_error: Exception = TransportError(f"{host.label}: no credentials available")

        for attempt, credential in enumerate(self.credentials):
            if self.controller.cancelled:
                self._emit_output(index, "Cancelled")
                self._emit_status(index, HostStatus.CANCELLED)
                return None

            state.attempt = attempt
            state.credential = credential
            self._emit_status(index, HostStatus.CONNECTING)
            self._emit_output(index, f"Connecting to {host.label} with {credential}...")

            try:
                result = await asyncio.wait_for(
                    self.connector.run(
                        host,
                        self.settings.certs_dir / credential,
                        self.command,
                        self.settings.timeout,
                    ),
                    timeout=self.settings.timeout,
                )
            except AttemptError as e:
                last_error = e
                self._emit_output(index, f"ERROR: {e}")
                continue
            except asyncio.TimeoutError:
                last_error = TransportError(
                    f"{host.label}: timed out after {self.settings.timeout:g}s"
                )
                self._emit_output(index, f"ERROR: {last_error}")
                continue

            self._emit_output(index, f"Command exited with status {result.exit_status}")
            await self._record_success(host, credential, result.output)
            self._emit_status(index, HostStatus.SUCCESS)
            return Success(host, credential, result.output, result.exit_status)

        state.error_message = str(last_error)
        self._emit_status(index, HostStatus.FAILED)
        return Failure(host, last_error)

    async def _record_success(self, host: HostRecord, credential: str, output: bytes) -> None:
        """Retire the host from the inventory and append the audit line."""
        try:
            await self.store.retire(host)
        except PersistenceError as e:
            logger.error("%s: %s", host.label, e)

        try:
            self.audit.append(host, credential, output)
        except OSError as e:
            logger.error("%s: cannot append to audit log %s: %s", host.label, self.audit.path, e)
