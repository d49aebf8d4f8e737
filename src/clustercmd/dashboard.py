"""TUI Dashboard for clustercmd."""

from __future__ import annotations

import asyncio
import signal
from typing import Sequence

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.message import Message
from textual.reactive import reactive
from textual.widgets import Footer, Header, Label, RichLog, Static
from textual.worker import Worker, WorkerState

from .aggregator import EXIT_FAILURE, EXIT_OK
from .config import Settings
from .executor import Executor, Failure, HostStatus, Outcome, Success
from .inventory import HostRecord
from .signals import CancellationController
from .ssh import Connector
from .store import AuditLog, InventoryStore

STATUS_ICONS = {
    HostStatus.PENDING: ("○", "dim"),
    HostStatus.CONNECTING: ("◐", "yellow"),
    HostStatus.SUCCESS: ("●", "green"),
    HostStatus.FAILED: ("✗", "red"),
    HostStatus.CANCELLED: ("◌", "dim"),
}


class HostPanel(Static):
    """A panel displaying attempts and output for a single host."""

    status: reactive[HostStatus] = reactive(HostStatus.PENDING)

    def __init__(self, index: int, host: HostRecord, **kwargs) -> None:
        super().__init__(**kwargs)
        self.host_index = index
        self.record = host

    def compose(self) -> ComposeResult:
        yield Label(self._get_header(), id=f"header-{self.host_index}")
        yield RichLog(
            id=f"log-{self.host_index}",
            highlight=True,
            markup=True,
            wrap=True,
            auto_scroll=True,
        )

    def _get_header(self) -> str:
        icon, color = STATUS_ICONS.get(self.status, ("?", "white"))
        return f"[{color}]{icon}[/] [{color}][bold]{escape(self.record.label)}[/bold][/]"

    def watch_status(self, status: HostStatus) -> None:
        """Update header when status changes."""
        if not self.is_mounted:
            return
        header = self.query_one(f"#header-{self.host_index}", Label)
        header.update(self._get_header())

    def append_output(self, line: str, markup: str | None = None) -> None:
        """Append a line to this panel."""
        log = self.query_one(f"#log-{self.host_index}", RichLog)
        text = escape(line)
        if markup:
            log.write(f"[{markup}]{text}[/{markup}]")
        elif line.startswith("ERROR:"):
            log.write(f"[bold red]{text}[/bold red]")
        elif line.startswith("Connecting"):
            log.write(f"[yellow]{text}[/yellow]")
        else:
            log.write(text)


class StatusBar(Static):
    """Bottom status bar showing overall progress."""

    completed: reactive[int] = reactive(0)
    total: reactive[int] = reactive(0)
    phase: reactive[str] = reactive("Running...")

    def render(self) -> str:
        return f"Progress: {self.completed}/{self.total} hosts complete | {self.phase} | Press 'q' to quit"


class HostOutput(Message):
    """Message for a host trace line."""

    def __init__(self, index: int, line: str) -> None:
        super().__init__()
        self.host_index = index
        self.line = line


class HostStatusChange(Message):
    """Message for host status change."""

    def __init__(self, index: int, status: HostStatus) -> None:
        super().__init__()
        self.host_index = index
        self.status = status


class Dashboard(App):
    """Main TUI Dashboard application."""

    CSS = """
    Screen {
        layout: grid;
        grid-size: 2;
        grid-gutter: 1;
    }

    HostPanel {
        border: solid $primary;
        height: 100%;
        min-height: 10;
    }

    HostPanel Label {
        dock: top;
        padding: 0 1;
        background: $surface;
    }

    HostPanel RichLog {
        height: 1fr;
        padding: 0 1;
    }

    StatusBar {
        dock: bottom;
        height: 1;
        background: $surface;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("escape", "quit", "Quit"),
    ]

    def __init__(
        self,
        settings: Settings,
        hosts: Sequence[HostRecord],
        credentials: Sequence[str],
        command: str,
        store: InventoryStore,
        connector: Connector | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.settings = settings
        self.hosts = list(hosts)
        self.credentials = list(credentials)
        self.command = command
        self.store = store
        self.connector = connector
        self.controller = CancellationController()
        self.panels: dict[int, HostPanel] = {}
        self.executor: Executor | None = None
        self.failed_hosts: list[str] = []
        self._worker: Worker | None = None
        self._quitting = False

    @property
    def exit_status(self) -> int:
        if self.controller.cancelled:
            return self.controller.exit_code
        return EXIT_FAILURE if self.failed_hosts else EXIT_OK

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)

        for i, host in enumerate(self.hosts):
            panel = HostPanel(i, host, id=f"panel-{i}")
            self.panels[i] = panel
            yield panel

        yield StatusBar(id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        """Start execution when the app mounts."""
        self.title = f"clustercmd: {self.command}"
        status_bar = self.query_one("#status-bar", StatusBar)
        status_bar.total = len(self.hosts)

        self.executor = Executor(
            self.settings,
            self.hosts,
            self.credentials,
            self.command,
            store=self.store,
            audit=AuditLog(self.settings.audit_log),
            controller=self.controller,
            connector=self.connector,
            on_output=self._on_output,
            on_status=self._on_status,
        )

        self._worker = self.run_worker(self._run_execution(), exclusive=True)

    async def _run_execution(self) -> None:
        """Run the executor and show each outcome until the run ends or is cancelled."""
        if not self.executor:
            return
        queue = self.executor.start()
        while not self.controller.cancelled:
            get = asyncio.ensure_future(queue.get())
            stop = asyncio.ensure_future(self.controller.event.wait())
            await asyncio.wait({get, stop}, return_when=asyncio.FIRST_COMPLETED)

            if self.controller.cancelled:
                get.cancel()
                break

            stop.cancel()
            outcome = get.result()
            if outcome is None:
                break
            self._show_outcome(outcome)

        # In-flight attempts are never aborted; wait for them to return
        await self.executor.wait()

    def _show_outcome(self, outcome: Outcome) -> None:
        index = next(i for i, host in enumerate(self.hosts) if host is outcome.host)
        panel = self.panels[index]

        if isinstance(outcome, Failure):
            self.failed_hosts.append(outcome.host.label)
            panel.append_output(f"ERROR: {outcome.error}")
            return

        if isinstance(outcome, Success):
            panel.append_output(f"Host: {outcome.host.address}", markup="bold cyan")
            text = outcome.output.decode(errors="replace")
            for line in text.splitlines():
                panel.append_output("  " + line)
            if outcome.remote_error is not None:
                panel.append_output(str(outcome.remote_error), markup="red")

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        """Handle worker completion."""
        if event.worker != self._worker or event.state != WorkerState.SUCCESS:
            return
        status_bar = self.query_one("#status-bar", StatusBar)
        status_bar.phase = "Cancelled" if self.controller.cancelled else "Complete"
        if self._quitting:
            self.exit(self.exit_status)

    def _on_output(self, index: int, line: str) -> None:
        """Handle a trace line from a host."""
        self.post_message(HostOutput(index, line))

    def _on_status(self, index: int, status: HostStatus) -> None:
        """Handle status change for a host."""
        self.post_message(HostStatusChange(index, status))

    def on_host_output(self, message: HostOutput) -> None:
        if message.host_index in self.panels:
            self.panels[message.host_index].append_output(message.line)

    def on_host_status_change(self, message: HostStatusChange) -> None:
        if message.host_index in self.panels:
            self.panels[message.host_index].status = message.status

        # Update completed count
        if message.status in (HostStatus.SUCCESS, HostStatus.FAILED, HostStatus.CANCELLED):
            status_bar = self.query_one("#status-bar", StatusBar)
            status_bar.completed += 1

    async def action_quit(self) -> None:
        """Quit, letting running attempts finish first."""
        if self._worker and self._worker.is_running:
            self._quitting = True
            self.controller.trigger(signal.SIGINT)
            status_bar = self.query_one("#status-bar", StatusBar)
            status_bar.phase = "Cancelling..."
            return
        self.exit(self.exit_status)
