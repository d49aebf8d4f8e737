#!/usr/bin/env python3
"""Main entry point for clustercmd."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Sequence

from .aggregator import EXIT_FAILURE, Aggregator
from .config import Settings, load_config
from .credentials import list_credentials
from .errors import ParseError, UnknownClusterError
from .executor import Executor
from .inventory import HostRecord, parse_inventory
from .signals import CancellationController
from .ssh import Connector, SSHConnector
from .store import AuditLog, InventoryStore

PROG = "clustercmd"


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser whose usage errors exit with status 1."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(EXIT_FAILURE, f"{self.prog}: error: {message}\n")


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    parser = _ArgumentParser(
        prog=PROG,
        description="Run a command on every host of a cluster over SSH",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML configuration file (default: ./clustercmd.yaml if present)",
    )
    parser.add_argument(
        "--no-logs",
        action="store_true",
        help="Disable per-host log files",
    )
    parser.add_argument(
        "--dashboard",
        action="store_true",
        help="Run with the TUI dashboard",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument("cluster", help="Cluster name from the hosts file")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command to run")
    args = parser.parse_args(argv)

    if not args.command:
        parser.error("no command given")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format=f"{PROG}: %(levelname)s: %(message)s",
    )

    # Load configuration
    try:
        settings = load_config(args.config)
    except FileNotFoundError as e:
        print(f"{PROG}: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except (ValueError, OSError) as e:
        print(f"{PROG}: Configuration error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if args.no_logs:
        settings.no_logs = True

    # Read and parse the inventory before anything runs
    try:
        store = InventoryStore.open(settings.hosts_file, settings.defaults)
    except (OSError, UnicodeDecodeError) as e:
        print(f"{PROG}: {e}", file=sys.stderr)
        return EXIT_FAILURE

    try:
        inventory = parse_inventory(store.text, settings.defaults)
        hosts = inventory.hosts(args.cluster)
    except (ParseError, UnknownClusterError) as e:
        print(f"{PROG}: {e}", file=sys.stderr)
        return EXIT_FAILURE

    credentials = list_credentials(settings.certs_dir)
    command = " ".join(args.command)
    connector = SSHConnector()

    if args.dashboard:
        return _run_dashboard(settings, hosts, credentials, command, store, connector)

    return asyncio.run(_run_headless(settings, hosts, credentials, command, store, connector))


async def _run_headless(
    settings: Settings,
    hosts: Sequence[HostRecord],
    credentials: Sequence[str],
    command: str,
    store: InventoryStore,
    connector: Connector,
) -> int:
    """Run executor without TUI dashboard."""
    controller = CancellationController()
    controller.install()

    try:
        executor = Executor(
            settings,
            hosts,
            credentials,
            command,
            store=store,
            audit=AuditLog(settings.audit_log),
            controller=controller,
            connector=connector,
        )
        aggregator = Aggregator(sys.stdout.buffer, sys.stderr.buffer, PROG)

        queue = executor.start()
        code = await aggregator.consume(queue, controller)

        # In-flight attempts are never aborted; wait for them to return
        await executor.wait()
    finally:
        controller.remove()

    if controller.cancelled:
        if code != controller.exit_code:
            # Signal arrived after the last outcome was consumed
            print(f"{PROG}: {controller.error()}", file=sys.stderr)
        return controller.exit_code

    return code


def _run_dashboard(
    settings: Settings,
    hosts: Sequence[HostRecord],
    credentials: Sequence[str],
    command: str,
    store: InventoryStore,
    connector: Connector,
) -> int:
    from .dashboard import Dashboard

    app = Dashboard(settings, hosts, credentials, command, store, connector)
    app.run()

    if app.failed_hosts:
        print(f"\nFailed hosts: {', '.join(app.failed_hosts)}", file=sys.stderr)

    return app.exit_status


if __name__ == "__main__":
    sys.exit(main())
