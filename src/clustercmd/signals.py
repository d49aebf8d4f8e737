"""Signal-driven cancellation of a run."""

from __future__ import annotations

import asyncio
import logging
import signal
from types import MappingProxyType
from typing import Mapping

from .errors import CancellationError

logger = logging.getLogger(__name__)

# Process exit code for each terminating signal
SIGNAL_EXIT_CODES: Mapping[signal.Signals, int] = MappingProxyType(
    {
        signal.SIGINT: 130,
        signal.SIGKILL: 137,
        signal.SIGTERM: 143,
    }
)

# SIGKILL cannot be caught; it stays in the table for callers that map a
# child's or a supervisor's kill to an exit code.
HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def exit_code_for(sig: signal.Signals) -> int:
    return SIGNAL_EXIT_CODES.get(sig, 128 + int(sig))


class CancellationController:
    """Turns the first termination signal into a cancellation request."""

    def __init__(self) -> None:
        self.event = asyncio.Event()
        self.signal: signal.Signals | None = None
        self._installed: list[signal.Signals] = []
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def cancelled(self) -> bool:
        return self.event.is_set()

    @property
    def exit_code(self) -> int | None:
        if self.signal is None:
            return None
        return exit_code_for(self.signal)

    def error(self) -> CancellationError | None:
        if self.signal is None:
            return None
        return CancellationError(self.signal)

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Register handlers for SIGINT and SIGTERM on ``loop``."""
        self._loop = loop or asyncio.get_running_loop()
        for sig in HANDLED_SIGNALS:
            self._loop.add_signal_handler(sig, self.trigger, sig)
            self._installed.append(sig)

    def remove(self) -> None:
        if self._loop is None:
            return
        for sig in self._installed:
            self._loop.remove_signal_handler(sig)
        self._installed.clear()

    def trigger(self, sig: signal.Signals) -> None:
        """Request cancellation; only the first call has any effect."""
        if self.event.is_set():
            logger.debug("Ignoring %s, cancellation already in progress", sig.name)
            return
        self.signal = signal.Signals(sig)
        self.event.set()
        logger.debug("Cancellation requested by %s", self.signal.name)
