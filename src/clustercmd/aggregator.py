"""Merge host outcomes into the process output streams and exit code."""

from __future__ import annotations

import asyncio
import logging
from typing import BinaryIO

from .executor import Failure, Outcome, Success
from .signals import CancellationController

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

INDENT = b"  "


class Aggregator:
    """Single consumer of host outcomes.

    Host labels and diagnostics go to ``stderr``; command output goes to
    ``stdout`` one indented line at a time. Each outcome is written in full
    before the next is read, so lines from different hosts never mix.
    """

    def __init__(self, stdout: BinaryIO, stderr: BinaryIO, prog: str = "clustercmd"):
        self.stdout = stdout
        self.stderr = stderr
        self.prog = prog
        self.code = EXIT_OK
        self._signal_code: int | None = None

    async def consume(self, queue: asyncio.Queue, controller: CancellationController) -> int:
        """Process outcomes until the queue closes or cancellation fires."""
        while True:
            if controller.cancelled:
                self._cancel(controller)
                break

            get = asyncio.ensure_future(queue.get())
            stop = asyncio.ensure_future(controller.event.wait())
            await asyncio.wait({get, stop}, return_when=asyncio.FIRST_COMPLETED)

            if controller.cancelled:
                get.cancel()
                self._cancel(controller)
                break

            stop.cancel()
            outcome = get.result()
            if outcome is None:
                break
            self.handle(outcome)

        return self.code

    def handle(self, outcome: Outcome) -> None:
        if isinstance(outcome, Success):
            self._write_success(outcome)
        elif isinstance(outcome, Failure):
            self._write_failure(outcome)
        else:
            raise TypeError(f"unexpected outcome {outcome!r}")

    def _write_success(self, outcome: Success) -> None:
        self.stderr.write(f"Host: {outcome.host.address}\n".encode())
        self.stderr.flush()

        lines = outcome.output.split(b"\n")
        tail = lines.pop()
        for line in lines:
            self.stdout.write(INDENT + line + b"\n")
        if tail:
            # Unterminated last line
            self.stdout.write(INDENT + tail + b"\n")
        self.stdout.flush()

        remote_error = outcome.remote_error
        if remote_error is not None:
            self._diagnostic(str(remote_error))

    def _write_failure(self, outcome: Failure) -> None:
        self._diagnostic(f"{outcome.host.label}: {outcome.error}")
        if self._signal_code is None:
            self.code = EXIT_FAILURE

    def _cancel(self, controller: CancellationController) -> None:
        error = controller.error()
        self._diagnostic(str(error))
        self._signal_code = controller.exit_code
        self.code = self._signal_code

    def _diagnostic(self, message: str) -> None:
        self.stderr.write(f"{self.prog}: {message}\n".encode())
        self.stderr.flush()
