"""Tests for the cancellation controller."""

import asyncio
import os
import signal

import pytest

from clustercmd.signals import SIGNAL_EXIT_CODES, CancellationController, exit_code_for


def test_exit_code_table() -> None:
    assert SIGNAL_EXIT_CODES[signal.SIGINT] == 130
    assert SIGNAL_EXIT_CODES[signal.SIGKILL] == 137
    assert SIGNAL_EXIT_CODES[signal.SIGTERM] == 143
    assert exit_code_for(signal.SIGHUP) == 128 + int(signal.SIGHUP)


def test_exit_code_table_is_read_only() -> None:
    with pytest.raises(TypeError):
        SIGNAL_EXIT_CODES[signal.SIGHUP] = 1  # type: ignore[index]


@pytest.mark.asyncio
async def test_first_signal_wins() -> None:
    controller = CancellationController()
    assert not controller.cancelled
    assert controller.exit_code is None

    controller.trigger(signal.SIGINT)
    controller.trigger(signal.SIGTERM)

    assert controller.cancelled
    assert controller.signal is signal.SIGINT
    assert controller.exit_code == 130
    assert str(controller.error()) == "canceled by SIGINT"


@pytest.mark.asyncio
async def test_installed_handler_receives_signal() -> None:
    controller = CancellationController()
    controller.install()
    try:
        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.wait_for(controller.event.wait(), timeout=2)
    finally:
        controller.remove()

    assert controller.signal is signal.SIGTERM
    assert controller.exit_code == 143
