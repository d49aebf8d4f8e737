"""Exception types for clustercmd."""

from __future__ import annotations

import signal


class ClustercmdError(Exception):
    """Base class for all clustercmd errors."""


class ParseError(ClustercmdError):
    """An inventory line is neither a section header nor a host entry."""

    def __init__(self, line_no: int, line: str, reason: str):
        self.line_no = line_no
        self.line = line
        self.reason = reason
        super().__init__(f"hosts:{line_no}: {reason}: {line!r}")


class UnknownClusterError(ClustercmdError):
    """The requested cluster is not defined in the inventory."""

    def __init__(self, cluster: str):
        self.cluster = cluster
        super().__init__(f"unknown cluster {cluster!r}")


class CredentialStoreError(ClustercmdError):
    """The credential directory could not be read."""


class AttemptError(ClustercmdError):
    """A single credential attempt against a host failed."""


class TransportError(AttemptError):
    """Connection could not be established or was lost."""


class AuthError(AttemptError):
    """The host rejected the credential, or the credential was unusable."""


class RemoteExitError(ClustercmdError):
    """The remote command ran but exited with a non-zero status."""

    def __init__(self, label: str, exit_status: int):
        self.label = label
        self.exit_status = exit_status
        super().__init__(f"{label}: remote command exited with status {exit_status}")


class PersistenceError(ClustercmdError):
    """The inventory file could not be rewritten."""


class CancellationError(ClustercmdError):
    """The run was cancelled by a signal."""

    def __init__(self, sig: signal.Signals):
        self.signal = sig
        super().__init__(f"canceled by {sig.name}")
