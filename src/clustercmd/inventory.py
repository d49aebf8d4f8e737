"""Host inventory parsing.

The inventory is a plain text file of cluster sections::

    web:
    alice@10.0.0.1 ~/.ssh/k1
    10.0.0.2:2222

    db:
    root@[fd00::5]:22 /keys/db

A line ending in ``:`` opens a section; every other non-blank line is a host
entry ``[user@]host[:port] [credentialPath]`` belonging to the nearest
preceding section. Entries before the first header belong to the unnamed
cluster ``""``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .config import Defaults
from .errors import ParseError, UnknownClusterError

DEFAULT_PORT = 22


@dataclass(frozen=True)
class HostRecord:
    """A single host entry in a cluster section."""

    cluster: str
    user: str
    host: str
    port: int
    credential_path: str

    @property
    def address(self) -> str:
        """``host:port``, with IPv6 hosts bracketed."""
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    @property
    def label(self) -> str:
        return f"{self.user}@{self.address}"

    def to_line(self) -> str:
        """Serialize back to an inventory host line."""
        return f"{self.label} {self.credential_path}"


@dataclass(frozen=True)
class ClusterInventory:
    """Hosts grouped by cluster, in order of appearance."""

    clusters: dict[str, tuple[HostRecord, ...]] = field(default_factory=dict)

    def __contains__(self, cluster: object) -> bool:
        return cluster in self.clusters

    def __iter__(self):
        return iter(self.clusters)

    def __len__(self) -> int:
        return len(self.clusters)

    def hosts(self, cluster: str) -> tuple[HostRecord, ...]:
        """Return the hosts of ``cluster``, raising UnknownClusterError if absent."""
        try:
            return self.clusters[cluster]
        except KeyError:
            raise UnknownClusterError(cluster) from None


def parse_inventory(text: str, defaults: Defaults | None = None) -> ClusterInventory:
    """Parse inventory text into a ClusterInventory."""
    defaults = defaults or Defaults()
    clusters: dict[str, list[HostRecord]] = {}
    current = ""

    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line:
            continue

        section = _section_name(line)
        if section is not None:
            current = section
            clusters.setdefault(current, [])
            continue

        host = _parse_host(line, current, defaults, line_no)
        clusters.setdefault(current, []).append(host)

    return ClusterInventory({name: tuple(hosts) for name, hosts in clusters.items()})


def strip_host(text: str, host: HostRecord, defaults: Defaults | None = None) -> tuple[str, bool]:
    """Remove ``host``'s line from its cluster section.

    Lines are compared structurally, so ``alice@10.0.0.1 ~/.ssh/k1`` matches
    the record parsed from it. Only the first match is removed; every other
    line is kept verbatim. Returns the new text and whether a line was removed.
    """
    defaults = defaults or Defaults()
    lines = text.splitlines(keepends=True)
    current = ""

    for index, raw_line in enumerate(lines):
        line = raw_line.strip()
        if not line:
            continue

        section = _section_name(line)
        if section is not None:
            current = section
            continue

        if current != host.cluster:
            continue

        try:
            candidate = _parse_host(line, current, defaults, index + 1)
        except ParseError:
            continue

        if candidate == host:
            del lines[index]
            return "".join(lines), True

    return text, False


def _section_name(line: str) -> str | None:
    if line.endswith(":"):
        return line[:-1].rstrip()
    return None


def _parse_host(line: str, cluster: str, defaults: Defaults, line_no: int) -> HostRecord:
    """Parse one ``[user@]host[:port] [credentialPath]`` line."""
    parts = line.split(None, 1)
    spec = parts[0]

    credential_path = str(defaults.ssh_key)
    if len(parts) == 2:
        credential_path = parts[1].strip()
        if credential_path.startswith("~"):
            credential_path = os.path.expanduser(credential_path)

    user = defaults.user
    if "@" in spec:
        if spec.count("@") > 1:
            raise ParseError(line_no, line, "more than one '@'")
        user, spec = spec.split("@")
        if not user:
            raise ParseError(line_no, line, "empty user")

    hostname, port = _split_host_port(spec, line, line_no)

    return HostRecord(
        cluster=cluster,
        user=user,
        host=hostname,
        port=port,
        credential_path=credential_path,
    )


def _split_host_port(spec: str, line: str, line_no: int) -> tuple[str, int]:
    port_str: str | None = None

    if spec.startswith("["):
        end = spec.find("]")
        if end == -1:
            raise ParseError(line_no, line, "unbalanced brackets")
        hostname = spec[1:end]
        rest = spec[end + 1 :]
        if rest:
            if not rest.startswith(":"):
                raise ParseError(line_no, line, "unexpected text after ']'")
            port_str = rest[1:]
    elif spec.count(":") == 1:
        hostname, port_str = spec.split(":")
    else:
        # Plain hostname, or an IPv6 literal without a port
        hostname = spec

    if "[" in hostname or "]" in hostname:
        raise ParseError(line_no, line, "unbalanced brackets")
    if not hostname:
        raise ParseError(line_no, line, "missing host")

    if port_str is None:
        return hostname, DEFAULT_PORT

    if not (port_str.isascii() and port_str.isdigit()) or not 0 < int(port_str) < 65536:
        raise ParseError(line_no, line, f"invalid port {port_str!r}")

    return hostname, int(port_str)
