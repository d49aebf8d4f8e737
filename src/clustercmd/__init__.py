"""clustercmd: Run one command on every host of a cluster over SSH."""

from .config import Defaults, Settings, load_config
from .executor import Executor, Failure, HostState, HostStatus, Success
from .inventory import ClusterInventory, HostRecord, parse_inventory

__all__ = [
    "Defaults",
    "Settings",
    "load_config",
    "Executor",
    "Failure",
    "HostState",
    "HostStatus",
    "Success",
    "ClusterInventory",
    "HostRecord",
    "parse_inventory",
]
