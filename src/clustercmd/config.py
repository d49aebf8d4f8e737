"""Configuration loader for clustercmd."""

from __future__ import annotations

import getpass
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_NAME = "clustercmd.yaml"

_TOP_LEVEL_KEYS = {
    "hosts_file",
    "certs_dir",
    "audit_log",
    "log_dir",
    "no_logs",
    "timeout",
    "defaults",
}
_DEFAULTS_KEYS = {"user", "ssh_key"}


def _login_name() -> str:
    try:
        return getpass.getuser()
    except OSError:
        return "root"


@dataclass
class Defaults:
    """Values applied to inventory lines that do not override them."""

    user: str = field(default_factory=_login_name)
    ssh_key: Path = field(default_factory=lambda: Path("~/.ssh/id_rsa").expanduser())


@dataclass
class Settings:
    """Main configuration for a run."""

    hosts_file: Path = field(default_factory=lambda: Path("hosts"))
    certs_dir: Path = field(default_factory=lambda: Path("certs"))
    audit_log: Path = field(default_factory=lambda: Path("succ.txt"))
    log_dir: Path = field(default_factory=lambda: Path("logs"))
    no_logs: bool = False
    timeout: float = 60.0
    defaults: Defaults = field(default_factory=Defaults)
    source_path: Path | None = None  # Path to the config file, if one was read


def load_config(config_path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file.

    With no explicit path, ``clustercmd.yaml`` in the working directory is
    used when it exists; otherwise built-in defaults apply.
    """
    if config_path is None:
        candidate = Path(DEFAULT_CONFIG_NAME)
        if not candidate.exists():
            return Settings()
        config_path = candidate

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    settings = _parse_config(raw or {}, config_path.parent)
    settings.source_path = config_path
    return settings


def _parse_config(raw: Any, base_dir: Path) -> Settings:
    """Parse raw YAML data into a Settings object."""
    if not isinstance(raw, dict):
        raise ValueError("Top level of the config file must be a mapping")

    unknown = set(raw) - _TOP_LEVEL_KEYS
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    defaults_raw = raw.get("defaults")
    settings = Settings(defaults=_parse_defaults({} if defaults_raw is None else defaults_raw))

    for key in ("hosts_file", "certs_dir", "audit_log", "log_dir"):
        if key in raw:
            setattr(settings, key, _resolve_path(raw[key], key, base_dir))

    if "no_logs" in raw:
        if not isinstance(raw["no_logs"], bool):
            raise ValueError("'no_logs' must be true or false")
        settings.no_logs = raw["no_logs"]

    if "timeout" in raw:
        timeout = raw["timeout"]
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            raise ValueError("'timeout' must be a number of seconds")
        if timeout <= 0:
            raise ValueError("'timeout' must be positive")
        settings.timeout = float(timeout)

    return settings


def _parse_defaults(defaults_raw: Any) -> Defaults:
    """Parse the defaults section."""
    if not isinstance(defaults_raw, dict):
        raise ValueError("'defaults' must be a mapping")

    unknown = set(defaults_raw) - _DEFAULTS_KEYS
    if unknown:
        raise ValueError(f"Unknown defaults keys: {', '.join(sorted(unknown))}")

    defaults = Defaults()
    if "user" in defaults_raw:
        user = defaults_raw["user"]
        if not isinstance(user, str) or not user:
            raise ValueError("'defaults.user' must be a non-empty string")
        defaults.user = user
    if "ssh_key" in defaults_raw:
        ssh_key = defaults_raw["ssh_key"]
        if not isinstance(ssh_key, str) or not ssh_key:
            raise ValueError("'defaults.ssh_key' must be a path")
        defaults.ssh_key = Path(ssh_key).expanduser()
    return defaults


def _resolve_path(value: Any, key: str, base_dir: Path) -> Path:
    if not isinstance(value, str) or not value:
        raise ValueError(f"'{key}' must be a path")
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path
