"""Tests for settings loading."""

from pathlib import Path

import pytest

from clustercmd.config import Settings, load_config


def test_defaults_without_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """No config file means built-in defaults."""
    monkeypatch.chdir(tmp_path)

    settings = load_config()

    assert settings == Settings(defaults=settings.defaults)
    assert settings.hosts_file == Path("hosts")
    assert settings.certs_dir == Path("certs")
    assert settings.audit_log == Path("succ.txt")
    assert settings.timeout == 60.0
    assert settings.source_path is None


def test_load_from_working_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "clustercmd.yaml").write_text("timeout: 15\nno_logs: true\n")
    monkeypatch.chdir(tmp_path)

    settings = load_config()

    assert settings.timeout == 15.0
    assert settings.no_logs is True
    assert settings.source_path == (tmp_path / "clustercmd.yaml").resolve()


def test_paths_resolve_against_config_dir(tmp_path: Path) -> None:
    config = tmp_path / "conf" / "clustercmd.yaml"
    config.parent.mkdir()
    config.write_text(
        """
hosts_file: inventory/hosts
certs_dir: /srv/keys
defaults:
  user: ops
  ssh_key: ~/.ssh/ops_key
"""
    )

    settings = load_config(config)

    assert settings.hosts_file == config.parent.resolve() / "inventory" / "hosts"
    assert settings.certs_dir == Path("/srv/keys")
    assert settings.defaults.user == "ops"
    assert settings.defaults.ssh_key == Path.home() / ".ssh" / "ops_key"


def test_missing_explicit_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


@pytest.mark.parametrize(
    "content",
    [
        "- a\n- b\n",
        "bogus: 1\n",
        "timeout: soon\n",
        "timeout: 0\n",
        "no_logs: maybe\n",
        "defaults: []\n",
        "defaults:\n  port: 22\n",
        "defaults:\n  user: ''\n",
        "hosts_file: 3\n",
    ],
)
def test_invalid_config(tmp_path: Path, content: str) -> None:
    config = tmp_path / "clustercmd.yaml"
    config.write_text(content)

    with pytest.raises(ValueError):
        load_config(config)
