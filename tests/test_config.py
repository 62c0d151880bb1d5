from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from loadprobe.config import ProbeConfig, load_config


def test_defaults_match_probe_constants(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("LOADPROBE_STATE_PATH", "LOG_LEVEL", "PROBE_TIMEOUT_SECONDS", "DOWNLOAD_GRACE_SECONDS"):
        monkeypatch.delenv(var, raising=False)

    config = load_config(str(tmp_path / "missing.yaml"))

    assert config.max_log_entries == 600
    assert config.probe_timeout_seconds == 320.0
    assert config.download_grace_seconds == 5.0
    assert config.min_interval_seconds == 10.0
    assert config.heartbeat_seconds == 30.0


def test_yaml_then_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_file = tmp_path / "loadprobe.yaml"
    config_file.write_text(
        "state_path: /var/lib/loadprobe/state.json\nmax_log_entries: 50\napi_port: 9000\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("LOADPROBE_PORT", "9100")
    monkeypatch.setenv("BROWSER_HEADLESS", "false")
    monkeypatch.setenv("DOWNLOAD_GRACE_SECONDS", "2.5")
    monkeypatch.delenv("LOADPROBE_STATE_PATH", raising=False)

    config = load_config(str(config_file))

    assert config.state_path == "/var/lib/loadprobe/state.json"
    assert config.max_log_entries == 50
    assert config.api_port == 9100
    assert config.browser_headless is False
    assert config.download_grace_seconds == 2.5


def test_config_path_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_file = tmp_path / "alt.yaml"
    config_file.write_text("log_level: DEBUG\n", encoding="utf-8")
    monkeypatch.setenv("LOADPROBE_CONFIG", str(config_file))
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    assert load_config().log_level == "DEBUG"


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValidationError):
        ProbeConfig(max_log_entries=0)
    with pytest.raises(ValidationError):
        ProbeConfig(probe_timeout_seconds=0)
