"""Tests for harness configuration."""

from pathlib import Path

import yaml

from webssotest.core.config import HarnessConfig, get_default_config_yaml, load_config


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults_without_file(self, tmp_path: Path):
        """A missing file yields the defaults."""
        config = load_config(tmp_path / "config.yaml")
        assert config.endpoint.host == "localhost"
        assert config.endpoint.port is None
        assert config.endpoint.capture_timeout == 5.0
        assert config.client.verify_tls is True
        assert config.logging.level == "INFO"
        assert config.config_path is None

    def test_file_values(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "endpoint:\n  port: 9090\n  capture_timeout: 1.5\nclient:\n  verify_tls: false\nlogging:\n  level: debug\n",
            encoding="utf-8",
        )
        config = load_config(path)

        assert config.endpoint.port == 9090
        assert config.endpoint.capture_timeout == 1.5
        assert config.client.verify_tls is False
        assert config.logging.level == "DEBUG"
        assert config.config_path == path

    def test_environment_overrides_file(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("endpoint:\n  port: 9090\n", encoding="utf-8")
        monkeypatch.setenv("WEBSSOTEST_PORT", "7070")
        monkeypatch.setenv("WEBSSOTEST_VERIFY_TLS", "no")
        monkeypatch.setenv("WEBSSOTEST_LOG_LEVEL", "trace")
        monkeypatch.setenv("WEBSSOTEST_CAPTURE_TIMEOUT", "not-a-number")

        config = load_config(path)

        assert config.endpoint.port == 7070
        assert config.client.verify_tls is False
        assert config.logging.level == "TRACE"
        assert config.endpoint.capture_timeout == 5.0

    def test_invalid_file_ignored(self, tmp_path: Path, caplog):
        """A broken file is reported and the defaults are used."""
        path = tmp_path / "config.yaml"
        path.write_text("- not\n- a mapping\n", encoding="utf-8")
        config = load_config(path)
        assert config.endpoint.port is None
        assert "Ignoring invalid config file" in caplog.text

    def test_save_round_trip(self, tmp_path: Path):
        config = HarnessConfig()
        config.endpoint.port = 8443
        config.logging.trace = True
        path = tmp_path / "nested" / "config.yaml"
        config.save(path)

        loaded = load_config(path)
        assert loaded.endpoint.port == 8443
        assert loaded.logging.trace is True


def test_default_config_yaml_loads() -> None:
    """The generated default file parses to the default settings."""
    data = yaml.safe_load(get_default_config_yaml())
    assert HarnessConfig.from_dict(data).to_dict() == HarnessConfig().to_dict()
