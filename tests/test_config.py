"""Tests for configuration loading and validation."""

import pytest
import yaml

from gke_prometheus_discovery.config import load_config
from gke_prometheus_discovery.exceptions import ConfigError


def _write_config(tmp_path, data: dict) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(data))
    return str(path)


class TestLoadConfig:
    def test_minimal_valid_config(self, tmp_path):
        config = load_config(_write_config(tmp_path, {"gcp": {"project": "proj-1"}}))
        assert config.gcp.project == "proj-1"
        assert config.polling.interval_seconds == 30
        assert config.prometheus.config_file == "/etc/prometheus/prometheus.yml"
        assert config.prometheus.certificate_store == "/etc/prometheus/kube_sd_certs"
        assert config.prometheus.base_url == "http://localhost:9090"
        assert config.prometheus.roles is None

    def test_missing_file_raises(self):
        with pytest.raises(ConfigError, match="not found"):
            load_config("/nonexistent/file.yaml")

    def test_missing_project_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="gcp.project"):
            load_config(_write_config(tmp_path, {"polling": {"interval_seconds": 60}}))

    def test_empty_gcp_section(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("gcp:\n")
        with pytest.raises(ConfigError, match="gcp.project"):
            load_config(str(path))

    def test_polling_interval_too_low(self, tmp_path):
        data = {"gcp": {"project": "p"}, "polling": {"interval_seconds": 2}}
        with pytest.raises(ConfigError, match="interval_seconds"):
            load_config(_write_config(tmp_path, data))

    def test_invalid_base_url(self, tmp_path):
        data = {"gcp": {"project": "p"}, "prometheus": {"base_url": "localhost:9090"}}
        with pytest.raises(ConfigError, match="base_url"):
            load_config(_write_config(tmp_path, data))

    def test_invalid_log_format(self, tmp_path):
        data = {"gcp": {"project": "p"}, "logging": {"format": "xml"}}
        with pytest.raises(ConfigError, match="logging.format"):
            load_config(_write_config(tmp_path, data))

    def test_unknown_role(self, tmp_path):
        data = {"gcp": {"project": "p"}, "prometheus": {"roles": {"nodes": []}}}
        with pytest.raises(ConfigError, match="Unknown discovery role"):
            load_config(_write_config(tmp_path, data))

    def test_unknown_field_in_section(self, tmp_path):
        data = {"gcp": {"project": "p"}, "polling": {"interval_seconds": 30}, "extra": {"ignored": True}}
        config = load_config(_write_config(tmp_path, data))
        assert config.gcp.project == "p"

    def test_env_var_interpolation(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_GCP_PROJECT", "env-project")
        config = load_config(_write_config(tmp_path, {"gcp": {"project": "${TEST_GCP_PROJECT}"}}))
        assert config.gcp.project == "env-project"

    def test_env_var_missing_raises(self, tmp_path, monkeypatch):
        monkeypatch.delenv("SURELY_MISSING_VAR", raising=False)
        data = {"gcp": {"project": "${SURELY_MISSING_VAR}"}}
        with pytest.raises(ConfigError, match="SURELY_MISSING_VAR"):
            load_config(_write_config(tmp_path, data))

    def test_full_config(self, tmp_path):
        data = {
            "gcp": {"project": "p"},
            "prometheus": {
                "config_file": "/tmp/prometheus.yml",
                "certificate_store": "/tmp/certs",
                "base_url": "https://prom:9090",
                "timeout": 3,
                "verify_ssl": False,
                "roles": {"pod": [{"action": "keep", "regex": "true"}], "node": []},
            },
            "polling": {"interval_seconds": 60, "jitter_seconds": 10},
            "logging": {"level": "DEBUG", "format": "text"},
        }
        config = load_config(_write_config(tmp_path, data))
        assert config.prometheus.config_file == "/tmp/prometheus.yml"
        assert config.prometheus.certificate_store == "/tmp/certs"
        assert config.prometheus.verify_ssl is False
        assert config.prometheus.roles["pod"] == [{"action": "keep", "regex": "true"}]
        assert config.polling.jitter_seconds == 10
        assert config.logging.format == "text"

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("just a string")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("gcp: [unclosed")
        with pytest.raises(ConfigError, match="not valid YAML"):
            load_config(str(path))
