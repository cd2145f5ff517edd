"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from adapter_bridge.client.exceptions import ConfigurationError
from adapter_bridge.config import AdapterConfig, LoggingConfig, ServiceConfig, load_config_from_yaml

CONFIG_YAML = """\
adapter: Zendesk
service:
  url: https://acme.zendesk.com/
  token: ${ZENDESK_TOKEN}
fetch:
  include_types: [automation]
  hide_types: false
"""


class TestServiceConfig:
    def test_url_normalized(self):
        config = ServiceConfig(url="https://acme.zendesk.com/", token="t")
        assert config.url == "https://acme.zendesk.com"

    def test_http_rejected(self):
        with pytest.raises(ValidationError, match="HTTPS"):
            ServiceConfig(url="http://acme.zendesk.com", token="t")

    def test_empty_token_rejected(self):
        with pytest.raises(ValidationError, match="Token cannot be empty"):
            ServiceConfig(url="https://acme.zendesk.com", token="  ")


class TestLoggingConfig:
    def test_levels_normalized(self):
        config = LoggingConfig(level="debug", format="JSON")
        assert config.level == "DEBUG"
        assert config.format == "json"

    def test_invalid_level(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="loud")


class TestLoadConfig:
    def test_load_with_env_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ZENDESK_TOKEN", "from-env")
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_YAML)

        config = load_config_from_yaml(path)

        assert config.adapter == "zendesk"
        assert config.service.token == "from-env"
        assert config.fetch.include_types == ["automation"]
        assert config.fetch.hide_types is False
        assert config.deploy.max_concurrent == 10

    def test_missing_env_var(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ZENDESK_TOKEN", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_YAML)

        with pytest.raises(ValueError, match="ZENDESK_TOKEN"):
            load_config_from_yaml(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_from_yaml(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        with pytest.raises(ValueError, match="Empty"):
            load_config_from_yaml(path)


class TestDefinitionOverrides:
    def _config(self, **kwargs):
        return AdapterConfig(
            adapter="jira",
            service={"url": "https://acme.atlassian.net", "token": "t"},
            **kwargs,
        )

    def test_no_file(self):
        assert self._config().load_definition_overrides() == {}

    def test_file(self, tmp_path):
        path = tmp_path / "defs.yaml"
        path.write_text("Board:\n  id_fields: [id]\n")

        overrides = self._config(definitions_file=str(path)).load_definition_overrides()

        assert overrides == {"Board": {"id_fields": ["id"]}}

    def test_missing_file(self, tmp_path):
        config = self._config(definitions_file=str(tmp_path / "missing.yaml"))

        with pytest.raises(ConfigurationError):
            config.load_definition_overrides()
