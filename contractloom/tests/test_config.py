"""Tests for YAML configuration loading."""

import pytest

from contractloom.core.config import PipelineSettings, get_config_path, get_config_value, load_config
from contractloom.core.config import config_loader


CONFIG_YAML = """contractloom:
  naming:
    policy: snake_case
  dom:
    case_policy: script-follows-markup
  repair:
    enabled: false
    timeout_seconds: 30
    max_prompt_tokens: 9000
"""


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("CONTRACTLOOM_CONFIG_DIR", str(tmp_path))
    monkeypatch.setattr(config_loader, "_config_cache", None)
    return tmp_path


class TestConfigLoader:
    def test_env_overrides_directory(self, config_dir):
        assert get_config_path() == config_dir

    def test_missing_file_gives_defaults(self, config_dir):
        assert load_config() == {}
        assert PipelineSettings.from_config() == PipelineSettings()

    def test_nested_values(self, config_dir):
        (config_dir / "contractloom.yaml").write_text(CONFIG_YAML, encoding="utf-8")

        assert get_config_value("contractloom", "naming", "policy") == "snake_case"
        assert get_config_value("contractloom", "naming", "missing", default=7) == 7
        assert get_config_value("contractloom", "naming", "policy", "deeper", default=None) is None

    def test_cached_until_reload(self, config_dir):
        config_file = config_dir / "contractloom.yaml"
        config_file.write_text(CONFIG_YAML, encoding="utf-8")
        load_config()
        config_file.write_text("contractloom: {}\n", encoding="utf-8")

        assert get_config_value("contractloom", "naming", "policy") == "snake_case"
        assert load_config(reload=True) == {"contractloom": {}}

    def test_invalid_yaml_gives_defaults(self, config_dir):
        (config_dir / "contractloom.yaml").write_text("contractloom: [unclosed\n", encoding="utf-8")
        assert load_config() == {}


class TestPipelineSettings:
    def test_from_config(self, config_dir):
        (config_dir / "contractloom.yaml").write_text(CONFIG_YAML, encoding="utf-8")

        settings = PipelineSettings.from_config()

        assert settings.naming_policy == "snake_case"
        assert settings.dom_case_policy == "script-follows-markup"
        assert settings.repair_enabled is False
        assert settings.repair_timeout_seconds == 30.0
        assert settings.max_prompt_tokens == 9000
        assert settings.repair_model == "gpt-4o-mini"

    def test_shipped_config_matches_defaults(self, monkeypatch):
        monkeypatch.delenv("CONTRACTLOOM_CONFIG_DIR", raising=False)
        monkeypatch.setattr(config_loader, "_config_cache", None)
        assert PipelineSettings.from_config() == PipelineSettings()
