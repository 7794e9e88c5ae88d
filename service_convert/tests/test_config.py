"""
Unit tests for gateway configuration loading.
"""

import pytest

from shared.config import ConverterConfig, load_config
from shared.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from the caller's environment and working directory."""
    for name in (
        "TOKEN",
        "CLASH_SUB_FMT",
        "CLASH_SUB_URLS",
        "CACHE_HOURS",
        "CACHE_BACKEND",
        "CONVERT_CONFIG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestLoadConfig:
    """Test cases for load_config."""

    def test_reads_yaml_file(self, tmp_path):
        """Test that upper-case YAML keys populate the settings."""
        path = tmp_path / "gateway.yaml"
        path.write_text(
            "TOKEN: secret\n"
            "CLASH_SUB_FMT: http://subconverter:25500/sub?target=clash\n"
            "CLASH_SUB_URLS:\n"
            "  a: http://x/a\n"
            "  b: http://x/b\n"
            "CACHE_HOURS: 2\n",
            encoding="utf-8",
        )

        config = load_config(path)

        assert config.token == "secret"
        assert config.clash_sub_urls == {"a": "http://x/a", "b": "http://x/b"}
        assert config.cache_ttl_seconds == 7200

    def test_default_config_file_in_working_directory(self, tmp_path):
        """Test that ./config.yaml is picked up when present."""
        (tmp_path / "config.yaml").write_text(
            "TOKEN: t\nCLASH_SUB_FMT: http://s/sub?\nCLASH_SUB_URLS: {a: 'http://x/a'}\n",
            encoding="utf-8",
        )

        config = load_config()

        assert config.token == "t"

    def test_reads_environment(self, monkeypatch):
        """Test that settings come from environment variables with JSON mapping."""
        monkeypatch.setenv("TOKEN", "env-secret")
        monkeypatch.setenv("CLASH_SUB_FMT", "http://subconverter:25500/sub?target=clash")
        monkeypatch.setenv("CLASH_SUB_URLS", '{"a": "http://x/a"}')
        monkeypatch.setenv("CACHE_BACKEND", "FILE")

        config = load_config()

        assert config.token == "env-secret"
        assert config.clash_sub_urls == {"a": "http://x/a"}
        assert config.cache_backend == "file"
        assert config.cache_hours == 22

    def test_overrides_win(self, monkeypatch):
        """Test that explicit overrides beat the environment."""
        monkeypatch.setenv("TOKEN", "env-secret")

        config = load_config(
            token="override",
            clash_sub_fmt="http://s/sub?",
            clash_sub_urls={"a": "http://x/a"},
        )

        assert config.token == "override"

    def test_missing_required_settings(self):
        """Test that an empty configuration is fatal."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_config()

        assert exc_info.value.details["missing"] == ["TOKEN", "CLASH_SUB_FMT", "CLASH_SUB_URLS"]

    def test_invalid_backend(self):
        """Test that an unknown cache backend is rejected."""
        with pytest.raises(ConfigurationError):
            load_config(
                token="t",
                clash_sub_fmt="http://s/sub?",
                clash_sub_urls={"a": "http://x/a"},
                cache_backend="redis",
            )

    def test_malformed_yaml(self, tmp_path):
        """Test that a non-mapping YAML document is rejected."""
        path = tmp_path / "gateway.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_missing_file(self, tmp_path):
        """Test that an explicit but absent file is rejected."""
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "absent.yaml")

    def test_defaults(self):
        """Test default values of optional settings."""
        config = ConverterConfig(token="t", clash_sub_fmt="f", clash_sub_urls={"a": "u"})

        assert config.port == 8008
        assert config.cache_backend == "memory"
        assert config.cache_sweep_interval_seconds == 7200
        assert config.upstream_user_agent == "ClashforWindows/0.19.23"
