"""
Tests for configuration loading.
"""

import json

import pytest
import yaml

from upload_link import Credentials, EncodingPolicy
from upload_link.config import ConfigError, ConfigLoader, LogLevel, UploadLinkConfig

ENV_VARS = (
    "UPLOAD_LINK_URI",
    "UPLOAD_LINK_CREDENTIALS",
    "UPLOAD_LINK_INCLUDE_EXTENSIONS",
    "UPLOAD_LINK_INCLUDE_QUERY",
    "UPLOAD_LINK_ENCODING",
    "UPLOAD_LINK_TIMEOUT",
    "UPLOAD_LINK_LOG_LEVEL",
    "UPLOAD_LINK_LOG_FILE",
    "UPLOAD_LINK_LOG_STRUCTURED",
)


@pytest.fixture
def loader(tmp_path, monkeypatch):
    """Loader isolated from the working directory and environment."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return ConfigLoader()


class TestConfigLoader:
    """Test configuration sources and precedence."""

    def test_defaults(self, loader):
        """Test defaults when no source is present."""
        config = loader.load_config()

        assert isinstance(config, UploadLinkConfig)
        assert config.link.uri == "/graphql"
        assert config.logging.level == LogLevel.INFO

    def test_yaml_file(self, loader, tmp_path):
        """Test loading a YAML file."""
        path = tmp_path / "link.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "link": {
                        "uri": "https://api.example.com/graphql",
                        "credentials": "include",
                        "headers": {"x-client": "tests"},
                        "encoding": "multipart",
                    },
                    "logging": {"level": "DEBUG"},
                }
            )
        )

        config = loader.load_config(path)

        assert config.link.uri == "https://api.example.com/graphql"
        assert config.link.credentials is Credentials.INCLUDE
        assert config.link.headers == {"x-client": "tests"}
        assert config.link.encoding is EncodingPolicy.MULTIPART
        assert config.logging.level == LogLevel.DEBUG

    def test_json_file(self, loader, tmp_path):
        """Test loading a JSON file."""
        path = tmp_path / "link.json"
        path.write_text(json.dumps({"link": {"timeout": 5, "include_extensions": True}}))

        config = loader.load_config(str(path))

        assert config.link.timeout == 5
        assert config.link.include_extensions is True

    def test_default_location(self, loader, tmp_path):
        """Test a config file in the working directory is discovered."""
        (tmp_path / "upload_link.yaml").write_text("link:\n  uri: /discovered\n")

        assert loader.load_config().link.uri == "/discovered"

    def test_empty_file(self, loader, tmp_path):
        """Test an empty YAML file yields defaults."""
        path = tmp_path / "empty.yml"
        path.write_text("")

        assert loader.load_config(path).link.uri == "/graphql"

    def test_environment_overrides_file(self, loader, tmp_path, monkeypatch):
        """Test environment variables take precedence over files."""
        path = tmp_path / "link.yaml"
        path.write_text("link:\n  uri: /from-file\n  headers:\n    a: '1'\n")
        monkeypatch.setenv("UPLOAD_LINK_URI", "/from-env")
        monkeypatch.setenv("UPLOAD_LINK_INCLUDE_QUERY", "false")
        monkeypatch.setenv("UPLOAD_LINK_TIMEOUT", "2.5")
        monkeypatch.setenv("UPLOAD_LINK_LOG_STRUCTURED", "yes")

        config = loader.load_config(path)

        assert config.link.uri == "/from-env"
        assert config.link.headers == {"a": "1"}
        assert config.link.include_query is False
        assert config.link.timeout == 2.5
        assert config.logging.enable_structured is True

    def test_custom_prefix(self, tmp_path, monkeypatch):
        """Test a custom environment prefix."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("GQL_URI", "/custom")

        config = ConfigLoader(env_prefix="GQL_").load_config()

        assert config.link.uri == "/custom"

    def test_missing_file(self, loader, tmp_path):
        """Test an explicit file must exist."""
        with pytest.raises(ConfigError):
            loader.load_config(tmp_path / "missing.yaml")

    def test_unsupported_format(self, loader, tmp_path):
        """Test unknown file extensions are rejected."""
        path = tmp_path / "link.toml"
        path.write_text("uri = '/graphql'")

        with pytest.raises(ConfigError):
            loader.load_config(path)

    def test_malformed_file(self, loader, tmp_path):
        """Test parse failures are reported as ConfigError."""
        path = tmp_path / "link.json"
        path.write_text("{not json")

        with pytest.raises(ConfigError):
            loader.load_config(path)

    def test_non_mapping_file(self, loader, tmp_path):
        """Test the top level must be a mapping."""
        path = tmp_path / "link.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError):
            loader.load_config(path)

    @pytest.mark.parametrize(
        "content",
        [
            "link:\n  credentials: sometimes\n",
            "link:\n  timeout: 0\n",
            "unknown: 1\n",
        ],
    )
    def test_invalid_values(self, loader, tmp_path, content):
        """Test validation failures are reported as ConfigError."""
        path = tmp_path / "link.yaml"
        path.write_text(content)

        with pytest.raises(ConfigError):
            loader.load_config(path)

    def test_convert_env_value(self):
        """Test environment value conversion."""
        convert = ConfigLoader._convert_env_value

        assert convert("on") is True
        assert convert("No") is False
        assert convert("42") == 42
        assert convert("0.5") == 0.5
        assert convert("/graphql") == "/graphql"


class TestUploadLinkConfig:
    """Test the configuration model."""

    def test_link_options_with_runtime_overrides(self, recording_fetch):
        """Test runtime-only fields are applied on top of loaded options."""
        config = UploadLinkConfig(link={"uri": "/graphql", "headers": {"a": "1"}})

        options = config.link_options(fetch=recording_fetch)

        assert options.fetch is recording_fetch
        assert options.headers == {"a": "1"}
        assert config.link.fetch is None
        assert config.link_options() is config.link
