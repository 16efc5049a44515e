"""Tests for configuration models and the INI config manager."""

import configparser
from pathlib import Path

import pytest
from pydantic import ValidationError

from tunefetch.exceptions import ConfigurationError
from tunefetch.models.config import ConverterProfile, DownloadConfig
from tunefetch.storage.config_manager import ConfigManager

CREDENTIALS = {
    "client_id": "id",
    "client_secret": "secret",
    "youtube_api_key": "key",
}
FULL_ENV = {"CLIENT_ID": "env-id", "CLIENT_SECRET": "env-secret", "YOUTUBE_API_KEY": "env-key"}


def make_manager(tmp_path: Path, environ: dict | None = None) -> ConfigManager:
    return ConfigManager(
        tmp_path / "config.ini",
        env_file=tmp_path / ".env",
        environ=environ or {},
    )


class TestConverterProfile:
    """Test converter profile validation."""

    def test_build_url_encodes_video_url(self) -> None:
        """Test the video URL is percent-encoded into the template."""
        profile = ConverterProfile(url_template="https://site.example/c?u={url}&f=mp3")
        assert profile.build_url("https://www.youtube.com/watch?v=a&b") == (
            "https://site.example/c?u=https%3A%2F%2Fwww.youtube.com%2Fwatch%3Fv%3Da%26b&f=mp3"
        )

    @pytest.mark.parametrize(
        "template", ["https://site.example/convert", "ftp://site.example/?u={url}"]
    )
    def test_invalid_template(self, template: str) -> None:
        """Test templates without a placeholder or http scheme are rejected."""
        with pytest.raises(ValidationError):
            ConverterProfile(url_template=template)

    def test_empty_probe_selector_disables_probe(self) -> None:
        """Test an empty selector is normalised to None."""
        assert ConverterProfile(failure_panel_selector="").failure_panel_selector is None

    def test_non_positive_timeout(self) -> None:
        """Test timeouts must be positive."""
        with pytest.raises(ValidationError):
            ConverterProfile(link_timeout=0)


class TestDownloadConfig:
    """Test download configuration validation."""

    def test_defaults(self) -> None:
        """Test documented defaults."""
        config = DownloadConfig(**CREDENTIALS)
        assert config.concurrency == 3
        assert config.max_attempts == 3
        assert config.output_dir == "Downloaded Songs"
        assert config.headless is True
        assert config.request_timeout == 5.0

    def test_missing_credential(self) -> None:
        """Test every credential is required."""
        with pytest.raises(ValidationError, match="youtube_api_key"):
            DownloadConfig(client_id="id", client_secret="secret")

    @pytest.mark.parametrize("field", ["concurrency", "max_attempts"])
    def test_bounds(self, field: str) -> None:
        """Test worker and attempt counts are bounded."""
        with pytest.raises(ValidationError):
            DownloadConfig(**CREDENTIALS, **{field: 0})
        with pytest.raises(ValidationError):
            DownloadConfig(**CREDENTIALS, **{field: 11})


class TestConfigManager:
    """Test loading, overriding and migrating the config file."""

    def test_save_and_load_roundtrip(self, tmp_path: Path) -> None:
        """Test a saved config loads back with defaults filled in."""
        manager = make_manager(tmp_path)
        manager.save_new_config(CREDENTIALS)

        config = manager.load_config()

        assert config.client_id == "id"
        assert config.youtube_api_key == "key"
        assert config.concurrency == 3
        assert config.converter == ConverterProfile()
        assert config.config_path == str(tmp_path)

    def test_missing_file_without_environment(self, tmp_path: Path) -> None:
        """Test a missing file is fatal when no credentials are set."""
        with pytest.raises(ConfigurationError, match="tunefetch init"):
            make_manager(tmp_path).load_config()

    def test_missing_file_with_environment(self, tmp_path: Path) -> None:
        """Test environment credentials suffice without a file."""
        config = make_manager(tmp_path, FULL_ENV).load_config()
        assert config.client_id == "env-id"
        assert not (tmp_path / "config.ini").exists()

    def test_environment_overrides_file(self, tmp_path: Path) -> None:
        """Test environment values win over the file."""
        make_manager(tmp_path).save_new_config(CREDENTIALS)

        config = make_manager(tmp_path, {"CLIENT_SECRET": "rotated"}).load_config()

        assert config.client_id == "id"
        assert config.client_secret == "rotated"

    def test_dotenv_file(self, tmp_path: Path) -> None:
        """Test credentials are read from a .env file, below real variables."""
        (tmp_path / ".env").write_text(
            "CLIENT_ID=dot-id\nCLIENT_SECRET=dot-secret\nYOUTUBE_API_KEY=dot-key\n",
            encoding="utf-8",
        )

        config = make_manager(tmp_path, {"CLIENT_ID": "real-id"}).load_config()

        assert config.client_id == "real-id"
        assert config.client_secret == "dot-secret"

    def test_cli_options_override_everything(self, tmp_path: Path) -> None:
        """Test command-line values beat file values and None is ignored."""
        make_manager(tmp_path).save_new_config(CREDENTIALS)

        config = make_manager(tmp_path).load_config(
            {"concurrency": 5, "output_dir": None, "headless": False}
        )

        assert config.concurrency == 5
        assert config.output_dir == "Downloaded Songs"
        assert config.headless is False

    def test_missing_credentials_in_file(self, tmp_path: Path) -> None:
        """Test an incomplete file fails validation."""
        make_manager(tmp_path).save_new_config({"client_id": "id"})

        with pytest.raises(ConfigurationError, match="Missing required credentials"):
            make_manager(tmp_path).load_config()

    def test_invalid_number(self, tmp_path: Path) -> None:
        """Test unparsable numbers are reported as configuration errors."""
        (tmp_path / "config.ini").write_text(
            "[DEFAULT]\nclient_id = id\nclient_secret = s\nyoutube_api_key = k\n"
            "concurrency = many\n",
            encoding="utf-8",
        )
        with pytest.raises(ConfigurationError):
            make_manager(tmp_path).load_config()

    def test_converter_section_and_migration(self, tmp_path: Path) -> None:
        """Test converter overrides load and missing keys are written back."""
        config_file = tmp_path / "config.ini"
        config_file.write_text(
            "[DEFAULT]\nclient_id = id\nclient_secret = s\nyoutube_api_key = k\n\n"
            "[converter]\nurl_template = https://other.example/?v={url}\n"
            "failure_panel_selector =\nlink_timeout = 120\n",
            encoding="utf-8",
        )

        config = make_manager(tmp_path).load_config()

        assert config.converter.url_template == "https://other.example/?v={url}"
        assert config.converter.failure_panel_selector is None
        assert config.converter.link_timeout == 120
        assert config.converter.format_selector == ConverterProfile().format_selector

        parser = configparser.ConfigParser(interpolation=None)
        parser.read(config_file, encoding="utf-8")
        assert parser["DEFAULT"]["concurrency"] == "3"
        assert parser["converter"]["link_timeout"] == "120"
        assert parser.has_option("converter", "download_selector")
