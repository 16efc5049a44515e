"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import dotenv_values
from pydantic import ValidationError

from tunefetch.exceptions import ConfigurationError
from tunefetch.models.config import DEFAULT_OUTPUT_DIR, ConverterProfile, DownloadConfig

log = logging.getLogger(__name__)

CONVERTER_SECTION = "converter"

# Environment variable -> config key
ENV_OVERRIDES = {
    "CLIENT_ID": "client_id",
    "CLIENT_SECRET": "client_secret",
    "YOUTUBE_API_KEY": "youtube_api_key",
}


def _ini_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(
        self,
        config_file_path: Path,
        env_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Args:
            config_file_path: Location of `config.ini`.
            env_file: Optional `.env` file; defaults to `.env` in the working
                directory. Real environment variables take precedence over it.
            environ: Environment to read overrides from (defaults to `os.environ`).
        """
        self.config_file_path = config_file_path
        self.env_file = env_file if env_file is not None else Path.cwd() / ".env"
        self._environ = environ if environ is not None else os.environ
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> DownloadConfig:
        """
        Loads configuration from the INI file, applies environment and CLI
        overrides, and validates it.

        Args:
            cli_options: A dictionary of options provided via the command line.
                Keys whose value is None are ignored.

        Returns:
            A validated DownloadConfig object.

        Raises:
            ConfigurationError: If the config file is unreadable, a required
            credential is missing, or validation fails.
        """
        env_settings = self._get_env_overrides()
        config_values: dict[str, Any] = {}

        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            config_values = self._get_config_as_dict()
        elif len(env_settings) < len(ENV_OVERRIDES):
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'. "
                "Please run 'tunefetch init' first, or set CLIENT_ID, "
                "CLIENT_SECRET and YOUTUBE_API_KEY."
            )
        else:
            log.debug("No configuration file; using environment credentials.")

        config_values.update(env_settings)
        if cli_options:
            config_values.update(
                {k: v for k, v in cli_options.items() if v is not None}
            )

        try:
            config_dir = self.config_file_path.parent
            return DownloadConfig(**config_values, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save. Any key that is not given
                is written with its default value.
        """
        config = configparser.ConfigParser(interpolation=None)
        defaults = DownloadConfig.model_construct()

        config["DEFAULT"] = {
            key: _ini_value(settings.get(key, getattr(defaults, key, None)))
            for key in sorted(DownloadConfig.get_ini_keys())
        }
        converter = ConverterProfile()
        config[CONVERTER_SECTION] = {
            key: _ini_value(getattr(converter, key))
            for key in ConverterProfile.model_fields
        }

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_env_overrides(self) -> dict[str, str]:
        """Collects credentials from the environment and the `.env` file."""
        values = {}
        if self.env_file.is_file():
            values.update(
                {k: v for k, v in dotenv_values(self.env_file).items() if v is not None}
            )
        values.update(self._environ)

        return {
            key: values[env_name].strip()
            for env_name, key in ENV_OVERRIDES.items()
            if values.get(env_name, "").strip()
        }

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the DEFAULT and converter sections of the INI file."""
        section = self._parser["DEFAULT"]
        try:
            settings: dict[str, Any] = {
                "client_id": section.get("client_id", ""),
                "client_secret": section.get("client_secret", ""),
                "youtube_api_key": section.get("youtube_api_key", ""),
                "concurrency": section.getint("concurrency", 3),
                "max_attempts": section.getint("max_attempts", 3),
                "output_dir": section.get("output_dir", DEFAULT_OUTPUT_DIR),
                "headless": section.getboolean("headless", True),
                "request_timeout": section.getfloat("request_timeout", 5.0),
            }
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

        if self._parser.has_section(CONVERTER_SECTION):
            converter_section = self._parser[CONVERTER_SECTION]
            # Sections inherit DEFAULT keys, so only the profile's own fields are read
            settings["converter"] = {
                key: converter_section[key]
                for key in ConverterProfile.model_fields
                if key in converter_section
            }
        return settings

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = DownloadConfig.model_construct()
        converter_defaults = ConverterProfile()
        needs_saving = False

        config_section = self._parser["DEFAULT"]
        for key in sorted(DownloadConfig.get_ini_keys()):
            if key not in config_section:
                config_section[key] = _ini_value(getattr(defaults, key))
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if not self._parser.has_section(CONVERTER_SECTION):
            self._parser.add_section(CONVERTER_SECTION)
        converter_section = self._parser[CONVERTER_SECTION]
        for key in ConverterProfile.model_fields:
            if not self._parser.has_option(CONVERTER_SECTION, key):
                converter_section[key] = _ini_value(getattr(converter_defaults, key))
                needs_saving = True
                log.debug(f"Migrating config: added missing converter key '{key}'.")

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
