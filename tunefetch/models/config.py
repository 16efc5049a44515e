"""
Pydantic models for application configuration.
Provides robust validation for all settings.
"""

from typing import Optional
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_CONVERTER_URL = "https://ytmp3s.nu/?url={url}"
DEFAULT_OUTPUT_DIR = "Downloaded Songs"


class ConverterProfile(BaseModel):
    """
    Describes the conversion website: where to send the video URL and which
    elements make up its convert flow. All timeouts are in seconds.
    """

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    url_template: str = DEFAULT_CONVERTER_URL
    format_selector: str = "select#format"
    convert_selector: str = "button#convert"
    download_selector: str = "a#download"
    # Empty disables the failure probe: every wait timeout is then retried.
    failure_panel_selector: Optional[str] = "div#result"

    navigation_timeout: float = 60.0
    format_timeout: float = 60.0
    link_timeout: float = 600.0
    probe_timeout: float = 2.0

    @field_validator("url_template")
    @classmethod
    def validate_url_template(cls, v: str) -> str:
        if "{url}" not in v:
            raise ValueError("Converter URL template must contain a {url} placeholder.")
        if not v.startswith(("http://", "https://")):
            raise ValueError("Converter URL template must be an http(s) URL.")
        return v

    @field_validator("failure_panel_selector")
    @classmethod
    def empty_selector_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator(
        "navigation_timeout", "format_timeout", "link_timeout", "probe_timeout"
    )
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive.")
        return v

    def build_url(self, video_url: str) -> str:
        """Inserts the percent-encoded video URL into the site URL template."""
        return self.url_template.replace("{url}", quote(video_url, safe=""))


class DownloadConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Credentials
    client_id: str = ""
    client_secret: str = Field(default="", repr=False)
    youtube_api_key: str = Field(default="", repr=False)

    # Pipeline settings
    concurrency: int = 3
    max_attempts: int = 3
    output_dir: str = DEFAULT_OUTPUT_DIR
    headless: bool = True
    request_timeout: float = 5.0

    converter: ConverterProfile = Field(default_factory=ConverterProfile)

    # Internal fields not loaded from INI file
    config_path: str = Field(default="", repr=False)
    snapshot_path: Optional[str] = Field(default=None, repr=False)

    @field_validator("concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Bounds the number of simultaneous browser sessions."""
        if v < 1 or v > 10:
            raise ValueError("Concurrency must be between 1 and 10.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @field_validator("output_dir")
    @classmethod
    def validate_output_dir(cls, v: str) -> str:
        if not v:
            raise ValueError("Output directory cannot be empty.")
        return v

    @field_validator("request_timeout")
    @classmethod
    def validate_request_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Request timeout must be positive.")
        return v

    @model_validator(mode="after")
    def validate_credentials(self) -> "DownloadConfig":
        """Validates that every required credential is present."""
        missing = [
            name
            for name in ("client_id", "client_secret", "youtube_api_key")
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(
                f"Missing required credentials: {', '.join(missing)}. Run "
                "'tunefetch init' or set CLIENT_ID, CLIENT_SECRET and YOUTUBE_API_KEY."
            )
        return self

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns the keys expected in the INI file's DEFAULT section."""
        internal_fields = {"config_path", "snapshot_path", "converter"}
        return {key for key in cls.model_fields if key not in internal_fields}
