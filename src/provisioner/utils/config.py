"""Service configuration loaded from the environment and ``.env``.

Usage:
    from provisioner.utils.config import get_settings

    settings = get_settings()
    print(settings.router_url)

``get_settings()`` builds the settings on first call; tests reset it with
``get_settings.cache_clear()``.
"""

import re
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

HOSTNAME_PREFIX_PATTERN = re.compile(r"^([A-Za-z0-9][-_A-Za-z0-9]*)?$")
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """Provisioner configuration.

    ``MAIN_PASSWORD`` is required; startup fails without it.
    ``ALTERNATIVE_PASSWORDS`` is a JSON list, e.g. ``["admin", "old-pw"]``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Credentials
    main_password: SecretStr
    alternative_passwords: list[str] = Field(default_factory=list)

    # Request shaping
    hostname_prefix: str = ""

    # HTTP server
    host: str = "0.0.0.0"
    port: int = Field(7201, validation_alias="PORT_TPLINK")

    # Router and browser
    router_url: str = "http://192.168.88.1"
    headless: bool = True
    default_timeout: float = 30.0  # seconds, for every UI action

    # Connection establisher
    connect_attempts: int = 10
    connect_timeout: float = 3.0
    connect_backoff: float = 0.5

    # Workflow
    mask_timeout: float = 60.0
    region: str = "United States"
    timezone: str = "-07:00"

    # Logging and diagnostics
    log_file: str = "./logs/provisioner.log"
    log_level: LogLevel = "INFO"
    screenshot_dir: str = "./screenshots"

    @field_validator("hostname_prefix")
    @classmethod
    def hostname_prefix_is_valid(cls, v: str) -> str:
        # Prefix + any accepted hostname must still be a valid hostname.
        if not HOSTNAME_PREFIX_PATTERN.match(v):
            raise ValueError(
                "HOSTNAME_PREFIX may only contain A-Za-z0-9 and -_ and must start with a letter or digit"
            )
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def log_level_upper(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    return Settings()
