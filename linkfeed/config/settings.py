"""
LinkFeed Configuration System
============================

Settings come from ``LINKFEED_*`` environment variables (nested sections
use ``__``, e.g. ``LINKFEED_FEEDS__CACHE_TTL_SECONDS``), then a ``.env``
file, then the defaults below.

Components never read the global settings themselves: entry points load
them once and hand the relevant section (e.g. ``FeedSettings``) to the
objects they construct.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple
from enum import Enum

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode


class LogLevel(str, Enum):
    """Log level names accepted by ``logging``."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class FeedCredentials(BaseModel):
    """HTTP Basic credentials for a single feed."""
    user: Optional[str] = Field(default=None, description="Basic auth user name")
    password: Optional[str] = Field(default=None, description="Basic auth password")


class FeedSettings(BaseModel):
    """Feed loading and cache configuration."""
    cache_dir: Optional[str] = Field(
        default="data/feed_cache",
        description="Directory holding cached feed documents; empty disables caching",
    )
    cache_ttl_seconds: int = Field(
        default=86400, ge=0, description="Maximum age of a cache entry before refetching"
    )
    user_agent: str = Field(
        default="LinkFeed/1.0 (+https://github.com/linkfeed/linkfeed)",
        description="User-Agent header sent with feed requests",
    )
    request_timeout: int = Field(default=20, ge=1, le=300, description="Request timeout in seconds")
    follow_redirects: bool = Field(
        default=True,
        description="Follow HTTP redirects; disable in sandboxed environments",
    )
    credentials: Dict[str, FeedCredentials] = Field(
        default_factory=dict,
        description="Per-feed Basic auth credentials keyed by feed URL",
    )

    @field_validator('cache_dir')
    @classmethod
    def empty_cache_dir_disables_cache(cls, v):
        """Treat an empty string as 'no cache'."""
        if v is not None and not v.strip():
            return None
        return v

    @field_validator('user_agent')
    @classmethod
    def validate_user_agent(cls, v):
        """Some feeds reject requests without a user agent."""
        if not v or not v.strip():
            raise ValueError("user_agent must not be empty")
        return v.strip()

    def credentials_for(self, feed_url: str) -> FeedCredentials:
        """Get configured credentials for a feed, or anonymous access."""
        return self.credentials.get(feed_url, FeedCredentials())


class LoggingSettings(BaseModel):
    """Where and how LinkFeed logs."""
    level: LogLevel = Field(default=LogLevel.INFO)
    file_path: Optional[str] = Field(
        default="logs/linkfeed.log", description="Rotating JSON log file; empty for none"
    )
    max_file_size_mb: int = Field(default=10, ge=1, le=100)
    backup_count: int = Field(default=5, ge=1, le=20)
    structured_logging: bool = Field(default=False, description="JSON lines on the console too")
    console_logging: bool = Field(default=True)


class LinkFeedSettings(BaseSettings):
    """Application settings, one section per concern."""

    feeds: FeedSettings = Field(default_factory=FeedSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="LinkFeed")
    version: str = Field(default="1.0.0")
    debug: bool = Field(default=False, description="Force DEBUG logging")

    model_config = {
        "env_prefix": "LINKFEED_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    def _required_directories(self) -> List[Tuple[str, Path]]:
        directories = []
        if self.feeds.cache_dir:
            directories.append(("feeds.cache_dir", Path(self.feeds.cache_dir)))
        if self.logging.file_path:
            directories.append(("logging.file_path", Path(self.logging.file_path).parent))
        return directories

    def validate_configuration(self) -> None:
        """Create the cache and log directories.

        Raises:
            ConfigurationError: If a directory cannot be created
        """
        for config_key, directory in self._required_directories():
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ConfigurationError(
                    f"Cannot create directory {directory} for {config_key}: {e}",
                    config_key=config_key,
                    error_code=ErrorCode.CONFIG_INVALID,
                ) from e

    def get_effective_log_level(self) -> str:
        """DEBUG in debug mode, otherwise the configured level."""
        return LogLevel.DEBUG.value if self.debug else self.logging.level.value


def load_settings() -> LinkFeedSettings:
    """Read, validate and prepare settings.

    Raises:
        ConfigurationError: If a value is invalid or a directory unusable
    """
    load_dotenv()

    try:
        settings = LinkFeedSettings()
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid settings: {e}", error_code=ErrorCode.CONFIG_PARSE_ERROR
        ) from e

    settings.validate_configuration()
    return settings


_settings: Optional[LinkFeedSettings] = None


def get_settings(reload: bool = False) -> LinkFeedSettings:
    """Process-wide settings for entry points (CLI, schedulers).

    Args:
        reload: Read the environment again
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()
    return _settings
