"""Configuration for the fetch engine, loaded from environment variables."""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError
from .http_client import DEFAULT_HTTP_TIMEOUT
from .logging_config import logger

DEFAULT_INDEX_TTL_HOURS = 8
DEFAULT_CONCURRENCY = 4
DEFAULT_REQUEST_TIMEOUT = 300


def _default_cache_dir() -> Path:
    base = os.environ.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return Path(base) / "component-harvester" / "index"


def evaluate_boolean(value: str) -> bool:
    """
    Evaluate string values as boolean.

    Args:
        value: String value to evaluate

    Returns:
        Boolean result
    """
    return value.lower() in ["true", "yes", "yeah", "1"]


@dataclass
class HarvesterConfig:
    """Configuration settings for the fetch engine."""

    cache_dir: Path = field(default_factory=_default_cache_dir)
    temp_dir: Optional[Path] = None
    index_ttl_hours: float = DEFAULT_INDEX_TTL_HOURS
    concurrency: int = DEFAULT_CONCURRENCY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @property
    def index_ttl_seconds(self) -> float:
        return self.index_ttl_hours * 60 * 60

    @property
    def effective_request_timeout(self) -> Optional[float]:
        """Per-request timeout, or None when disabled."""
        return self.request_timeout or None

    def validate(self) -> None:
        """
        Validate configuration settings.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.index_ttl_hours <= 0:
            raise ConfigurationError(f"Index TTL must be positive, got {self.index_ttl_hours}")
        if self.concurrency < 1:
            raise ConfigurationError(f"Concurrency must be at least 1, got {self.concurrency}")
        if self.request_timeout < 0:
            raise ConfigurationError(f"Request timeout cannot be negative, got {self.request_timeout}")
        if self.http_timeout <= 0:
            raise ConfigurationError(f"HTTP timeout must be positive, got {self.http_timeout}")
        if self.temp_dir is not None and not Path(self.temp_dir).is_dir():
            raise ConfigurationError(f"Temp directory does not exist: {self.temp_dir}")

    def ensure_directories(self) -> None:
        """Create the index cache directory if needed."""
        Path(self.cache_dir).mkdir(parents=True, exist_ok=True)

    @property
    def temp_root(self) -> Path:
        return Path(self.temp_dir) if self.temp_dir else Path(tempfile.gettempdir())


def _env_number(name: str, default: float, cast=float):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")


def load_config() -> HarvesterConfig:
    """
    Load and validate configuration from environment variables.

    Returns:
        Validated configuration object

    Raises:
        ConfigurationError: If configuration is invalid
    """
    cache_dir = os.getenv("HARVESTER_CACHE_DIR")
    temp_dir = os.getenv("HARVESTER_TEMP_DIR")

    config = HarvesterConfig(
        cache_dir=Path(cache_dir) if cache_dir else _default_cache_dir(),
        temp_dir=Path(temp_dir) if temp_dir else None,
        index_ttl_hours=_env_number("HARVESTER_INDEX_TTL_HOURS", DEFAULT_INDEX_TTL_HOURS),
        concurrency=_env_number("HARVESTER_CONCURRENCY", DEFAULT_CONCURRENCY, int),
        request_timeout=_env_number("HARVESTER_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
        http_timeout=_env_number("HARVESTER_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
    )
    config.validate()
    logger.debug(f"Loaded configuration: {config}")
    return config
