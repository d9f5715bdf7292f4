"""
Core Module - Configuration.

============================================================
CONFIGURABLE AGGREGATOR SETTINGS
============================================================

All runtime parameters are configurable:
- Upstream API endpoints, keys and timeouts
- Per-host rate budgets and retry policy
- Registry location
- Database URL
- Metric selection and history window

Configuration can be loaded from:
- Default values
- Environment variables (a .env file is honoured)
- YAML config file

Durations in environment variables are milliseconds, to stay
compatible with existing deployments. Dataclass fields are seconds.

============================================================
"""

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError, InvalidConfigError


logger = logging.getLogger(__name__)


DEFAULT_GLACIER_API_BASE = "https://glacier-api.avax.network/v1"
DEFAULT_METRICS_API_BASE = "https://metrics.avax.network/v2"

DEFAULT_METRIC_TYPES = [
    "avgTps",
    "maxTps",
    "txCount",
    "cumulativeTxCount",
    "gasUsed",
    "avgGasPrice",
    "feesPaid",
    "activeAddresses",
]


# =============================================================
# ENV HELPERS
# =============================================================


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = _env_str(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise InvalidConfigError(name, value, "expected an integer")


def _env_ms(name: str, default_seconds: float) -> float:
    """Read a millisecond duration and return seconds."""
    value = _env_str(name)
    if value is None:
        return default_seconds
    try:
        return int(value) / 1000.0
    except ValueError:
        raise InvalidConfigError(name, value, "expected milliseconds as an integer")


# =============================================================
# RATE LIMITS
# =============================================================


@dataclass
class RateLimitSettings:
    """
    Request budget and retry policy for one upstream host.
    """
    requests_per_minute: int = 20
    """Dispatches admitted per sliding window."""

    min_delay_seconds: float = 0.3
    """Fixed spacing between consecutive dispatches."""

    max_attempts: int = 3
    """Total attempts per request, first attempt included."""

    retry_delay_seconds: float = 2.0
    """Base backoff delay for the first retry."""

    max_retry_delay_seconds: float = 120.0

    window_seconds: float = 60.0

    def __post_init__(self) -> None:
        if self.requests_per_minute <= 0:
            raise InvalidConfigError(
                "requests_per_minute", self.requests_per_minute, "must be positive"
            )
        if self.max_attempts < 1:
            raise InvalidConfigError("max_attempts", self.max_attempts, "must be >= 1")
        if self.min_delay_seconds < 0 or self.retry_delay_seconds < 0:
            raise InvalidConfigError(
                "delays", (self.min_delay_seconds, self.retry_delay_seconds),
                "must not be negative",
            )


# =============================================================
# UPSTREAM APIS
# =============================================================


@dataclass
class ExplorerApiSettings:
    """Chain listing and validator endpoints."""
    base_url: str = DEFAULT_GLACIER_API_BASE
    api_key: Optional[str] = None
    timeout_seconds: float = 30.0
    validators_endpoint: str = "/networks/mainnet/validators"
    l1_validators_endpoint: str = "/networks/mainnet/l1Validators"
    icm_messages_endpoint: str = "/icm/messages"
    rate_limit: RateLimitSettings = field(default_factory=lambda: RateLimitSettings(
        requests_per_minute=10,
        min_delay_seconds=2.0,
        max_attempts=5,
        retry_delay_seconds=5.0,
    ))


@dataclass
class MetricsApiSettings:
    """Per-chain time-series endpoints."""
    base_url: str = DEFAULT_METRICS_API_BASE
    api_key: Optional[str] = None
    timeout_seconds: float = 30.0
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)


# =============================================================
# LOCAL RESOURCES
# =============================================================


@dataclass
class RegistrySettings:
    path: Path = Path("l1-registry/data")
    descriptor_filename: str = "chain.json"


@dataclass
class DatabaseSettings:
    url: str = "sqlite:///chain_metrics.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10


@dataclass
class MetricsSettings:
    """Which series are fetched and how far back they are kept."""
    metric_types: List[str] = field(default_factory=lambda: list(DEFAULT_METRIC_TYPES))
    history_days: int = 30
    max_pages: int = 1

    def __post_init__(self) -> None:
        if self.history_days <= 0:
            raise InvalidConfigError("history_days", self.history_days, "must be positive")


@dataclass
class IcmSettings:
    """Whole days recounted per ICM pass, and how long their counts are kept."""
    lookback_days: int = 1
    history_days: int = 90
    max_pages: int = 1000
    network: str = "mainnet"

    def __post_init__(self) -> None:
        if self.lookback_days < 0:
            raise InvalidConfigError("lookback_days", self.lookback_days, "must not be negative")
        if self.history_days <= 0:
            raise InvalidConfigError("history_days", self.history_days, "must be positive")
        if self.max_pages <= 0:
            raise InvalidConfigError("max_pages", self.max_pages, "must be positive")


@dataclass
class LoggingSettings:
    level: str = "INFO"
    format: str = "text"


# =============================================================
# MAIN CONFIGURATION
# =============================================================


@dataclass
class AppConfig:
    """
    Main configuration for the aggregator.

    Combines all sub-configurations.
    """
    explorer: ExplorerApiSettings = field(default_factory=ExplorerApiSettings)
    metrics_api: MetricsApiSettings = field(default_factory=MetricsApiSettings)
    registry: RegistrySettings = field(default_factory=RegistrySettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    metrics: MetricsSettings = field(default_factory=MetricsSettings)
    icm: IcmSettings = field(default_factory=IcmSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_env(cls, dotenv_path: Optional[Union[str, Path]] = None) -> "AppConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - GLACIER_API_BASE, GLACIER_API_KEY, GLACIER_API_TIMEOUT (ms)
        - GLACIER_RATE_LIMIT, GLACIER_RETRY_DELAY (ms), GLACIER_MAX_RETRIES,
          GLACIER_MIN_DELAY (ms)
        - GLACIER_VALIDATORS_ENDPOINT, GLACIER_L1VALIDATORS_ENDPOINT, GLACIER_ICM_ENDPOINT
        - METRICS_API_BASE, METRICS_API_KEY, METRICS_API_TIMEOUT (ms)
        - METRICS_RATE_LIMIT, METRICS_RETRY_DELAY (ms), METRICS_MAX_RETRIES,
          METRICS_MIN_DELAY (ms)
        - REGISTRY_PATH
        - DATABASE_URL
        - METRICS_TYPES (comma separated), METRICS_HISTORY_DAYS
        - ICM_LOOKBACK_DAYS, ICM_HISTORY_DAYS
        - LOG_LEVEL, LOG_FORMAT
        """
        load_dotenv(dotenv_path)
        config = cls()

        explorer = config.explorer
        explorer.base_url = _env_str("GLACIER_API_BASE", explorer.base_url).rstrip("/")
        explorer.api_key = _env_str("GLACIER_API_KEY")
        explorer.timeout_seconds = _env_ms("GLACIER_API_TIMEOUT", explorer.timeout_seconds)
        explorer.validators_endpoint = _env_str(
            "GLACIER_VALIDATORS_ENDPOINT", explorer.validators_endpoint
        )
        explorer.l1_validators_endpoint = _env_str(
            "GLACIER_L1VALIDATORS_ENDPOINT", explorer.l1_validators_endpoint
        )
        explorer.icm_messages_endpoint = _env_str("GLACIER_ICM_ENDPOINT", explorer.icm_messages_endpoint)
        explorer.rate_limit = RateLimitSettings(
            requests_per_minute=_env_int("GLACIER_RATE_LIMIT", 10),
            retry_delay_seconds=_env_ms("GLACIER_RETRY_DELAY", 5.0),
            max_attempts=_env_int("GLACIER_MAX_RETRIES", 5),
            min_delay_seconds=_env_ms("GLACIER_MIN_DELAY", 2.0),
        )

        metrics_api = config.metrics_api
        metrics_api.base_url = _env_str("METRICS_API_BASE", metrics_api.base_url).rstrip("/")
        metrics_api.api_key = _env_str("METRICS_API_KEY", explorer.api_key)
        metrics_api.timeout_seconds = _env_ms("METRICS_API_TIMEOUT", metrics_api.timeout_seconds)
        metrics_api.rate_limit = RateLimitSettings(
            requests_per_minute=_env_int("METRICS_RATE_LIMIT", 20),
            retry_delay_seconds=_env_ms("METRICS_RETRY_DELAY", 2.0),
            max_attempts=_env_int("METRICS_MAX_RETRIES", 3),
            min_delay_seconds=_env_ms("METRICS_MIN_DELAY", 0.3),
        )

        registry_path = _env_str("REGISTRY_PATH")
        if registry_path:
            config.registry.path = Path(registry_path)

        config.database.url = _env_str("DATABASE_URL", config.database.url)

        metric_types = _env_str("METRICS_TYPES")
        if metric_types:
            config.metrics.metric_types = [m.strip() for m in metric_types.split(",") if m.strip()]
        config.metrics.history_days = _env_int("METRICS_HISTORY_DAYS", config.metrics.history_days)
        config.icm = IcmSettings(
            lookback_days=_env_int("ICM_LOOKBACK_DAYS", config.icm.lookback_days),
            history_days=_env_int("ICM_HISTORY_DAYS", config.icm.history_days),
        )

        config.logging.level = _env_str("LOG_LEVEL", config.logging.level)
        config.logging.format = _env_str("LOG_FORMAT", config.logging.format)

        return config

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "AppConfig":
        """
        Load configuration from a YAML file.

        Sections mirror the dataclass names (``explorer``, ``metrics_api``,
        ``registry``, ``database``, ``metrics``, ``icm``, ``logging``). Missing keys
        keep their defaults.
        """
        path = Path(path)
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load YAML config from {path}", cause=e)

        if not isinstance(data, dict):
            raise InvalidConfigError(str(path), type(data).__name__, "top level must be a mapping")

        config = cls()

        if "explorer" in data:
            e = dict(data["explorer"])
            rate = e.pop("rate_limit", None)
            config.explorer = ExplorerApiSettings(**e)
            if rate:
                config.explorer.rate_limit = RateLimitSettings(**rate)

        if "metrics_api" in data:
            m = dict(data["metrics_api"])
            rate = m.pop("rate_limit", None)
            config.metrics_api = MetricsApiSettings(**m)
            if rate:
                config.metrics_api.rate_limit = RateLimitSettings(**rate)

        if "registry" in data:
            r = dict(data["registry"])
            if "path" in r:
                r["path"] = Path(r["path"])
            config.registry = RegistrySettings(**r)

        if "database" in data:
            config.database = DatabaseSettings(**data["database"])
        if "metrics" in data:
            config.metrics = MetricsSettings(**data["metrics"])
        if "icm" in data:
            config.icm = IcmSettings(**data["icm"])
        if "logging" in data:
            config.logging = LoggingSettings(**data["logging"])

        logger.info(f"Loaded configuration from {path}")
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary with secrets removed."""
        data = asdict(self)
        data["registry"]["path"] = str(self.registry.path)
        for section in ("explorer", "metrics_api"):
            if data[section].get("api_key"):
                data[section]["api_key"] = "***"
        return data


__all__ = [
    "DEFAULT_METRIC_TYPES",
    "RateLimitSettings",
    "ExplorerApiSettings",
    "MetricsApiSettings",
    "RegistrySettings",
    "DatabaseSettings",
    "MetricsSettings",
    "IcmSettings",
    "LoggingSettings",
    "AppConfig",
]
