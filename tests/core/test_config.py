"""
Tests for configuration loading and logging helpers.
"""

import json
import logging
from pathlib import Path

import pytest

from core.config import DEFAULT_METRIC_TYPES, AppConfig, IcmSettings, RateLimitSettings
from core.exceptions import ConfigurationError, InvalidConfigError
from core.logging_config import JsonFormatter, mask_headers, mask_value, setup_logging


ENV_VARS = [
    "GLACIER_API_BASE", "GLACIER_API_KEY", "GLACIER_API_TIMEOUT",
    "GLACIER_RATE_LIMIT", "GLACIER_RETRY_DELAY", "GLACIER_MAX_RETRIES", "GLACIER_MIN_DELAY",
    "METRICS_API_BASE", "METRICS_API_KEY", "METRICS_API_TIMEOUT",
    "METRICS_RATE_LIMIT", "METRICS_RETRY_DELAY", "METRICS_MAX_RETRIES", "METRICS_MIN_DELAY",
    "GLACIER_ICM_ENDPOINT", "ICM_LOOKBACK_DAYS", "ICM_HISTORY_DAYS",
    "REGISTRY_PATH", "DATABASE_URL", "METRICS_TYPES", "METRICS_HISTORY_DAYS",
    "LOG_LEVEL", "LOG_FORMAT",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return tmp_path / ".env"


# ============================================================
# ENVIRONMENT
# ============================================================

class TestFromEnv:

    def test_defaults(self, clean_env):
        config = AppConfig.from_env(clean_env)

        assert config.explorer.rate_limit.requests_per_minute == 10
        assert config.explorer.rate_limit.min_delay_seconds == 2.0
        assert config.metrics_api.rate_limit.requests_per_minute == 20
        assert config.metrics.metric_types == DEFAULT_METRIC_TYPES
        assert config.explorer.api_key is None
        assert config.explorer.icm_messages_endpoint == "/icm/messages"
        assert config.icm.lookback_days == 1
        assert config.icm.history_days == 90

    def test_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("GLACIER_API_BASE", "https://explorer.test/v1/")
        monkeypatch.setenv("GLACIER_RATE_LIMIT", "5")
        monkeypatch.setenv("GLACIER_MIN_DELAY", "1500")
        monkeypatch.setenv("GLACIER_API_TIMEOUT", "10000")
        monkeypatch.setenv("METRICS_TYPES", "txCount, avgTps,,")
        monkeypatch.setenv("REGISTRY_PATH", "/srv/registry/data")
        monkeypatch.setenv("DATABASE_URL", "sqlite:///other.db")
        monkeypatch.setenv("ICM_LOOKBACK_DAYS", "3")

        config = AppConfig.from_env(clean_env)

        assert config.explorer.base_url == "https://explorer.test/v1"
        assert config.explorer.rate_limit.requests_per_minute == 5
        assert config.explorer.rate_limit.min_delay_seconds == 1.5
        assert config.explorer.timeout_seconds == 10.0
        assert config.metrics.metric_types == ["txCount", "avgTps"]
        assert config.registry.path == Path("/srv/registry/data")
        assert config.database.url == "sqlite:///other.db"
        assert config.icm.lookback_days == 3

    def test_metrics_key_falls_back_to_explorer_key(self, clean_env, monkeypatch):
        monkeypatch.setenv("GLACIER_API_KEY", "glacier-secret")

        config = AppConfig.from_env(clean_env)

        assert config.metrics_api.api_key == "glacier-secret"

    def test_dotenv_file(self, clean_env):
        clean_env.write_text("METRICS_HISTORY_DAYS=7\n", encoding="utf-8")

        config = AppConfig.from_env(clean_env)

        assert config.metrics.history_days == 7

    def test_invalid_integer(self, clean_env, monkeypatch):
        monkeypatch.setenv("GLACIER_RATE_LIMIT", "lots")

        with pytest.raises(InvalidConfigError) as exc:
            AppConfig.from_env(clean_env)

        assert exc.value.to_dict()["context"]["config_key"] == "GLACIER_RATE_LIMIT"

    def test_invalid_milliseconds(self, clean_env, monkeypatch):
        monkeypatch.setenv("METRICS_MIN_DELAY", "0.5s")

        with pytest.raises(InvalidConfigError):
            AppConfig.from_env(clean_env)


# ============================================================
# YAML
# ============================================================

class TestFromYaml:

    def test_sections(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "explorer:\n"
            "  base_url: https://explorer.test/v1\n"
            "  rate_limit:\n"
            "    requests_per_minute: 4\n"
            "    min_delay_seconds: 0.5\n"
            "registry:\n"
            "  path: /data/registry\n"
            "metrics:\n"
            "  metric_types: [txCount]\n"
            "  history_days: 14\n"
            "icm:\n"
            "  lookback_days: 2\n",
            encoding="utf-8",
        )

        config = AppConfig.from_yaml(path)

        assert config.explorer.base_url == "https://explorer.test/v1"
        assert config.explorer.rate_limit.requests_per_minute == 4
        assert config.explorer.rate_limit.max_attempts == 3
        assert config.registry.path == Path("/data/registry")
        assert config.metrics.metric_types == ["txCount"]
        assert config.metrics.history_days == 14
        assert config.icm.lookback_days == 2
        assert config.icm.history_days == 90
        assert config.database.url == "sqlite:///chain_metrics.db"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc:
            AppConfig.from_yaml(tmp_path / "absent.yaml")

        assert exc.value.to_dict()["context"]["cause_type"] == "FileNotFoundError"

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n", encoding="utf-8")

        with pytest.raises(InvalidConfigError):
            AppConfig.from_yaml(path)

    def test_invalid_values_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("metrics:\n  history_days: 0\n", encoding="utf-8")

        with pytest.raises(InvalidConfigError):
            AppConfig.from_yaml(path)


class TestSettings:

    def test_rate_limit_validation(self):
        with pytest.raises(InvalidConfigError):
            RateLimitSettings(requests_per_minute=0)
        with pytest.raises(InvalidConfigError):
            RateLimitSettings(max_attempts=0)
        with pytest.raises(InvalidConfigError):
            RateLimitSettings(min_delay_seconds=-1)

    def test_icm_validation(self):
        assert IcmSettings(lookback_days=0).lookback_days == 0
        with pytest.raises(InvalidConfigError):
            IcmSettings(lookback_days=-1)
        with pytest.raises(InvalidConfigError):
            IcmSettings(history_days=0)

    def test_to_dict_masks_keys(self):
        config = AppConfig()
        config.explorer.api_key = "glacier-secret"

        data = config.to_dict()

        assert data["explorer"]["api_key"] == "***"
        assert data["metrics_api"]["api_key"] is None
        assert data["registry"]["path"] == "l1-registry/data"


# ============================================================
# LOGGING
# ============================================================

class TestLogging:

    def test_mask_value(self):
        assert mask_value("abcdef123456") == "abcd...***"
        assert mask_value("abc") == "***"
        assert mask_value(None) == "***"

    def test_mask_headers(self):
        headers = {"x-glacier-api-key": "abcdef123456", "Accept": "application/json"}

        masked = mask_headers(headers)

        assert masked == {"x-glacier-api-key": "abcd...***", "Accept": "application/json"}
        assert headers["x-glacier-api-key"] == "abcdef123456"
        assert mask_headers(None) == {}

    def test_json_formatter(self):
        record = logging.LogRecord(
            "ingestion.service", logging.WARNING, __file__, 1, "cycle %s failed", ("full",), None,
        )

        payload = json.loads(JsonFormatter().format(record))

        assert payload["level"] == "WARNING"
        assert payload["logger"] == "ingestion.service"
        assert payload["message"] == "cycle full failed"

    def test_setup_logging(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            logger = setup_logging("debug", "json")

            assert logger.name == "chain_metrics"
            assert root.level == logging.DEBUG
            assert isinstance(root.handlers[0].formatter, JsonFormatter)
            assert logging.getLogger("aiohttp").level == logging.WARNING
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)
