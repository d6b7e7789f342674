"""
Unit tests for configuration (analytics.yaml loader + Settings)
"""

import pytest
import yaml

from config.loader import (
    DEFAULT_ANALYTICS_CONFIG,
    CacheConfig,
    load_analytics_config,
    parse_analytics_config,
)
from config.settings import get_settings
from core.exceptions import ConfigError
from core.models.metrics import MetricKind
from core.utils.config import load_yaml, load_yaml_safe, resolve_config_path
from services.analytics_service.metric_loader import MetricLoader


@pytest.mark.unit
class TestAnalyticsConfig:
    def test_shipped_config_is_valid(self):
        config = load_analytics_config(DEFAULT_ANALYTICS_CONFIG)

        assert config.statistics.trading_days_per_year == 252
        assert config.statistics.var_min_historical_observations == 30
        assert config.cache.ttl_for(MetricKind.PERFORMANCE) > 0
        assert config.warmup.metrics

    def test_statistics_constants_required(self, analytics_config_data):
        del analytics_config_data["statistics"]["risk_free_rate"]

        with pytest.raises(ConfigError):
            parse_analytics_config(analytics_config_data)

    def test_statistics_section_required(self):
        with pytest.raises(ConfigError):
            parse_analytics_config({})

    def test_defaults(self):
        config = parse_analytics_config(
            {"statistics": {"trading_days_per_year": 252, "risk_free_rate": 0.0}}
        )

        assert config.cache.default_ttl_seconds == 300
        assert config.dispatcher.ingest_queue_size == 10_000
        assert config.subscriptions.queue_size == 100
        assert config.warmup.symbols == []
        assert config.ema_fan.periods == [18, 50, 100, 200]
        assert config.cache.sweep_interval_seconds == 60

    @pytest.mark.parametrize("periods", [[18], [50, 18, 100], [18, 18, 50], [0, 18]])
    def test_ema_fan_periods_validated(self, analytics_config_data, periods):
        analytics_config_data["ema_fan"] = {"periods": periods}

        with pytest.raises(ConfigError):
            parse_analytics_config(analytics_config_data)

    def test_ttl_per_kind(self):
        cache = CacheConfig(default_ttl_seconds=60, ttl_seconds={"rsi": 5})

        assert cache.ttl_for(MetricKind.RSI) == 5
        assert cache.ttl_for("SMA") == 60

    def test_unknown_ttl_kind(self, analytics_config_data):
        analytics_config_data["cache"]["ttl_seconds"] = {"STOCHASTIC": 10}

        with pytest.raises(ConfigError):
            parse_analytics_config(analytics_config_data)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_analytics_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "analytics.yaml"
        path.write_text("statistics: [unclosed")

        with pytest.raises(ConfigError):
            load_analytics_config(path)

    def test_load_from_file(self, tmp_path, analytics_config_data):
        path = tmp_path / "analytics.yaml"
        path.write_text(yaml.safe_dump(analytics_config_data))

        config = load_analytics_config(path)

        assert config.dispatcher.ingest_queue_size == 100


@pytest.mark.unit
class TestMetricLoader:
    def test_invalid_entries_skipped(self, analytics_config_data):
        analytics_config_data["warmup"]["metrics"] += [
            {"kind": "STOCHASTIC"},
            {"kind": "SMA", "params": {"period": -1}},
            {"kind": "macd"},
        ]
        config = parse_analytics_config(analytics_config_data)

        specs = MetricLoader.load_specs(config.warmup)

        assert [kind for kind, _ in specs] == [
            MetricKind.SMA,
            MetricKind.EMA,
            MetricKind.RSI,
            MetricKind.VOLATILITY,
            MetricKind.MACD,
        ]

    def test_keys_for_symbol(self, analytics_config):
        specs = MetricLoader.load_specs(analytics_config.warmup)

        keys = MetricLoader.keys_for("msft", specs)

        assert keys[0].cache_key == "SMA:MSFT:period=5"
        assert all(k.symbol == "MSFT" for k in keys)


@pytest.mark.unit
class TestYamlUtils:
    def test_bare_name_resolves_to_providers_dir(self):
        assert resolve_config_path("streaming.yaml").exists()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_yaml(path) == {}

    def test_safe_load_missing(self, tmp_path):
        assert load_yaml_safe(tmp_path / "missing.yaml") == {}


@pytest.mark.unit
class TestSettings:
    def test_singleton(self):
        assert get_settings() is get_settings()

    def test_yaml_backed_properties(self):
        settings = get_settings()

        assert settings.KAFKA_TOPIC_BARS
        assert settings.REDIS_CHANNEL_PREFIX
        assert isinstance(settings.CLICKHOUSE_PORT, int)
        assert settings.redis_url.startswith("redis://")

    def test_provider_defaults(self):
        settings = get_settings()

        assert settings.BAR_STORE_PROVIDER in ("memory", "clickhouse")
        assert settings.EVENT_PUBLISHER in ("memory", "redis")
