"""
Application Settings - Load from YAML configs + .env secrets

Design Philosophy:
- Service configs (host, port, topics, channels) → YAML files (versioned in git)
- Secrets (passwords) → .env file (gitignored)
- Engine tuning (TTL, queue sizes, statistics constants) → analytics.yaml,
  validated separately by config/loader.py

Uses Pydantic for validation and type safety
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.utils.config import load_yaml_safe


class Settings(BaseSettings):
    """
    Application settings

    Architecture:
    - Infrastructure configs → config/providers/*.yaml
    - Secrets → .env (gitignored)

    Usage:
        from config.settings import get_settings

        settings = get_settings()
        print(settings.KAFKA_TOPIC_BARS)  # From streaming.yaml
        print(settings.CLICKHOUSE_PASSWORD)  # From .env
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields in .env
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Load YAML configs from files (cached at class level)
        if not hasattr(Settings, "_yaml_loaded"):
            Settings._streaming_config = load_yaml_safe("config/providers/streaming.yaml")
            Settings._database_config = load_yaml_safe("config/providers/databases.yaml")
            Settings._yaml_loaded = True

    # ============================================
    # ENVIRONMENT (.env only)
    # ============================================
    ENVIRONMENT: str = Field(default="local", description="Environment: local, dev, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # ============================================
    # PROVIDERS (.env only)
    # ============================================
    BAR_STORE_PROVIDER: str = Field(
        default="memory", description="Bar store backend: memory, clickhouse"
    )
    EVENT_PUBLISHER: str = Field(
        default="memory", description="Change notification backend: memory, redis"
    )
    BAR_FEED_PROVIDER: str = Field(
        default="none", description="Live bar feed: none, kafka"
    )

    ANALYTICS_CONFIG_PATH: str = Field(
        default="config/providers/analytics.yaml",
        description="Engine configuration file (statistics, cache, dispatcher)",
    )

    # ============================================
    # STREAMING - Kafka (from YAML)
    # ============================================
    @property
    def KAFKA_BOOTSTRAP_SERVERS(self) -> str:
        """Kafka bootstrap servers from streaming.yaml"""
        return self._streaming_config.get("kafka", {}).get("bootstrap_servers", "kafka:9092")

    @property
    def KAFKA_TOPIC_BARS(self) -> str:
        """Kafka topic carrying daily bars from streaming.yaml"""
        return (
            self._streaming_config.get("kafka", {}).get("topics", {}).get("bars", "market-bars")
        )

    @property
    def KAFKA_CONSUMER_GROUP(self) -> str:
        """Kafka consumer group for the analytics service"""
        return (
            self._streaming_config.get("kafka", {})
            .get("consumer_group", "analytics-service")
        )

    @property
    def REDIS_CHANNEL_PREFIX(self) -> str:
        """Pub/sub channel prefix for MetricsUpdated events"""
        return self._streaming_config.get("redis", {}).get("channel_prefix", "metrics:updated")

    # ============================================
    # CLICKHOUSE (from YAML + .env)
    # ============================================
    @property
    def CLICKHOUSE_HOST(self) -> str:
        """ClickHouse host from databases.yaml"""
        return self._database_config.get("clickhouse", {}).get("host", "clickhouse")

    @property
    def CLICKHOUSE_PORT(self) -> int:
        """ClickHouse native port from databases.yaml"""
        return self._database_config.get("clickhouse", {}).get("port", 9000)

    @property
    def CLICKHOUSE_DB(self) -> str:
        """ClickHouse database from databases.yaml"""
        return self._database_config.get("clickhouse", {}).get("database", "trading")

    @property
    def CLICKHOUSE_USER(self) -> str:
        """ClickHouse user from databases.yaml"""
        return self._database_config.get("clickhouse", {}).get("user", "trading_user")

    @property
    def CLICKHOUSE_BARS_TABLE(self) -> str:
        """Daily bar table from databases.yaml"""
        return self._database_config.get("clickhouse", {}).get("bars_table", "ohlcv_bars")

    # ClickHouse password from .env (secret)
    CLICKHOUSE_PASSWORD: str = Field(default="trading_pass")

    # ============================================
    # REDIS (from YAML + .env)
    # ============================================
    @property
    def REDIS_HOST(self) -> str:
        """Redis host from databases.yaml"""
        return self._database_config.get("redis", {}).get("host", "redis")

    @property
    def REDIS_PORT(self) -> int:
        """Redis port from databases.yaml"""
        return self._database_config.get("redis", {}).get("port", 6379)

    @property
    def REDIS_DB(self) -> int:
        """Redis database from databases.yaml"""
        return self._database_config.get("redis", {}).get("db", 0)

    # Redis password from .env (optional secret)
    REDIS_PASSWORD: str | None = Field(default=None)

    @property
    def redis_url(self) -> str:
        """Redis connection URL"""
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


# Singleton pattern
_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """
    Get application settings (singleton)

    Example:
        >>> settings = get_settings()
        >>> print(settings.KAFKA_BOOTSTRAP_SERVERS)
        kafka:9092
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
