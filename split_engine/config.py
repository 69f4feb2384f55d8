"""Configuration management for split-engine."""

from dataclasses import dataclass, field
from typing import Any

from split_engine.exceptions import ConfigurationError


@dataclass
class KafkaConfig:
    """Kafka producer configuration."""

    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    linger_ms: int = 5
    compression: str = "snappy"
    retries: int = 3
    enable_idempotence: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "linger.ms": self.linger_ms,
            "compression.type": self.compression,
            "retries": self.retries,
            "enable.idempotence": self.enable_idempotence,
        }


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "splits"
    user: str = "postgres"
    password: str = "postgres"

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class SettlementConfig:
    """Settlement queue and reconciliation settings."""

    topic: str = "payments.split-settlements"
    currency: str = "BRL"
    publish_timeout_seconds: float = 5.0
    reconcile_after_seconds: float = 300.0

    def validate(self) -> None:
        """Reject values the distributor cannot work with."""
        if not self.topic:
            raise ConfigurationError("Settlement topic must not be empty")
        if len(self.currency) != 3 or not self.currency.isalpha():
            raise ConfigurationError(f"Currency must be an ISO 4217 code, got {self.currency!r}")
        if self.publish_timeout_seconds <= 0:
            raise ConfigurationError("publish_timeout_seconds must be positive")
        if self.reconcile_after_seconds < 0:
            raise ConfigurationError("reconcile_after_seconds must not be negative")


@dataclass
class EngineConfig:
    """Main configuration for split-engine."""

    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    settlement: SettlementConfig = field(default_factory=SettlementConfig)
    seed: int | None = None
    log_level: str = "INFO"
    log_format: str = "standard"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create config from environment variables."""
        import os

        kafka = KafkaConfig(
            bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
            acks=os.getenv("KAFKA_ACKS", "all"),
        )

        postgres = PostgresConfig(
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=_parse_number(os.getenv("POSTGRES_PORT", "5432"), int, "POSTGRES_PORT"),
            database=os.getenv("POSTGRES_DB", "splits"),
            user=os.getenv("POSTGRES_USER", "postgres"),
            password=os.getenv("POSTGRES_PASSWORD", "postgres"),
        )

        settlement = SettlementConfig(
            topic=os.getenv("SETTLEMENT_TOPIC", "payments.split-settlements"),
            currency=os.getenv("SETTLEMENT_CURRENCY", "BRL").upper(),
            publish_timeout_seconds=_parse_number(
                os.getenv("PUBLISH_TIMEOUT_SECONDS", "5"), float, "PUBLISH_TIMEOUT_SECONDS"
            ),
            reconcile_after_seconds=_parse_number(
                os.getenv("RECONCILE_AFTER_SECONDS", "300"), float, "RECONCILE_AFTER_SECONDS"
            ),
        )
        settlement.validate()

        seed = os.getenv("SEED")

        return cls(
            kafka=kafka,
            postgres=postgres,
            settlement=settlement,
            seed=_parse_number(seed, int, "SEED") if seed else None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )


def _parse_number(raw: str, cast: type, name: str) -> Any:
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
