"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AwsConfig(BaseSettings):
    """Cross-account access configuration.

    The service assumes ``arn:aws:iam::{account}:role/{role_name}`` in each
    tenant account. Static credentials are optional; when empty the default
    boto credential chain is used for the STS call.
    """

    model_config = SettingsConfigDict(env_prefix="AWS_ACCOUNT_")

    region: str = Field(default="us-east-1")
    role_name: str = Field(default="SpinupEFSRole")
    external_id: str = Field(default="")
    access_key_id: str = Field(default="")
    secret_access_key: str = Field(default="")
    endpoint_url: str | None = Field(default=None)
    session_name: str = Field(default="efshub")
    session_duration: int = Field(default=900)  # seconds (STS minimum)

    default_sgs: list[str] = Field(default_factory=list)
    default_subnets: list[str] = Field(default_factory=list)
    default_kms_key_id: str = Field(default="")
    # Tag keys identifying the per-org KMS key (looked up when set)
    kms_key_tags: list[str] = Field(default_factory=list)


class RedisConfig(BaseSettings):
    """Redis connection pool configuration (task store)."""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    url: str = Field(default="redis://redis:6379/0")
    max_connections: int = Field(default=50)


class TasksConfig(BaseSettings):
    """Task tracking and saga configuration."""

    model_config = SettingsConfigDict(env_prefix="TASKS_")

    namespace: str = Field(default="efshub")
    ttl: int = Field(default=86400)  # seconds a finished task stays pollable
    queue_size: int = Field(default=100)  # progress messages buffered per task
    rollback_timeout: float = Field(default=120.0)  # seconds
    shutdown_grace: float = Field(default=30.0)  # seconds

    # Retry budgets for provider polling
    wait_attempts: int = Field(default=10)
    wait_backoff: float = Field(default=2.0)  # seconds (doubled per attempt)
    delete_attempts: int = Field(default=3)


class SecurityConfig(BaseSettings):
    """API token configuration."""

    model_config = SettingsConfigDict(env_prefix="SECURITY_")

    token: str = Field(default="")  # empty disables token auth
    header: str = Field(default="X-Auth-Token")
    public_paths: list[str] = Field(
        default=[
            "/v1/efs/ping",
            "/v1/efs/version",
            "/v1/efs/metrics",
            "/health",
        ]
    )


class MetricsConfig(BaseSettings):
    """Prometheus metrics configuration."""

    model_config = SettingsConfigDict(env_prefix="METRICS_")

    enabled: bool = Field(default=True)
    multiproc_dir: str = Field(default="/tmp/efshub_metrics")


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Standard fields added to all logs:
    - schema_version: Log schema version for backwards compatibility
    - service: Service name (efshub-api)

    Rate limiting:
    - Prevents log storms from repeated messages
    - ERROR logs bypass rate limiting (always logged)
    """

    model_config = SettingsConfigDict(env_prefix="LOGGING_")

    level: str = Field(default="INFO")
    schema_version: str = Field(default="1.0")
    slow_threshold_ms: float = Field(default=1000.0)
    rate_limit_per_minute: int = Field(default=100)
    service_name: str = Field(default="efshub-api")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="EFSHUB_",
        env_nested_delimiter="__",
    )

    org: str = Field(default="localdev")
    listen_host: str = Field(default="0.0.0.0")
    listen_port: int = Field(default=8080)
    # Account alias -> account number, e.g. {"spinup": "012345678901"}
    accounts_map: dict[str, str] = Field(default_factory=dict)

    aws: AwsConfig = Field(default_factory=AwsConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    tasks: TasksConfig = Field(default_factory=TasksConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


@lru_cache
def get_settings() -> Settings:
    return Settings()
