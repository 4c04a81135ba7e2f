"""Environment-driven settings for the pipeline components.

Every value is read from the environment, the way Lambda functions and
containers are configured. ``Settings.from_env()`` is called once at
start-up; components receive the resulting object.
"""

from dataclasses import dataclass
from typing import Literal

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from complaints.utils.exceptions import ConfigurationError

MAX_PROCESSOR_BATCH_SIZE = 5
MAX_RECEIVE_WAIT_SECONDS = 20


@dataclass(frozen=True)
class RetrySettings:
    """Attempts and base delay for one retry policy."""

    attempts: int
    base_delay: float


class Settings(BaseSettings):
    """Configuration consumed by the pipeline.

    Field names match their environment variables (case-insensitive)
    except where an alias lists the variable explicitly.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        env_ignore_empty=True,
        populate_by_name=True,
    )

    # Endpoints
    complaints_queue_url: str | None = None
    notifications_queue_url: str | None = None
    complaints_topic_arn: str | None = None
    table_name: str = "complaints-dev"
    dead_letter_queue_url: str | None = None
    region_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("region_name", "AWS_REGION", "AWS_DEFAULT_REGION"),
    )

    # Polling
    processor_batch_size: int = Field(
        default=MAX_PROCESSOR_BATCH_SIZE,
        validation_alias=AliasChoices("processor_batch_size", "RECEIVE_MAX_MESSAGES"),
    )
    receive_wait_seconds: int = MAX_RECEIVE_WAIT_SECONDS
    visibility_timeout: int | None = Field(default=None, ge=0)
    shutdown_timeout: float = Field(default=30.0, ge=0)

    # Resilience (attempts count the first call)
    db_retry_attempts: int = Field(default=4, ge=1)
    db_retry_base_delay: float = Field(default=2.0, ge=0)
    topic_retry_attempts: int = Field(default=4, ge=1)
    topic_retry_base_delay: float = Field(default=1.0, ge=0)
    queue_retry_attempts: int = Field(default=4, ge=1)
    queue_retry_base_delay: float = Field(default=1.0, ge=0)
    notify_retry_attempts: int = Field(default=4, ge=1)
    notify_retry_base_delay: float = Field(default=1.0, ge=0)
    circuit_failure_threshold: int = Field(default=5, ge=1)
    circuit_recovery_timeout: float = Field(default=30.0, ge=0)

    # Notification
    notification_channel: Literal["log", "ses"] = "log"
    ses_from_email: str | None = None

    # Logging
    service_name: str = "complaints"
    stage: str = "dev"
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    @field_validator("processor_batch_size")
    @classmethod
    def clamp_batch_size(cls, v: int) -> int:
        return max(1, min(v, MAX_PROCESSOR_BATCH_SIZE))

    @field_validator("receive_wait_seconds")
    @classmethod
    def clamp_wait(cls, v: int) -> int:
        return max(0, min(v, MAX_RECEIVE_WAIT_SECONDS))

    @field_validator("notification_channel", "log_format", mode="before")
    @classmethod
    def lowercase(cls, v):
        return v.lower() if isinstance(v, str) else v

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase(cls, v):
        return v.upper() if isinstance(v, str) else v

    @property
    def database_retry(self) -> RetrySettings:
        return RetrySettings(self.db_retry_attempts, self.db_retry_base_delay)

    @property
    def topic_retry(self) -> RetrySettings:
        return RetrySettings(self.topic_retry_attempts, self.topic_retry_base_delay)

    @property
    def queue_retry(self) -> RetrySettings:
        return RetrySettings(self.queue_retry_attempts, self.queue_retry_base_delay)

    @property
    def notification_retry(self) -> RetrySettings:
        return RetrySettings(self.notify_retry_attempts, self.notify_retry_base_delay)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables.

        Raises:
            ConfigurationError: If a variable holds an invalid value.
        """
        try:
            return cls()
        except ValidationError as e:
            problems = "; ".join(
                f"{str(err['loc'][0]).upper() if err['loc'] else 'settings'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(f"Invalid configuration: {problems}") from e

    def require(self, *names: str) -> None:
        """Raise ConfigurationError if any named setting is empty.

        Args:
            names: Attribute names, e.g. "complaints_queue_url".
        """
        missing = [name for name in names if not getattr(self, name)]
        if missing:
            env_names = ", ".join(name.upper() for name in missing)
            raise ConfigurationError(f"Missing required configuration: {env_names}")
