import os
from enum import Enum
from functools import lru_cache
from typing import Optional
from urllib.parse import quote

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from txn_broker.messaging.constants import AMQP_SCHEME, AMQPS_SCHEME
from txn_broker.messaging.exceptions import ConfigurationError
from txn_broker.messaging.routing import validate_account_pattern

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Environment(str, Enum):
    """Deployment environments, selected with the ``ENV`` variable."""

    LOCAL = "LOCAL"
    DEV = "DEV"
    UAT = "UAT"
    PROD = "PROD"


def current_environment() -> str:
    """Raw value of the ``ENV`` variable, empty when unset."""
    return os.getenv("ENV", "")


def env_prefix_for(environment: Optional[str]) -> str:
    """``"DEV"`` -> ``"DEV_"``; an empty environment means no prefix."""
    if not environment:
        return ""
    return f"{environment}_"


class Settings(BaseSettings):
    app_name: str = "Transaction Broker Harness"

    # Deployment environment, read from ENV regardless of the variable prefix
    environment: str = Field("", validation_alias="ENV")

    log_level: str = "DEBUG"

    # RabbitMQ settings
    rabbitmq_url: str = Field(..., description="Broker address as host[:port][/vhost]")
    rabbitmq_user: str
    rabbitmq_password: str
    rabbitmq_publisher_confirms: bool = False

    # RabbitMQ TLS settings
    rabbitmq_tls_enabled: bool = False
    rabbitmq_tls_skip_verify: bool = False
    rabbitmq_tls_ca_cert: str = ""
    rabbitmq_tls_cert: str = ""
    rabbitmq_tls_key: str = ""

    # RabbitMQ exchange names
    rabbitmq_deposit_exchange_name: str
    rabbitmq_withdraw_exchange_name: str

    # RabbitMQ topic patterns, "*" stands for the account id
    rabbitmq_laos_deposit_topic: str
    rabbitmq_laos_withdrawal_topic: str

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got: {v}")
        return level

    @field_validator("rabbitmq_url")
    @classmethod
    def validate_rabbitmq_url(cls, v: str) -> str:
        if "://" in v:
            raise ValueError(f"rabbitmq_url must not include a scheme, got: {v}")
        return v

    @field_validator("rabbitmq_laos_deposit_topic", "rabbitmq_laos_withdrawal_topic")
    @classmethod
    def validate_topic_pattern(cls, v: str) -> str:
        return validate_account_pattern(v)

    @model_validator(mode="after")
    def refuse_skip_verify_in_prod(self) -> "Settings":
        if self.rabbitmq_tls_skip_verify and self.is_prod():
            raise ValueError("rabbitmq_tls_skip_verify cannot be enabled in the PROD environment")
        return self

    def is_prod(self) -> bool:
        return self.environment.upper() == Environment.PROD

    def get_rabbitmq_url(self) -> str:
        """Get RabbitMQ AMQP URL; the scheme follows the TLS flag."""
        scheme = AMQPS_SCHEME if self.rabbitmq_tls_enabled else AMQP_SCHEME

        # userinfo is percent-encoded, not form-encoded: a space must not become "+"
        user = quote(self.rabbitmq_user, safe="")
        password = quote(self.rabbitmq_password, safe="")
        return f"{scheme}://{user}:{password}@{self.rabbitmq_url}"


def load_settings(environment: Optional[str] = None, **overrides) -> Settings:
    """
    Load settings from the process environment and ``.env``.

    Variables are looked up with the ``<ENV>_`` prefix, e.g. ``DEV_RABBITMQ_URL``
    when ``ENV=DEV``.

    Raises:
        ConfigurationError: If a required variable is missing or a value is invalid.
    """

    if environment is None:
        environment = current_environment()

    prefix = env_prefix_for(environment)

    try:
        return Settings(_env_prefix=prefix, ENV=environment, **overrides)
    except ValidationError as e:
        problems = ", ".join(_describe_error(prefix, err) for err in e.errors())
        raise ConfigurationError(f"Invalid configuration: {problems}") from e


def _describe_error(prefix: str, err: dict) -> str:
    if not err["loc"]:
        return err["msg"]
    variable = "_".join(str(part) for part in err["loc"]).upper()
    return f"{prefix}{variable}: {err['msg']}"


@lru_cache
def get_settings() -> Settings:
    return load_settings()
