"""Runtime configuration for the email pipeline.

Read once per process from the environment and handed to each component.
"""

from collections.abc import Mapping
from typing import Literal

import structlog
from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class EmailPipelineConfig(BaseSettings):
    """Settings shared by the queue worker, digest builder and send transport.

    Each field can be set by its own name or by the environment variable
    listed in its aliases. Empty variables fall back to the default.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    table_name: str = Field(default="twogether-dev", validation_alias=AliasChoices("table_name", "TABLE_NAME"))
    stage: str = Field(default="dev", validation_alias=AliasChoices("stage", "STAGE"))
    aws_region: str = Field(default="us-east-1", validation_alias=AliasChoices("aws_region", "AWS_REGION"))
    app_url: str = Field(
        default="https://twogetherforward.com",
        validation_alias=AliasChoices("app_url", "APP_URL"),
    )

    # Sender identity
    sender_domain: str = Field(
        default="twogetherforward.com",
        validation_alias=AliasChoices("sender_domain", "EMAIL_SENDER_DOMAIN"),
    )
    brand_name: str = Field(
        default="TwogetherForward",
        validation_alias=AliasChoices("brand_name", "EMAIL_BRAND_NAME"),
    )
    ses_configuration_set: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ses_configuration_set", "SES_CONFIGURATION_SET"),
    )

    # Transport selection
    transport: Literal["ses", "http"] = Field(
        default="ses",
        validation_alias=AliasChoices("transport", "EMAIL_TRANSPORT"),
    )
    email_api_url: str = Field(
        default="https://api.resend.com/emails",
        validation_alias=AliasChoices("email_api_url", "EMAIL_API_URL"),
    )
    email_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("email_api_key", "EMAIL_API_KEY"),
    )
    email_api_timeout: float = Field(
        default=10.0,
        gt=0,
        validation_alias=AliasChoices("email_api_timeout", "EMAIL_API_TIMEOUT"),
    )

    # Queue worker
    default_batch_size: int = Field(
        default=50,
        ge=1,
        validation_alias=AliasChoices("default_batch_size", "EMAIL_QUEUE_BATCH_SIZE"),
    )
    max_batch_size: int = Field(
        default=500,
        ge=1,
        validation_alias=AliasChoices("max_batch_size", "EMAIL_QUEUE_MAX_BATCH_SIZE"),
    )
    claim_timeout_seconds: int = Field(
        default=300,
        ge=1,
        validation_alias=AliasChoices("claim_timeout_seconds", "EMAIL_CLAIM_TIMEOUT_SECONDS"),
    )

    # Digest
    digest_window_days: int = Field(
        default=7,
        ge=1,
        validation_alias=AliasChoices("digest_window_days", "DIGEST_WINDOW_DAYS"),
    )

    cors_allowed_origin: str = Field(
        default="*",
        validation_alias=AliasChoices("cors_allowed_origin", "CORS_ALLOWED_ORIGIN"),
    )

    @model_validator(mode="after")
    def _check_limits(self) -> "EmailPipelineConfig":
        if self.default_batch_size > self.max_batch_size:
            raise ValueError("default_batch_size cannot exceed max_batch_size")
        if self.transport == "http" and not self.email_api_key:
            raise ValueError("EMAIL_API_KEY is required when EMAIL_TRANSPORT=http")
        return self

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EmailPipelineConfig":
        """Build config from the process environment or an explicit mapping.

        Unset or empty variables fall back to field defaults.

        Raises:
            pydantic.ValidationError: If a value is invalid.
        """
        if environ is None:
            return cls()
        return cls.model_validate({var: value for var, value in environ.items() if value})


_config: EmailPipelineConfig | None = None


def get_config() -> EmailPipelineConfig:
    """Get the process-wide config, reading the environment on first use."""
    global _config
    if _config is None:
        _config = EmailPipelineConfig.from_env()
        logger.debug(
            "Email pipeline config loaded",
            stage=_config.stage,
            table_name=_config.table_name,
            transport=_config.transport,
        )
    return _config


def reset_config() -> None:
    """Forget the cached config so the next get_config() re-reads the environment."""
    global _config
    _config = None
