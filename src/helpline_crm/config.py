"""Application configuration."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


# Placeholder values from the sample .env file
PLACEHOLDER_CREDENTIALS = frozenset({
    "your_account_sid",
    "your_auth_token",
    "your_twilio_sid",
    "your_twilio_token",
})


class TwilioSettings(BaseModel):
    """Twilio voice configuration."""

    enabled: bool = True
    account_sid: str = ""
    auth_token: str = ""
    from_number: str = ""

    # Number the helpline forwards answered calls to
    agent_phone: str = ""

    # Public URL Twilio uses to reach our webhooks (no trailing slash)
    base_url: str = "http://localhost:3000"

    greeting: str = (
        "Hello, you have reached 104 Medical Helpline. "
        "Please hold while we connect you to an agent."
    )
    voice: str = "alice"
    record: bool = True

    @property
    def is_configured(self) -> bool:
        """Whether real credentials are present."""
        if not self.enabled:
            return False
        if not self.account_sid or not self.auth_token:
            return False
        return (
            self.account_sid not in PLACEHOLDER_CREDENTIALS
            and self.auth_token not in PLACEHOLDER_CREDENTIALS
        )


class WebhookSettings(BaseModel):
    """Webhook security configuration."""

    validate_signatures: bool = True


class TelephonySettings(BaseModel):
    """Telephony subsystem configuration."""

    twilio: TwilioSettings = Field(default_factory=TwilioSettings)
    webhooks: WebhookSettings = Field(default_factory=WebhookSettings)


class DatabaseSettings(BaseModel):
    """Database configuration."""

    url: str = "sqlite+aiosqlite:///data/helpline_crm.db"
    echo: bool = False


class Settings(BaseSettings):
    """Application settings.

    Loaded from (highest priority first):
    1. Environment variables (HELPLINE_*)
    2. configs/{environment}.yaml
    3. configs/default.yaml
    """

    model_config = SettingsConfigDict(
        env_prefix="HELPLINE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    service_name: str = "104 Medical Helpline CRM"

    # Environment
    environment: str = "development"
    debug: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 3000

    rate_limit_enabled: bool = True

    # Subsystems
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    telephony: TelephonySettings = Field(default_factory=TelephonySettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML values arrive as init kwargs; environment wins over them
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @property
    def webhook_validate_signatures(self) -> bool:
        """Whether to validate webhook signatures."""
        return self.telephony.webhooks.validate_signatures

    @property
    def twilio_auth_token(self) -> str | None:
        """Twilio auth token for signature validation."""
        return self.telephony.twilio.auth_token or None


def _lower_keys(value: Any) -> Any:
    """Recursively lowercase mapping keys coming out of Dynaconf."""
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lower_keys(v) for v in value]
    return value


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings object loaded from config files and environment.
    """
    import os
    from dynaconf import Dynaconf

    config_dir = Path(os.getenv("HELPLINE_CONFIG_DIR", "configs"))
    env = os.getenv("HELPLINE_ENV", "development")

    settings_files = []
    if (config_dir / "default.yaml").exists():
        settings_files.append(str(config_dir / "default.yaml"))
    if (config_dir / f"{env}.yaml").exists():
        settings_files.append(str(config_dir / f"{env}.yaml"))

    # Dynaconf only reads the YAML files (and .env into os.environ);
    # HELPLINE_* variables are parsed by pydantic so phone numbers stay strings
    dynaconf = Dynaconf(
        envvar_prefix="HELPLINE",
        settings_files=settings_files,
        load_dotenv=True,
        merge_enabled=True,
        loaders=[],
    )

    config_dict: dict[str, Any] = {
        key: value
        for key, value in _lower_keys(dynaconf.as_dict()).items()
        if not key.startswith("_")
    }
    config_dict["environment"] = env

    return Settings(**config_dict)


def validate_production_settings(settings: Settings) -> list[str]:
    """Validate settings for production readiness.

    Args:
        settings: Application settings to validate.

    Returns:
        List of validation error messages (empty if all valid).
    """
    errors: list[str] = []

    if settings.environment not in ("production", "staging", "prod"):
        return errors

    if settings.debug:
        errors.append("HELPLINE_DEBUG must be false in production")

    twilio = settings.telephony.twilio
    if not twilio.is_configured:
        errors.append(
            "Twilio credentials (HELPLINE_TELEPHONY__TWILIO__ACCOUNT_SID, "
            "HELPLINE_TELEPHONY__TWILIO__AUTH_TOKEN) must be set in production"
        )
    if not twilio.from_number:
        errors.append("HELPLINE_TELEPHONY__TWILIO__FROM_NUMBER must be set in production")
    if twilio.base_url.startswith("http://localhost"):
        errors.append(
            "HELPLINE_TELEPHONY__TWILIO__BASE_URL must be a public URL in production"
        )

    if not settings.telephony.webhooks.validate_signatures:
        errors.append("Webhook signature validation must be enabled in production")

    if "sqlite" in settings.database.url:
        errors.append("SQLite is not recommended for production; use MySQL")

    return errors


def require_valid_settings() -> Settings:
    """Get settings and raise if production validation fails.

    Raises:
        ValueError: If production settings are invalid.
    """
    settings = get_settings()
    errors = validate_production_settings(settings)

    if errors:
        error_list = "\n  - ".join(errors)
        raise ValueError(f"Production configuration errors:\n  - {error_list}")

    return settings
