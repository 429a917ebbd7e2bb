import json
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

from callspan.core.logger import logger

BASE_DIR = Path(__file__).parent.parent.parent
ENV_FILE = BASE_DIR / ".env"

load_dotenv(ENV_FILE, override=True)
logger.info(f"Loaded environment from: {ENV_FILE}")


def mask_sensitive_data(data: dict) -> dict:
    masked = {}
    sensitive_keys = ["key", "token", "secret", "password"]

    for key, value in data.items():
        if isinstance(value, dict):
            masked[key] = mask_sensitive_data(value)
        elif isinstance(value, str) and any(s in key.lower() for s in sensitive_keys):
            if not value:
                masked[key] = "<not set>"
            elif len(value) <= 4:
                masked[key] = "***"
            else:
                masked[key] = f"{value[:4]}...{value[-4:]}"
        else:
            masked[key] = value

    return masked


class CoreSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        protected_namespaces=(),
    )


class TelemetrySettings(CoreSettings):
    OTEL_ENABLED: bool = Field(default=True)
    OTEL_SERVICE_NAME: str = Field(
        default="callspan",
        description="Service name reported in the span resource",
    )
    OTEL_TRACER_NAME: str = Field(
        default="callspan.membership",
        description="Instrumentation scope name used for membership spans",
    )
    OTEL_EXPORTER_OTLP_ENDPOINT: Optional[str] = Field(
        default=None,
        description="OTLP/HTTP traces endpoint, e.g. http://localhost:4318/v1/traces",
    )
    OTEL_EXPORTER_OTLP_TOKEN: Optional[str] = Field(
        default=None,
        description="Bearer token sent with OTLP export requests",
    )
    OTEL_CONSOLE_EXPORTER: bool = Field(
        default=False,
        description="Also print finished spans to stdout",
    )
    OTEL_FLUSH_TIMEOUT_MS: float = Field(default=1000.0, ge=0.0)


class MembershipSettings(CoreSettings):
    MEMBERSHIP_FLATTEN_MAX_DEPTH: int = Field(
        default=10,
        ge=1,
        le=64,
        description="Maximum nesting depth accepted when flattening event payloads",
    )
    MEMBERSHIP_UNKNOWN_DISPLAY_NAME: str = Field(default="unknown-name")


class LiveKitSettings(CoreSettings):
    LIVEKIT_URL: Optional[str] = Field(default=None)
    LIVEKIT_API_KEY: Optional[str] = Field(default=None)
    LIVEKIT_API_SECRET: Optional[str] = Field(default=None)
    LIVEKIT_OBSERVER_IDENTITY: str = Field(default="callspan-observer")


class Settings(CoreSettings):
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)
    membership: MembershipSettings = Field(default_factory=MembershipSettings)
    livekit: LiveKitSettings = Field(default_factory=LiveKitSettings)


try:
    settings = Settings()

    settings_dict = settings.model_dump()
    masked_settings = mask_sensitive_data(settings_dict)
    logger.info(f"Settings loaded: {json.dumps(masked_settings, indent=2)}")

except ValidationError as e:
    logger.exception(f"Error validating settings: {e.json()}")
    raise
