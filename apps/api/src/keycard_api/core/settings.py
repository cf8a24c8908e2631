import re
from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_SWEEP_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./keycards.db"

    # Tracing. Without an OTLP endpoint spans go to the console exporter.
    tracing_enabled: bool = True
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None

    # Admin surface (batch issuance). Empty disables the check.
    admin_api_key: str = ""

    # Key card issuance
    key_card_code_length: int = 16
    batch_collision_retries: int = 3

    # Coupon acquisition
    campaign_config_path: str = "config/campaigns.toml"
    signature_service_url: str = "http://localhost:9300/sign"
    signature_timeout_seconds: float = 5.0
    acquisition_request_timeout_seconds: float = 10.0
    acquisition_max_retries: int = 2
    acquisition_base_backoff_seconds: float = 0.0
    acquisition_backoff_multiplier: float = 2.0
    acquisition_max_backoff_seconds: float = 5.0
    acquisition_jitter_seconds: float = 0.0

    # Daily coupon sweep
    coupon_sweep_enabled: bool = False
    coupon_sweep_time: str = "08:00"
    coupon_sweep_timezone: str = "Asia/Shanghai"
    coupon_sweep_concurrency: int = 5
    report_webhook_url: str | None = None
    report_timeout_seconds: float = 10.0

    @field_validator("coupon_sweep_time")
    @classmethod
    def _validate_sweep_time(cls, value: str) -> str:
        cleaned = value.strip()
        if not _SWEEP_TIME_PATTERN.match(cleaned):
            raise ValueError("coupon_sweep_time must use HH:MM (24h)")
        return cleaned

    @field_validator("report_webhook_url", mode="before")
    @classmethod
    def _blank_url_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("key_card_code_length", "acquisition_max_retries", "coupon_sweep_concurrency")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("value must not be negative")
        return value

    @property
    def coupon_sweep_hour(self) -> int:
        return int(self.coupon_sweep_time.split(":", 1)[0])

    @property
    def coupon_sweep_minute(self) -> int:
        return int(self.coupon_sweep_time.split(":", 1)[1])


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
