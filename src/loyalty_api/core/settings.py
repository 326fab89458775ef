from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    database_url: str = Field(
        default="sqlite+aiosqlite:///./loyalty.db",
        validation_alias=AliasChoices("database_url", "database_uri"),
    )
    database_auto_create: bool = True
    run_address: str = "localhost:8080"
    secret_key: str = "change-me"

    # Accrual system
    accrual_system_address: str = "http://localhost:8081"
    accrual_request_timeout_seconds: float = 10.0
    accrual_default_retry_after_seconds: int = 8
    accrual_fake_enabled: bool = False

    @field_validator("accrual_system_address", mode="before")
    @classmethod
    def _ensure_scheme(cls, value: object) -> str:
        address = str(value or "").strip().rstrip("/")
        if address and "://" not in address:
            address = f"http://{address}"
        return address

    # Accrual reconciler
    reconciler_enabled: bool = True
    reconciler_interval_seconds: int = 6
    reconciler_shutdown_timeout_seconds: float = 5.0

    # Member sessions
    session_cookie_name: str = "loyalty_session"
    password_hash_iterations: int = 260_000

    # Tracing
    tracing_enabled: bool = True
    tracing_sample_ratio: float = Field(default=1.0, ge=0.0, le=1.0)
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None

    @property
    def run_host(self) -> str:
        host, _, _ = self.run_address.rpartition(":")
        return host or "localhost"

    @property
    def run_port(self) -> int:
        _, _, port = self.run_address.rpartition(":")
        return int(port) if port.isdigit() else 8080


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
