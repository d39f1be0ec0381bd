"""
Configuration — environment-driven settings via pydantic-settings.

    PAYCORE_GATEWAY_SECRET_KEY=test_sk_... python -m examples.checkout_flow
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PaymentSettings(BaseSettings):
    """Settings for the payment core. Env prefix: PAYCORE_."""

    model_config = SettingsConfigDict(
        env_prefix="PAYCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ────────────────────────────────
    # Gateway
    # ────────────────────────────────
    gateway_base_url: str = "https://api.tosspayments.com"
    gateway_secret_key: SecretStr = SecretStr("")
    gateway_timeout_seconds: float = Field(default=10.0, gt=0)

    # ────────────────────────────────
    # Lifecycle
    # ────────────────────────────────
    claim_ttl_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Age after which an in-flight claim counts as abandoned.",
    )

    # ────────────────────────────────
    # Storage
    # ────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./payments.db"

    # ────────────────────────────────
    # Orders / projections
    # ────────────────────────────────
    order_id_prefix: str = "ORDER"
    history_page_size: int = Field(default=20, gt=0)

    # ────────────────────────────────
    # Logging
    # ────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = False

    @model_validator(mode="after")
    def _claim_outlives_gateway(self) -> PaymentSettings:
        # A confirm holds its claim across a charge and a possible void.
        if self.claim_ttl_seconds <= 2 * self.gateway_timeout_seconds:
            raise ValueError(
                f"claim_ttl_seconds ({self.claim_ttl_seconds}) must exceed twice "
                f"gateway_timeout_seconds ({self.gateway_timeout_seconds})"
            )
        return self

    @property
    def gateway_timeout(self) -> timedelta:
        return timedelta(seconds=self.gateway_timeout_seconds)

    @property
    def claim_ttl(self) -> timedelta:
        return timedelta(seconds=self.claim_ttl_seconds)


@lru_cache()
def get_settings() -> PaymentSettings:
    """Cached settings singleton."""
    return PaymentSettings()


__all__ = ("PaymentSettings", "get_settings")
