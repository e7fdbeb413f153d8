"""
Configuration management for the Storefront Order Service.

Loads settings from .env via pydantic-settings.

Security notes:
    - validate_production_settings() enforces strict CORS in production
    - Payment callbacks fail closed when PAYMENT_CALLBACK_SECRET is missing
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/storefront.db"

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"
    store_name: str = "Shop"

    # ── Auth (JWT) ──────────────────────────────────────────────────
    # Tokens are issued by the identity provider with the same HS256 secret.
    jwt_secret: str = ""
    jwt_issuer: str = "storefront-auth"
    jwt_access_ttl_minutes: int = 60

    # ── Email (Resend) ──────────────────────────────────────────────
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    email_from: str = "Shop <onboarding@resend.dev>"
    email_timeout_seconds: float = 10.0

    # ── Payment Gateway ─────────────────────────────────────────────
    payment_callback_secret: str = ""

    # ── Outbox ──────────────────────────────────────────────────────
    outbox_enabled: bool = True
    outbox_poll_seconds: int = 30
    outbox_max_attempts: int = 5
    outbox_batch_size: int = 20
    outbox_claim_timeout_seconds: int = 300

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def email_enabled(self) -> bool:
        return bool(self.resend_api_key)

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if not self.jwt_secret:
                raise ValueError(
                    "JWT_SECRET must be set in production. "
                    "It is used to verify customer and admin access tokens."
                )
            if not self.payment_callback_secret:
                raise ValueError(
                    "PAYMENT_CALLBACK_SECRET must be set in production. "
                    "Unsigned payment callbacks would let anyone mark orders paid."
                )
            logger.info("✅ Production settings validated")
        else:
            warnings = []
            if not self.payment_callback_secret:
                warnings.append("PAYMENT_CALLBACK_SECRET not set (payment callbacks will be rejected)")
            if not self.resend_api_key:
                warnings.append("RESEND_API_KEY not set (order emails are skipped)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"⚠️  {w}")


# Global settings instance
settings = Settings()
