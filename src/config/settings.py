"""Application settings using Pydantic Settings.

Centralized configuration for the incident desk.

SECURITY: Production requires the following environment variables:
- APP_JWT_SECRET: Session token signing key (min 32 chars)

Generate secrets with: python -c "import secrets; print(secrets.token_hex(32))"
"""

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

INSECURE_JWT_SECRET = "change-me-in-production-INSECURE"


class ResilienceSettings(BaseSettings):
    """Retry configuration for store reads."""

    model_config = SettingsConfigDict(
        env_prefix="RESILIENCE_",
        extra="ignore",
    )

    retry_max_attempts: int = Field(default=3, ge=1, description="Max read attempts")
    retry_initial_delay: float = Field(default=0.5, ge=0, description="Initial delay in seconds")
    retry_backoff_multiplier: float = Field(default=2.0, ge=1, description="Backoff multiplier")
    retry_max_delay: float = Field(default=30.0, ge=0, description="Max delay between retries")
    retry_jitter: float = Field(default=0.1, ge=0, le=1, description="Jitter as a fraction of the delay")

    def to_retry_config(self):
        from resilience.retry import RetryConfig
        return RetryConfig.from_settings(self)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application info
    name: str = Field(default="Incident Desk", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    environment: str = Field(default="development", description="Environment name")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_json: bool = Field(default=False, description="Emit JSON log lines")

    # Sessions
    # CRITICAL: Must be set via APP_JWT_SECRET in production
    jwt_secret: str = Field(
        default=INSECURE_JWT_SECRET,
        description="Session token signing key - MUST be set in production"
    )
    jwt_algorithm: str = Field(default="HS256", description="Session token algorithm")
    jwt_expire_hours: int = Field(default=8, ge=1, description="Session lifetime in hours")

    # Audit
    audit_enabled: bool = Field(default=True, description="Record audit entries")
    audit_denied_attempts: bool = Field(
        default=False,
        description="Also record denied authorization attempts"
    )
    audit_log_limit: int = Field(default=100, ge=1, le=1000, description="Default audit listing size")

    # First administrator, created at startup when no profile has this email
    bootstrap_admin_email: Optional[str] = Field(default=None, description="Bootstrap admin email")
    bootstrap_admin_password: Optional[str] = Field(default=None, description="Bootstrap admin password")
    bootstrap_admin_first_name: str = Field(default="Admin", description="Bootstrap admin first name")
    bootstrap_admin_last_name: str = Field(default="User", description="Bootstrap admin last name")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    # Nested settings (loaded separately)
    @property
    def resilience(self) -> ResilienceSettings:
        return ResilienceSettings()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment in ("production", "prod", "staging")

    def validate_production_security(self) -> List[str]:
        """
        Validate security requirements for production.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.is_production:
            return errors

        if self.jwt_secret == INSECURE_JWT_SECRET or "INSECURE" in self.jwt_secret:
            errors.append(
                "APP_JWT_SECRET: Must be set in production. "
                "Generate with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )
        elif len(self.jwt_secret) < 32:
            errors.append("APP_JWT_SECRET: Must be at least 32 characters")

        if self.debug:
            errors.append("APP_DEBUG: Must be False in production")

        return errors


# =============================================================================
# STARTUP VALIDATION
# =============================================================================

class StartupSecurityError(Exception):
    """Raised when security validation fails at startup."""
    pass


def validate_startup_security(settings: Settings) -> bool:
    """
    Validate security settings at application startup.

    Raises:
        StartupSecurityError: If any production requirement is missing
    """
    errors = settings.validate_production_security()

    if not errors:
        if settings.is_production:
            logger.info("Production security validation PASSED")
        return True

    error_msg = "Security configuration errors:\n" + "\n".join(
        f"  {i}. {err}" for i, err in enumerate(errors, 1)
    )
    logger.critical(error_msg)
    raise StartupSecurityError(error_msg)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings instance.

    Returns:
        Settings: Cached settings loaded from environment.
    """
    return Settings()


def get_validated_settings() -> Settings:
    """Get settings, failing fast on insecure production configuration."""
    settings = get_settings()
    validate_startup_security(settings)
    return settings
