"""
Unified Configuration
All environment variables and settings in one place

ARCHITECTURE:
- One HubSpot OAuth app (client id/secret) shared by every connected account
- Accounts and their watermarks live in Supabase
- Actions are delivered in batches to the configured sink(s)

SECURITY:
- All secrets loaded from environment variables
- No hardcoded credentials
"""
from typing import Optional
import logging
from pydantic_settings import BaseSettings
from pydantic import AliasChoices, Field, model_validator

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Unified application settings.
    Validates all environment variables at startup.
    """

    # ============================================================================
    # RUNTIME
    # ============================================================================

    environment: str = Field(default="production", description="Environment: development/staging/production")
    debug: bool = Field(default=False, description="Debug mode")

    # ============================================================================
    # HUBSPOT (OAuth app + API)
    # ============================================================================

    hubspot_client_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("hubspot_client_id", "hubspot_cid"),
        description="HubSpot OAuth client id (HUBSPOT_CID)"
    )
    hubspot_client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("hubspot_client_secret", "hubspot_cs"),
        description="HubSpot OAuth client secret (HUBSPOT_CS)"
    )
    hubspot_api_base_url: str = Field(default="https://api.hubapi.com", description="HubSpot API base URL")
    hubspot_max_retries: int = Field(default=5, description="Attempts per HubSpot request before giving up")
    hubspot_timeout_seconds: float = Field(default=60.0, description="HTTP timeout for HubSpot calls")

    # ============================================================================
    # EXTRACTION
    # ============================================================================

    page_size: int = Field(default=100, description="Records requested per page")
    max_search_offset: int = Field(default=9900, description="Search cursor value that triggers re-windowing")
    flush_threshold: int = Field(default=2000, description="Buffered actions that trigger a sink delivery")
    company_action_skew_seconds: int = Field(default=2, description="Seconds subtracted from company action dates")

    # ============================================================================
    # DATABASE (Supabase)
    # ============================================================================

    supabase_url: Optional[str] = Field(default=None, description="Supabase project URL")
    supabase_service_key: Optional[str] = Field(default=None, description="Supabase service key (backend uses this)")
    accounts_table: str = Field(default="hubspot_accounts", description="Table holding accounts and watermarks")
    actions_table: str = Field(default="actions", description="Table receiving delivered actions")
    persist_accounts: bool = Field(default=True, description="Write watermarks and rotated tokens back after each account")

    # ============================================================================
    # PRODUCTION INFRASTRUCTURE
    # ============================================================================

    # Redis (job queue)
    redis_url: Optional[str] = Field(default=None, description="Redis connection URL")

    # Error tracking (Sentry)
    sentry_dsn: Optional[str] = Field(default=None, description="Sentry DSN for error tracking")

    # ============================================================================
    # OPTIONAL SETTINGS
    # ============================================================================

    save_jsonl: bool = Field(default=False, description="Also append delivered actions to a JSONL file")
    jsonl_path: str = Field(default="./actions.jsonl", description="JSONL output path when save_jsonl is on")

    @model_validator(mode='after')
    def validate_settings(self):
        """
        Validate critical settings at startup.

        CHECKS:
        - Warn if HubSpot OAuth credentials are missing
        - Warn if running in production without Sentry
        - Reject thresholds that would break pagination or batching
        """
        if self.page_size <= 0 or self.flush_threshold <= 0:
            raise ValueError("page_size and flush_threshold must be positive")

        if self.environment == "production":
            if self.debug:
                logger.warning("⚠️  DEBUG MODE ENABLED IN PRODUCTION!")

            if not self.sentry_dsn:
                logger.warning("⚠️  Sentry not configured in production. Error tracking disabled.")

        if not self.hubspot_client_id or not self.hubspot_client_secret:
            logger.warning("⚠️  HUBSPOT_CID / HUBSPOT_CS not set. Token refresh will fail.")

        logger.info("=" * 80)
        logger.info("hubsync Configuration Loaded")
        logger.info("=" * 80)
        logger.info(f"Environment: {self.environment}")
        logger.info(f"HubSpot API: {self.hubspot_api_base_url}")
        logger.info(f"Page size: {self.page_size}, flush threshold: {self.flush_threshold}")
        logger.info(f"Supabase: {'✅ Configured' if self.supabase_url else '❌ Not configured'}")
        logger.info(f"Redis: {'✅ Configured' if self.redis_url else '❌ Not configured'}")
        logger.info(f"Sentry: {'✅ Configured' if self.sentry_dsn else '❌ Not configured'}")
        logger.info("=" * 80)

        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
