"""
Sportsblock Configuration Management

Centralized configuration using Pydantic Settings for type-safe environment
variable loading with validation.

SECURITY NOTE: SESSION_SECRET keys both the session cookie cipher and the
Hive login challenge MAC. Production refuses to start without it.
"""

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ALLOWED_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:3001",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ═══════════════════════════════════════════════════════════════
    # APPLICATION
    # ═══════════════════════════════════════════════════════════════
    app_version: str = Field(default="0.1.0", description="Reported API version")
    app_env: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    # API Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, ge=1, le=65535, description="API port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:3001",
        description="Comma-separated CORS origins",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into list."""
        origins = [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]
        if self.is_production and "*" in origins:
            raise ValueError("Wildcard CORS origin not allowed in production")
        return origins

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    # ═══════════════════════════════════════════════════════════════
    # NEO4J DATABASE
    # ═══════════════════════════════════════════════════════════════
    neo4j_uri: str = Field(default="bolt://localhost:7687", description="Neo4j connection URI")
    neo4j_user: str = Field(default="neo4j", description="Neo4j username")
    neo4j_password: str = Field(description="Neo4j password")
    neo4j_database: str = Field(default="neo4j", description="Neo4j database name")

    neo4j_max_connection_lifetime: int = Field(
        default=3600, description="Max connection lifetime in seconds"
    )
    neo4j_max_connection_pool_size: int = Field(
        default=50, ge=1, description="Max connection pool size"
    )
    neo4j_connection_timeout: int = Field(
        default=30, ge=1, description="Connection timeout in seconds"
    )

    # ═══════════════════════════════════════════════════════════════
    # REDIS (Optional, rate limit counters)
    # ═══════════════════════════════════════════════════════════════
    redis_url: str | None = Field(default=None, description="Redis URL")

    # ═══════════════════════════════════════════════════════════════
    # SESSION & CSRF
    # ═══════════════════════════════════════════════════════════════
    session_secret: str | None = Field(
        default=None, description="Secret for session encryption and challenge MACs"
    )
    session_encryption_salt: str = Field(
        default="sportsblock-session-salt", description="Scrypt salt for the session key"
    )
    session_max_age_days: int = Field(
        default=7, ge=1, le=30, description="Absolute session lifetime in days"
    )
    allow_header_auth: bool = Field(
        default=False, description="Accept x-user-id header as a fallback identity"
    )
    allowed_origins: str = Field(
        default="", description="Comma-separated origins accepted for state-changing requests"
    )
    public_app_url: str | None = Field(
        default=None,
        validation_alias="NEXT_PUBLIC_APP_URL",
        description="Public URL of the web client",
    )
    password_bcrypt_rounds: int = Field(
        default=12, ge=4, le=31, description="Bcrypt rounds"
    )

    @field_validator("session_secret")
    @classmethod
    def validate_session_secret(cls, v: str | None) -> str | None:
        if v is None:
            environment = os.environ.get("APP_ENV", "development")
            if environment == "production":
                raise ValueError("SESSION_SECRET is required in production")
            return v
        if len(v) < 32:
            raise ValueError("Session secret must be at least 32 characters")
        if len(set(v)) < 10:
            raise ValueError("Session secret must have at least 10 unique characters for sufficient entropy")
        return v

    @property
    def allowed_origins_list(self) -> list[str]:
        """Origins accepted by the CSRF origin check."""
        origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        if not origins:
            origins = list(DEFAULT_ALLOWED_ORIGINS)
        if self.public_app_url and self.public_app_url not in origins:
            origins.append(self.public_app_url)
        return origins

    # ═══════════════════════════════════════════════════════════════
    # HIVE BLOCKCHAIN
    # ═══════════════════════════════════════════════════════════════
    hive_api_nodes: str = Field(
        default=(
            "https://api.hive.blog,https://api.deathwing.me,"
            "https://api.openhive.network,https://hive-api.arcange.eu"
        ),
        description="Comma-separated Hive API nodes in failover order",
    )
    hive_request_timeout: float = Field(
        default=10.0, gt=0, description="Per-node request timeout in seconds"
    )
    hivesigner_api_url: str = Field(
        default="https://hivesigner.com/api/me", description="HiveSigner identity endpoint"
    )
    community_id: str = Field(default="hive-115814", description="Hive community tag")

    @property
    def hive_api_nodes_list(self) -> list[str]:
        nodes = [n.strip() for n in self.hive_api_nodes.split(",") if n.strip()]
        # De-duplicate preserving order
        return list(dict.fromkeys(nodes))

    # ═══════════════════════════════════════════════════════════════
    # CUSTODIAL ACCOUNT LIMITS
    # ═══════════════════════════════════════════════════════════════
    soft_comment_limit: int = Field(default=200, ge=1, description="Max live comments per soft user")
    soft_sportsbite_limit: int = Field(default=100, ge=1, description="Max live sportsbites per soft user")
    soft_post_limit: int = Field(default=50, ge=1, description="Max posts per soft user")

    # ═══════════════════════════════════════════════════════════════
    # RATE LIMITING
    # ═══════════════════════════════════════════════════════════════
    rate_limit_enabled: bool = Field(default=True, description="Enable global rate limiting")
    rate_limit_requests_per_minute: int = Field(default=120, ge=1)
    rate_limit_requests_per_hour: int = Field(default=3000, ge=1)
    rate_limit_window_seconds: int = Field(default=60, ge=1, description="Per-action window")
    rate_limit_likes: int = Field(default=30, ge=1)
    rate_limit_comments: int = Field(default=10, ge=1)
    rate_limit_follows: int = Field(default=20, ge=1)
    rate_limit_soft_sportsbites: int = Field(default=10, ge=1)
    rate_limit_soft_reactions: int = Field(default=60, ge=1)
    rate_limit_soft_poll_votes: int = Field(default=30, ge=1)
    rate_limit_soft_posts: int = Field(default=5, ge=1)
    rate_limit_auth: int = Field(default=20, ge=1)

    # ═══════════════════════════════════════════════════════════════
    # MONITORING
    # ═══════════════════════════════════════════════════════════════
    sentry_dsn: str | None = Field(default=None, description="Sentry DSN")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton settings instance
settings = get_settings()
