# ============================================================================
# CLAUDE CONTEXT - APPLICATION CONFIGURATION
# ============================================================================
# STATUS: Core Infrastructure - Configuration Management
# PURPOSE: Centralized configuration for PostgreSQL connection with managed identity support
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: get_postgres_connection_string, get_app_config, AppConfig
# DEPENDENCIES: pydantic-settings, azure-identity
# SOURCE: Environment variables, Azure managed identity
# PATTERNS: Singleton pattern for config, lazy initialization for credentials
# ============================================================================

"""
Application Configuration Module

Provides centralized configuration management including:
- PostgreSQL connection string generation
- Support for both password and managed identity authentication
- Environment-based configuration with validation

Authentication Modes:
    1. Password-based (local development):
       - Requires: POSTGIS_HOST, POSTGIS_USER, POSTGIS_PASSWORD
       - Use when: USE_MANAGED_IDENTITY=false or not set

    2. Managed Identity (Azure production):
       - Requires: System-assigned managed identity enabled
       - Use when: USE_MANAGED_IDENTITY=true
       - Eliminates need for password storage

Usage:
    from config import get_postgres_connection_string

    conn_string = get_postgres_connection_string()
    conn = psycopg.connect(conn_string)
"""

from typing import Optional
from functools import lru_cache
from urllib.parse import quote_plus

from azure.core.exceptions import ClientAuthenticationError
from azure.identity import DefaultAzureCredential
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.FACTORY, "AppConfig")

# Scope for Azure Database for PostgreSQL AAD tokens
POSTGRES_TOKEN_SCOPE = "https://ossrdbms-aad.database.windows.net/.default"


# ============================================================================
# Application Configuration
# ============================================================================

class AppConfig(BaseSettings):
    """
    Application-wide configuration loaded from environment variables.

    Attributes:
        postgis_host: PostgreSQL server hostname
        postgis_port: PostgreSQL server port
        postgis_database: Database name
        postgis_user: Database username
        postgis_password: Database password (optional with managed identity)
        use_managed_identity: Enable Azure managed identity authentication
        pgstac_schema: Schema holding the pgSTAC tables and functions
        log_level: Root log level name
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Authentication Mode (declared first so the password validator can see it)
    use_managed_identity: bool = Field(
        default=False,
        description="Use Azure managed identity for authentication"
    )

    # PostgreSQL Connection
    postgis_host: str = Field(..., description="PostgreSQL hostname")
    postgis_port: int = Field(default=5432, description="PostgreSQL port")
    postgis_database: str = Field(..., description="Database name")
    postgis_user: str = Field(..., description="Database username")
    postgis_password: Optional[str] = Field(
        default=None,
        validate_default=True,
        description="Database password"
    )

    # pgSTAC
    pgstac_schema: str = Field(default="pgstac", description="pgSTAC schema name")

    # Logging
    log_level: str = Field(default="INFO", description="Log level name")

    @field_validator('postgis_password')
    @classmethod
    def validate_password(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        """Ensure password is provided when not using managed identity."""
        use_managed_identity = info.data.get('use_managed_identity', False)
        if not use_managed_identity and not v:
            raise ValueError(
                "POSTGIS_PASSWORD is required when USE_MANAGED_IDENTITY=false"
            )
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"LOG_LEVEL must be a standard level name, got '{v}'")
        return level


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """
    Get singleton application configuration instance.

    Returns:
        AppConfig: Validated configuration object

    Raises:
        ValidationError: If required environment variables are missing
    """
    return AppConfig()


# ============================================================================
# PostgreSQL Connection String Generation
# ============================================================================

def get_postgres_connection_string() -> str:
    """
    Generate PostgreSQL connection string based on authentication mode.

    Returns:
        str: PostgreSQL connection string (psycopg format)

    Raises:
        ValidationError: If required configuration is missing
        RuntimeError: If managed identity token acquisition fails
    """
    config = get_app_config()

    if config.use_managed_identity:
        return _build_managed_identity_connection_string(config)
    else:
        return _build_password_connection_string(config)


def _build_connection_string(config: AppConfig, secret: str) -> str:
    return (
        f"postgresql://{config.postgis_user}:{secret}"
        f"@{config.postgis_host}:{config.postgis_port}"
        f"/{config.postgis_database}"
        f"?sslmode=require"
    )


def _build_password_connection_string(config: AppConfig) -> str:
    """
    Build password-based connection string.

    Note:
        SSL is enforced (sslmode=require) for Azure PostgreSQL
        Password is URL-encoded to handle special characters like @ symbols
    """
    logger.debug(f"Building password-based connection string for {config.postgis_host}")
    return _build_connection_string(config, quote_plus(config.postgis_password))


def _build_managed_identity_connection_string(config: AppConfig) -> str:
    """
    Build managed identity connection string with Azure AD token.

    Note:
        Token is acquired synchronously and has limited lifetime (~1 hour).
        Connections are per-request, so every new connection string carries
        a fresh token.
    """
    logger.debug(f"Building managed identity connection string for {config.postgis_host}")

    try:
        credential = DefaultAzureCredential()
        token = credential.get_token(POSTGRES_TOKEN_SCOPE)
    except ClientAuthenticationError as e:
        logger.error(f"Failed to acquire managed identity token: {e}")
        raise RuntimeError(
            f"Managed identity authentication failed: {e}. "
            "Ensure system-assigned managed identity is enabled and has database permissions."
        ) from e

    logger.debug("Acquired managed identity token")
    return _build_connection_string(config, token.token)
