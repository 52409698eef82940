"""
Audit storage configuration.

Selects the storage backend and the default creation policy for audit scopes.
Values come from environment variables (or a .env file) with the AUDIT_ prefix.
"""

from typing import Literal, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from packages.audit_core.models import EventCreationPolicy


class AuditSettings(BaseSettings):
    """
    Audit configuration from environment variables.

    Environment Variables:
        AUDIT_DATA_PROVIDER: Storage backend - 'memory', 'sqlite' or 'file' (default: sqlite)
        AUDIT_CONNECTION_STRING: Backend connection target (default: data)
        AUDIT_DATABASE: Logical store name (default: audit)
        AUDIT_COLLECTION: Logical collection/table name (default: events)
        AUDIT_CREATION_POLICY: Default creation policy (default: InsertOnEnd)
        AUDIT_LOG_LEVEL: Log level for the audit logger setup (default: INFO)
        AUDIT_LOG_JSON: Render logs as JSON (default: True)
        AUDIT_LOG_FILE: Optional log file path (default: none)

    Usage:
        settings = AuditSettings()
        print(f"Writing audit events to {settings.get_connection_string()}")
    """

    model_config = SettingsConfigDict(
        env_prefix="AUDIT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Storage backend; the three strings are passed through to the provider as-is
    data_provider: Literal["memory", "sqlite", "file"] = Field(
        default="sqlite", description="Storage backend"
    )
    connection_string: str = Field(default="data", description="Backend connection target")
    database: str = Field(default="audit", description="Logical store name")
    collection: str = Field(default="events", description="Logical collection/table name")

    # Scope defaults
    creation_policy: EventCreationPolicy = Field(
        default=EventCreationPolicy.INSERT_ON_END,
        description="Creation policy for scopes created without one",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(default=True, description="JSON log output")
    log_file: Optional[str] = Field(default=None, description="Also write logs to this file")

    def get_connection_string(self) -> str:
        """Get human-readable storage target."""
        return f"{self.data_provider}://{self.connection_string}/{self.database}/{self.collection}"

    def to_dict(self) -> dict:
        """Export settings as dictionary (safe for logging)."""
        return {
            "data_provider": self.data_provider,
            "connection_string": self.connection_string,
            "database": self.database,
            "collection": self.collection,
            "creation_policy": self.creation_policy.value,
            "log_level": self.log_level,
            "log_json": self.log_json,
            "log_file": self.log_file,
        }


# Global settings instance (singleton pattern)
_settings_instance: AuditSettings | None = None


def get_audit_settings(force_reload: bool = False) -> AuditSettings:
    """
    Get global audit settings singleton.

    Args:
        force_reload: Force reload from environment (useful for testing)

    Returns:
        AuditSettings instance
    """
    global _settings_instance

    if _settings_instance is None or force_reload:
        _settings_instance = AuditSettings()

    return _settings_instance


def reset_audit_settings():
    """Reset global settings instance (for testing)."""
    global _settings_instance
    _settings_instance = None
