"""Runtime configuration for the case management service."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Configuration values mapped from environment variables."""

    app_name: str = Field("Alert Case Manager", env="APP_NAME")
    version: str = Field("1.0.0", env="APP_VERSION")

    # Feature switches
    casemanager_enabled: bool = Field(True, env="CASEMANAGER_ENABLED")
    sla_sweep_enabled: bool = Field(True, env="SLA_SWEEP_ENABLED")
    rule_sync_enabled: bool = Field(False, env="RULE_SYNC_ENABLED")

    # "memory" or "mysql"
    storage_backend: str = Field("memory", env="STORAGE_BACKEND")

    db_host: str = Field("127.0.0.1", env="DB_HOST")
    db_port: int = Field(3306, env="DB_PORT")
    db_name: str = Field("casemanager", env="DB_NAME")
    db_user: str = Field("casemanager", env="DB_USER")
    db_password: str = Field("", env="DB_PASSWORD")
    db_charset: str = Field("utf8mb4", env="DB_CHARSET")
    database_url: Optional[str] = Field(None, env="DATABASE_URL")

    # Pipeline behaviour
    duplicate_window_minutes: int = Field(5, env="DUPLICATE_WINDOW_MINUTES")
    auto_assign_enabled: bool = Field(True, env="AUTO_ASSIGN_ENABLED")
    auto_close_resolved: bool = Field(True, env="AUTO_CLOSE_RESOLVED")
    sla_sweep_interval_seconds: int = Field(300, env="SLA_SWEEP_INTERVAL_SECONDS")
    rule_sync_interval_seconds: int = Field(3600, env="RULE_SYNC_INTERVAL_SECONDS")
    fingerprint_lock_timeout_seconds: int = Field(10, env="FINGERPRINT_LOCK_TIMEOUT_SECONDS")

    # Notifications
    admin_channel: str = Field("admin", env="ADMIN_CHANNEL")
    admin_email: Optional[str] = Field(None, env="ADMIN_EMAIL")
    notification_channels: List[str] = Field(
        default_factory=lambda: ["EMAIL", "REALTIME"], env="NOTIFICATION_CHANNELS"
    )
    email_enabled: bool = Field(False, env="EMAIL_ENABLED")
    smtp_host: str = Field("localhost", env="SMTP_HOST")
    smtp_port: int = Field(25, env="SMTP_PORT")
    smtp_username: Optional[str] = Field(None, env="SMTP_USERNAME")
    smtp_password: Optional[str] = Field(None, env="SMTP_PASSWORD")
    smtp_sender: str = Field("casemanager@localhost", env="SMTP_SENDER")
    smtp_starttls: bool = Field(False, env="SMTP_STARTTLS")
    realtime_push_url: Optional[str] = Field(None, env="REALTIME_PUSH_URL")

    # Monitoring system
    grafana_url: Optional[str] = Field(None, env="GRAFANA_URL")
    grafana_token: Optional[str] = Field(None, env="GRAFANA_TOKEN")

    log_level: str = Field("INFO", env="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance for dependency injection."""
    return Settings()
