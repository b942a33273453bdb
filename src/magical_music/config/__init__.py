"""Configuration module for Magical Music."""

from .settings import (
    ApiSettings,
    AuthSettings,
    CorsSettings,
    DatabaseSettings,
    MaintenanceSettings,
    ObservabilitySettings,
    RealtimeSettings,
    ServerSettings,
    Settings,
    UploadSettings,
    get_settings,
)

__all__ = [
    "ApiSettings",
    "AuthSettings",
    "CorsSettings",
    "DatabaseSettings",
    "MaintenanceSettings",
    "ObservabilitySettings",
    "RealtimeSettings",
    "ServerSettings",
    "Settings",
    "UploadSettings",
    "get_settings",
]
