"""Application settings loaded from environment variables and `.env`.

Hey future me - every section is its own BaseSettings with its own env prefix,
so `DATABASE_URL` lands in `settings.database.url` and `PORT` in
`settings.server.port`. Tests construct `Settings(database={"url": ...})`
directly; nested dicts skip the environment and use field defaults.
"""

from functools import lru_cache
from pathlib import Path

from croniter import croniter
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from magical_music.domain.value_objects.lifecycle import StartupPolicy

MIB = 1024 * 1024

_BASE_CONFIG = {
    "env_file": ".env",
    "env_file_encoding": "utf-8",
    "extra": "ignore",
}


class ServerSettings(BaseSettings):
    """Listener address. Platforms like Railway inject PORT."""

    model_config = SettingsConfigDict(env_prefix="", **_BASE_CONFIG)

    host: str = Field(default="0.0.0.0", description="Interface to bind")
    port: int = Field(default=5050, ge=1, le=65535, description="Listen port")


class ApiSettings(BaseSettings):
    """Request pipeline limits."""

    model_config = SettingsConfigDict(env_prefix="API_", **_BASE_CONFIG)

    request_timeout: float = Field(
        default=60.0, ge=0, description="Seconds before a request gets 504 (0 disables)"
    )
    json_body_limit: int = Field(
        default=100 * 1024, gt=0, description="Maximum JSON body size in bytes"
    )


class CorsSettings(BaseSettings):
    """Cross-origin policy.

    An empty origin list reflects ANY origin back with credentials allowed.
    That is the historic behavior; production deployments should list their
    frontends explicitly.
    """

    model_config = SettingsConfigDict(env_prefix="CORS_", **_BASE_CONFIG)

    origins: list[str] = Field(default_factory=list)
    allow_credentials: bool = True

    @property
    def reflects_any_origin(self) -> bool:
        return not self.origins


class DatabaseSettings(BaseSettings):
    """Database connection consumed by the persistence layer."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_", **_BASE_CONFIG)

    url: str = Field(default="sqlite+aiosqlite:///./magical_music.db")
    echo: bool = False
    pool_pre_ping: bool = True
    pool_size: int = 5
    max_overflow: int = 10
    connect_timeout: float = Field(
        default=10.0, gt=0, description="Seconds to wait for the startup probe"
    )


class AuthSettings(BaseSettings):
    """Session token verification. Without a key authentication is skipped process-wide.

    CLERK_JWT_KEY is the PEM public key Clerk publishes for the instance (RS256).
    A non-PEM value is treated as an HS256 shared secret, for self-issued tokens.
    """

    model_config = SettingsConfigDict(env_prefix="CLERK_", **_BASE_CONFIG)

    jwt_key: str | None = Field(default=None, description="PEM public key or shared secret")
    jwt_algorithms: list[str] | None = Field(
        default=None, description="Accepted algorithms (default from the key type)"
    )
    authorized_parties: list[str] = Field(default_factory=list)
    leeway_seconds: int = Field(default=5, ge=0)
    session_cookie: str = "__session"

    @field_validator("jwt_key")
    @classmethod
    def _blank_is_missing(cls, value: str | None) -> str | None:
        if value is None:
            return None
        # PEM keys pasted into a single env line usually carry literal "\n".
        value = value.strip().replace("\\n", "\n")
        return value or None

    @property
    def enabled(self) -> bool:
        return self.jwt_key is not None

    @property
    def is_public_key(self) -> bool:
        return bool(self.jwt_key) and self.jwt_key.startswith("-----BEGIN")

    @property
    def algorithms(self) -> list[str]:
        if self.jwt_algorithms:
            return list(self.jwt_algorithms)
        return ["RS256"] if self.is_public_key else ["HS256"]


class UploadSettings(BaseSettings):
    """Multipart staging."""

    model_config = SettingsConfigDict(env_prefix="UPLOAD_", **_BASE_CONFIG)

    temp_dir: Path = Field(default=Path("tmp"))
    staging_dir_name: str = ".incoming"
    max_file_size: int = Field(default=10 * MIB, gt=0, description="Bytes per file")
    timeout: float = Field(default=120.0, ge=0, description="Seconds per upload (0 disables)")

    @property
    def temp_dir_path(self) -> Path:
        """Temp directory resolved against the current working directory."""
        if self.temp_dir.is_absolute():
            return self.temp_dir
        return Path.cwd() / self.temp_dir


class MaintenanceSettings(BaseSettings):
    """Scheduled sweep of the temp upload directory."""

    model_config = SettingsConfigDict(env_prefix="CLEANUP_", **_BASE_CONFIG)

    enabled: bool = True
    schedule: str = Field(default="0 * * * *", description="Cron expression")
    min_age_seconds: int = Field(
        default=0, ge=0, description="Spare files younger than this (0 sweeps everything)"
    )
    stale_staging_seconds: int = Field(
        default=3600, gt=0, description="Remove staged partial uploads idle this long"
    )

    @field_validator("schedule")
    @classmethod
    def _valid_cron(cls, value: str) -> str:
        if not croniter.is_valid(value):
            raise ValueError(f"Invalid cron expression: {value!r}")
        return value


class RealtimeSettings(BaseSettings):
    """WebSocket hub sharing the HTTP port."""

    model_config = SettingsConfigDict(env_prefix="REALTIME_", **_BASE_CONFIG)

    path: str = "/socket"


class ObservabilitySettings(BaseSettings):
    """Logging and shutdown behavior."""

    model_config = SettingsConfigDict(env_prefix="", **_BASE_CONFIG)

    log_json_format: bool = False
    shutdown_timeout: float = Field(default=10.0, gt=0)


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(env_prefix="", **_BASE_CONFIG)

    app_name: str = "magical-music"
    app_env: str = Field(default="development", description='Only "production" changes behavior')
    log_level: str = "INFO"
    startup_policy: StartupPolicy = StartupPolicy.FAIL_FAST
    greeting: str = "Magical Music Backend Running 🚀"

    server: ServerSettings = Field(default_factory=ServerSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    cors: CorsSettings = Field(default_factory=CorsSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    uploads: UploadSettings = Field(default_factory=UploadSettings)
    maintenance: MaintenanceSettings = Field(default_factory=MaintenanceSettings)
    realtime: RealtimeSettings = Field(default_factory=RealtimeSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


# Yo, cached so every Depends(get_settings) shares ONE instance. Tests that need other values
# build Settings(...) directly and hand it to create_app() instead of touching this cache.
@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings."""
    return Settings()
