"""
Construct OS Configuration

Two layers of configuration:
- ConstructSettings: process settings from environment variables
  (CONSTRUCTOS_ prefix), e.g. data directory and log level
- ConfigStore: the user's local configuration file holding security
  and backup settings, changed at runtime through explicit actions and
  re-read on every persistence cycle
"""

from __future__ import annotations

import json
import os
import stat
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)

DEFAULT_PASSPHRASE = "construct-os-local"
DEFAULT_CLOUD_ENDPOINT = "http://localhost:8787/sync"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class SecurityConfig(BaseModel):
    """
    Encryption and cloud sync settings.

    Stored with camelCase keys (``cloudEnabled``, ``cloudEndpoint``).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    passphrase: str = Field(default=DEFAULT_PASSPHRASE, repr=False)
    cloud_enabled: bool = False
    cloud_endpoint: str = DEFAULT_CLOUD_ENDPOINT
    cloud_token: Optional[str] = Field(default=None, repr=False)
    sync_timeout: float = Field(default=15.0, ge=1.0, le=60.0)  # seconds

    @field_validator("cloud_endpoint", mode="before")
    @classmethod
    def strip_endpoint(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @property
    def sync_available(self) -> bool:
        """Cloud sync is enabled and an endpoint is configured."""
        return self.cloud_enabled and bool(self.cloud_endpoint)


class BackupSettings(BaseModel):
    """Scheduled backup interval and retention policy."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    interval_minutes: int = Field(default=30, ge=0)  # 0 disables scheduling
    retention: int = Field(default=10, ge=1)


class ConfigStore:
    """
    Local configuration storage.

    A single JSON file ``{"security": {...}, "backup": {...}}``. Every
    ``load_*`` call reads the file again so changes made elsewhere
    (e.g. a passphrase rotation) apply to the very next operation.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Configuration unreadable, using defaults", path=str(self.path), error=str(e))
            return {}

        if not isinstance(data, dict):
            logger.warning("Configuration is not an object, using defaults", path=str(self.path))
            return {}
        return data

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")

        # Owner read/write only: the file holds the passphrase
        try:
            os.chmod(tmp_path, stat.S_IRUSR | stat.S_IWUSR)
        except OSError:
            pass  # Windows or permission error

        os.replace(tmp_path, self.path)

    def _load_section(self, name: str, model: type[BaseModel]) -> Any:
        section = self._read().get(name) or {}
        try:
            return model.model_validate(section)
        except ValidationError as e:
            logger.warning(
                "Invalid configuration section, using defaults",
                section=name,
                errors=e.error_count(),
            )
            return model()

    def _save_section(self, name: str, value: BaseModel) -> None:
        data = self._read()
        data[name] = value.model_dump(by_alias=True, exclude_none=True)
        self._write(data)

    # Security

    def load_security(self) -> SecurityConfig:
        return self._load_section("security", SecurityConfig)

    def save_security(self, config: SecurityConfig) -> None:
        self._save_section("security", config)
        logger.info(
            "Security settings saved",
            cloud_enabled=config.cloud_enabled,
            cloud_endpoint=config.cloud_endpoint,
        )

    def update_security(self, **changes: Any) -> SecurityConfig:
        """Apply a partial change; raises ValidationError on bad values."""
        current = self.load_security()
        updated = SecurityConfig.model_validate({**current.model_dump(), **changes})
        self.save_security(updated)
        return updated

    # Backup

    def load_backup_settings(self) -> BackupSettings:
        return self._load_section("backup", BackupSettings)

    def save_backup_settings(self, settings: BackupSettings) -> None:
        self._save_section("backup", settings)

    def update_backup_settings(self, **changes: Any) -> BackupSettings:
        current = self.load_backup_settings()
        updated = BackupSettings.model_validate({**current.model_dump(), **changes})
        self.save_backup_settings(updated)
        return updated


class ConstructSettings(BaseSettings):
    """
    Process-level settings.

    Environment variables are prefixed with CONSTRUCTOS_
    (e.g. CONSTRUCTOS_DATA_DIR=/var/lib/constructos).
    """

    data_dir: Path = Field(default=Path("./data"))
    database_path: Optional[Path] = None  # defaults to data_dir/constructos.db
    config_path: Optional[Path] = None  # defaults to data_dir/settings.json

    log_level: LogLevel = LogLevel.INFO
    log_format: Literal["json", "console"] = "console"

    # Reference sync endpoint
    sync_host: str = "127.0.0.1"
    sync_port: int = 8787
    sync_storage_path: Optional[Path] = None  # None keeps payloads in memory
    sync_token: Optional[str] = Field(default=None, repr=False)

    model_config = SettingsConfigDict(
        env_prefix="CONSTRUCTOS_",
        case_sensitive=False,
    )

    @property
    def resolved_database_path(self) -> Path:
        return self.database_path or self.data_dir / "constructos.db"

    @property
    def resolved_config_path(self) -> Path:
        return self.config_path or self.data_dir / "settings.json"

    def ensure_directories(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)


# Global settings instance (lazy loaded)
_settings: Optional[ConstructSettings] = None


def get_settings() -> ConstructSettings:
    """Get the process settings instance."""
    global _settings
    if _settings is None:
        _settings = ConstructSettings()
    return _settings


def set_settings(settings: ConstructSettings) -> None:
    global _settings
    _settings = settings


def reset_settings() -> None:
    global _settings
    _settings = None
