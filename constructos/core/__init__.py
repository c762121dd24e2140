"""
Construct OS Core

Process settings and the local configuration store. The workspace
composition root lives in ``constructos.core.workspace``.
"""

from constructos.core.config import (
    BackupSettings,
    ConfigStore,
    ConstructSettings,
    SecurityConfig,
    get_settings,
    reset_settings,
    set_settings,
)

__all__ = [
    "BackupSettings",
    "ConfigStore",
    "ConstructSettings",
    "SecurityConfig",
    "get_settings",
    "reset_settings",
    "set_settings",
]
