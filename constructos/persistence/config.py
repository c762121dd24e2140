"""
Construct OS Persistence Configuration

Settings for the embedded snapshot database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union


MEMORY_PATH = Path(":memory:")


@dataclass
class SQLiteConfig:
    """SQLite-specific configuration."""
    path: Path = field(default_factory=lambda: Path("./data/constructos.db"))

    journal_mode: str = "WAL"
    synchronous: str = "NORMAL"
    busy_timeout: int = 30000  # ms
    foreign_keys: bool = True

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "SQLiteConfig":
        return cls(path=Path(path))

    @property
    def in_memory(self) -> bool:
        return self.path == MEMORY_PATH


@dataclass
class StoreConfig:
    """Local snapshot store configuration."""
    backups_table: str = "backups"
    slots_table: str = "slots"
    current_slot: str = "current"
