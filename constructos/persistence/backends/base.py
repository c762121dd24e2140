"""
Construct OS Base Backend Interface

Abstract base class for the embedded stores backing the local
snapshot store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any, Optional


class BaseBackend(ABC):
    """
    Abstract base class for local storage backends.

    Reads may run concurrently; writes go through ``transaction()``,
    which serializes writers and commits or rolls back as a unit.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Open the backend."""
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        """Close the backend."""
        pass

    @abstractmethod
    async def execute_ddl(self, ddl: str) -> None:
        """Execute DDL statements (CREATE, ALTER, DROP)."""
        pass

    @abstractmethod
    async def execute(self, query: str, params: Optional[tuple] = None) -> int:
        """Execute a statement and return the affected row count."""
        pass

    @abstractmethod
    async def fetch_one(
        self,
        query: str,
        params: Optional[tuple] = None,
    ) -> Optional[dict[str, Any]]:
        pass

    @abstractmethod
    async def fetch_all(
        self,
        query: str,
        params: Optional[tuple] = None,
    ) -> list[dict[str, Any]]:
        pass

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Exclusive write transaction."""
        pass
