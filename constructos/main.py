"""
Construct OS

Process entry points: structured logging setup and the reference
sync endpoint server.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
import uvicorn

from constructos.api.sync_server import create_sync_app
from constructos.core.config import ConstructSettings, get_settings


# Configure structured logging
def setup_logging(log_level: str = "INFO", fmt: str = "console") -> None:
    """
    Configure structlog over stdlib logging.

    Args:
        log_level: Minimum level name
        fmt: "json" for machine-readable lines, "console" for humans
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger(__name__)


def run_sync_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    storage_path: Optional[Path] = None,
    token: Optional[str] = None,
    settings: Optional[ConstructSettings] = None,
) -> None:
    """
    Run the reference sync endpoint.

    Unset arguments fall back to ``settings`` (default: the process settings).
    """
    settings = settings or get_settings()
    host = host or settings.sync_host
    port = port or settings.sync_port
    storage_path = storage_path or settings.sync_storage_path
    token = token or settings.sync_token

    app = create_sync_app(storage_path=storage_path, token=token)
    logger.info(
        "Starting sync endpoint",
        host=host,
        port=port,
        storage=str(storage_path) if storage_path else "memory",
        auth=bool(token),
    )

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=settings.log_level.value.lower(),
    )
