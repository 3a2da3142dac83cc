# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""ASGI application entry point.

Usage:
    uvicorn --factory async_code_mailer.server:create_server_app --port 3000

or ``code-mailer serve``. Settings come from :func:`async_code_mailer.config.load_settings`.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .api import create_app
from .config import Settings, load_settings
from .core import CodeMailerCore, build_core


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the whole process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def create_server_app(settings: Optional[Settings] = None, core: Optional[CodeMailerCore] = None) -> FastAPI:
    """Build the application whose lifespan starts and stops the requeue worker."""
    settings = settings or load_settings()
    core = core or build_core(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        await core.start()
        yield
        await core.stop()

    return create_app(core, lifespan=lifespan)


def serve(settings: Optional[Settings] = None, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the HTTP server until interrupted."""
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    app = create_server_app(settings)
    uvicorn.run(app, host=host or settings.http_host, port=int(port or settings.http_port))
