# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Confirmation-code mailer with rate limiting and background redelivery.

This package delivers short-lived confirmation codes by email. Features:

- Per-recipient and per-caller sliding-window rate limiting
- Foreground sends with bounded, sequential retry and backoff
- An in-memory failure queue drained by a periodic requeue worker
- Simulation mode when no SMTP credentials are configured
- Prometheus metrics and a FastAPI REST API

Example:
    Wiring the service from settings::

        from async_code_mailer.config import load_settings
        from async_code_mailer.core import build_core
        from async_code_mailer.api import create_app

        core = build_core(load_settings())
        app = create_app(core)
"""

__version__ = "0.1.0"
