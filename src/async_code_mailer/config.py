# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Settings loader for the code mailer.

Configuration is read from an INI file (default ``config.ini``, overridable
through ``ACM_CONFIG``) with ``ACM_*`` environment variables as fallbacks.
Values found in the file win over the environment.

Config file sections/keys::

    [smtp]       host, port, user, password, from_address, timeout
    [server]     host, port
    [rate_limit] max_attempts, window_seconds
    [delivery]   foreground_attempts, retry_delays, background_retry_limit,
                 requeue_interval_seconds
    [logging]    level, delivery_activity

Environment variables:
    ACM_CONFIG, ACM_SMTP_HOST, ACM_SMTP_PORT, ACM_SMTP_USER,
    ACM_SMTP_PASSWORD, ACM_FROM_EMAIL, ACM_SMTP_TIMEOUT, ACM_HOST, ACM_PORT,
    ACM_RATE_MAX_ATTEMPTS, ACM_RATE_WINDOW_SECONDS, ACM_FOREGROUND_ATTEMPTS,
    ACM_RETRY_DELAYS, ACM_BACKGROUND_RETRY_LIMIT, ACM_REQUEUE_INTERVAL,
    ACM_LOG_LEVEL, ACM_LOG_DELIVERY_ACTIVITY

When any of SMTP host, user or password is missing the service runs in
simulation mode: nothing is sent and every request succeeds.
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Mapping

DEFAULT_SMTP_PORT = 587
DEFAULT_SMTP_TIMEOUT = 10.0
DEFAULT_HTTP_HOST = "0.0.0.0"
DEFAULT_HTTP_PORT = 3000
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_WINDOW_SECONDS = 15 * 60
DEFAULT_FOREGROUND_ATTEMPTS = 3
DEFAULT_RETRY_DELAYS = (1.0, 3.0, 7.0)
DEFAULT_BACKGROUND_RETRY_LIMIT = 3
DEFAULT_REQUEUE_INTERVAL = 60.0


class ConfigurationError(ValueError):
    """Raised when a setting cannot be parsed or is out of range."""


@dataclass(frozen=True)
class Settings:
    """Resolved runtime configuration.

    Attributes:
        smtp_host: SMTP server hostname, ``None`` in simulation mode.
        smtp_port: SMTP server port; 465 selects implicit TLS.
        smtp_user: SMTP login.
        smtp_password: SMTP password.
        from_address: Sender address; falls back to ``smtp_user``.
        smtp_timeout: Seconds allowed for connect and for each SMTP command.
        http_host: Bind address of the HTTP server.
        http_port: Bind port of the HTTP server.
        rate_max_attempts: Admitted requests per key and window.
        rate_window_seconds: Sliding window length.
        foreground_attempts: Total synchronous attempts per request.
        retry_delays: Waits between synchronous attempts, in seconds.
        background_retry_limit: Failed worker cycles before an item is dropped.
        requeue_interval: Seconds between requeue worker cycles.
        log_level: Root logging level name.
        log_delivery_activity: Emit one INFO line per delivery attempt.
    """

    smtp_host: str | None = None
    smtp_port: int = DEFAULT_SMTP_PORT
    smtp_user: str | None = None
    smtp_password: str | None = None
    from_address: str | None = None
    smtp_timeout: float = DEFAULT_SMTP_TIMEOUT
    http_host: str = DEFAULT_HTTP_HOST
    http_port: int = DEFAULT_HTTP_PORT
    rate_max_attempts: int = DEFAULT_MAX_ATTEMPTS
    rate_window_seconds: float = DEFAULT_WINDOW_SECONDS
    foreground_attempts: int = DEFAULT_FOREGROUND_ATTEMPTS
    retry_delays: tuple[float, ...] = DEFAULT_RETRY_DELAYS
    background_retry_limit: int = DEFAULT_BACKGROUND_RETRY_LIMIT
    requeue_interval: float = DEFAULT_REQUEUE_INTERVAL
    log_level: str = "INFO"
    log_delivery_activity: bool = False

    @property
    def smtp_configured(self) -> bool:
        """``True`` when host, user and password are all present."""
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    @property
    def sender(self) -> str | None:
        """Address used in the ``From`` header."""
        return self.from_address or self.smtp_user

    def as_dict(self, mask_secrets: bool = True) -> dict[str, Any]:
        """Return the settings as a plain dictionary."""
        data = asdict(self)
        if mask_secrets and data.get("smtp_password"):
            data["smtp_password"] = "********"
        data["smtp_configured"] = self.smtp_configured
        return data


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(name: str, value: str | None, default: int, minimum: int = 1) -> int:
    if value is None or not str(value).strip():
        return default
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc
    if parsed < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {parsed}")
    return parsed


def _parse_float(name: str, value: str | None, default: float, minimum: float = 0.0) -> float:
    if value is None or not str(value).strip():
        return default
    try:
        parsed = float(str(value).strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc
    if parsed < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {parsed}")
    return parsed


def parse_delays(value: str | None, default: tuple[float, ...] = DEFAULT_RETRY_DELAYS) -> tuple[float, ...]:
    """Parse a comma separated list of non-negative delays in seconds.

    >>> parse_delays("1, 3,7")
    (1.0, 3.0, 7.0)
    """
    if value is None:
        return default
    parts = [part.strip() for part in str(value).split(",") if part.strip()]
    if not parts:
        raise ConfigurationError("retry_delays must contain at least one value")
    return tuple(_parse_float("retry_delays", part, 0.0) for part in parts)


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def load_settings(
    config_path: str | os.PathLike[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load :class:`Settings` from ``config_path`` and the environment.

    Args:
        config_path: INI file to read. Defaults to ``$ACM_CONFIG`` or
            ``config.ini``. A missing file is not an error.
        environ: Mapping used instead of ``os.environ`` (handy in tests).

    Raises:
        ConfigurationError: If a numeric setting is malformed or out of range.
    """
    env = os.environ if environ is None else environ
    path = Path(config_path or env.get("ACM_CONFIG", "config.ini"))
    parser = configparser.ConfigParser()
    parser.read(path)

    def get(section: str, option: str, env_name: str) -> str | None:
        if parser.has_option(section, option):
            return parser.get(section, option)
        return env.get(env_name)

    smtp_user = _blank_to_none(get("smtp", "user", "ACM_SMTP_USER"))
    return Settings(
        smtp_host=_blank_to_none(get("smtp", "host", "ACM_SMTP_HOST")),
        smtp_port=_parse_int("smtp.port", get("smtp", "port", "ACM_SMTP_PORT"), DEFAULT_SMTP_PORT),
        smtp_user=smtp_user,
        smtp_password=_blank_to_none(get("smtp", "password", "ACM_SMTP_PASSWORD")),
        from_address=_blank_to_none(get("smtp", "from_address", "ACM_FROM_EMAIL")),
        smtp_timeout=_parse_float(
            "smtp.timeout", get("smtp", "timeout", "ACM_SMTP_TIMEOUT"), DEFAULT_SMTP_TIMEOUT, minimum=0.1
        ),
        http_host=get("server", "host", "ACM_HOST") or DEFAULT_HTTP_HOST,
        http_port=_parse_int("server.port", get("server", "port", "ACM_PORT"), DEFAULT_HTTP_PORT),
        rate_max_attempts=_parse_int(
            "rate_limit.max_attempts",
            get("rate_limit", "max_attempts", "ACM_RATE_MAX_ATTEMPTS"),
            DEFAULT_MAX_ATTEMPTS,
        ),
        rate_window_seconds=_parse_float(
            "rate_limit.window_seconds",
            get("rate_limit", "window_seconds", "ACM_RATE_WINDOW_SECONDS"),
            DEFAULT_WINDOW_SECONDS,
            minimum=1.0,
        ),
        foreground_attempts=_parse_int(
            "delivery.foreground_attempts",
            get("delivery", "foreground_attempts", "ACM_FOREGROUND_ATTEMPTS"),
            DEFAULT_FOREGROUND_ATTEMPTS,
        ),
        retry_delays=parse_delays(get("delivery", "retry_delays", "ACM_RETRY_DELAYS")),
        background_retry_limit=_parse_int(
            "delivery.background_retry_limit",
            get("delivery", "background_retry_limit", "ACM_BACKGROUND_RETRY_LIMIT"),
            DEFAULT_BACKGROUND_RETRY_LIMIT,
        ),
        requeue_interval=_parse_float(
            "delivery.requeue_interval_seconds",
            get("delivery", "requeue_interval_seconds", "ACM_REQUEUE_INTERVAL"),
            DEFAULT_REQUEUE_INTERVAL,
            minimum=0.01,
        ),
        log_level=(get("logging", "level", "ACM_LOG_LEVEL") or "INFO").strip().upper(),
        log_delivery_activity=_parse_bool(
            get("logging", "delivery_activity", "ACM_LOG_DELIVERY_ACTIVITY"), False
        ),
    )
