"""Application configuration objects."""

from __future__ import annotations

from msgspec import Struct


class LoggingConfig(Struct, frozen=True):
    """Logging knobs for the routing layer."""

    route_log_level: str = "DEBUG"
    log_unhandled_errors: bool = True


class AppConfig(Struct, frozen=True):
    """Typed configuration for a :class:`~warren.application.WarrenApp` instance."""

    views: str = "views"
    default_content_type: str = "text/html; charset=utf-8"
    raise_server_errors: bool = False
    security_headers: bool = True
    autoescape: bool = True
    logging: LoggingConfig = LoggingConfig()
