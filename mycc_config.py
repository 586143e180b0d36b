"""Resolved application configuration for app.py."""

from __future__ import annotations

from datetime import timedelta

from services.settings import settings_manager

_settings = settings_manager.settings

SECRET_KEY = _settings.session_secret
SESSION_COOKIE_NAME = _settings.session_name
SERVICE_NAME = _settings.service_name
ENVIRONMENT = _settings.environment
PORT = _settings.port
LOG_LEVEL = _settings.log_level

API = _settings.api
PAGINATION_LIMIT = _settings.pagination_limit
SEARCH_PAGE_LIMIT = _settings.search_page_limit

SESSION_TIMEOUT = timedelta(minutes=_settings.session_timeout_minutes)


def is_production() -> bool:
    return _settings.is_production


def is_api_configured() -> bool:
    return bool(API.base_url)
