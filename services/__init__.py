"""Service layer helpers for Manage Your Civil Cases."""

from . import (  # noqa: F401
    api_client,
    auth,
    case_state,
    cases,
    client_details,
    errors,
    feedback,
    formatting,
    messages,
    security,
    settings,
    transforms,
    validation,
)

__all__ = [
    "api_client",
    "auth",
    "case_state",
    "cases",
    "client_details",
    "errors",
    "feedback",
    "formatting",
    "messages",
    "security",
    "settings",
    "transforms",
    "validation",
]
