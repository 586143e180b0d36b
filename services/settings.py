"""Centralised configuration and secret key handling for Manage Your Civil Cases."""

from __future__ import annotations

import base64
import hashlib
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from dotenv import load_dotenv

DEFAULT_SERVICE_NAME = "LAA Manage Your Civil Cases"
DEFAULT_API_PREFIX = "/cla_provider/api/v1"
DEFAULT_API_TIMEOUT_MS = 5000
DEFAULT_SEARCH_TIMEOUT_MS = 10000
DEFAULT_PAGINATION_LIMIT = 20
DEFAULT_SEARCH_PAGE_LIMIT = 4
DEFAULT_PORT = 3000
DEFAULT_SESSION_TIMEOUT_MINUTES = 30


def _int_value(raw: Optional[str], default: int) -> int:
    if raw is None or not str(raw).strip():
        return default
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class ApiSettings:
    base_url: str
    prefix: str
    timeout_seconds: float
    search_timeout_seconds: float
    username: str
    password: str
    client_id: str
    client_secret: str


@dataclass(frozen=True)
class Settings:
    session_secret: str
    session_name: str
    service_name: str
    environment: str
    port: int
    pagination_limit: int
    search_page_limit: int
    session_timeout_minutes: int
    encryption_passphrase: str
    log_level: str
    api: ApiSettings

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


class SettingsManager:
    """Resolves settings from the environment and derives the session encryption key."""

    SECRET_ITERATIONS = 390_000

    def __init__(self, environ: Optional[Mapping[str, str]] = None, load_env_file: bool = True) -> None:
        if environ is None:
            if load_env_file:
                load_dotenv()
            environ = os.environ
        self._environ = environ
        self.settings = self._build_settings()
        self._fernet_key: Optional[bytes] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get(self, key: str, default: Any = None) -> Any:
        value = self._environ.get(key)
        if value is None or value == "":
            return default
        return value

    def fernet_key(self) -> bytes:
        if self._fernet_key is None:
            self._fernet_key = self._derive_key(self.settings.encryption_passphrase)
        return self._fernet_key

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _require(self, key: str) -> str:
        value = (self.get(key) or "").strip()
        if not value:
            raise RuntimeError(f"{key} environment variable is required.")
        return value

    def _build_settings(self) -> Settings:
        session_secret = self._require("SESSION_SECRET")
        session_name = self._require("SESSION_NAME")

        api = ApiSettings(
            base_url=(self.get("API_URL", "") or "").rstrip("/"),
            prefix=self.get("API_PREFIX", DEFAULT_API_PREFIX),
            timeout_seconds=_int_value(self.get("API_TIMEOUT"), DEFAULT_API_TIMEOUT_MS) / 1000,
            search_timeout_seconds=_int_value(self.get("SEARCH_TIMEOUT"), DEFAULT_SEARCH_TIMEOUT_MS) / 1000,
            username=self.get("API_USERNAME", ""),
            password=self.get("API_PASSWORD", ""),
            client_id=self.get("API_CLIENT_ID", ""),
            client_secret=self.get("API_CLIENT_SECRET", ""),
        )

        return Settings(
            session_secret=session_secret,
            session_name=session_name,
            service_name=self.get("SERVICE_NAME", DEFAULT_SERVICE_NAME),
            environment=self.get("ENVIRONMENT") or self.get("NODE_ENV", "development"),
            port=_int_value(self.get("PORT"), DEFAULT_PORT),
            pagination_limit=_int_value(self.get("PAGINATION_LIMIT"), DEFAULT_PAGINATION_LIMIT),
            search_page_limit=_int_value(self.get("SEARCH_PAGE_LIMIT"), DEFAULT_SEARCH_PAGE_LIMIT),
            session_timeout_minutes=_int_value(
                self.get("SESSION_TIMEOUT_MINUTES"), DEFAULT_SESSION_TIMEOUT_MINUTES
            ),
            encryption_passphrase=self.get("SESSION_ENCRYPTION_KEY") or session_secret,
            log_level=str(self.get("LOG_LEVEL", "INFO")).upper(),
            api=api,
        )

    def _derive_key(self, passphrase: str) -> bytes:
        # Every worker must derive the same key, so the salt comes from the session name.
        salt = hashlib.sha256(f"mycc:{self.settings.session_name}".encode("utf-8")).digest()[:16]
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=self.SECRET_ITERATIONS,
        )
        key = kdf.derive(passphrase.encode("utf-8"))
        return base64.urlsafe_b64encode(key)


settings_manager = SettingsManager()
