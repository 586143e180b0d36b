"""Security helpers for encrypted session secrets and CSRF tokens."""

from __future__ import annotations

import secrets
from typing import MutableMapping, Optional

from cryptography.fernet import Fernet, InvalidToken

from services.settings import settings_manager

CSRF_SESSION_KEY = "_csrf_token"
CSRF_FORM_FIELD = "_csrf"

_fernet: Optional[Fernet] = None


class SessionSecretError(ValueError):
    """Raised when an encrypted session value cannot be decrypted."""


def _get_fernet() -> Fernet:
    global _fernet
    if _fernet is None:
        _fernet = Fernet(settings_manager.fernet_key())
    return _fernet


def encrypt_secret(plain_text: str) -> str:
    """Encrypt a credential before it is stored in the session cookie."""
    if not plain_text:
        raise ValueError("Secret must not be empty")
    return _get_fernet().encrypt(plain_text.encode("utf-8")).decode("ascii")


def decrypt_secret(token: str) -> str:
    """Reverse :func:`encrypt_secret`."""
    if not token:
        raise SessionSecretError("Encrypted session value is empty.")
    try:
        return _get_fernet().decrypt(token.encode("ascii")).decode("utf-8")
    except (InvalidToken, UnicodeError) as exc:
        raise SessionSecretError("Unable to decrypt session secret.") from exc


def generate_csrf_token(session: MutableMapping) -> str:
    token = session.get(CSRF_SESSION_KEY)
    if not isinstance(token, str) or not token:
        token = secrets.token_urlsafe(32)
        session[CSRF_SESSION_KEY] = token
    return token


def validate_csrf_token(session: MutableMapping, submitted: Optional[str]) -> bool:
    expected = session.get(CSRF_SESSION_KEY)
    if not isinstance(expected, str) or not expected or not submitted:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), submitted.encode("utf-8"))
