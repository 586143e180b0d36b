"""Bearer token acquisition and caching for the Civil Case API."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from services.errors import AuthError, extract_error_message, get_status_code
from services.settings import ApiSettings

logger = logging.getLogger("mycc.auth")

TOKEN_PATH = "/latest/token"
DEFAULT_EXPIRES_IN = 1800
EXPIRY_BUFFER_SECONDS = 300
INVALID_TOKEN_RESPONSE = "Invalid token response format"


@dataclass(frozen=True)
class AuthCredentials:
    username: str
    password: str
    client_id: str
    client_secret: str

    def is_complete(self) -> bool:
        return all((self.username, self.password, self.client_id, self.client_secret))


@dataclass
class AuthTokens:
    access_token: str
    token_type: str
    expires_in: int
    expires_at: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> Optional["AuthTokens"]:
        if not isinstance(data, dict):
            return None
        access_token = data.get("access_token")
        token_type = data.get("token_type")
        expires_at = data.get("expires_at")
        if not isinstance(access_token, str) or not isinstance(token_type, str):
            return None
        if not isinstance(expires_at, (int, float)) or isinstance(expires_at, bool):
            return None
        expires_in = data.get("expires_in")
        if not isinstance(expires_in, int) or isinstance(expires_in, bool):
            expires_in = DEFAULT_EXPIRES_IN
        return cls(access_token, token_type, expires_in, float(expires_at))


class AuthService:
    """Obtains password-grant tokens and shares a single in-flight refresh between callers."""

    def __init__(
        self,
        base_url: str,
        credentials: AuthCredentials,
        timeout: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self._timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._tokens: Optional[AuthTokens] = None
        self._in_flight: Optional[Future] = None

    # ------------------------------------------------------------------
    # Token state
    # ------------------------------------------------------------------
    def get_tokens(self) -> Optional[AuthTokens]:
        with self._lock:
            return self._tokens

    def set_tokens(self, tokens: Optional[AuthTokens]) -> None:
        with self._lock:
            self._tokens = tokens

    def clear_tokens(self) -> None:
        with self._lock:
            self._tokens = None

    def _is_token_valid(self) -> bool:
        tokens = self._tokens
        if tokens is None:
            return False
        return tokens.expires_at > self._clock() + EXPIRY_BUFFER_SECONDS

    def is_token_valid(self) -> bool:
        with self._lock:
            return self._is_token_valid()

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------
    def get_access_token(self) -> str:
        with self._lock:
            if self._is_token_valid():
                return self._tokens.access_token
            in_flight = self._in_flight
            owner = in_flight is None
            if owner:
                in_flight = Future()
                self._in_flight = in_flight

        if not owner:
            return in_flight.result()

        try:
            tokens = self._request_token()
        except Exception as exc:
            with self._lock:
                self._tokens = None
                self._in_flight = None
            in_flight.set_exception(exc)
            raise

        with self._lock:
            self._tokens = tokens
            self._in_flight = None
        in_flight.set_result(tokens.access_token)
        return tokens.access_token

    def get_auth_header(self) -> str:
        return f"Bearer {self.get_access_token()}"

    def _request_token(self) -> AuthTokens:
        url = f"{self.base_url}{TOKEN_PATH}"
        form = {
            "grant_type": "password",
            "scope": "",
            "username": self.credentials.username,
            "password": self.credentials.password,
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
        }
        logger.info("Requesting access token from %s", url)
        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.post(url, data=form, headers={"Accept": "application/json"})
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as exc:
            message = extract_error_message(exc)
            logger.warning("Token request failed: %s", message)
            raise AuthError(message, get_status_code(exc)) from exc
        except ValueError as exc:
            logger.warning("Token endpoint returned a non-JSON body")
            raise AuthError(INVALID_TOKEN_RESPONSE) from exc

        if (
            not isinstance(payload, dict)
            or not isinstance(payload.get("access_token"), str)
            or not isinstance(payload.get("token_type"), str)
        ):
            logger.warning("Token endpoint returned an unexpected payload")
            raise AuthError(INVALID_TOKEN_RESPONSE)

        expires_in = payload.get("expires_in")
        if not isinstance(expires_in, (int, float)) or isinstance(expires_in, bool) or expires_in <= 0:
            expires_in = DEFAULT_EXPIRES_IN

        return AuthTokens(
            access_token=payload["access_token"],
            token_type=payload["token_type"],
            expires_in=int(expires_in),
            expires_at=self._clock() + int(expires_in),
        )


# ----------------------------------------------------------------------
# Per-user registry
# ----------------------------------------------------------------------
_registry_lock = threading.Lock()
_services: Dict[Tuple[str, str, str], AuthService] = {}


def _registry_key(base_url: str, credentials: AuthCredentials) -> Tuple[str, str, str]:
    return (base_url.rstrip("/"), credentials.username, credentials.client_id)


def get_auth_service(api: ApiSettings, credentials: AuthCredentials) -> AuthService:
    """Return the shared service for these credentials, creating it on first use."""
    key = _registry_key(api.base_url, credentials)
    with _registry_lock:
        service = _services.get(key)
        if service is None or service.credentials != credentials:
            service = AuthService(api.base_url, credentials, timeout=api.timeout_seconds)
            _services[key] = service
        return service


def forget_auth_service(api: ApiSettings, credentials: AuthCredentials) -> None:
    with _registry_lock:
        service = _services.pop(_registry_key(api.base_url, credentials), None)
    if service is not None:
        service.clear_tokens()


def clear_auth_services() -> None:
    with _registry_lock:
        _services.clear()


def create_auth_service(
    api: ApiSettings, credentials: Optional[AuthCredentials] = None
) -> Optional[AuthService]:
    """Build a service from explicit or configured credentials; None when anything is missing."""
    if credentials is None:
        credentials = AuthCredentials(api.username, api.password, api.client_id, api.client_secret)
    if not api.base_url or not credentials.is_complete():
        return None
    return AuthService(api.base_url, credentials, timeout=api.timeout_seconds)


def authenticate_user(api: ApiSettings, username: str, password: str) -> Tuple[AuthService, AuthTokens]:
    credentials = AuthCredentials(username, password, api.client_id, api.client_secret)
    service = create_auth_service(api, credentials)
    if service is None:
        raise AuthError("Authentication is not configured. Please contact support.")

    service.get_access_token()
    tokens = service.get_tokens()
    if tokens is None:
        raise AuthError(INVALID_TOKEN_RESPONSE)

    with _registry_lock:
        _services[_registry_key(api.base_url, credentials)] = service
    logger.info("User %s authenticated", username)
    return service, tokens
