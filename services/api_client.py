"""HTTP client for the Civil Case API."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from services.auth import AuthService
from services.errors import CaseApiError, extract_error_message

logger = logging.getLogger("mycc.api")


def _json_or_none(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


class CaseApiClient:
    """Thin httpx wrapper that attaches a bearer token to every request."""

    def __init__(
        self,
        base_url: str,
        auth: AuthService,
        timeout: float = 5.0,
        prefix: str = "",
    ) -> None:
        self.auth = auth
        self.prefix = prefix.rstrip("/")
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json", "Content-Type": "application/json"},
        )

    def __enter__(self) -> "CaseApiClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def url(self, path: str) -> str:
        return f"{self.prefix}{path}"

    def send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        headers = {"Authorization": self.auth.get_auth_header()}
        extra: Dict[str, Any] = {}
        if timeout is not None:
            extra["timeout"] = timeout
        url = self.url(path)
        logger.debug("API: %s %s params=%s", method, url, params)
        try:
            response = self._client.request(method, url, params=params, json=json, headers=headers, **extra)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 401:
                self.auth.clear_tokens()
            logger.warning("API: %s %s returned %s", method, url, status)
            raise CaseApiError(extract_error_message(exc), status) from exc
        except httpx.HTTPError as exc:
            logger.warning("API: %s %s failed: %s", method, url, exc)
            raise CaseApiError(extract_error_message(exc)) from exc
        return response

    def get(self, path: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        return _json_or_none(self.send("GET", path, params=params, timeout=timeout))

    def post(self, path: str, json: Any = None) -> Any:
        return _json_or_none(self.send("POST", path, json=json))

    def patch(self, path: str, json: Any = None) -> Any:
        return _json_or_none(self.send("PATCH", path, json=json))

    def options(self, path: str) -> Any:
        return _json_or_none(self.send("OPTIONS", path))
