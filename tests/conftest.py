from __future__ import annotations

import os
import time

os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("SESSION_NAME", "mycc-test")
os.environ.setdefault("API_URL", "http://api.test")
os.environ.setdefault("API_CLIENT_ID", "test-client")
os.environ.setdefault("API_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest

from services.api_client import CaseApiClient
from services.auth import AuthCredentials, AuthService, AuthTokens, clear_auth_services
from services.security import CSRF_SESSION_KEY, encrypt_secret

API_BASE = "http://api.test"
API_PREFIX = "/cla_provider/api/v1"
API_ROOT = f"{API_BASE}{API_PREFIX}"
TOKEN_URL = f"{API_BASE}/latest/token"
CSRF_TOKEN = "test-csrf-token"


def make_tokens(access_token: str = "test-token", expires_in: int = 3600) -> AuthTokens:
    return AuthTokens(access_token, "Bearer", expires_in, time.time() + expires_in)


@pytest.fixture(autouse=True)
def _reset_auth_registry():
    clear_auth_services()
    yield
    clear_auth_services()


@pytest.fixture
def credentials() -> AuthCredentials:
    return AuthCredentials("caseworker", "s3cret", "test-client", "test-client-secret")


@pytest.fixture
def auth_service(credentials) -> AuthService:
    service = AuthService(API_BASE, credentials)
    service.set_tokens(make_tokens())
    return service


@pytest.fixture
def api_client(auth_service):
    client = CaseApiClient(API_BASE, auth_service, prefix=API_PREFIX)
    yield client
    client.close()


@pytest.fixture
def expired_api_client(credentials):
    service = AuthService(API_BASE, credentials)
    service.set_tokens(make_tokens(expires_in=-10))
    client = CaseApiClient(API_BASE, service, prefix=API_PREFIX)
    yield client
    client.close()


@pytest.fixture
def flask_app():
    from app import app

    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture
def logged_in_client(client, credentials):
    with client.session_transaction() as sess:
        sess["auth_credentials"] = {
            "username": credentials.username,
            "password": encrypt_secret(credentials.password),
            "client_id": credentials.client_id,
            "client_secret": encrypt_secret(credentials.client_secret),
        }
        sess["auth_tokens"] = make_tokens().to_dict()
        sess[CSRF_SESSION_KEY] = CSRF_TOKEN
    return client


def case_payload(**overrides):
    body = {
        "reference": "PC-1922-1879",
        "laa_reference": "3000001",
        "provider": "1",
        "state": "accepted",
        "outcome_code": "",
        "modified": "2026-01-07T10:00:00Z",
        "provider_assigned_at": "2026-01-05T09:00:00Z",
        "provider_viewed": "2026-01-06T09:00:00Z",
        "provider_accepted": "2026-01-06T11:00:00Z",
        "provider_closed": None,
        "notes": "Operator note",
        "client_notes": "",
        "personal_details": {
            "full_name": "Jack Youngs",
            "date_of_birth": "1986-01-06",
            "mobile_phone": "07700900123",
            "home_phone": "",
            "safe_to_contact": "SAFE",
            "announce_call": True,
            "email": "jack@example.com",
            "street": "1 Skyscraper Lane",
            "postcode": "SW1A 1AA",
        },
        "adaptation_details": None,
        "thirdparty_details": None,
    }
    body.update(overrides)
    return body
