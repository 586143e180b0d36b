from __future__ import annotations

import json

import httpx
import pytest
from respx import MockRouter

from conftest import API_ROOT, TOKEN_URL
from services.errors import AuthError
from services.feedback import extract_feedback_choices, get_feedback_choices, submit_operator_feedback

REF = "PC-1922-1879"
FEEDBACK_URL = f"{API_ROOT}/case/{REF}/feedback/"


def test_extract_feedback_choices() -> None:
    body = {
        "actions": {
            "POST": {
                "issue": {
                    "choices": [
                        {"value": "ADCO", "display_name": "Advice on call"},
                        {"value": "TECH"},
                        {"display_name": "No value"},
                        "junk",
                    ]
                }
            }
        }
    }

    assert extract_feedback_choices(body) == [("ADCO", "Advice on call"), ("TECH", "TECH")]


@pytest.mark.parametrize("body", [None, [], {"actions": {}}, {"actions": {"POST": {"issue": {"choices": "x"}}}}])
def test_extract_feedback_choices_tolerates_missing_schema(body) -> None:
    assert extract_feedback_choices(body) == []


def test_get_feedback_choices_uses_options(respx_mock: MockRouter, api_client) -> None:
    route = respx_mock.options(FEEDBACK_URL).mock(
        return_value=httpx.Response(
            200, json={"actions": {"POST": {"issue": {"choices": [{"value": "OTH", "display_name": "Other"}]}}}}
        )
    )

    result = get_feedback_choices(api_client, REF)

    assert result == {"status": "success", "data": [("OTH", "Other")]}
    assert route.calls.last.request.headers["Authorization"] == "Bearer test-token"


def test_get_feedback_choices_failure(respx_mock: MockRouter, api_client) -> None:
    respx_mock.options(FEEDBACK_URL).mock(return_value=httpx.Response(404))

    result = get_feedback_choices(api_client, REF)

    assert result["status"] == "error"
    assert result["status_code"] == 404


def test_submit_operator_feedback(respx_mock: MockRouter, api_client) -> None:
    route = respx_mock.post(FEEDBACK_URL).mock(return_value=httpx.Response(201, json={"id": 7}))

    result = submit_operator_feedback(api_client, REF, "CB", "No call back")

    assert result == {"status": "success", "data": {"id": 7}}
    assert json.loads(route.calls.last.request.content) == {"issue": "CB", "comment": "No call back"}


def test_submit_operator_feedback_reports_api_message(respx_mock: MockRouter, api_client) -> None:
    respx_mock.post(FEEDBACK_URL).mock(return_value=httpx.Response(400, json={"detail": "Comment too long"}))

    result = submit_operator_feedback(api_client, REF, "CB", "x")

    assert result["status"] == "error"
    assert result["message"] == "Comment too long"


def test_token_failure_is_not_reported_as_feedback_error(respx_mock: MockRouter, expired_api_client) -> None:
    respx_mock.post(TOKEN_URL).mock(return_value=httpx.Response(400, json={"error": "invalid_grant"}))

    with pytest.raises(AuthError):
        get_feedback_choices(expired_api_client, REF)
