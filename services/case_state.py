"""Case state transitions. The API owns which transitions are allowed."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from services.api_client import CaseApiClient
from services.errors import AuthError, CaseApiError, create_processed_error
from services.transforms import transform_client_details

logger = logging.getLogger("mycc.case_state")


def _transition(
    client: CaseApiClient,
    case_reference: str,
    endpoint: str,
    payload: Optional[Dict[str, Any]],
    context: str,
    refetch: bool = True,
) -> Dict[str, Any]:
    try:
        client.post(f"/case/{case_reference}/{endpoint}/", json=payload)
        logger.info("Case %s: %s succeeded", case_reference, endpoint)
        if not refetch:
            return {"status": "success", "data": None}
        body = client.get(f"/case/{case_reference}/detailed")
        return {"status": "success", "data": transform_client_details(body)}
    except AuthError:
        raise
    except (CaseApiError, ValueError) as exc:
        raise create_processed_error(exc, f"{context} case {case_reference}") from exc


def accept_case(client: CaseApiClient, case_reference: str) -> Dict[str, Any]:
    return _transition(client, case_reference, "accept", None, "accepting")


def complete_case(client: CaseApiClient, case_reference: str) -> Dict[str, Any]:
    return _transition(client, case_reference, "close", None, "completing")


def pending_case(client: CaseApiClient, case_reference: str, notes: str) -> Dict[str, Any]:
    return _transition(client, case_reference, "open", {"notes": notes}, "marking pending")


def close_case(client: CaseApiClient, case_reference: str, event_code: str, notes: str = "") -> Dict[str, Any]:
    payload: Dict[str, Any] = {"event_code": event_code}
    if notes and notes.strip():
        payload["notes"] = notes.strip()
    return _transition(client, case_reference, "reject", payload, "closing")


def reopen_case(client: CaseApiClient, case_reference: str, notes: str) -> Dict[str, Any]:
    return _transition(client, case_reference, "reopen", {"notes": notes}, "reopening", refetch=False)
