"""Operator feedback calls against the Civil Case API.

The API describes the feedback form through an OPTIONS request: the allowed
issue categories sit under ``actions.POST.issue.choices``. Submissions POST an
``issue`` code and a free-text ``comment`` to the same endpoint.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from services.api_client import CaseApiClient
from services.errors import AuthError, CaseApiError, extract_error_message
from services.transforms import is_record, safe_string

logger = logging.getLogger("mycc.feedback")

FeedbackChoice = Tuple[str, str]


def _feedback_path(case_reference: str) -> str:
    return f"/case/{case_reference}/feedback/"


def _failure(exc: Exception, action: str) -> Dict[str, Any]:
    message = extract_error_message(exc)
    logger.warning("API error %s: %s", action, message)
    return {
        "status": "error",
        "data": None,
        "message": message,
        "status_code": getattr(exc, "status_code", None),
    }


def extract_feedback_choices(body: Any) -> List[FeedbackChoice]:
    """Pull ``(value, display_name)`` pairs out of an OPTIONS response body."""
    if not is_record(body):
        return []
    node: Any = body
    for key in ("actions", "POST", "issue"):
        node = node.get(key) if is_record(node) else None
    choices = node.get("choices") if is_record(node) else None
    if not isinstance(choices, list):
        return []

    result: List[FeedbackChoice] = []
    for choice in choices:
        if not is_record(choice):
            continue
        value = safe_string(choice.get("value"))
        if value:
            result.append((value, safe_string(choice.get("display_name")) or value))
    return result


def get_feedback_choices(client: CaseApiClient, case_reference: str) -> Dict[str, Any]:
    try:
        body = client.options(_feedback_path(case_reference))
    except AuthError:
        raise
    except CaseApiError as exc:
        return _failure(exc, f"fetching feedback choices for {case_reference}")
    return {"status": "success", "data": extract_feedback_choices(body)}


def submit_operator_feedback(client: CaseApiClient, case_reference: str, issue: str, comment: str) -> Dict[str, Any]:
    try:
        body = client.post(_feedback_path(case_reference), json={"issue": issue, "comment": comment})
    except AuthError:
        raise
    except CaseApiError as exc:
        return _failure(exc, f"submitting feedback for {case_reference}")
    logger.info("Operator feedback submitted for %s (issue=%s)", case_reference, issue)
    return {"status": "success", "data": body}
