"""Client details, third party and support needs calls against the Civil Case API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from services.api_client import CaseApiClient
from services.errors import AuthError, CaseApiError, extract_error_message
from services.messages import PASSPHRASE_YES
from services.transforms import transform_client_details, transform_history_logs

logger = logging.getLogger("mycc.client_details")

THIRD_PARTY_SOFT_DELETE_PAYLOAD: Dict[str, Any] = {
    "personal_details": {
        "title": None,
        "full_name": None,
        "postcode": None,
        "street": None,
        "mobile_phone": None,
        # The API rejects null for these two.
        "home_phone": "",
        "email": "",
        "safe_to_contact": None,
    },
    "pass_phrase": None,
    "reason": None,
    "personal_relationship": "OTHER",
    "personal_relationship_note": "",
    "spoke_to": None,
    "no_contact_reason": None,
    "organisation_name": None,
}

SUPPORT_NEEDS_CLEARED_PAYLOAD: Dict[str, Any] = {
    "bsl_webcam": False,
    "minicom": False,
    "text_relay": False,
    "skype_webcam": False,
    "language": None,
    "notes": "",
    "callback_preference": False,
    "no_adaptations_required": True,
}


def _success(data: Any) -> Dict[str, Any]:
    return {"status": "success", "data": data}


def _failure(exc: Exception, action: str) -> Dict[str, Any]:
    message = extract_error_message(exc)
    logger.warning("API error %s: %s", action, message)
    return {
        "status": "error",
        "data": None,
        "message": message,
        "status_code": getattr(exc, "status_code", None),
    }


def _detailed_path(case_reference: str) -> str:
    return f"/case/{case_reference}/detailed"


def get_client_details(client: CaseApiClient, case_reference: str) -> Dict[str, Any]:
    try:
        body = client.get(_detailed_path(case_reference))
        return _success(transform_client_details(body))
    except AuthError:
        raise
    except (CaseApiError, ValueError) as exc:
        return _failure(exc, f"fetching client details for {case_reference}")


def update_client_details(client: CaseApiClient, case_reference: str, update_data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        body = client.patch(f"/case/{case_reference}/personal_details/", json=update_data)
        return _success(transform_client_details(body))
    except AuthError:
        raise
    except (CaseApiError, ValueError) as exc:
        return _failure(exc, f"updating client details for {case_reference}")


def get_case_history(client: CaseApiClient, case_reference: str) -> Dict[str, Any]:
    try:
        body = client.get(f"/case/{case_reference}/logs/")
        return _success(transform_history_logs(body))
    except AuthError:
        raise
    except (CaseApiError, ValueError) as exc:
        return _failure(exc, f"fetching history for {case_reference}")


def save_provider_note(client: CaseApiClient, case_reference: str, note: str) -> Dict[str, Any]:
    try:
        body = client.patch(f"/case/{case_reference}/", json={"provider_notes": note})
        return _success(transform_client_details(body))
    except AuthError:
        raise
    except (CaseApiError, ValueError) as exc:
        return _failure(exc, f"saving provider note for {case_reference}")


# ----------------------------------------------------------------------
# Third party
# ----------------------------------------------------------------------
def add_third_party(client: CaseApiClient, case_reference: str, data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        body = client.post(f"/case/{case_reference}/thirdparty_details/", json=data)
        return _success(transform_client_details(body))
    except AuthError:
        raise
    except (CaseApiError, ValueError) as exc:
        return _failure(exc, f"adding third party for {case_reference}")


def update_third_party(client: CaseApiClient, case_reference: str, data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        body = client.patch(f"/case/{case_reference}/thirdparty_details/", json=data)
        return _success(transform_client_details(body))
    except AuthError:
        raise
    except (CaseApiError, ValueError) as exc:
        return _failure(exc, f"updating third party for {case_reference}")


def delete_third_party(client: CaseApiClient, case_reference: str) -> Dict[str, Any]:
    """Soft delete: blank every third party field, then reload the case."""
    try:
        client.patch(f"/case/{case_reference}/thirdparty_details/", json=THIRD_PARTY_SOFT_DELETE_PAYLOAD)
        body = client.get(_detailed_path(case_reference))
        return _success(transform_client_details(body))
    except AuthError:
        raise
    except (CaseApiError, ValueError) as exc:
        return _failure(exc, f"removing third party for {case_reference}")


def prepare_third_party_data(form: Mapping[str, Any]) -> Dict[str, Any]:
    passphrase_choice = form.get("thirdPartyPassphraseSetUp", "")
    wants_passphrase = passphrase_choice == PASSPHRASE_YES
    return {
        "personal_details": {
            "full_name": form.get("thirdPartyFullName", ""),
            "email": form.get("thirdPartyEmailAddress", ""),
            "mobile_phone": form.get("thirdPartyContactNumber", ""),
            "home_phone": "",
            "safe_to_contact": "SAFE" if form.get("thirdPartySafeToCall") else "DONT_CALL",
            "street": form.get("thirdPartyAddress", ""),
            "postcode": form.get("thirdPartyPostcode", ""),
        },
        "personal_relationship": form.get("thirdPartyRelationshipToClient") or "OTHER",
        "personal_relationship_note": "",
        "pass_phrase": form.get("thirdPartyPassphrase", "") if wants_passphrase else None,
        "reason": None if wants_passphrase else (passphrase_choice or None),
        "spoke_to": None,
        "no_contact_reason": None,
        "organisation_name": None,
    }


# ----------------------------------------------------------------------
# Support needs
# ----------------------------------------------------------------------
def _patch_and_refetch(
    client: CaseApiClient, case_reference: str, payload: Dict[str, Any], action: str
) -> Dict[str, Any]:
    try:
        client.patch(f"/case/{case_reference}/adaptation_details/", json=payload)
        body = client.get(_detailed_path(case_reference))
        return _success(transform_client_details(body))
    except AuthError:
        raise
    except (CaseApiError, ValueError) as exc:
        return _failure(exc, f"{action} for {case_reference}")


def add_support_needs(client: CaseApiClient, case_reference: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return _patch_and_refetch(client, case_reference, data, "adding support needs")


def update_support_needs(client: CaseApiClient, case_reference: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return _patch_and_refetch(client, case_reference, data, "updating support needs")


def delete_support_needs(client: CaseApiClient, case_reference: str) -> Dict[str, Any]:
    return _patch_and_refetch(client, case_reference, SUPPORT_NEEDS_CLEARED_PAYLOAD, "removing support needs")


def prepare_support_needs_data(form: Mapping[str, Any]) -> Dict[str, Any]:
    selected: List[str] = list(form.get("clientSupportNeeds") or [])
    language: Optional[str] = form.get("languageSupportNeeds") or None
    return {
        "bsl_webcam": "bslWebcam" in selected,
        "minicom": False,
        "text_relay": "textRelay" in selected,
        "skype_webcam": "skype" in selected,
        "callback_preference": "callbackPreference" in selected,
        "language": language if "languageSelection" in selected else None,
        "notes": form.get("notes", "") if "otherSupport" in selected else "",
        "no_adaptations_required": False,
    }
