"""Map Civil Case API payloads onto the dictionaries the templates render."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from services.formatting import format_date, format_long_form_date, parse_date_parts

COMPLETED_OUTCOME_CODE = "CLSP"
HIDDEN_HISTORY_CODES = {"MT_CHANGED", "MT_CREATED"}

_STATE_TO_STATUS = {
    "new": "new",
    "opened": "pending",
    "accepted": "advising",
    "rejected": "closed",
}


def safe_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def safe_optional_string(value: Any) -> Optional[str]:
    if value is None:
        return None
    return safe_string(value)


def is_record(value: Any) -> bool:
    return isinstance(value, dict)


def translate_case_status(state: str, outcome_code: str = "") -> str:
    """API state -> tab status; closed cases with a CLSP outcome count as completed."""
    if state == "closed":
        return "completed" if outcome_code == COMPLETED_OUTCOME_CODE else "closed"
    return _STATE_TO_STATUS.get(state, state)


def case_status_from_fields(item: Dict[str, Any]) -> str:
    if item.get("provider_closed"):
        return "Completed" if item.get("outcome_code") == COMPLETED_OUTCOME_CODE else "Closed"
    if item.get("provider_accepted"):
        return "Advising"
    if item.get("provider_viewed"):
        return "Pending"
    return "New"


def _provider_dates(item: Dict[str, Any]) -> Dict[str, str]:
    return {
        "provider_assigned_at": format_date(safe_string(item.get("provider_assigned_at"))),
        "provider_viewed": format_date(safe_string(item.get("provider_viewed"))),
        "provider_accepted": format_date(safe_string(item.get("provider_accepted"))),
        "provider_closed": format_date(safe_string(item.get("provider_closed"))),
    }


def transform_case_item(item: Any) -> Dict[str, Any]:
    if not is_record(item):
        raise ValueError("Invalid case item: expected object")

    outcome_code = safe_optional_string(item.get("outcome_code")) or ""
    result = {
        "fullName": safe_string(item.get("full_name")),
        "caseReference": safe_string(item.get("reference")),
        "laaReference": safe_string(item.get("laa_reference")),
        "caseStatus": translate_case_status(safe_string(item.get("state")), outcome_code),
        "lastModified": format_date(safe_string(item.get("modified"))),
        "dateOfBirth": format_date(safe_string(item.get("date_of_birth"))),
        "outcomeCode": outcome_code,
        "phoneNumber": safe_string(item.get("phone_number")),
        "safeToCall": item.get("safe_to_call") is True,
        "announceCall": item.get("announce_call") is True,
        "emailAddress": safe_string(item.get("email_address")),
        "clientIsVulnerable": item.get("client_is_vulnerable") is True,
        "address": safe_string(item.get("address")),
        "postcode": safe_string(item.get("postcode")),
    }
    result.update(_provider_dates(item))
    return result


def transform_search_item(item: Any) -> Dict[str, Any]:
    result = transform_case_item(item)
    result["caseStatus"] = case_status_from_fields(item)
    return result


def transform_contact_details(personal: Any) -> Dict[str, Any]:
    if not is_record(personal):
        personal = {}
    raw_dob = safe_string(personal.get("date_of_birth"))
    return {
        "fullName": safe_string(personal.get("full_name")),
        "dateOfBirth": format_date(raw_dob),
        "dateOfBirthParts": parse_date_parts(raw_dob),
        "phoneNumber": safe_string(personal.get("mobile_phone")) or safe_string(personal.get("home_phone")),
        "safeToCall": personal.get("safe_to_contact") == "SAFE",
        "announceCall": personal.get("announce_call") is True,
        "emailAddress": safe_string(personal.get("email")),
        "address": safe_string(personal.get("street")),
        "postcode": safe_string(personal.get("postcode")),
    }


def transform_third_party(raw: Any) -> Optional[Dict[str, Any]]:
    if not is_record(raw):
        return None
    personal = raw.get("personal_details")
    if not is_record(personal):
        personal = {}

    full_name = safe_string(personal.get("full_name"))
    relationship = safe_string(raw.get("personal_relationship"))
    pass_phrase = safe_string(raw.get("pass_phrase"))
    reason = safe_string(raw.get("reason"))
    if pass_phrase:
        passphrase_selected = ["Yes"]
    elif reason:
        passphrase_selected = [reason]
    else:
        passphrase_selected = []

    return {
        "fullName": full_name,
        "emailAddress": safe_string(personal.get("email")),
        "contactNumber": safe_string(personal.get("mobile_phone")) or safe_string(personal.get("home_phone")),
        "safeToCall": personal.get("safe_to_contact") == "SAFE",
        "address": safe_string(personal.get("street")),
        "postcode": safe_string(personal.get("postcode")),
        "relationshipToClient": {"selected": [relationship] if relationship else []},
        "passphraseSetUp": {"selected": passphrase_selected, "passphrase": pass_phrase},
        "isSoftDeleted": full_name.strip() == "",
    }


def _yes_no(value: Any) -> str:
    return "Yes" if value is True else "No"


def transform_support_needs(raw: Any) -> Optional[Dict[str, Any]]:
    if not is_record(raw):
        return None

    bsl = raw.get("bsl_webcam") is True
    text_relay = raw.get("text_relay") is True or raw.get("minicom") is True
    skype = raw.get("skype_webcam") is True
    callback = raw.get("callback_preference") is True
    language = safe_string(raw.get("language"))
    notes = safe_string(raw.get("notes"))

    nothing_set = not any((bsl, text_relay, skype, callback, language, notes))
    if nothing_set and raw.get("no_adaptations_required") is True:
        return None

    selected: List[str] = []
    for flag, value in (
        (bsl, "bslWebcam"),
        (text_relay, "textRelay"),
        (skype, "skype"),
        (callback, "callbackPreference"),
        (bool(language), "languageSelection"),
        (bool(notes), "otherSupport"),
    ):
        if flag:
            selected.append(value)

    return {
        "bslWebcam": _yes_no(bsl),
        "textRelay": _yes_no(text_relay),
        "skype": _yes_no(skype),
        "callbackPreference": _yes_no(callback),
        "languageSupportNeeds": language,
        "notes": notes,
        "selected": selected,
    }


def transform_diagnosis(raw: Any) -> Optional[Dict[str, str]]:
    if not is_record(raw):
        return None
    category = safe_optional_string(raw.get("category")) or ""
    if not category:
        return None
    return {"category": category, "state": safe_optional_string(raw.get("state")) or ""}


def transform_notes_history(raw: Any) -> List[Dict[str, str]]:
    """Provider notes, most recent first as the API returns them; blank notes are dropped."""
    if not isinstance(raw, list):
        return []
    notes = []
    for item in raw:
        if not is_record(item):
            continue
        text = safe_optional_string(item.get("provider_notes")) or ""
        if not text:
            continue
        notes.append({
            "providerNotes": text,
            "created": format_long_form_date(safe_string(item.get("created"))),
            "createdBy": safe_string(item.get("created_by")),
        })
    return notes


def transform_client_details(item: Any) -> Dict[str, Any]:
    if not is_record(item):
        raise ValueError("Invalid client details item: expected object")

    outcome_code = safe_optional_string(item.get("outcome_code")) or ""
    result: Dict[str, Any] = {
        "caseReference": safe_string(item.get("reference")),
        "providerId": safe_string(item.get("provider")),
        "laaReference": safe_string(item.get("laa_reference")),
        "caseStatus": translate_case_status(safe_string(item.get("state")), outcome_code),
        "outcome_code": outcome_code,
        "state_note": safe_optional_string(item.get("state_note")) or "",
        "is_urgent": safe_optional_string(item.get("is_urgent")) or "",
        "client_notes": safe_optional_string(item.get("client_notes")) or "",
        "operatorNotes": safe_optional_string(item.get("notes")) or "",
        "providerViewedBanner": format_long_form_date(safe_string(item.get("provider_viewed"))),
        "providerClosedBanner": format_long_form_date(safe_string(item.get("provider_closed"))),
    }
    result.update(_provider_dates(item))
    result.update(transform_contact_details(item.get("personal_details")))
    result["clientSupportNeeds"] = transform_support_needs(item.get("adaptation_details"))
    result["thirdParty"] = transform_third_party(item.get("thirdparty_details"))
    result["diagnosis"] = transform_diagnosis(item.get("diagnosis"))
    result["notesHistory"] = transform_notes_history(item.get("notes_history"))
    return result


def transform_history_log(item: Any) -> Dict[str, str]:
    if not is_record(item):
        raise ValueError("Invalid history item: expected object")
    return {
        "code": safe_string(item.get("code")),
        "createdBy": safe_string(item.get("created_by")),
        "created": format_long_form_date(safe_string(item.get("created"))),
        "notes": safe_optional_string(item.get("notes")) or "",
    }


def transform_history_logs(raw: Any) -> List[Dict[str, str]]:
    if is_record(raw) and isinstance(raw.get("results"), list):
        raw = raw["results"]
    if not isinstance(raw, list):
        return []
    return [
        transform_history_log(item)
        for item in raw
        if is_record(item) and safe_string(item.get("code")) not in HIDDEN_HISTORY_CODES
    ]
