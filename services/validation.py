"""Form validation for login, search, client edits and case state changes.

Each ``validate_*`` function takes the posted form and returns
``(values, errors)``. ``values`` holds the cleaned fields, and ``errors`` is an
ordered list of :class:`FieldError`. :func:`build_error_context` turns the
errors into the GOV.UK error summary structure the templates expect.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Tuple

import phonenumbers

from services.formatting import date_string_from_three_fields
from services.messages import (
    CLOSE_EVENT_CODES,
    LANGUAGES,
    PASSPHRASE_OPTIONS,
    PASSPHRASE_YES,
    PENDING_REASONS,
    RELATIONSHIP_OPTIONS,
    SUPPORT_NEED_OPTIONS,
)

MAX_NOTE_LENGTH = 5000
MAX_PROVIDER_NOTE_LENGTH = 2500
MAX_FEEDBACK_COMMENT_LENGTH = 2500
MAX_ADDRESS_LENGTH = 255
MAX_POSTCODE_LENGTH = 12
MIN_BIRTH_YEAR = 1900
PHONE_REGIONS = ("GB", "IN")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

Values = Dict[str, Any]


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


Result = Tuple[Values, List[FieldError]]


def _get(form: Mapping[str, Any], key: str) -> str:
    value = form.get(key)
    if value is None:
        return ""
    return str(value).strip()


def _getlist(form: Mapping[str, Any], key: str) -> List[str]:
    getlist = getattr(form, "getlist", None)
    if callable(getlist):
        raw = getlist(key)
    else:
        raw = form.get(key) or []
        if isinstance(raw, str):
            raw = [raw]
    return [str(item).strip() for item in raw if str(item).strip()]


def _is_checked(form: Mapping[str, Any], key: str) -> bool:
    return _get(form, key).lower() in {"true", "on", "yes", "1"}


def build_error_context(errors: List[FieldError]) -> Dict[str, Any]:
    input_errors: Dict[str, str] = {}
    summary: List[Dict[str, str]] = []
    for error in errors:
        if error.field in input_errors:
            continue
        input_errors[error.field] = error.message
        summary.append({"text": error.message, "href": f"#{error.field}"})
    return {"inputErrors": input_errors, "errorSummaryList": summary}


def is_valid_phone_number(value: str) -> bool:
    for region in PHONE_REGIONS:
        try:
            parsed = phonenumbers.parse(value, region)
        except phonenumbers.NumberParseException:
            continue
        if phonenumbers.is_valid_number(parsed):
            return True
    return False


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value))


# ----------------------------------------------------------------------
# Login and search
# ----------------------------------------------------------------------
def validate_login(form: Mapping[str, Any]) -> Result:
    values = {"username": _get(form, "username"), "password": form.get("password") or ""}
    errors: List[FieldError] = []
    if not values["username"]:
        errors.append(FieldError("username", "Enter your username"))
    if not values["password"]:
        errors.append(FieldError("password", "Enter your password"))
    return values, errors


def validate_search(form: Mapping[str, Any]) -> Result:
    values = {"searchKeyword": _get(form, "searchKeyword"), "status": _get(form, "status")}
    errors: List[FieldError] = []
    if not values["searchKeyword"]:
        errors.append(FieldError("searchKeyword", "Enter a search term"))
    return values, errors


# ----------------------------------------------------------------------
# Client details
# ----------------------------------------------------------------------
def validate_name(form: Mapping[str, Any]) -> Result:
    full_name = _get(form, "fullName")
    values = {
        "fullName": full_name,
        "existingFullName": _get(form, "existingFullName"),
        "apiData": {"full_name": full_name},
    }
    errors: List[FieldError] = []
    if not values["fullName"]:
        errors.append(FieldError("fullName", "Enter the client's full name"))
    elif values["fullName"] == values["existingFullName"]:
        errors.append(FieldError("fullName", "Update the client name or select 'Cancel'"))
    return values, errors


def validate_date_of_birth(form: Mapping[str, Any], today: Optional[date] = None) -> Result:
    today = today or date.today()
    day = _get(form, "dateOfBirth-day")
    month = _get(form, "dateOfBirth-month")
    year = _get(form, "dateOfBirth-year")
    values: Values = {
        "dateOfBirth-day": day,
        "dateOfBirth-month": month,
        "dateOfBirth-year": year,
        "originalDay": _get(form, "originalDay"),
        "originalMonth": _get(form, "originalMonth"),
        "originalYear": _get(form, "originalYear"),
    }
    errors: List[FieldError] = []

    if not (day or month or year):
        errors.append(FieldError("dateOfBirth-day", "Enter the client's date of birth"))
        return values, errors

    for part, label in ((day, "day"), (month, "month"), (year, "year")):
        if not part:
            errors.append(FieldError(f"dateOfBirth-{label}", f"Date of birth must include a {label}"))
    if errors:
        return values, errors

    if not (day.isdigit() and month.isdigit() and year.isdigit()):
        errors.append(FieldError("dateOfBirth-day", "Date of birth must be a real date"))
        return values, errors

    if len(year) != 4:
        errors.append(FieldError("dateOfBirth-year", "Year must include 4 numbers"))
        return values, errors

    try:
        parsed = date(int(year), int(month), int(day))
    except ValueError:
        errors.append(FieldError("dateOfBirth-day", "Date of birth must be a real date"))
        return values, errors

    if parsed.year < MIN_BIRTH_YEAR:
        errors.append(FieldError("dateOfBirth-year", f"Year must be {MIN_BIRTH_YEAR} or later"))
    elif parsed > today:
        errors.append(FieldError("dateOfBirth-day", "Date of birth must be in the past"))
    elif _same_date_parts((day, month, year), values):
        errors.append(FieldError("dateOfBirth-day", "Update the client date of birth or select 'Cancel'"))

    values["dateOfBirth"] = date_string_from_three_fields(day, month, year)
    values["apiData"] = {"date_of_birth": values["dateOfBirth"]}
    return values, errors


def _same_date_parts(parts: Tuple[str, str, str], values: Values) -> bool:
    original = (values["originalDay"], values["originalMonth"], values["originalYear"])
    if not all(original):
        return False
    try:
        return tuple(int(p) for p in parts) == tuple(int(p) for p in original)
    except ValueError:
        return False


def validate_phone_number(form: Mapping[str, Any]) -> Result:
    phone = _get(form, "phoneNumber")
    safe_to_call = _is_checked(form, "safeToCall")
    announce_call = _is_checked(form, "announceCall")
    values: Values = {
        "phoneNumber": phone,
        "safeToCall": safe_to_call,
        "announceCall": announce_call,
        "apiData": {
            "mobile_phone": phone,
            "home_phone": "",
            "safe_to_contact": "SAFE" if safe_to_call else "DONT_CALL",
            "announce_call": announce_call,
        },
    }
    errors: List[FieldError] = []
    if not phone:
        errors.append(FieldError("phoneNumber", "Enter the client's phone number"))
    elif not is_valid_phone_number(phone):
        errors.append(FieldError("phoneNumber", "Enter a phone number in the correct format"))
    elif (
        phone == _get(form, "existingPhoneNumber")
        and safe_to_call == _is_checked(form, "existingSafeToCall")
        and announce_call == _is_checked(form, "existingAnnounceCall")
    ):
        errors.append(FieldError("phoneNumber", "Update the client phone number or select 'Cancel'"))
    return values, errors


def validate_email_address(form: Mapping[str, Any]) -> Result:
    email = _get(form, "emailAddress")
    values: Values = {"emailAddress": email, "apiData": {"email": email}}
    errors: List[FieldError] = []
    if email and not is_valid_email(email):
        errors.append(FieldError("emailAddress", "Enter an email address in the correct format, like name@example.com"))
    elif email == _get(form, "existingEmailAddress"):
        errors.append(FieldError("emailAddress", "Update the client email address or select 'Cancel'"))
    return values, errors


def validate_address(form: Mapping[str, Any]) -> Result:
    address = _get(form, "address")
    postcode = _get(form, "postcode").upper()
    values: Values = {
        "address": address,
        "postcode": postcode,
        "apiData": {"street": address, "postcode": postcode},
    }
    errors: List[FieldError] = []
    if len(address) > MAX_ADDRESS_LENGTH:
        errors.append(FieldError("address", f"Address must be {MAX_ADDRESS_LENGTH} characters or less"))
    if len(postcode) > MAX_POSTCODE_LENGTH:
        errors.append(FieldError("postcode", f"Postcode must be {MAX_POSTCODE_LENGTH} characters or less"))
    if not errors and address == _get(form, "existingAddress") and postcode == _get(form, "existingPostcode").upper():
        errors.append(FieldError("address", "Update the client address or select 'Cancel'"))
    return values, errors


# ----------------------------------------------------------------------
# Third party and support needs
# ----------------------------------------------------------------------
def validate_third_party(form: Mapping[str, Any]) -> Result:
    values: Values = {
        "thirdPartyFullName": _get(form, "thirdPartyFullName"),
        "thirdPartyEmailAddress": _get(form, "thirdPartyEmailAddress"),
        "thirdPartyContactNumber": _get(form, "thirdPartyContactNumber"),
        "thirdPartySafeToCall": _is_checked(form, "thirdPartySafeToCall"),
        "thirdPartyAddress": _get(form, "thirdPartyAddress"),
        "thirdPartyPostcode": _get(form, "thirdPartyPostcode").upper(),
        "thirdPartyRelationshipToClient": _get(form, "thirdPartyRelationshipToClient"),
        "thirdPartyPassphraseSetUp": _get(form, "thirdPartyPassphraseSetUp"),
        "thirdPartyPassphrase": _get(form, "thirdPartyPassphrase"),
    }
    errors: List[FieldError] = []

    if not values["thirdPartyFullName"]:
        errors.append(FieldError("thirdPartyFullName", "Enter the third party's full name"))
    email = values["thirdPartyEmailAddress"]
    if email and not is_valid_email(email):
        errors.append(FieldError("thirdPartyEmailAddress", "Enter an email address in the correct format, like name@example.com"))
    number = values["thirdPartyContactNumber"]
    if number and not is_valid_phone_number(number):
        errors.append(FieldError("thirdPartyContactNumber", "Enter a contact number in the correct format"))
    if len(values["thirdPartyPostcode"]) > MAX_POSTCODE_LENGTH:
        errors.append(FieldError("thirdPartyPostcode", f"Postcode must be {MAX_POSTCODE_LENGTH} characters or less"))

    relationship = values["thirdPartyRelationshipToClient"]
    if relationship not in {key for key, _ in RELATIONSHIP_OPTIONS}:
        errors.append(FieldError("thirdPartyRelationshipToClient", "Select the third party's relationship to the client"))

    choice = values["thirdPartyPassphraseSetUp"]
    if choice not in {key for key, _ in PASSPHRASE_OPTIONS}:
        errors.append(FieldError("thirdPartyPassphraseSetUp", "Select if a passphrase has been set up"))
    elif choice == PASSPHRASE_YES and not values["thirdPartyPassphrase"]:
        errors.append(FieldError("thirdPartyPassphrase", "Enter the passphrase"))

    return values, errors


def validate_support_needs(form: Mapping[str, Any], original: Optional[Mapping[str, Any]] = None) -> Result:
    """Checks the support needs form; ``original`` enables unchanged detection on edit."""
    selected = _getlist(form, "clientSupportNeeds")
    values: Values = {
        "clientSupportNeeds": selected,
        "languageSupportNeeds": _get(form, "languageSupportNeeds"),
        "notes": _get(form, "notes"),
    }
    errors: List[FieldError] = []
    known = {key for key, _ in SUPPORT_NEED_OPTIONS}

    if not selected or any(item not in known for item in selected):
        errors.append(FieldError("clientSupportNeeds", "Select the client's support needs"))
    if "languageSelection" in selected:
        if not values["languageSupportNeeds"]:
            errors.append(FieldError("languageSupportNeeds", "Select a language"))
        elif values["languageSupportNeeds"] not in LANGUAGES:
            errors.append(FieldError("languageSupportNeeds", "Select a language from the list"))
    if "otherSupport" in selected:
        if not values["notes"]:
            errors.append(FieldError("notes", "Enter details of the other support needed"))
        elif len(values["notes"]) > MAX_NOTE_LENGTH:
            errors.append(FieldError("notes", f"Notes must be {MAX_NOTE_LENGTH} characters or less"))

    if not errors and original is not None and _support_needs_unchanged(values, original):
        errors.append(FieldError("clientSupportNeeds", "Update the client support needs or select 'Cancel'"))
    return values, errors


def _support_needs_unchanged(values: Values, original: Mapping[str, Any]) -> bool:
    return (
        sorted(values["clientSupportNeeds"]) == sorted(original.get("clientSupportNeeds") or [])
        and values["languageSupportNeeds"] == (original.get("languageSupportNeeds") or "")
        and values["notes"] == (original.get("notes") or "")
    )


# ----------------------------------------------------------------------
# Case state changes
# ----------------------------------------------------------------------
def validate_pending(form: Mapping[str, Any]) -> Result:
    reason = _get(form, "pendingReason")
    other_note = _get(form, "otherNote")
    values: Values = {"pendingReason": reason, "otherNote": other_note}
    errors: List[FieldError] = []
    reasons = dict(PENDING_REASONS)

    if reason not in reasons:
        errors.append(FieldError("pendingReason", "Select why this case is pending"))
    elif reason == "other" and not other_note:
        errors.append(FieldError("otherNote", "Enter why this case is pending"))
    if len(other_note) > MAX_NOTE_LENGTH:
        errors.append(FieldError("otherNote", f"Note must be {MAX_NOTE_LENGTH} characters or less"))

    if not errors:
        values["notes"] = other_note if reason == "other" else reasons[reason]
    return values, errors


def validate_close(form: Mapping[str, Any]) -> Result:
    values: Values = {"eventCode": _get(form, "eventCode"), "closeNote": _get(form, "closeNote")}
    errors: List[FieldError] = []
    if values["eventCode"] not in {code for code, _ in CLOSE_EVENT_CODES}:
        errors.append(FieldError("eventCode", "Select why this case is closed"))
    if len(values["closeNote"]) > MAX_NOTE_LENGTH:
        errors.append(FieldError("closeNote", f"Note must be {MAX_NOTE_LENGTH} characters or less"))
    return values, errors


def validate_reopen(form: Mapping[str, Any]) -> Result:
    values: Values = {"reopenNote": _get(form, "reopenNote")}
    errors: List[FieldError] = []
    if not values["reopenNote"]:
        errors.append(FieldError("reopenNote", "Enter why this case is being reopened"))
    elif len(values["reopenNote"]) > MAX_NOTE_LENGTH:
        errors.append(FieldError("reopenNote", f"Note must be {MAX_NOTE_LENGTH} characters or less"))
    return values, errors


# ----------------------------------------------------------------------
# Provider notes and operator feedback
# ----------------------------------------------------------------------
def validate_provider_note(form: Mapping[str, Any]) -> Result:
    values: Values = {"providerNote": _get(form, "providerNote")}
    errors: List[FieldError] = []
    if not values["providerNote"]:
        errors.append(FieldError("providerNote", "Enter a note"))
    elif len(values["providerNote"]) > MAX_PROVIDER_NOTE_LENGTH:
        errors.append(FieldError("providerNote", f"Note must be {MAX_PROVIDER_NOTE_LENGTH} characters or less"))
    return values, errors


def validate_operator_feedback(form: Mapping[str, Any], choices: Optional[List[Tuple[str, str]]] = None) -> Result:
    """Category must be one of ``choices`` when they are known."""
    values: Values = {"category": _get(form, "category"), "comment": _get(form, "comment")}
    errors: List[FieldError] = []
    category = values["category"]
    if not category or (choices is not None and category not in {value for value, _ in choices}):
        errors.append(FieldError("category", "Select a feedback category"))
    if not values["comment"]:
        errors.append(FieldError("comment", "Enter your feedback"))
    elif len(values["comment"]) > MAX_FEEDBACK_COMMENT_LENGTH:
        errors.append(FieldError("comment", f"Feedback must be {MAX_FEEDBACK_COMMENT_LENGTH} characters or less"))
    return values, errors


def validate_give_feedback(form: Mapping[str, Any]) -> Result:
    values: Values = {"doYouWantToGiveFeedback": _get(form, "doYouWantToGiveFeedback")}
    errors: List[FieldError] = []
    if values["doYouWantToGiveFeedback"] not in ("true", "false"):
        errors.append(FieldError("doYouWantToGiveFeedback", "Select yes if you want to give feedback"))
    return values, errors
