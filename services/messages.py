"""Display labels and option lists used by forms and templates."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

CASE_STATUS_LABELS: Dict[str, str] = {
    "new": "New",
    "pending": "Pending",
    "advising": "Advising",
    "closed": "Closed",
    "completed": "Completed",
}

SEARCH_STATUS_OPTIONS: List[Tuple[str, str]] = [
    ("", "All cases"),
    ("new", "New"),
    ("opened", "Pending"),
    ("accepted", "Advising"),
    ("rejected", "Closed"),
    ("closed", "Completed"),
]

PENDING_REASONS: List[Tuple[str, str]] = [
    ("not_ready", "Not ready for determination"),
    ("can_not_contact", "Cannot contact client"),
    ("third_party", "Third party authorisation"),
    ("consent_from_another", "Consent from another provider"),
    ("requires_interpreter", "Requires interpreter"),
    ("other", "Other"),
]

CLOSE_EVENT_CODES: List[Tuple[str, str]] = [
    ("MIS-MEANS", "Misdiagnosed: client is not financially eligible"),
    ("MIS-OOS", "Misdiagnosed: the problem is out of scope"),
    ("COI", "Conflict of interest"),
    ("DUPL", "Duplicate case"),
    ("MRNB", "Matter resolved before advice"),
    ("NRES", "No response from client"),
]

OUTCOME_CODES: Dict[str, str] = {
    "CLSP": "Case closed: advice given",
    "MIS-MEANS": "Misdiagnosed: means",
    "MIS-OOS": "Misdiagnosed: out of scope",
    "COI": "Conflict of interest",
    "DUPL": "Duplicate case",
    "MRNB": "Matter resolved before advice",
    "NRES": "No response from client",
    "REOPEN": "Case reopened",
    "CBSP": "Callback scheduled",
    "PCB": "Provider callback",
}

RELATIONSHIP_OPTIONS: List[Tuple[str, str]] = [
    ("PARENT_GUARDIAN", "Parent or guardian"),
    ("FAMILY_FRIEND", "Family member or friend"),
    ("PROFESSIONAL", "Professional"),
    ("LEGAL_ADVISOR", "Legal adviser"),
    ("OTHER", "Other"),
]

PASSPHRASE_YES = "Yes"
PASSPHRASE_OPTIONS: List[Tuple[str, str]] = [
    (PASSPHRASE_YES, "Yes"),
    ("CHILD_PATIENT", "No, client is a child or patient"),
    ("POWER_ATTORNEY", "No, third party has power of attorney"),
    ("CANNOT_COMMUNICATE", "No, client cannot communicate"),
    ("OTHER", "No, other reason"),
]

SUPPORT_NEED_OPTIONS: List[Tuple[str, str]] = [
    ("bslWebcam", "British Sign Language (BSL) by webcam"),
    ("textRelay", "Text relay"),
    ("skype", "Video call"),
    ("callbackPreference", "Callback preference"),
    ("languageSelection", "Language support"),
    ("otherSupport", "Other support"),
]

LANGUAGES: List[str] = [
    "Arabic", "Bengali", "Cantonese", "Farsi", "French", "Gujarati", "Kurdish",
    "Mandarin", "Panjabi", "Polish", "Portuguese", "Romanian", "Somali",
    "Spanish", "Tigrinya", "Turkish", "Urdu", "Welsh",
]


def label_for(options: List[Tuple[str, str]], value: Optional[str]) -> str:
    for key, label in options:
        if key == value:
            return label
    return value or ""


def case_status_label(status: Optional[str]) -> str:
    return CASE_STATUS_LABELS.get((status or "").lower(), status or "")


def outcome_description(code: Optional[str]) -> str:
    if not code:
        return ""
    return OUTCOME_CODES.get(code, code)
